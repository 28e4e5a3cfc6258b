from fast3r_engine.runs.events import EventWriter, emit, read_events


def test_event_writer_appends_jsonl(tmp_path):
    path = tmp_path / "events.jsonl"
    writer = EventWriter(path, "run-1")
    writer.emit("session_started", gateway="dryrun")
    writer.emit("message_appended", index=0, role="assistant")

    events = list(read_events(path))
    assert [event["type"] for event in events] == ["session_started", "message_appended"]
    assert all(event["run_id"] == "run-1" for event in events)
    assert events[1]["index"] == 0


def test_event_payload_hides_media_and_credentials(tmp_path):
    writer = EventWriter(tmp_path / "events.jsonl", "run-1")
    event = writer.emit(
        "provider_request",
        api_key="secret",
        image=b"\x89PNG",
        media_url="data:image/png;base64,AAAA",
        nested={"key": "secret", "size": "2K"},
    )

    assert event["api_key"] == "<omitted>"
    assert event["image"] == "<omitted>"
    assert event["media_url"].startswith("<data-uri:")
    assert event["nested"] == {"key": "<omitted>", "size": "2K"}


def test_emit_without_writer_is_noop():
    emit(None, "anything", value=1)


def test_read_events_filters_by_type(tmp_path):
    path = tmp_path / "events.jsonl"
    writer = EventWriter(path)
    writer.emit("video_poll", poll=1)
    writer.emit("job_created", job_id="abc")
    writer.emit("video_poll", poll=2, type="spoofed")

    polls = list(read_events(path, "video_poll"))
    assert [event["poll"] for event in polls] == [1, 2]
    assert list(read_events(tmp_path / "missing.jsonl")) == []
