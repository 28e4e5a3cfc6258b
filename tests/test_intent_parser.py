from fast3r_engine.chat.intent_parser import parse_intent, parse_repl_command


def test_parse_intent_image_command_any_case():
    intent = parse_intent("/IMAGE a red cube")
    assert intent.capability == "generate_image"
    assert intent.prompt == "a red cube"


def test_parse_intent_image_command_trims_surrounding_space():
    intent = parse_intent("   /image    a chrome teapot on a turntable   ")
    assert intent.capability == "generate_image"
    assert intent.prompt == "a chrome teapot on a turntable"


def test_parse_intent_video_command():
    intent = parse_intent("/Video orbit around the statue")
    assert intent.capability == "generate_video"
    assert intent.prompt == "orbit around the statue"


def test_parse_intent_command_without_prompt():
    intent = parse_intent("/image")
    assert intent.capability == "generate_image"
    assert intent.prompt == ""


def test_parse_intent_command_token_needs_boundary():
    intent = parse_intent("/imagery is a word")
    assert intent.capability == "chat"


def test_parse_intent_audio_wins_over_everything():
    intent = parse_intent("/image a cube", has_attached_image=True, has_attached_audio=True)
    assert intent.capability == "transcribe"


def test_parse_intent_command_wins_over_attached_image():
    intent = parse_intent("/video spin it", has_attached_image=True)
    assert intent.capability == "generate_video"
    assert intent.prompt == "spin it"


def test_parse_intent_attached_image_without_command():
    intent = parse_intent("what is wrong with this capture?", has_attached_image=True)
    assert intent.capability == "analyze_image"
    assert intent.prompt == "what is wrong with this capture?"


def test_parse_intent_attached_image_empty_text():
    intent = parse_intent("", has_attached_image=True)
    assert intent.capability == "analyze_image"
    assert intent.prompt == ""


def test_parse_intent_plain_text_is_chat():
    intent = parse_intent("How many photos do I need for a car?")
    assert intent.capability == "chat"
    assert intent.raw == "How many photos do I need for a car?"


def test_parse_intent_command_not_at_start_is_chat():
    intent = parse_intent("please /image a cube")
    assert intent.capability == "chat"


def test_parse_repl_command_quoted_path():
    spec, args = parse_repl_command('/analyze "/tmp/my car.jpg"')
    assert spec.action == "analyze"
    assert args == ["/tmp/my car.jpg"]


def test_parse_repl_command_edit_splits_path_and_prompt():
    spec, args = parse_repl_command("/edit car.jpg remove the background")
    assert spec.action == "edit"
    assert args == ["car.jpg", "remove the background"]


def test_parse_repl_command_raw_and_none_args():
    spec, args = parse_repl_command("/size 2K")
    assert spec.action == "set_image_size"
    assert args == ["2K"]
    spec, args = parse_repl_command("/record")
    assert spec.action == "toggle_recording"
    assert args == []


def test_parse_repl_command_ignores_assistant_commands():
    assert parse_repl_command("/image a cube") is None
    assert parse_repl_command("hello") is None


def test_intent_rejects_unknown_capability():
    import pytest

    from fast3r_engine.chat.intent_schema import Intent

    with pytest.raises(ValueError):
        Intent(capability="teleport", raw="", prompt="")
