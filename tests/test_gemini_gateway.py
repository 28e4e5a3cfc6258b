import asyncio
from types import SimpleNamespace

import pytest
from google.genai import errors as genai_errors

from fast3r_engine.config import EngineConfig
from fast3r_engine.errors import GenerationFailed, ProviderUnavailable
from fast3r_engine.media.store import MediaStore
from fast3r_engine.providers import gemini as gemini_module
from fast3r_engine.providers.base import ADVICE_FALLBACK_EXPLANATION, DEFAULT_ADVICE_SETTINGS, NO_ANSWER_TEXT, ImageInput
from fast3r_engine.providers.gemini import GeminiGateway
from fast3r_engine.providers.google_utils import with_credential
from fast3r_engine.reconstruction.jobs import JobSettings


class _FakeModels:
    def __init__(self, responses=None, video_operation=None):
        self.responses = list(responses or [])
        self.video_operation = video_operation
        self.calls = []
        self.video_calls = []

    async def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def generate_videos(self, **kwargs):
        self.video_calls.append(kwargs)
        return self.video_operation


class _FakeOperations:
    def __init__(self, operations):
        self.operations = list(operations)
        self.calls = 0

    async def get(self, operation):
        self.calls += 1
        return self.operations.pop(0)


def _client(models, operations=None):
    return SimpleNamespace(aio=SimpleNamespace(models=models, operations=operations or _FakeOperations([])))


def _gateway(tmp_path, client, **overrides):
    config = EngineConfig(api_key="test-key", media_dir=tmp_path / "media", **overrides)
    return GeminiGateway(config, client=client, media=MediaStore(config.media_dir))


def _text_response(text, links=()):
    chunks = [SimpleNamespace(web=SimpleNamespace(uri=uri, title=title)) for uri, title in links]
    candidate = SimpleNamespace(
        content=SimpleNamespace(parts=[SimpleNamespace(text=text, thought=False, inline_data=None)]),
        grounding_metadata=SimpleNamespace(grounding_chunks=chunks),
    )
    return SimpleNamespace(candidates=[candidate], text=text)


def _image_response(data=b"\x89PNG-bytes", mime_type="image/png"):
    part = SimpleNamespace(text=None, thought=False, inline_data=SimpleNamespace(data=data, mime_type=mime_type))
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))], text=None)


def _video_operation(done, uri=None, name="operations/video-1"):
    response = None
    if uri:
        response = SimpleNamespace(generated_videos=[SimpleNamespace(video=SimpleNamespace(uri=uri))])
    return SimpleNamespace(name=name, done=done, error=None, response=response)


def test_gateway_requires_api_key(tmp_path):
    with pytest.raises(ProviderUnavailable):
        GeminiGateway(EngineConfig(api_key=None, media_dir=tmp_path), client=object())


def test_advice_parses_structured_response(tmp_path):
    payload = (
        '{"settings": {"resolution": "2048", "mode": "mesh", "cameraIntrinsics": "manual", '
        '"optimization": "quality"}, "explanation": "Many sharp views of a car."}'
    )
    models = _FakeModels([SimpleNamespace(text=payload, candidates=[])])
    advice = asyncio.run(_gateway(tmp_path, _client(models)).request_advice(24, "Car"))

    assert advice.settings == JobSettings(
        resolution="2048", mode="mesh", camera_intrinsics="manual", optimization="quality"
    )
    assert advice.explanation == "Many sharp views of a car."
    assert advice.recovered is False
    assert models.calls[0]["model"] == "gemini-3-flash-preview"
    assert "24 images" in models.calls[0]["contents"]


@pytest.mark.parametrize(
    "raw",
    [
        "not json at all",
        '{"settings": {"resolution": "999"}, "explanation": "x"}',
        '{"settings": {"resolution": "1024", "mode": "mesh", "cameraIntrinsics": "auto", "optimization": "quality"}}',
        "",
    ],
)
def test_advice_recovers_from_malformed_output(tmp_path, raw):
    models = _FakeModels([SimpleNamespace(text=raw, candidates=[])])
    advice = asyncio.run(_gateway(tmp_path, _client(models)).request_advice(3, "Mug"))

    assert advice.settings == DEFAULT_ADVICE_SETTINGS
    assert advice.explanation == ADVICE_FALLBACK_EXPLANATION
    assert advice.recovered is True


def test_provider_api_error_becomes_provider_unavailable(tmp_path):
    error = genai_errors.ClientError(
        429, {"error": {"code": 429, "message": "Quota exceeded", "status": "RESOURCE_EXHAUSTED"}}
    )
    models = _FakeModels([error])
    with pytest.raises(ProviderUnavailable) as excinfo:
        asyncio.run(_gateway(tmp_path, _client(models)).chat("hello"))
    assert excinfo.value.status_code == 429


def test_chat_default_has_no_search_and_no_links(tmp_path):
    models = _FakeModels([_text_response("Use 20 photos.", links=[("https://a.example", "A")])])
    answer = asyncio.run(_gateway(tmp_path, _client(models)).chat("How many photos for a chair?"))

    assert answer.text == "Use 20 photos."
    assert answer.grounding_links == ()
    assert answer.model == "gemini-2.5-flash-lite"
    assert not models.calls[0]["config"].tools


def test_chat_live_info_uses_search_and_returns_links(tmp_path):
    models = _FakeModels([_text_response("Here is the news.", links=[("https://a.example", "A")])])
    answer = asyncio.run(_gateway(tmp_path, _client(models)).chat("What is the news today?"))

    assert answer.rule == "live_info"
    assert answer.model == "gemini-3-flash-preview"
    assert [(link.uri, link.title) for link in answer.grounding_links] == [("https://a.example", "A")]
    assert models.calls[0]["config"].tools


def test_chat_extended_reasoning_sets_thinking_budget(tmp_path):
    models = _FakeModels([_text_response("Deep answer")])
    answer = asyncio.run(_gateway(tmp_path, _client(models)).chat("plan a workflow", use_extended_reasoning=True))

    assert answer.model == "gemini-3-pro-preview"
    assert models.calls[0]["config"].thinking_config.thinking_budget == 32768


def test_chat_with_image_attaches_inline_data(tmp_path):
    models = _FakeModels([_text_response("Blurry edges.")])
    image = ImageInput(data=b"jpeg-bytes", mime_type="image/jpeg")
    answer = asyncio.run(_gateway(tmp_path, _client(models)).chat("check this", image=image))

    assert answer.rule == "attached_image"
    parts = models.calls[0]["contents"][0].parts
    assert parts[1].inline_data.data == b"jpeg-bytes"
    assert parts[1].inline_data.mime_type == "image/jpeg"


def test_chat_without_text_falls_back(tmp_path):
    models = _FakeModels([SimpleNamespace(candidates=[], text=None)])
    answer = asyncio.run(_gateway(tmp_path, _client(models)).chat("hello"))
    assert answer.text == NO_ANSWER_TEXT


def test_generate_image_returns_data_uri(tmp_path):
    models = _FakeModels([_image_response()])
    ref = asyncio.run(_gateway(tmp_path, _client(models)).generate_image("a red cube", "2k"))

    assert ref.url.startswith("data:image/png;base64,")
    config = models.calls[0]["config"]
    assert config.image_config.image_size == "2K"
    assert config.image_config.aspect_ratio == "1:1"
    assert models.calls[0]["model"] == "gemini-3-pro-image-preview"


def test_generate_image_without_image_fails(tmp_path):
    models = _FakeModels([_text_response("I cannot draw that.")])
    with pytest.raises(GenerationFailed):
        asyncio.run(_gateway(tmp_path, _client(models)).generate_image("a red cube"))


def test_edit_image_uses_edit_model(tmp_path):
    models = _FakeModels([_image_response(mime_type="image/jpeg")])
    image = ImageInput(data=b"jpeg-bytes", mime_type="image/jpeg")
    ref = asyncio.run(_gateway(tmp_path, _client(models)).edit_image(image, "remove background"))

    assert ref.url.startswith("data:image/jpeg;base64,")
    assert models.calls[0]["model"] == "gemini-2.5-flash-image"


def test_transcribe_returns_text(tmp_path):
    models = _FakeModels([_text_response("  hello there  ")])
    text = asyncio.run(_gateway(tmp_path, _client(models)).transcribe(b"audio", "audio/wav"))

    assert text == "hello there"
    assert models.calls[0]["contents"][0].parts[0].inline_data.mime_type == "audio/wav"


def test_generate_video_polls_then_downloads(tmp_path, monkeypatch):
    models = _FakeModels(video_operation=_video_operation(False))
    operations = _FakeOperations(
        [
            _video_operation(False),
            _video_operation(True, uri="https://media.example/v1/files/abc:download?alt=media"),
        ]
    )
    downloaded = []

    def fake_download(url, timeout_s):
        downloaded.append(url)
        return b"mp4-bytes"

    monkeypatch.setattr(gemini_module, "_download_bytes", fake_download)
    gateway = _gateway(tmp_path, _client(models, operations), video_poll_interval_s=0)
    ref = asyncio.run(gateway.generate_video("orbit around a statue", "9:16"))

    assert operations.calls == 2
    assert downloaded == ["https://media.example/v1/files/abc:download?alt=media&key=test-key"]
    assert ref.url.startswith("blob:fast3r/")
    assert gateway.media.read(ref.url) == b"mp4-bytes"
    assert ref.mime_type == "video/mp4"
    config = models.video_calls[0]["config"]
    assert config.aspect_ratio == "9:16"
    assert config.resolution == "720p"
    assert config.number_of_videos == 1


def test_generate_video_without_link_fails(tmp_path):
    models = _FakeModels(video_operation=_video_operation(True))
    with pytest.raises(GenerationFailed):
        asyncio.run(_gateway(tmp_path, _client(models), video_poll_interval_s=0).generate_video("spin"))


def test_generate_video_rejects_unknown_aspect_ratio(tmp_path):
    with pytest.raises(ValueError):
        asyncio.run(_gateway(tmp_path, _client(_FakeModels())).generate_video("spin", "4:3"))


def test_with_credential_replaces_existing_key():
    assert with_credential("https://x.example/f?key=old&alt=media", "new") == "https://x.example/f?alt=media&key=new"
    assert with_credential("https://x.example/f", "k") == "https://x.example/f?key=k"
