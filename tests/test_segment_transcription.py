from __future__ import annotations

import asyncio
import types

import httpx
import numpy as np
import pytest

from livescribe.config import Settings
from livescribe.data.models import AudioSegment
from livescribe.errors import ConfigError, TranscriptionError
from livescribe.services.factory import ServiceConfigurationError, resolve_segment_transcriber
from livescribe.services.transcription import DummySegmentTranscriber, HttpSegmentTranscriber
from livescribe.services.transcription.openai_client import OpenAISegmentTranscriber
from livescribe.utils.audio import read_wav


def _segment(segment_id: int = 4) -> AudioSegment:
    return AudioSegment(
        segment_id=segment_id,
        start_offset_ms=segment_id * 4_900.0,
        planned_duration_ms=5_000,
        overlap_ms=100,
        sample_rate=16_000,
        channels=1,
        chunks=[np.full((1_600, 1), 0.25, dtype=np.float32)],
    )


def _http_transcriber(handler) -> HttpSegmentTranscriber:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpSegmentTranscriber(
        "http://meetings.test/",
        "jwt-token",
        settings=Settings(),
        client=client,
    )


def test_http_transcriber_posts_wav_with_bearer_token() -> None:
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["headers"] = request.headers
        captured["body"] = request.content
        return httpx.Response(200, json={"text": " hello world "})

    fragment = asyncio.run(_http_transcriber(handler).submit(_segment()))

    assert captured["url"] == "http://meetings.test/transcribe"
    assert captured["headers"]["authorization"] == "Bearer jwt-token"
    assert captured["headers"]["content-type"] == "audio/wav"
    audio, sample_rate = read_wav(captured["body"])
    assert sample_rate == 16_000
    assert audio.shape == (1_600, 1)
    assert fragment.text == " hello world "
    assert fragment.source_segment_id == 4
    assert fragment.is_final


def test_http_transcriber_accepts_legacy_transcription_key() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"transcription": "from the relay"})

    fragment = asyncio.run(_http_transcriber(handler).submit(_segment()))

    assert fragment.text == "from the relay"


def test_http_transcriber_reports_backend_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "Failed to transcribe audio"})

    with pytest.raises(TranscriptionError) as excinfo:
        asyncio.run(_http_transcriber(handler).submit(_segment()))

    assert "HTTP 500" in str(excinfo.value)
    assert "Failed to transcribe audio" in str(excinfo.value)
    assert isinstance(excinfo.value.cause, httpx.HTTPStatusError)
    assert excinfo.value.cause.response.status_code == 500


def test_http_transcriber_wraps_network_failures() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TranscriptionError) as excinfo:
        asyncio.run(_http_transcriber(handler).submit(_segment()))

    assert isinstance(excinfo.value.cause, httpx.ConnectError)


@pytest.mark.parametrize("body", [b"<html>oops</html>", b"[1, 2, 3]"])
def test_http_transcriber_rejects_malformed_responses(body: bytes) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=body)

    with pytest.raises(TranscriptionError):
        asyncio.run(_http_transcriber(handler).submit(_segment()))


class _FakeOpenAIError(Exception):
    pass


def _openai_transcriber(create) -> OpenAISegmentTranscriber:
    transcriber = object.__new__(OpenAISegmentTranscriber)
    transcriber.model = "whisper-1"
    transcriber.language = "es"
    transcriber._openai_error_cls = _FakeOpenAIError
    transcriber.client = types.SimpleNamespace(
        audio=types.SimpleNamespace(transcriptions=types.SimpleNamespace(create=create))
    )
    return transcriber


def test_openai_transcriber_sends_named_wav_file() -> None:
    captured = {}

    async def create(**kwargs):
        captured.update(kwargs)
        return types.SimpleNamespace(text="hola equipo")

    fragment = asyncio.run(_openai_transcriber(create).submit(_segment(7)))

    name, payload, content_type = captured["file"]
    assert name == "segment-7.wav"
    assert payload.startswith(b"RIFF")
    assert content_type == "audio/wav"
    assert captured["model"] == "whisper-1"
    assert captured["language"] == "es"
    assert fragment.text == "hola equipo"
    assert fragment.source_segment_id == 7


def test_openai_transcriber_maps_provider_errors() -> None:
    async def create(**kwargs):
        raise _FakeOpenAIError("rate limited")

    with pytest.raises(TranscriptionError) as excinfo:
        asyncio.run(_openai_transcriber(create).submit(_segment()))

    assert "rate limited" in str(excinfo.value)


def test_dummy_transcriber_records_submissions() -> None:
    transcriber = DummySegmentTranscriber(prefix="Test")

    fragment = asyncio.run(transcriber.submit(_segment(2)))

    assert transcriber.submitted == [2]
    assert fragment.text == "Test for segment 2 (0.1s)."


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        (None, type(None)),
        ("off", type(None)),
        ("dummy", DummySegmentTranscriber),
        (" HTTP ", HttpSegmentTranscriber),
    ],
)
def test_resolve_segment_transcriber(name, expected) -> None:
    assert isinstance(resolve_segment_transcriber(name, Settings()), expected)


def test_resolve_unknown_backend() -> None:
    with pytest.raises(ServiceConfigurationError) as excinfo:
        resolve_segment_transcriber("carrier-pigeon", Settings())

    assert isinstance(excinfo.value, ConfigError)


def test_resolve_openai_without_api_key_is_a_config_error(monkeypatch) -> None:
    import openai

    def refuse_client(**kwargs):
        raise openai.OpenAIError("The api_key client option must be set")

    monkeypatch.setattr(openai, "AsyncOpenAI", refuse_client)

    with pytest.raises(ServiceConfigurationError) as excinfo:
        resolve_segment_transcriber("openai", Settings(openai_api_key=None))

    assert isinstance(excinfo.value, ConfigError)
    assert "OPENAI_API_KEY" in str(excinfo.value)
