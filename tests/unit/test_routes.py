# pylint: disable=missing-module-docstring,missing-function-docstring

import json
from typing import Any, AsyncIterator

import pytest
from fastapi.testclient import TestClient

import server.routes as routes_mod
from adapters.asr.errors import TransportError
from conftest import build_wav
from config import AppConfig
from protocol.response import AsrResponse
from server.app import create_app

FORM = {"appKey": "app", "accessKey": "secret"}


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    monkeypatch.setattr(routes_mod, "log_event", lambda _event: None)
    return TestClient(create_app(AppConfig.load_from_env()))


def _upload(size: int = 64) -> dict[str, Any]:
    return {"audio": ("clip.wav", build_wav(b"\x00" * size), "audio/wav")}


def _responses(*texts: str) -> list[AsrResponse]:
    out = [AsrResponse(payload_msg={"result": {"text": t}}) for t in texts]
    out[-1].is_last_package = True
    out[-1].payload_msg["result"].update({"language": "zh-CN", "confidence": 0.9})
    return out


def _sse_events(body: str) -> list[dict[str, Any]]:
    return [
        json.loads(chunk[len("data: "):])
        for chunk in body.split("\n\n")
        if chunk.startswith("data: ")
    ]


# ---------------------------------------------------------------------
# /health
# ---------------------------------------------------------------------

def test_health(client: TestClient):
    assert client.get("/health").json() == {"status": "ok"}


# ---------------------------------------------------------------------
# /api/doubao/transcribe
# ---------------------------------------------------------------------

def test_transcribe_requires_keys(client: TestClient):
    resp = client.post("/api/doubao/transcribe", data={"appKey": "app"}, files=_upload())

    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_transcribe_requires_audio(client: TestClient):
    resp = client.post("/api/doubao/transcribe", json=FORM)

    assert resp.status_code == 400


def test_transcribe_aggregates_last_text(client: TestClient, monkeypatch: pytest.MonkeyPatch):
    calls: list[dict[str, Any]] = []

    async def fake_stream(credentials, audio, *, url, **kwargs) -> AsyncIterator[AsrResponse]:
        calls.append({"credentials": credentials, "audio": audio, "url": url, **kwargs})
        for response in _responses("你", "你好", ""):
            yield response

    monkeypatch.setattr(routes_mod, "stream_transcription", fake_stream)

    resp = client.post(
        "/api/doubao/transcribe",
        data={"appkey": "app", "accesskey": "secret"},
        files=_upload(),
    )

    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "data": {
            "text": "你好",
            "language": "zh-CN",
            "confidence": 0.9,
            "provider": "doubao",
        },
    }
    assert calls[0]["url"].endswith("bigmodel_nostream")
    assert calls[0]["credentials"].app_key == "app"


def test_transcribe_no_speech(client: TestClient, monkeypatch: pytest.MonkeyPatch):
    async def fake_stream(*_args, **_kwargs) -> AsyncIterator[AsrResponse]:
        yield AsrResponse(is_last_package=True)

    monkeypatch.setattr(routes_mod, "stream_transcription", fake_stream)

    resp = client.post("/api/doubao/transcribe", data=FORM, files=_upload())

    assert resp.json()["data"]["text"] == "no speech recognized"
    assert resp.json()["data"]["language"] is None


def test_transcribe_upstream_failure(client: TestClient, monkeypatch: pytest.MonkeyPatch):
    async def fake_stream(*_args, **_kwargs) -> AsyncIterator[AsrResponse]:
        raise TransportError("connection reset")
        yield  # pylint: disable=unreachable

    monkeypatch.setattr(routes_mod, "stream_transcription", fake_stream)

    resp = client.post("/api/doubao/transcribe", data=FORM, files=_upload())

    assert resp.status_code == 500
    assert resp.json() == {
        "success": False,
        "error": "connection reset",
        "provider": "doubao",
    }


def test_transcribe_audio_url(client: TestClient, monkeypatch: pytest.MonkeyPatch):
    fetched: list[str] = []

    async def fake_load(inp) -> bytes:
        fetched.append(inp.audio_url)
        return build_wav(b"\x00" * 32)

    async def fake_stream(*_args, **_kwargs) -> AsyncIterator[AsrResponse]:
        for response in _responses("remote"):
            yield response

    monkeypatch.setattr(routes_mod, "_load_audio", fake_load)
    monkeypatch.setattr(routes_mod, "stream_transcription", fake_stream)

    resp = client.post(
        "/api/doubao/transcribe",
        json={**FORM, "audioUrl": "https://example.test/a.wav"},
    )

    assert resp.json()["data"]["text"] == "remote"
    assert fetched == ["https://example.test/a.wav"]


# ---------------------------------------------------------------------
# /api/doubao/stream
# ---------------------------------------------------------------------

class FakeStreamingClient:
    instances: list["FakeStreamingClient"] = []
    script: list[Any] = []

    def __init__(self, credentials, *, url, **kwargs) -> None:
        self.credentials = credentials
        self.url = url
        self.kwargs = kwargs
        self.request_id = "req-1"
        self.closed = False
        FakeStreamingClient.instances.append(self)

    async def connect(self) -> None:
        return None

    async def start_streaming(self, _audio: bytes) -> AsyncIterator[AsrResponse]:
        for item in self.script:
            if isinstance(item, BaseException):
                raise item
            yield item

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_streaming_client(monkeypatch: pytest.MonkeyPatch) -> type[FakeStreamingClient]:
    FakeStreamingClient.instances = []
    FakeStreamingClient.script = []
    monkeypatch.setattr(routes_mod, "DoubaoStreamingASRClient", FakeStreamingClient)
    return FakeStreamingClient


def test_stream_emits_sse_sequence(client: TestClient, fake_streaming_client):
    fake_streaming_client.script = _responses("a", "a", "a b")

    resp = client.post("/api/doubao/stream", data=FORM, files=_upload())

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")

    events = _sse_events(resp.text)
    assert [e["type"] for e in events] == ["start", "connected", "text", "text", "complete"]
    assert [e["text"] for e in events if e["type"] == "text"] == ["a", "a b"]
    assert events[-1] == {
        "type": "complete",
        "text": "a b",
        "language": "zh-CN",
        "confidence": 0.9,
        "done": True,
    }

    instance = fake_streaming_client.instances[0]
    assert instance.url.endswith("/bigmodel")
    assert instance.closed is True


def test_stream_error_event(client: TestClient, fake_streaming_client):
    fake_streaming_client.script = [
        AsrResponse(payload_msg={"result": {"text": "partial"}}),
        TransportError("No response within 5.0s"),
    ]

    resp = client.post("/api/doubao/stream", data=FORM, files=_upload())

    events = _sse_events(resp.text)
    assert [e["type"] for e in events] == ["start", "connected", "text", "error"]
    assert events[-1] == {"type": "error", "error": "No response within 5.0s", "done": True}
    assert fake_streaming_client.instances[0].closed is True


def test_stream_rejects_missing_keys(client: TestClient, fake_streaming_client):
    resp = client.post("/api/doubao/stream", data={"accessKey": "secret"}, files=_upload())

    assert resp.status_code == 400
    assert fake_streaming_client.instances == []


# ---------------------------------------------------------------------
# App construction / input errors
# ---------------------------------------------------------------------

def test_create_app_registers_all_routes():
    app = create_app(AppConfig.load_from_env())

    paths = {route.path for route in app.routes}
    assert {"/health", "/api/doubao/transcribe", "/api/doubao/stream"} <= paths


def test_transcribe_invalid_audio_url_is_bad_request(client: TestClient):
    resp = client.post(
        "/api/doubao/transcribe",
        json={**FORM, "audioUrl": "http://exa\x01mple.com/x.wav"},
    )

    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert "invalid audioUrl" in resp.json()["error"]


def test_stream_invalid_audio_url_is_error_event(client: TestClient, fake_streaming_client):
    resp = client.post(
        "/api/doubao/stream",
        json={**FORM, "audioUrl": "http://exa\x01mple.com/x.wav"},
    )

    assert resp.status_code == 500
    events = _sse_events(resp.text)
    assert [e["type"] for e in events] == ["error"]
    assert events[0]["done"] is True
    assert fake_streaming_client.instances == []
