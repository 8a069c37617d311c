"""
Route registration for the Doubao ASR proxy.

Responsibilities:
- Parse form / JSON input into credentials + audio
- Drive stream_transcription() and map its outcome to HTTP
- Aggregate (transcribe) or relay as server-sent events (stream)

The ASR core knows nothing about HTTP; everything HTTP-shaped lives here.
"""

from __future__ import annotations

import json
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, AsyncIterator

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.datastructures import UploadFile

from adapters.asr.credentials import DoubaoCredentials
from adapters.asr.doubao_streaming import (
    DoubaoStreamingASRClient,
    stream_transcription,
)
from adapters.asr.errors import ConfigurationError, DoubaoASRError
from adapters.asr.extraction import (
    extract_confidence,
    extract_language,
    extract_text,
    format_error,
)
from config import AppConfig
from observability.logger import log_event
from protocol.binary import BinaryProtocolError
from spec import AUDIO_DOWNLOAD_TIMEOUT_S, NO_SPEECH_TEXT, PROVIDER_NAME

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

# Failures that end a transcription with a 500 / error event
_UPSTREAM_ERRORS = (DoubaoASRError, BinaryProtocolError, httpx.HTTPError)


@dataclass(frozen=True)
class TranscriptionInput:
    credentials: DoubaoCredentials
    audio: bytes | None
    audio_url: str | None


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""
    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.post("/api/doubao/transcribe")
    async def transcribe(request: Request) -> JSONResponse: # pyright: ignore[reportUnusedFunction]
        config: AppConfig = app.state.config

        try:
            inp = await _read_input(request)
        except ConfigurationError as exc:
            return JSONResponse({"success": False, "error": str(exc)}, status_code=400)

        try:
            audio = await _load_audio(inp)

            final_text = ""
            final_language: str | None = None
            final_confidence: float | None = None

            async with aclosing(stream_transcription(
                inp.credentials,
                audio,
                url=config.doubao_nostream_url,
                **_client_kwargs(config),
            )) as responses:
                async for response in responses:
                    # Later responses carry the cumulative result
                    text = extract_text(response)
                    if text:
                        final_text = text
                    language = extract_language(response)
                    if language is not None:
                        final_language = language
                    confidence = extract_confidence(response)
                    if confidence is not None:
                        final_confidence = confidence

                    if response.is_last_package:
                        break

        except ConfigurationError as exc:
            return JSONResponse({"success": False, "error": str(exc)}, status_code=400)
        except _UPSTREAM_ERRORS as exc:
            log_event({
                "event_type": "HTTP_TRANSCRIBE_FAILED",
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            return JSONResponse(
                {
                    "success": False,
                    "error": format_error(exc),
                    "provider": PROVIDER_NAME,
                },
                status_code=500,
            )

        return JSONResponse({
            "success": True,
            "data": {
                "text": final_text or NO_SPEECH_TEXT,
                "language": final_language,
                "confidence": final_confidence,
                "provider": PROVIDER_NAME,
            },
        })

    @app.post("/api/doubao/stream", response_model=None)
    async def stream(request: Request) -> StreamingResponse | JSONResponse: # pyright: ignore[reportUnusedFunction]
        config: AppConfig = app.state.config

        try:
            inp = await _read_input(request)
        except ConfigurationError as exc:
            return JSONResponse({"success": False, "error": str(exc)}, status_code=400)

        try:
            audio = await _load_audio(inp)
        except (ConfigurationError, httpx.HTTPError) as exc:
            log_event({
                "event_type": "HTTP_STREAM_FAILED",
                "stage": "load_audio",
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            return StreamingResponse(
                iter([_sse({"type": "error", "error": format_error(exc), "done": True})]),
                status_code=500,
                media_type="text/event-stream",
                headers=_SSE_HEADERS,
            )

        return StreamingResponse(
            _sse_transcription(inp.credentials, audio, config),
            media_type="text/event-stream",
            headers=_SSE_HEADERS,
        )


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _client_kwargs(config: AppConfig) -> dict[str, Any]:
    return {
        "segment_duration_ms": config.segment_duration_ms,
        "connect_timeout_s": config.connect_timeout_s,
        "response_timeout_s": config.response_timeout_s,
    }


def _sse(message: dict[str, Any]) -> str:
    return f"data: {json.dumps(message, ensure_ascii=False)}\n\n"


def _first(source: Any, *keys: str) -> Any:
    for key in keys:
        value = source.get(key)
        if value:
            return value
    return None


async def _read_input(request: Request) -> TranscriptionInput:
    """
    Accept multipart form (appKey, accessKey, audio | audioUrl) or a JSON
    body (appKey, accessKey, audioUrl). Lower-case key spellings also work.

    Raises:
        ConfigurationError for missing keys or missing audio.
    """
    content_type = request.headers.get("content-type", "")
    audio: bytes | None = None

    if "application/json" in content_type:
        try:
            body = await request.json()
        except ValueError as e:
            raise ConfigurationError("request body is not valid JSON") from e
        if not isinstance(body, dict):
            raise ConfigurationError("request body must be a JSON object")
        source: Any = body
    else:
        source = await request.form()
        upload = source.get("audio")
        if isinstance(upload, UploadFile):
            audio = await upload.read()

    app_key = _first(source, "appKey", "appkey")
    access_key = _first(source, "accessKey", "accesskey")
    audio_url = _first(source, "audioUrl", "audiourl")

    if not app_key or not access_key:
        raise ConfigurationError("appKey and accessKey are required")
    if not audio and not audio_url:
        raise ConfigurationError("an audio file or audioUrl is required")

    credentials = DoubaoCredentials.from_raw(app_key, access_key)
    credentials.validate()

    return TranscriptionInput(
        credentials=credentials,
        audio=audio or None,
        audio_url=audio_url if isinstance(audio_url, str) else None,
    )


async def _load_audio(inp: TranscriptionInput) -> bytes:
    if inp.audio:
        return inp.audio

    if not inp.audio_url:
        raise ConfigurationError("an audio file or audioUrl is required")

    async with httpx.AsyncClient(timeout=AUDIO_DOWNLOAD_TIMEOUT_S) as client:
        try:
            resp = await client.get(inp.audio_url, follow_redirects=True)
        except httpx.InvalidURL as e:
            # InvalidURL is not an httpx.HTTPError
            raise ConfigurationError(f"invalid audioUrl: {e}") from e
        resp.raise_for_status()
        data = resp.content

    log_event({
        "event_type": "AUDIO_DOWNLOADED",
        "url": inp.audio_url,
        "bytes": len(data),
    })
    if not data:
        raise ConfigurationError("downloaded audio is empty")
    return data


async def _sse_transcription(
    credentials: DoubaoCredentials,
    audio: bytes,
    config: AppConfig,
) -> AsyncIterator[str]:
    """
    start -> connected -> text* -> complete, or error at any point.

    `text` is only emitted when the recognized text changes.
    """
    yield _sse({"type": "start", "message": "connecting to Doubao"})

    client = DoubaoStreamingASRClient(
        credentials,
        url=config.doubao_stream_url,
        **_client_kwargs(config),
    )
    accumulated = ""
    language: str | None = None
    confidence: float | None = None

    try:
        await client.connect()
        yield _sse({"type": "connected", "message": "connected, transcribing"})

        async with aclosing(client.start_streaming(audio)) as responses:
            async for response in responses:
                text = extract_text(response)
                if text and text != accumulated:
                    accumulated = text
                    yield _sse({"type": "text", "text": text, "done": False})

                if response.is_last_package:
                    language = extract_language(response)
                    confidence = extract_confidence(response)
                    break

    except _UPSTREAM_ERRORS as exc:
        log_event({
            "event_type": "HTTP_STREAM_FAILED",
            "stage": "transcribe",
            "request_id": client.request_id,
            "exception": type(exc).__name__,
            "message": str(exc),
        })
        yield _sse({"type": "error", "error": format_error(exc), "done": True})
        return

    finally:
        await client.close()

    yield _sse({
        "type": "complete",
        "text": accumulated,
        "language": language,
        "confidence": confidence,
        "done": True,
    })
