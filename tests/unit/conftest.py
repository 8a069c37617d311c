# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
import json
import struct
from typing import Any, Callable, Optional

import pytest

from protocol.binary import encode_frame, encode_header, gzip_compress
from spec import (
    FLAG_HAS_SEQUENCE,
    FLAG_LAST_PACKAGE,
    GZIP_COMPRESSION,
    JSON_SERIALIZATION,
    SERVER_FULL_RESPONSE,
)


def build_wav(
    pcm: bytes,
    *,
    channels: int = 1,
    sample_rate: int = 16000,
    bits_per_sample: int = 16,
) -> bytes:
    """Canonical 44-byte RIFF header followed by `pcm` as the data chunk."""
    block_align = channels * bits_per_sample // 8
    fmt = struct.pack(
        "<4sIHHIIHH",
        b"fmt ",
        16,
        1,
        channels,
        sample_rate,
        sample_rate * block_align,
        block_align,
        bits_per_sample,
    )
    data = struct.pack("<4sI", b"data", len(pcm)) + pcm
    riff = struct.pack("<4sI4s", b"RIFF", 4 + len(fmt) + len(data), b"WAVE")
    return riff + fmt + data


def build_server_frame(
    payload: Any,
    *,
    sequence: int = 1,
    last: bool = False,
) -> bytes:
    """SERVER_FULL_RESPONSE with sequence, gzip-compressed JSON payload."""
    flags = FLAG_HAS_SEQUENCE | (FLAG_LAST_PACKAGE if last else 0)
    header = encode_header(
        message_type=SERVER_FULL_RESPONSE,
        flags=flags,
        serialization=JSON_SERIALIZATION,
        compression=GZIP_COMPRESSION,
    )
    body = gzip_compress(json.dumps(payload).encode("utf-8"))
    return encode_frame(header, sequence=sequence, payload=body)


class FakeWebSocket:
    """
    In-memory stand-in for a websockets client connection.

    recv() pops queued server frames in order; an empty queue blocks
    forever so response timeouts can be exercised.
    """

    def __init__(self, frames: Optional[list[Any]] = None) -> None:
        self.frames: list[Any] = list(frames or [])
        self.sent: list[bytes] = []
        self.close_calls = 0

    async def send(self, data: bytes) -> None:
        self.sent.append(data)

    async def recv(self) -> Any:
        if not self.frames:
            await asyncio.Event().wait()
        return self.frames.pop(0)

    async def close(self) -> None:
        self.close_calls += 1


class FakeConnector:
    """Records ws_connect() calls and hands out one FakeWebSocket."""

    def __init__(self, ws: FakeWebSocket) -> None:
        self.ws = ws
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def __call__(self, url: str, **kwargs: Any) -> FakeWebSocket:
        self.calls.append((url, kwargs))
        return self.ws


async def no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def make_wav() -> Callable[..., bytes]:
    return build_wav


@pytest.fixture
def server_frame() -> Callable[..., bytes]:
    return build_server_frame


@pytest.fixture
def captured_events(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    """Capture every JSONL line written by observability.logger."""
    from observability import logger  # pylint: disable=import-outside-toplevel

    lines: list[dict[str, Any]] = []
    monkeypatch.setattr(logger, "_print", lambda line: lines.append(json.loads(line)))
    return lines
