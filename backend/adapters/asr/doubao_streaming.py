"""
Doubao (Volcengine bigmodel SAUC) streaming ASR client.

Core model:
- One WebSocket connection per client instance, owned exclusively by it.
- Strictly half-duplex: send one frame, then wait for exactly one response
  frame before sending the next. The provider does not multiplex.
- The first frame is the full client request; every following frame
  carries one PCM segment, paced at the segment duration to approximate
  real-time delivery.
- Responses are surfaced as an async iterator. Iteration ends after a
  response flagged last-package, or when the segments run out.

Lifecycle:
    IDLE -> CONNECTING -> CONNECTED -> AWAITING_FULL_ACK
         -> STREAMING_SEGMENTS -> CLOSED
    Any failure after IDLE moves to ERRORED; close() is still required.

Design constraints:
- Credentials are validated before any network activity.
- Every wait is bounded (connect, full-request ack, each segment response).
- No retries; retry policy belongs to the caller.
- Client never closes itself when the caller stops iterating; callers use
  `async with` or call close().
"""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from websockets.asyncio.client import connect as _default_ws_connect
from websockets.exceptions import WebSocketException

from adapters.asr.credentials import DoubaoCredentials
from adapters.asr.errors import (
    ConfigurationError,
    ResponseTimeout,
    SessionClosedError,
    TransportError,
)
from audio.segmenter import plan_segments
from observability.logger import log_event
from observability.metrics import timed
from protocol.binary import BinaryProtocolError
from protocol.requests import (
    FullRequestOptions,
    SequenceCounter,
    new_auth_headers,
)
from protocol.response import AsrResponse, parse_response
from session.state import TERMINAL_STATES, SessionState
from spec import (
    CONNECT_TIMEOUT_S,
    DOUBAO_RESOURCE_ID,
    DOUBAO_STREAM_URL,
    FULL_REQUEST_TIMEOUT_S,
    HEADER_REQUEST_ID,
    RESPONSE_TIMEOUT_S,
    SEGMENT_DURATION_MS_DEFAULT,
    WS_MAX_MESSAGE_BYTES,
)


WsConnect = Callable[..., Awaitable[Any]]
Sleep = Callable[[float], Awaitable[Any]]


class DoubaoStreamingASRClient:
    """
    One Doubao streaming recognition session.

    Public interface:
    - connect(): open the WebSocket with auth headers
    - send_full_request(): handshake; returns the ack response
    - stream_segments(wav): paced segment upload, yields one response each
    - start_streaming(wav): send_full_request() + stream_segments(wav)
    - close(): idempotent

    `ws_connect` and `sleep` are injectable so tests can run without a
    network or real pacing delays.
    """

    def __init__(
        self,
        credentials: DoubaoCredentials,
        *,
        url: str = DOUBAO_STREAM_URL,
        segment_duration_ms: int = SEGMENT_DURATION_MS_DEFAULT,
        connect_timeout_s: float = CONNECT_TIMEOUT_S,
        full_request_timeout_s: float = FULL_REQUEST_TIMEOUT_S,
        response_timeout_s: float = RESPONSE_TIMEOUT_S,
        full_request_options: Optional[FullRequestOptions] = None,
        resource_id: str = DOUBAO_RESOURCE_ID,
        ws_connect: Optional[WsConnect] = None,
        sleep: Optional[Sleep] = None,
    ) -> None:
        if segment_duration_ms <= 0:
            raise ConfigurationError("segment_duration_ms must be > 0")

        self._credentials = credentials
        self._url = url
        self._segment_duration_ms = segment_duration_ms
        self._connect_timeout_s = connect_timeout_s
        self._full_request_timeout_s = full_request_timeout_s
        self._response_timeout_s = response_timeout_s
        self._full_request_options = full_request_options
        self._resource_id = resource_id

        # Looked up per instance so the module-level defaults stay patchable
        self._ws_connect = ws_connect or _default_ws_connect
        self._sleep = sleep or asyncio.sleep

        self._ws: Any = None
        self._state = SessionState.IDLE
        self._seq = SequenceCounter()
        self._request_id: str | None = None
        self._upload_started = False

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def sequence(self) -> int:
        """Current sequence counter value (not the signed wire value)."""
        return self._seq.value

    @property
    def request_id(self) -> str | None:
        """X-Api-Request-Id of the current connection, once connected."""
        return self._request_id

    @property
    def url(self) -> str:
        return self._url

    def is_connected(self) -> bool:
        return self._ws is not None and self._state not in TERMINAL_STATES

    # -------------------------------------------------------------------------
    # Context manager
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> "DoubaoStreamingASRClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """
        Open the provider WebSocket.

        Raises:
            ConfigurationError: credentials missing (no I/O attempted)
            SessionClosedError: session already closed or errored
            TransportError: handshake failed or timed out
        """
        self._ensure_usable()
        if self._state is not SessionState.IDLE:
            return

        self._credentials.validate()

        headers = new_auth_headers(self._credentials, resource_id=self._resource_id)
        self._request_id = headers[HEADER_REQUEST_ID]
        self._state = SessionState.CONNECTING

        try:
            self._ws = await asyncio.wait_for(
                self._ws_connect(
                    self._url,
                    additional_headers=headers,
                    max_size=WS_MAX_MESSAGE_BYTES,
                    ping_interval=None,
                ),
                timeout=self._connect_timeout_s,
            )
        except asyncio.TimeoutError as e:
            self._fail("connect_timeout", e)
            raise TransportError(
                f"Timed out connecting to {self._url} after {self._connect_timeout_s}s"
            ) from e
        except (WebSocketException, OSError) as e:
            self._fail("connect_failed", e)
            raise TransportError(f"Failed to connect to {self._url}: {e!r}") from e

        self._state = SessionState.CONNECTED
        log_event({
            "event_type": "DOUBAO_WS_CONNECTED",
            "request_id": self._request_id,
            "url": self._url,
        })

    async def send_full_request(self) -> AsrResponse:
        """
        Send the full client request and wait for its single ack.

        Pre:  CONNECTED
        Post: STREAMING_SEGMENTS (sequence counter unchanged)
        """
        self._ensure_usable()
        if self._state is not SessionState.CONNECTED:
            raise TransportError(
                f"send_full_request requires CONNECTED, state is {self._state.value}"
            )

        frame = self._seq.next_full_request(self._full_request_options)
        self._state = SessionState.AWAITING_FULL_ACK

        await self._send(frame)
        log_event({
            "event_type": "DOUBAO_FULL_REQUEST_SENT",
            "request_id": self._request_id,
            "seq": self._seq.value,
            "frame_bytes": len(frame),
        })

        response = await self._recv_one(
            timeout_s=self._full_request_timeout_s,
            metric="doubao_full_request_ack",
        )
        self._state = SessionState.STREAMING_SEGMENTS
        return response

    async def stream_segments(self, audio: bytes) -> AsyncIterator[AsrResponse]:
        """
        Send the PCM of `audio` as paced segments, yielding one response
        per segment sent.

        Single-pass. Ends after a last-package response even if segments
        remain unsent. A second call raises SessionClosedError: the server
        treats the stream as ended once the final segment is sent.
        """
        self._ensure_usable()
        if self._state is not SessionState.STREAMING_SEGMENTS:
            raise TransportError(
                f"stream_segments requires STREAMING_SEGMENTS, state is {self._state.value}"
            )
        if self._upload_started:
            raise SessionClosedError(
                "segment upload already ran on this session; create a new client"
            )
        self._upload_started = True

        plan = plan_segments(audio, self._segment_duration_ms)
        total = len(plan.segments)
        pacing_s = self._segment_duration_ms / 1000.0

        log_event({
            "event_type": "DOUBAO_SEGMENTS_PLANNED",
            "request_id": self._request_id,
            "segments": total,
            "segment_size": plan.segment_size,
            "pcm_bytes": plan.total_bytes,
            "wav_parsed": plan.wav_info is not None,
        })

        for index, segment in enumerate(plan.segments):
            is_last = index == total - 1
            frame = self._seq.next_audio_request(segment, is_last=is_last)

            await self._send(frame)
            await self._sleep(pacing_s)

            response = await self._recv_one(
                timeout_s=self._response_timeout_s,
                metric="doubao_segment_response",
            )
            yield response

            if response.is_last_package:
                log_event({
                    "event_type": "DOUBAO_LAST_PACKAGE",
                    "request_id": self._request_id,
                    "segments_sent": index + 1,
                    "segments_total": total,
                })
                return

    async def start_streaming(self, audio: bytes) -> AsyncIterator[AsrResponse]:
        """
        Handshake, then stream. The full-request ack is not yielded.

        Raises:
            ConfigurationError if `audio` is empty (before any I/O).
        """
        if not audio:
            raise ConfigurationError("audio must not be empty")

        await self.send_full_request()
        async for response in self.stream_segments(audio):
            yield response

    async def close(self) -> None:
        """
        Close the transport if open. Safe from any state, any number of times.
        """
        ws = self._ws
        self._ws = None

        if self._state is not SessionState.ERRORED:
            self._state = SessionState.CLOSED

        if ws is None:
            return

        try:
            await ws.close()
        except (WebSocketException, OSError) as e:
            log_event({
                "event_type": "DOUBAO_WS_CLOSE_FAILED",
                "request_id": self._request_id,
                "error": repr(e),
            })
            return

        log_event({
            "event_type": "DOUBAO_WS_CLOSED",
            "request_id": self._request_id,
            "state": self._state.value,
        })

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _ensure_usable(self) -> None:
        if self._state in TERMINAL_STATES:
            raise SessionClosedError(
                f"Doubao session is {self._state.value}; create a new client"
            )

    def _fail(self, reason: str, exc: BaseException) -> None:
        self._state = SessionState.ERRORED
        log_event({
            "event_type": "DOUBAO_SESSION_ERROR",
            "request_id": self._request_id,
            "reason": reason,
            "error": repr(exc),
        })

    async def _send(self, frame: bytes) -> None:
        if self._ws is None:
            raise TransportError("WebSocket connection not open")

        try:
            await self._ws.send(frame)
        except (WebSocketException, OSError) as e:
            self._fail("send_failed", e)
            raise TransportError(f"Failed to send frame: {e!r}") from e

    async def _recv_one(self, *, timeout_s: float, metric: str) -> AsrResponse:
        if self._ws is None:
            raise TransportError("WebSocket connection not open")

        with timed(metric, request_id=self._request_id, state=self._state.value) as sample:
            try:
                raw = await asyncio.wait_for(self._ws.recv(), timeout=timeout_s)
            except asyncio.TimeoutError as e:
                self._fail("response_timeout", e)
                raise ResponseTimeout(f"No response within {timeout_s}s") from e
            except (WebSocketException, OSError) as e:
                self._fail("recv_failed", e)
                raise TransportError(f"Failed to receive frame: {e!r}") from e
            sample.details["frame_bytes"] = len(raw)

        if isinstance(raw, str):
            err = BinaryProtocolError("Expected a binary frame, got text")
            self._fail("unexpected_text_frame", err)
            raise err

        try:
            response = parse_response(raw)
        except BinaryProtocolError as e:
            self._fail("decode_failed", e)
            raise

        log_event({
            "event_type": "DOUBAO_RESPONSE",
            "request_id": self._request_id,
            "code": response.code,
            "event": response.event,
            "payload_sequence": response.payload_sequence,
            "payload_size": response.payload_size,
            "is_last_package": response.is_last_package,
        })
        if response.is_error:
            log_event({
                "event_type": "DOUBAO_SERVER_ERROR",
                "request_id": self._request_id,
                "code": response.code,
                "payload_msg": response.payload_msg,
            })
        return response


async def stream_transcription(
    credentials: DoubaoCredentials,
    audio: bytes,
    *,
    url: str = DOUBAO_STREAM_URL,
    segment_duration_ms: int = SEGMENT_DURATION_MS_DEFAULT,
    **client_kwargs: Any,
) -> AsyncIterator[AsrResponse]:
    """
    Validate, connect, stream, and always close.

    Configuration errors are raised before the connection is attempted.
    """
    credentials.validate()
    if not audio:
        raise ConfigurationError("audio must not be empty")

    client = DoubaoStreamingASRClient(
        credentials,
        url=url,
        segment_duration_ms=segment_duration_ms,
        **client_kwargs,
    )
    try:
        await client.connect()
        async for response in client.start_streaming(audio):
            yield response
    finally:
        await client.close()
