"""
Client request frames for the Doubao streaming ASR protocol.

Two frame kinds are sent over one connection:

- Full client request: exactly one, first. Declares the audio format and the
  recognition options as gzip-compressed JSON.
- Audio-only request: one per PCM segment. Carries the gzip-compressed
  segment bytes.

Sequence sign convention (part of the wire contract):
- non-final segment: flags=POS_SEQUENCE, transmitted value = +seq
- final segment:     flags=NEG_WITH_SEQUENCE, transmitted value = -seq

SequenceCounter is the only place the counter is mutated.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from protocol.binary import encode_frame, encode_header, gzip_compress
from spec import (
    AUDIO_BITS_PER_SAMPLE,
    AUDIO_CHANNELS,
    AUDIO_SAMPLE_RATE_HZ,
    CLIENT_AUDIO_ONLY_REQUEST,
    CLIENT_FULL_REQUEST,
    DOUBAO_RESOURCE_ID,
    FULL_REQUEST_AUDIO_CODEC,
    FULL_REQUEST_AUDIO_FORMAT,
    FULL_REQUEST_MODEL_NAME,
    FULL_REQUEST_UID_DEFAULT,
    GZIP_COMPRESSION,
    HEADER_ACCESS_KEY,
    HEADER_APP_KEY,
    HEADER_REQUEST_ID,
    HEADER_RESOURCE_ID,
    JSON_SERIALIZATION,
    NEG_WITH_SEQUENCE,
    POS_SEQUENCE,
    SEQ_NUM_START,
)


class _HasKeys(Protocol):
    app_key: str
    access_key: str


# -------------------------
# Full request payload
# -------------------------

@dataclass(frozen=True)
class FullRequestOptions:
    """
    Recognition options sent once in the full client request.

    Defaults match what the provider expects for 16kHz mono PCM16 WAV.
    """
    uid: str = FULL_REQUEST_UID_DEFAULT
    model_name: str = FULL_REQUEST_MODEL_NAME
    enable_itn: bool = True
    enable_punc: bool = True
    enable_ddc: bool = True
    show_utterances: bool = True
    enable_nonstream: bool = False

    def to_payload(self) -> dict[str, Any]:
        return {
            "user": {
                "uid": self.uid,
            },
            "audio": {
                "format": FULL_REQUEST_AUDIO_FORMAT,
                "codec": FULL_REQUEST_AUDIO_CODEC,
                "rate": AUDIO_SAMPLE_RATE_HZ,
                "bits": AUDIO_BITS_PER_SAMPLE,
                "channel": AUDIO_CHANNELS,
            },
            "request": {
                "model_name": self.model_name,
                "enable_itn": self.enable_itn,
                "enable_punc": self.enable_punc,
                "enable_ddc": self.enable_ddc,
                "show_utterances": self.show_utterances,
                "enable_nonstream": self.enable_nonstream,
            },
        }


DEFAULT_FULL_REQUEST_OPTIONS = FullRequestOptions()


# -------------------------
# Frame builders (pure)
# -------------------------

def build_full_request(
    seq: int,
    *,
    options: Optional[FullRequestOptions] = None,
) -> bytes:
    """
    Build the full client request frame.

    header(CLIENT_FULL_REQUEST, POS_SEQUENCE, JSON, GZIP) || i32 seq
    || u32 size || gzip(json)
    """
    opts = options or DEFAULT_FULL_REQUEST_OPTIONS
    body = json.dumps(opts.to_payload(), ensure_ascii=False).encode("utf-8")

    header = encode_header(
        message_type=CLIENT_FULL_REQUEST,
        flags=POS_SEQUENCE,
        serialization=JSON_SERIALIZATION,
        compression=GZIP_COMPRESSION,
    )
    return encode_frame(header, sequence=seq, payload=gzip_compress(body))


def build_audio_segment_request(
    seq: int,
    segment: bytes,
    *,
    is_last: bool,
) -> bytes:
    """
    Build an audio-only request frame for one PCM segment.

    `seq` is the counter value; the sign is applied here. Callers must not
    negate it themselves.
    """
    if is_last:
        flags = NEG_WITH_SEQUENCE
        wire_seq = -seq
    else:
        flags = POS_SEQUENCE
        wire_seq = seq

    header = encode_header(
        message_type=CLIENT_AUDIO_ONLY_REQUEST,
        flags=flags,
        serialization=JSON_SERIALIZATION,
        compression=GZIP_COMPRESSION,
    )
    return encode_frame(header, sequence=wire_seq, payload=gzip_compress(segment))


# -------------------------
# Sequence counter (stateful)
# -------------------------

@dataclass
class SequenceCounter:
    """
    Per-session sequence counter.

    Starts at SEQ_NUM_START. Only the two methods below mutate it.
    """
    value: int = SEQ_NUM_START

    def next_full_request(
        self,
        options: Optional[FullRequestOptions] = None,
    ) -> bytes:
        """
        Pre:  value = n
        Post: value = n (the full request does not advance the counter)
        Wire: +n
        """
        return build_full_request(self.value, options=options)

    def next_audio_request(self, segment: bytes, *, is_last: bool) -> bytes:
        """
        Non-final:  pre value = n, wire +n, post value = n + 1
        Final:      pre value = n, wire -n, post value = n
        """
        frame = build_audio_segment_request(self.value, segment, is_last=is_last)
        if not is_last:
            self.value += 1
        return frame


# -------------------------
# Transport-level auth
# -------------------------

def new_request_id() -> str:
    return str(uuid.uuid4())


def new_auth_headers(
    credentials: _HasKeys,
    *,
    resource_id: str = DOUBAO_RESOURCE_ID,
    request_id: Optional[str] = None,
) -> dict[str, str]:
    """
    Headers attached once at WebSocket upgrade time (never per frame).

    A fresh request id is generated unless one is supplied.
    """
    return {
        HEADER_RESOURCE_ID: resource_id,
        HEADER_REQUEST_ID: request_id or new_request_id(),
        HEADER_ACCESS_KEY: credentials.access_key,
        HEADER_APP_KEY: credentials.app_key,
    }
