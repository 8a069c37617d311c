"""
Server response frames for the Doubao streaming ASR protocol.

Parsing order after the header (each step consumes from the front):
1. skip header_word_count * 4 bytes
2. flags & 0b0001 -> i32 sequence
3. flags & 0b0010 -> last package (consumes nothing)
4. flags & 0b0100 -> i32 event code
5. SERVER_FULL_RESPONSE  -> u32 payload size
   SERVER_ERROR_RESPONSE -> i32 error code, u32 payload size
6. rest = payload (gunzip if compressed)
7. JSON-decode if serialized as JSON

Only truncation is fatal (TruncatedFrame). Decompression and JSON failures
are logged and leave payload_msg unset.
"""

from __future__ import annotations

import json
import zlib
from dataclasses import dataclass
from typing import Any

from observability.logger import log_event
from protocol.binary import (
    TruncatedFrame,
    decode_header,
    gzip_decompress,
    read_i32_be,
    read_u32_be,
)
from spec import (
    FLAG_HAS_EVENT,
    FLAG_HAS_SEQUENCE,
    FLAG_LAST_PACKAGE,
    GZIP_COMPRESSION,
    JSON_SERIALIZATION,
    SERVER_ERROR_RESPONSE,
    SERVER_FULL_RESPONSE,
)


@dataclass
class AsrResponse:
    """
    One decoded server frame.

    payload_msg is whatever JSON the provider sent (usually a dict with a
    "result" key) or None when absent or undecodable.
    """
    code: int = 0
    event: int = 0
    is_last_package: bool = False
    payload_sequence: int = 0
    payload_size: int = 0
    payload_msg: Any = None

    @property
    def is_error(self) -> bool:
        return self.code != 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "event": self.event,
            "is_last_package": self.is_last_package,
            "payload_sequence": self.payload_sequence,
            "payload_size": self.payload_size,
            "payload_msg": self.payload_msg,
        }


def parse_response(raw: bytes) -> AsrResponse:
    """
    Decode one inbound frame.

    Raises:
        TruncatedFrame if the buffer is shorter than the fields it declares.
    """
    header = decode_header(raw)
    response = AsrResponse()

    if len(raw) < header.header_size:
        raise TruncatedFrame(
            f"Header declares {header.header_size} bytes, frame has {len(raw)}"
        )
    body = raw[header.header_size:]

    if header.flags & FLAG_HAS_SEQUENCE:
        response.payload_sequence = read_i32_be(body)
        body = body[4:]
    if header.flags & FLAG_LAST_PACKAGE:
        response.is_last_package = True
    if header.flags & FLAG_HAS_EVENT:
        response.event = read_i32_be(body)
        body = body[4:]

    if header.message_type == SERVER_FULL_RESPONSE:
        response.payload_size = read_u32_be(body)
        body = body[4:]
    elif header.message_type == SERVER_ERROR_RESPONSE:
        response.code = read_i32_be(body)
        response.payload_size = read_u32_be(body, 4)
        body = body[8:]

    if not body:
        return response

    payload = body
    if header.compression == GZIP_COMPRESSION:
        try:
            payload = gzip_decompress(payload)
        except (OSError, EOFError, zlib.error) as e:
            log_event({
                "event_type": "ASR_PAYLOAD_DECOMPRESS_FAILED",
                "payload_sequence": response.payload_sequence,
                "payload_bytes": len(body),
                "error": repr(e),
            })
            return response

    if not payload:
        return response

    if header.serialization == JSON_SERIALIZATION:
        try:
            response.payload_msg = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            log_event({
                "event_type": "ASR_PAYLOAD_PARSE_FAILED",
                "payload_sequence": response.payload_sequence,
                "payload_bytes": len(payload),
                "error": repr(e),
            })

    return response
