# backend/protocol/binary.py
"""
Binary framing helpers for the Doubao streaming ASR protocol.

Frame layout (all integers big-endian):

    4 bytes  header
               byte0 = version (4 bits)       | header word count (4 bits)
               byte1 = message type (4 bits)  | type-specific flags (4 bits)
               byte2 = serialization (4 bits) | compression (4 bits)
               byte3 = reserved (0x00)
    4 bytes  sequence number (i32)      -- only when flags carry a sequence
    4 bytes  payload size (u32)
    N bytes  payload (gzip-compressed JSON or audio)

The header word count allows longer headers; decoders skip
`header_word_count * 4` bytes before reading the body.

Usage example:

    header = encode_header(
        message_type=CLIENT_AUDIO_ONLY_REQUEST,
        flags=POS_SEQUENCE,
        serialization=JSON_SERIALIZATION,
        compression=GZIP_COMPRESSION,
    )
    frame = encode_frame(header, sequence=seq, payload=gzip_compress(pcm))
"""

from __future__ import annotations

import gzip
import struct
from dataclasses import dataclass
from typing import Optional

from spec import (
    HEADER_BYTES,
    HEADER_RESERVED_BYTE,
    HEADER_WORD_BYTES,
    HEADER_WORD_COUNT,
    INT32_MAX,
    INT32_MIN,
    NIBBLE_MAX,
    PROTOCOL_VERSION_V1,
    UINT32_MAX,
)


# -------------------------
# Exceptions
# -------------------------

class BinaryProtocolError(Exception):
    """Base class for binary protocol errors."""


class TruncatedFrame(BinaryProtocolError):
    """
    Raised when a frame is too short to contain the fields its header declares.

    The frame is structurally unusable and must not be interpreted further.
    """


class InvalidHeaderField(BinaryProtocolError):
    """
    Raised when a header field or integer does not fit its wire width.

    Indicates a programming error on the encoding side (the value would be
    silently truncated on the wire otherwise).
    """


# -------------------------
# Header
# -------------------------

@dataclass(frozen=True)
class ProtocolHeader:
    """
    Decoded 4-byte protocol header.

    One instance per frame; never mutated.
    """
    message_type: int
    flags: int
    serialization: int
    compression: int
    version: int = PROTOCOL_VERSION_V1
    header_word_count: int = HEADER_WORD_COUNT
    reserved: int = HEADER_RESERVED_BYTE

    @property
    def header_size(self) -> int:
        """Total header length in bytes (body starts here)."""
        return self.header_word_count * HEADER_WORD_BYTES

    def to_bytes(self) -> bytes:
        return bytes((
            (_nibble(self.version, "version") << 4)
            | _nibble(self.header_word_count, "header_word_count"),
            (_nibble(self.message_type, "message_type") << 4)
            | _nibble(self.flags, "flags"),
            (_nibble(self.serialization, "serialization") << 4)
            | _nibble(self.compression, "compression"),
            self.reserved & 0xFF,
        ))


def _nibble(value: int, name: str) -> int:
    if value < 0 or value > NIBBLE_MAX:
        raise InvalidHeaderField(f"{name} must fit in 4 bits, got {value}")
    return value


def encode_header(
    message_type: int,
    flags: int,
    serialization: int,
    compression: int,
) -> bytes:
    """
    Encode a one-word v1 header.
    """
    return ProtocolHeader(
        message_type=message_type,
        flags=flags,
        serialization=serialization,
        compression=compression,
    ).to_bytes()


def decode_header(data: bytes) -> ProtocolHeader:
    """
    Decode the fixed 4-byte header at the front of `data`.

    Does not validate the version or word count; callers use
    `header_size` to find the body.
    """
    if len(data) < HEADER_BYTES:
        raise TruncatedFrame(f"Header needs {HEADER_BYTES} bytes, got {len(data)}")

    b0, b1, b2, b3 = data[0], data[1], data[2], data[3]
    return ProtocolHeader(
        version=b0 >> 4,
        header_word_count=b0 & 0x0F,
        message_type=b1 >> 4,
        flags=b1 & 0x0F,
        serialization=b2 >> 4,
        compression=b2 & 0x0F,
        reserved=b3,
    )


# -------------------------
# Low-level helpers
# -------------------------

def pack_i32_be(value: int) -> bytes:
    if value < INT32_MIN or value > INT32_MAX:
        raise InvalidHeaderField(f"Value out of int32 range: {value}")
    return struct.pack(">i", value)


def pack_u32_be(value: int) -> bytes:
    if value < 0 or value > UINT32_MAX:
        raise InvalidHeaderField(f"Value out of uint32 range: {value}")
    return struct.pack(">I", value)


def read_i32_be(buf: bytes, offset: int = 0) -> int:
    if len(buf) < offset + 4:
        raise TruncatedFrame(
            f"Need 4 bytes at offset {offset} for int32, buffer has {len(buf)}"
        )
    return struct.unpack_from(">i", buf, offset)[0]


def read_u32_be(buf: bytes, offset: int = 0) -> int:
    if len(buf) < offset + 4:
        raise TruncatedFrame(
            f"Need 4 bytes at offset {offset} for uint32, buffer has {len(buf)}"
        )
    return struct.unpack_from(">I", buf, offset)[0]


def gzip_compress(data: bytes) -> bytes:
    return gzip.compress(data)


def gzip_decompress(data: bytes) -> bytes:
    """
    Inflate a gzip member.

    Raises OSError / EOFError on corrupt input; callers decide whether
    that is fatal.
    """
    return gzip.decompress(data)


# -------------------------
# Frame assembly
# -------------------------

def encode_frame(
    header: bytes,
    *,
    sequence: Optional[int] = None,
    payload: bytes,
) -> bytes:
    """
    Assemble header || [i32 sequence] || u32 size || payload.

    `payload` is written as given; compress it first if the header says so.
    """
    parts = [header]
    if sequence is not None:
        parts.append(pack_i32_be(sequence))
    parts.append(pack_u32_be(len(payload)))
    parts.append(payload)
    return b"".join(parts)
