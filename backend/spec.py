"""
PROTOCOL-AS-CONSTANTS
---------------------
Single source of truth for the Doubao streaming ASR wire contract.

Rules:
- If changing a value changes what goes on the wire, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from typing import Final

# =============================================================================
# Audio Format (PCM16 mono @ 16kHz)
# =============================================================================

AUDIO_SAMPLE_RATE_HZ: Final[int] = 16_000
AUDIO_CHANNELS: Final[int] = 1
AUDIO_SAMPLE_WIDTH_BYTES: Final[int] = 2  # PCM16 (signed 16-bit)
AUDIO_BITS_PER_SAMPLE: Final[int] = AUDIO_SAMPLE_WIDTH_BYTES * 8

# =============================================================================
# WAV container layout (canonical 44-byte header)
# =============================================================================

WAV_MIN_HEADER_BYTES: Final[int] = 44
WAV_FORMAT_TAG_OFFSET: Final[int] = 20
WAV_CHANNELS_OFFSET: Final[int] = 22
WAV_SAMPLE_RATE_OFFSET: Final[int] = 24
WAV_BITS_PER_SAMPLE_OFFSET: Final[int] = 34
WAV_SUBCHUNK_SCAN_START: Final[int] = 36
WAV_SUBCHUNK_HEADER_BYTES: Final[int] = 8

# =============================================================================
# Segmentation / pacing
# =============================================================================

SEGMENT_DURATION_MS_DEFAULT: Final[int] = 200

# Used when the WAV header cannot be read (100ms of 16kHz mono PCM16).
DEFAULT_SEGMENT_SIZE_BYTES: Final[int] = 3200

# =============================================================================
# Binary frame header
# =============================================================================

PROTOCOL_VERSION_V1: Final[int] = 0b0001
HEADER_WORD_COUNT: Final[int] = 1
HEADER_WORD_BYTES: Final[int] = 4
HEADER_BYTES: Final[int] = HEADER_WORD_COUNT * HEADER_WORD_BYTES
HEADER_RESERVED_BYTE: Final[int] = 0x00
NIBBLE_MAX: Final[int] = 0x0F

# Message types
CLIENT_FULL_REQUEST: Final[int] = 0b0001
CLIENT_AUDIO_ONLY_REQUEST: Final[int] = 0b0010
SERVER_FULL_RESPONSE: Final[int] = 0b1001
SERVER_ERROR_RESPONSE: Final[int] = 0b1111

# Message-type-specific flags
NO_SEQUENCE: Final[int] = 0b0000
POS_SEQUENCE: Final[int] = 0b0001
NEG_SEQUENCE: Final[int] = 0b0010
NEG_WITH_SEQUENCE: Final[int] = 0b0011

# Flag bits as read by the response parser
FLAG_HAS_SEQUENCE: Final[int] = 0b0001
FLAG_LAST_PACKAGE: Final[int] = 0b0010
FLAG_HAS_EVENT: Final[int] = 0b0100

# Serialization methods
NO_SERIALIZATION: Final[int] = 0b0000
JSON_SERIALIZATION: Final[int] = 0b0001

# Compression methods
NO_COMPRESSION: Final[int] = 0b0000
GZIP_COMPRESSION: Final[int] = 0b0001

# Sequence counter
SEQ_NUM_START: Final[int] = 1
INT32_MIN: Final[int] = -(2**31)
INT32_MAX: Final[int] = 2**31 - 1
UINT32_MAX: Final[int] = 2**32 - 1

# =============================================================================
# Full client request defaults
# =============================================================================

FULL_REQUEST_UID_DEFAULT: Final[str] = "demo_uid"
FULL_REQUEST_AUDIO_FORMAT: Final[str] = "wav"
FULL_REQUEST_AUDIO_CODEC: Final[str] = "raw"
FULL_REQUEST_MODEL_NAME: Final[str] = "bigmodel"

# =============================================================================
# Transport / auth
# =============================================================================

DOUBAO_STREAM_URL: Final[str] = "wss://openspeech.bytedance.com/api/v3/sauc/bigmodel"
DOUBAO_NOSTREAM_URL: Final[str] = (
    "wss://openspeech.bytedance.com/api/v3/sauc/bigmodel_nostream"
)
DOUBAO_RESOURCE_ID: Final[str] = "volc.bigasr.sauc.duration"

HEADER_RESOURCE_ID: Final[str] = "X-Api-Resource-Id"
HEADER_REQUEST_ID: Final[str] = "X-Api-Request-Id"
HEADER_ACCESS_KEY: Final[str] = "X-Api-Access-Key"
HEADER_APP_KEY: Final[str] = "X-Api-App-Key"

WS_MAX_MESSAGE_BYTES: Final[int] = 2**22

# =============================================================================
# Failure Detection & Timeouts
# =============================================================================

CONNECT_TIMEOUT_S: Final[float] = 10.0
FULL_REQUEST_TIMEOUT_S: Final[float] = 10.0
RESPONSE_TIMEOUT_S: Final[float] = 5.0

# =============================================================================
# HTTP surface
# =============================================================================

PROVIDER_NAME: Final[str] = "doubao"
NO_SPEECH_TEXT: Final[str] = "no speech recognized"
AUDIO_DOWNLOAD_TIMEOUT_S: Final[float] = 60.0
