"""
Minimal WAV (RIFF) header reader.

Pure byte parsing only: no resampling, no transcoding. The provider expects
16kHz mono PCM16; anything else is a caller-side defect, reported through
check_doubao_format() but never fixed here.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from spec import (
    AUDIO_CHANNELS,
    AUDIO_SAMPLE_RATE_HZ,
    AUDIO_SAMPLE_WIDTH_BYTES,
    WAV_BITS_PER_SAMPLE_OFFSET,
    WAV_CHANNELS_OFFSET,
    WAV_FORMAT_TAG_OFFSET,
    WAV_MIN_HEADER_BYTES,
    WAV_SAMPLE_RATE_OFFSET,
    WAV_SUBCHUNK_HEADER_BYTES,
    WAV_SUBCHUNK_SCAN_START,
)

_RIFF = b"RIFF"
_WAVE = b"WAVE"
_DATA = b"data"


class InvalidWavError(ValueError):
    """
    Raised when a buffer is not a structurally valid WAV container
    (too short, wrong magic, or no data sub-chunk).
    """


@dataclass(frozen=True)
class WavInfo:
    """
    Format fields plus the PCM payload of the data sub-chunk.

    frame_count:
        Number of whole sample frames (one sample per channel) in pcm_data.
    """
    channels: int
    bytes_per_sample: int
    sample_rate: int
    frame_count: int
    pcm_data: bytes
    audio_format: int = 1

    @property
    def bytes_per_second(self) -> int:
        return self.channels * self.bytes_per_sample * self.sample_rate


@dataclass(frozen=True)
class WavFormatCheck:
    is_wav: bool
    needs_conversion: bool


def is_wav(data: bytes) -> bool:
    """RIFF/WAVE magic present and long enough for a canonical header."""
    return (
        len(data) >= WAV_MIN_HEADER_BYTES
        and data[0:4] == _RIFF
        and data[8:12] == _WAVE
    )


def read_wav_info(data: bytes) -> WavInfo:
    """
    Parse the fmt fields at their canonical offsets, then scan sub-chunks
    from offset 36 until the `data` chunk.

    Raises:
        InvalidWavError
    """
    if len(data) < WAV_MIN_HEADER_BYTES:
        raise InvalidWavError(f"WAV too short: {len(data)} bytes")
    if data[0:4] != _RIFF:
        raise InvalidWavError("not a RIFF container")
    if data[8:12] != _WAVE:
        raise InvalidWavError("not a WAVE file")

    audio_format = struct.unpack_from("<H", data, WAV_FORMAT_TAG_OFFSET)[0]
    channels = struct.unpack_from("<H", data, WAV_CHANNELS_OFFSET)[0]
    sample_rate = struct.unpack_from("<I", data, WAV_SAMPLE_RATE_OFFSET)[0]
    bits_per_sample = struct.unpack_from("<H", data, WAV_BITS_PER_SAMPLE_OFFSET)[0]
    bytes_per_sample = bits_per_sample // 8

    pos = WAV_SUBCHUNK_SCAN_START
    while pos + WAV_SUBCHUNK_HEADER_BYTES <= len(data):
        chunk_id = data[pos:pos + 4]
        chunk_size = struct.unpack_from("<I", data, pos + 4)[0]
        body_start = pos + WAV_SUBCHUNK_HEADER_BYTES

        if chunk_id == _DATA:
            pcm = data[body_start:body_start + chunk_size]
            block = channels * bytes_per_sample
            return WavInfo(
                channels=channels,
                bytes_per_sample=bytes_per_sample,
                sample_rate=sample_rate,
                frame_count=len(pcm) // block if block > 0 else 0,
                pcm_data=pcm,
                audio_format=audio_format,
            )

        pos = body_start + chunk_size

    raise InvalidWavError("no data sub-chunk found")


def check_doubao_format(data: bytes) -> WavFormatCheck:
    """
    Report whether `data` is a WAV already in the provider's format.

    Never raises.
    """
    if not is_wav(data):
        return WavFormatCheck(is_wav=False, needs_conversion=True)

    try:
        info = read_wav_info(data)
    except InvalidWavError:
        return WavFormatCheck(is_wav=False, needs_conversion=True)

    conforms = (
        info.sample_rate == AUDIO_SAMPLE_RATE_HZ
        and info.channels == AUDIO_CHANNELS
        and info.bytes_per_sample == AUDIO_SAMPLE_WIDTH_BYTES
    )
    return WavFormatCheck(is_wav=True, needs_conversion=not conforms)
