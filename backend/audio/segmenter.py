"""
PCM segmentation for paced upload (pure).

Purpose:
- Turn one WAV buffer into an ordered list of fixed-duration PCM chunks,
  one audio-only request each.

Design:
- Pure functions only (no IO, no timing).
- Segment size comes from the WAV header; an unreadable header falls back
  to DEFAULT_SEGMENT_SIZE_BYTES (3200 bytes). Segment size
  only affects pacing, so this degrades instead of failing.
- The trailing remainder is kept as a shorter final segment (never padded,
  never dropped).
"""

from __future__ import annotations

from dataclasses import dataclass

from audio.wav import InvalidWavError, WavInfo, read_wav_info
from observability.logger import log_event
from spec import DEFAULT_SEGMENT_SIZE_BYTES, SEGMENT_DURATION_MS_DEFAULT


@dataclass(frozen=True)
class SegmentPlan:
    """
    What the session will send for one buffer.

    wav_info is None when the buffer could not be parsed as WAV; in that
    case the raw buffer is segmented as-is with the default size.
    """
    segment_size: int
    segments: list[bytes]
    wav_info: WavInfo | None

    @property
    def total_bytes(self) -> int:
        return sum(len(s) for s in self.segments)


def segment_size_bytes(info: WavInfo, duration_ms: int) -> int:
    """
    floor(channels * bytes_per_sample * sample_rate * duration_ms / 1000)
    """
    return (info.bytes_per_second * duration_ms) // 1000


def _fallback_size(reason: str) -> int:
    log_event({
        "event_type": "WAV_SEGMENT_SIZE_FALLBACK",
        "reason": reason,
        "segment_size": DEFAULT_SEGMENT_SIZE_BYTES,
    })
    return DEFAULT_SEGMENT_SIZE_BYTES


def _size_from_info(info: WavInfo, duration_ms: int) -> int:
    size = segment_size_bytes(info, duration_ms)
    if size <= 0:
        return _fallback_size(f"computed segment size {size}")
    return size


def segment_size_for(
    data: bytes,
    duration_ms: int = SEGMENT_DURATION_MS_DEFAULT,
) -> int:
    """
    Segment size for a WAV buffer, or the default if the header is unreadable.

    Never raises.
    """
    try:
        info = read_wav_info(data)
    except InvalidWavError as e:
        return _fallback_size(str(e))
    return _size_from_info(info, duration_ms)


def split_into_segments(pcm: bytes, segment_size: int) -> list[bytes]:
    """
    Split `pcm` into chunks of exactly `segment_size` bytes, except the last
    which holds the remainder.

    Returns [] for empty input.

    Raises:
        ValueError if segment_size <= 0.
    """
    if segment_size <= 0:
        raise ValueError("segment_size must be > 0")

    return [
        pcm[offset:offset + segment_size]
        for offset in range(0, len(pcm), segment_size)
    ]


def plan_segments(
    data: bytes,
    duration_ms: int = SEGMENT_DURATION_MS_DEFAULT,
) -> SegmentPlan:
    """
    Segment the PCM payload of a WAV buffer.

    Falls back to segmenting the whole buffer at the default size when the
    WAV header cannot be read. The header is parsed once.
    """
    info: WavInfo | None
    try:
        info = read_wav_info(data)
    except InvalidWavError as e:
        info = None
        size = _fallback_size(str(e))
        pcm = data
    else:
        size = _size_from_info(info, duration_ms)
        pcm = info.pcm_data

    return SegmentPlan(
        segment_size=size,
        segments=split_into_segments(pcm, size),
        wav_info=info,
    )
