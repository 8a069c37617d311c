"""
JSONL event logger.

- Write one JSON object per line
- Output to stdout
- No buffering, no batching
- Stamp ts_ms when the caller did not
- Redact credential fields before they reach the sink
"""

from __future__ import annotations

import json
import sys
import time
from typing import Any, Mapping, Callable

from spec import HEADER_ACCESS_KEY, HEADER_APP_KEY


_REDACTED = "***"

# Keys whose values must never be written, at any nesting depth.
_SENSITIVE_KEYS: frozenset[str] = frozenset({
    "app_key",
    "access_key",
    "appKey",
    "accessKey",
    HEADER_APP_KEY,
    HEADER_ACCESS_KEY,
})


# ------------------------------------------------------------------
# Explicit output sink (patchable in tests)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()

_print: Callable[[str], None] = _stdout_print


def _redact(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {
            k: (_REDACTED if k in _SENSITIVE_KEYS else _redact(v))
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_redact(v) for v in value]
    return value


def log_event(event: Mapping[str, Any]) -> None:
    """
    Write a single JSONL event to stdout.

    The caller supplies at least "event_type". This function:
    - Adds ts_ms (wall clock) if missing
    - Redacts credential fields
    - Serializes to JSON and writes exactly one line
    - Never raises
    """
    record: dict[str, Any] = _redact(event)
    record.setdefault("ts_ms", int(time.time() * 1000))

    try:
        line = json.dumps(record, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        # Last-resort fallback: logging must never crash the caller
        fallback: dict[str, Any] = {
            "ts_ms": record.get("ts_ms"),
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "error": str(e),
            "original_event_repr": repr(record),
        }
        line = json.dumps(fallback, ensure_ascii=False, separators=(",", ":"))

    _print(line)
