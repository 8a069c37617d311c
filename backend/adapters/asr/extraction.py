"""
Field extraction from Doubao response payloads.

The provider's JSON shape is not contractually fixed. Extraction probes
known shapes in priority order and never raises:

text:
    result.text
    -> " ".join(result.segments[].text | .transcript)
    -> " ".join(result.utterances[].text | .transcript)
    -> text | transcript (top level)
    -> payload itself, if it is a string
    -> ""

language / confidence:
    result.<field> -> <field> (top level) -> None
    (an empty string at either tier counts as unset)

None means "not provided"; callers must not conflate it with "" or 0.

Accepted inputs: an AsrResponse, its to_dict() mapping (payload under
"payload_msg"), or a bare payload.
"""

from __future__ import annotations

from typing import Any, Mapping

from protocol.response import AsrResponse


def _payload_of(response: Any) -> Any:
    if isinstance(response, AsrResponse):
        return response.payload_msg
    if isinstance(response, Mapping) and "payload_msg" in response:
        return response["payload_msg"]
    return response


def _result_of(payload: Any) -> Mapping[str, Any] | None:
    if isinstance(payload, Mapping):
        result = payload.get("result")
        if isinstance(result, Mapping):
            return result
    return None


def _join_items(items: Any) -> str | None:
    if not isinstance(items, list):
        return None
    parts: list[str] = []
    for item in items:
        if not isinstance(item, Mapping):
            parts.append("")
            continue
        text = item.get("text") or item.get("transcript") or ""
        parts.append(text if isinstance(text, str) else str(text))
    return " ".join(parts).strip()


def extract_text(response: Any) -> str:
    payload = _payload_of(response)
    result = _result_of(payload)

    if result is not None:
        text = result.get("text")
        if isinstance(text, str) and text:
            return text

        joined = _join_items(result.get("segments"))
        if joined is not None:
            return joined

        joined = _join_items(result.get("utterances"))
        if joined is not None:
            return joined

    if isinstance(payload, Mapping):
        for key in ("text", "transcript"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value

    if isinstance(payload, str):
        return payload

    return ""


def _present(value: Any) -> bool:
    # 0 is a real confidence; only None and "" mean unset
    return value is not None and value != ""


def _probe(response: Any, field: str) -> Any:
    payload = _payload_of(response)
    result = _result_of(payload)

    if result is not None and _present(result.get(field)):
        return result[field]
    if isinstance(payload, Mapping) and _present(payload.get(field)):
        return payload[field]
    return None


def extract_language(response: Any) -> str | None:
    value = _probe(response, "language")
    if isinstance(value, str) and value:
        return value
    return None


def extract_confidence(response: Any) -> float | None:
    value = _probe(response, "confidence")
    # bool is an int subclass; a boolean "confidence" is not a score
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def format_error(error: Any) -> str:
    """Human-readable message for an exception, string or error payload."""
    if isinstance(error, str):
        return error
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__

    payload = _payload_of(error)
    if isinstance(payload, Mapping):
        message = payload.get("error") or payload.get("message")
        if isinstance(message, str) and message:
            return message
    return "unknown error"
