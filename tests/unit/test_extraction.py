# pylint: disable=missing-module-docstring,missing-function-docstring

from adapters.asr.errors import TransportError
from adapters.asr.extraction import (
    extract_confidence,
    extract_language,
    extract_text,
    format_error,
)
from protocol.response import AsrResponse


# ---------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------

def test_text_prefers_result_text():
    payload = {"result": {"text": "full", "segments": [{"text": "seg"}]}, "text": "top"}

    assert extract_text(payload) == "full"


def test_text_joins_segments():
    payload = {"result": {"segments": [{"text": "a"}, {"transcript": "b"}]}}

    assert extract_text(payload) == "a b"


def test_text_joins_utterances():
    payload = {"result": {"utterances": [{"text": "hello"}, {"text": "world"}]}}

    assert extract_text(payload) == "hello world"


def test_text_top_level_and_string_payload():
    assert extract_text({"transcript": "hello"}) == "hello"
    assert extract_text("hello") == "hello"


def test_text_empty_result():
    assert extract_text({"result": {}}) == ""
    assert extract_text(None) == ""
    assert extract_text(42) == ""


def test_text_from_response_and_dict_forms():
    response = AsrResponse(payload_msg={"result": {"text": "hi"}})

    assert extract_text(response) == "hi"
    assert extract_text(response.to_dict()) == "hi"
    assert extract_text(AsrResponse()) == ""


# ---------------------------------------------------------------------
# Language / confidence
# ---------------------------------------------------------------------

def test_language_and_confidence_two_tier_probe():
    nested = {"result": {"language": "zh-CN", "confidence": 0.93}}
    top = {"language": "en-US", "confidence": 0}

    assert extract_language(nested) == "zh-CN"
    assert extract_confidence(nested) == 0.93
    assert extract_language(top) == "en-US"
    assert extract_confidence(top) == 0


def test_language_and_confidence_unset_is_none():
    assert extract_language({"result": {"text": "x"}}) is None
    assert extract_confidence({"result": {"text": "x"}}) is None
    assert extract_confidence({"confidence": True}) is None
    assert extract_language(None) is None


def test_empty_nested_value_falls_through_to_top_level():
    payload = {"result": {"language": "", "confidence": ""}, "language": "en-US", "confidence": 0.5}

    assert extract_language(payload) == "en-US"
    assert extract_confidence(payload) == 0.5
    assert extract_confidence({"result": {"confidence": 0}, "confidence": 0.5}) == 0


# ---------------------------------------------------------------------
# Error formatting
# ---------------------------------------------------------------------

def test_format_error():
    assert format_error("boom") == "boom"
    assert format_error(TransportError("socket closed")) == "socket closed"
    assert format_error(TransportError()) == "TransportError"
    assert format_error({"error": "quota exceeded"}) == "quota exceeded"
    assert format_error(AsrResponse(payload_msg={"message": "bad"})) == "bad"
    assert format_error(object()) == "unknown error"
