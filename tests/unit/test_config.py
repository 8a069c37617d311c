# pylint: disable=missing-module-docstring,missing-function-docstring

import dataclasses

import pytest

from adapters.asr.credentials import DoubaoCredentials
from adapters.asr.errors import ConfigurationError
from config import AppConfig
from spec import DOUBAO_NOSTREAM_URL, DOUBAO_STREAM_URL

_ENV_KEYS = (
    "DOUBAO_APP_KEY",
    "DOUBAO_STREAM_URL",
    "DOUBAO_NOSTREAM_URL",
    "DOUBAO_SEGMENT_MS",
    "DOUBAO_RESPONSE_TIMEOUT_S",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults():
    config = AppConfig.load_from_env()

    assert config.doubao_app_key is None
    assert config.doubao_stream_url == DOUBAO_STREAM_URL
    assert config.doubao_nostream_url == DOUBAO_NOSTREAM_URL
    assert config.segment_duration_ms == 200
    assert config.response_timeout_s == 5.0


def test_env_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DOUBAO_SEGMENT_MS", "100")
    monkeypatch.setenv("DOUBAO_RESPONSE_TIMEOUT_S", "2.5")
    monkeypatch.setenv("DOUBAO_STREAM_URL", "wss://example.test/asr")

    config = AppConfig.load_from_env()

    assert config.segment_duration_ms == 100
    assert config.response_timeout_s == 2.5
    assert config.doubao_stream_url == "wss://example.test/asr"


def test_config_is_frozen():
    config = AppConfig.load_from_env()

    with pytest.raises(dataclasses.FrozenInstanceError):
        config.segment_duration_ms = 100  # type: ignore[misc]


def test_bad_numeric_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DOUBAO_SEGMENT_MS", "fast")

    with pytest.raises(ValueError):
        AppConfig.load_from_env()


# ---------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------

def test_credentials_strip_and_validate():
    creds = DoubaoCredentials.from_raw("  app ", "key\n")

    creds.validate()
    assert creds.app_key == "app"
    assert "key" not in repr(creds)


@pytest.mark.parametrize("app_key,access_key", [("", "k"), ("a", "   "), (None, "k"), ("a", 7)])
def test_credentials_reject_empty(app_key, access_key):
    with pytest.raises(ConfigurationError):
        DoubaoCredentials.from_raw(app_key, access_key).validate()


def test_only_consumed_settings_are_loaded(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ENABLE_JSON_LOGS", "0")

    fields = {f.name for f in dataclasses.fields(AppConfig)}

    assert fields == {
        "doubao_app_key",
        "doubao_access_key",
        "doubao_stream_url",
        "doubao_nostream_url",
        "segment_duration_ms",
        "connect_timeout_s",
        "response_timeout_s",
    }
    assert AppConfig.load_from_env().segment_duration_ms == 200
