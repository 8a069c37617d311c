"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No protocol constants (see spec.py)
- No credential validation (see adapters.asr.errors / DoubaoCredentials)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from spec import (
    CONNECT_TIMEOUT_S,
    DOUBAO_NOSTREAM_URL,
    DOUBAO_STREAM_URL,
    RESPONSE_TIMEOUT_S,
    SEGMENT_DURATION_MS_DEFAULT,
)


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the HTTP routes and the CLI.
    """

    # ------------------------------------------------------------------
    # Doubao ASR
    # ------------------------------------------------------------------

    # Only the CLI falls back to these; HTTP callers always pass their own keys.
    doubao_app_key: str | None
    doubao_access_key: str | None

    doubao_stream_url: str
    doubao_nostream_url: str

    segment_duration_ms: int
    connect_timeout_s: float
    response_timeout_s: float

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a numeric variable cannot be parsed.
        """
        return AppConfig(
            doubao_app_key=os.environ.get("DOUBAO_APP_KEY"),
            doubao_access_key=os.environ.get("DOUBAO_ACCESS_KEY"),
            doubao_stream_url=os.environ.get("DOUBAO_STREAM_URL", DOUBAO_STREAM_URL),
            doubao_nostream_url=os.environ.get("DOUBAO_NOSTREAM_URL", DOUBAO_NOSTREAM_URL),

            segment_duration_ms=int(
                os.environ.get("DOUBAO_SEGMENT_MS", str(SEGMENT_DURATION_MS_DEFAULT))
            ),
            connect_timeout_s=float(
                os.environ.get("DOUBAO_CONNECT_TIMEOUT_S", str(CONNECT_TIMEOUT_S))
            ),
            response_timeout_s=float(
                os.environ.get("DOUBAO_RESPONSE_TIMEOUT_S", str(RESPONSE_TIMEOUT_S))
            ),
        )
