"""
Doubao ASR client error taxonomy.

- ConfigurationError: caught before any network activity, never retryable.
- TransportError: the connection (or a wait on it) failed; the session is
  ERRORED and must be closed. The client never retries on its own.
- SessionClosedError: the session was used after close().

Frame-level decode failures surface as protocol.binary.BinaryProtocolError.
"""

from __future__ import annotations


class DoubaoASRError(Exception):
    """Base class for Doubao streaming client errors."""


class ConfigurationError(DoubaoASRError):
    """Missing or empty credentials, or no audio to send."""


class TransportError(DoubaoASRError):
    """Connect, send or receive failed on the provider WebSocket."""


class ResponseTimeout(TransportError):
    """No response frame arrived within the configured wait."""


class SessionClosedError(DoubaoASRError):
    """A closed session cannot be reused."""
