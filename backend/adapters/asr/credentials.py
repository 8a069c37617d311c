"""Caller-supplied Doubao credentials."""

from __future__ import annotations

from dataclasses import dataclass, field

from adapters.asr.errors import ConfigurationError


@dataclass(frozen=True)
class DoubaoCredentials:
    """
    App key + access key pair passed through to the provider.

    `validate()` is purely local and never touches the network.
    Neither key appears in the repr.
    """
    app_key: str = field(repr=False)
    access_key: str = field(repr=False)

    @staticmethod
    def from_raw(app_key: object, access_key: object) -> "DoubaoCredentials":
        """Build from untrusted input (form fields, env), stripping whitespace."""
        return DoubaoCredentials(
            app_key=app_key.strip() if isinstance(app_key, str) else "",
            access_key=access_key.strip() if isinstance(access_key, str) else "",
        )

    def validate(self) -> None:
        if not isinstance(self.app_key, str) or not self.app_key.strip():
            raise ConfigurationError("app_key must not be empty")
        if not isinstance(self.access_key, str) or not self.access_key.strip():
            raise ConfigurationError("access_key must not be empty")
