"""OS keyring storage for the provider API key.

Responsibilities:
- Persist, read, and delete the OpenAI API key in the OS credential store.
- Report missing or unusable keyring backends as readable errors.
- Never log or echo the stored secret.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import keyring
from keyring.backends import fail
from keyring.errors import KeyringError, PasswordDeleteError

_DEFAULT_SERVICE_NAME = "readalong"
_DEFAULT_ACCOUNT_NAME = "openai_api_key"


class CredentialStore(Protocol):
    """Protocol for API key persistence."""

    def is_available(self) -> bool: ...

    def get_api_key(self) -> str | None: ...

    def set_api_key(self, api_key: str) -> None: ...

    def clear_api_key(self) -> bool: ...


@dataclass(slots=True)
class KeyringCredentialStore:
    """Credential store backed by the active `keyring` backend."""

    service_name: str = _DEFAULT_SERVICE_NAME
    account_name: str = _DEFAULT_ACCOUNT_NAME

    def is_available(self) -> bool:
        """Return `False` when keyring resolved to its no-op failure backend."""

        return not isinstance(keyring.get_keyring(), fail.Keyring)

    def get_api_key(self) -> str | None:
        if not self.is_available():
            return None
        try:
            value = keyring.get_password(self.service_name, self.account_name)
        except KeyringError as exc:
            raise RuntimeError(f"Could not read the stored API key: {exc}") from exc
        if value is None:
            return None
        return value.strip() or None

    def set_api_key(self, api_key: str) -> None:
        normalized = api_key.strip()
        if not normalized:
            raise ValueError("API key must be a non-empty string.")
        if not self.is_available():
            raise RuntimeError(
                "No usable keyring backend is configured; set `OPENAI_API_KEY` instead."
            )
        try:
            keyring.set_password(self.service_name, self.account_name, normalized)
        except KeyringError as exc:
            raise RuntimeError(f"Could not store the API key: {exc}") from exc

    def clear_api_key(self) -> bool:
        """Delete the stored key and report whether one existed."""

        if self.get_api_key() is None:
            return False
        try:
            keyring.delete_password(self.service_name, self.account_name)
        except PasswordDeleteError:
            return False
        return True


def create_credential_store() -> CredentialStore:
    return KeyringCredentialStore()
