"""
Storage of the backend API key in the operating system keyring.
"""

from __future__ import annotations

import logging
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from ..domain.exceptions import ConfigError

logger = logging.getLogger(__name__)


KEYRING_SERVICE_NAME = "tutorbooking"


class CredentialStore:
    """
    Keeps one API key per backend URL in the keyring.

    Reading never fails: an unusable keyring is logged and treated as if no
    key were stored. Writing failures raise ConfigError.
    """

    def __init__(self, service_name: str = KEYRING_SERVICE_NAME):
        self.service_name = service_name

    @staticmethod
    def _key_identifier(backend_url: str) -> str:
        return backend_url.rstrip("/").lower()

    def get_api_key(self, backend_url: str) -> Optional[str]:
        try:
            return keyring.get_password(self.service_name, self._key_identifier(backend_url))
        except KeyringError as exc:  # pragma: no cover - environment dependent
            logger.warning("Reading the API key from the keyring failed: %s", exc)
            return None

    def set_api_key(self, backend_url: str, api_key: str) -> None:
        if not api_key.strip():
            raise ConfigError("API key must not be empty")
        try:
            keyring.set_password(self.service_name, self._key_identifier(backend_url), api_key)
        except KeyringError as exc:
            raise ConfigError(f"Could not store the API key in the keyring: {exc}") from exc

    def delete_api_key(self, backend_url: str) -> bool:
        """Remove the stored key. Returns False when there was none."""
        try:
            keyring.delete_password(self.service_name, self._key_identifier(backend_url))
        except PasswordDeleteError:
            return False
        except KeyringError as exc:
            raise ConfigError(f"Could not remove the API key from the keyring: {exc}") from exc
        return True
