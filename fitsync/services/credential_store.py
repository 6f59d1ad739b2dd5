"""Credential-at-rest storage for OAuth tokens.

The sync core only ever sees the ``CredentialStore`` protocol: an opaque
``get``/``set`` of one secret string per service name.  The concrete
``KeyringCredentialStore`` keeps the secret in the OS keystore via the
``keyring`` library, under the service name ``fitsync_<service>`` and the
current OS user.

Stored blobs are the token-endpoint response serialized to JSON and then
base64 encoded.
"""

from __future__ import annotations

import base64
import binascii
import getpass
import json
import logging
from typing import Any, Protocol

import keyring
from keyring.errors import KeyringError

logger = logging.getLogger("fitsync.services.credential_store")


class CredentialStore(Protocol):
    """Opaque persisted secret storage keyed by service name."""

    def get(self, service: str) -> str | None: ...

    def set(self, service: str, secret: str) -> None: ...


class KeyringCredentialStore:
    """CredentialStore backed by the platform keyring."""

    def __init__(self, prefix: str = "fitsync_", username: str | None = None) -> None:
        self._prefix = prefix
        self._username = username

    def _keyring_id(self, service: str) -> tuple[str, str]:
        username = self._username or getpass.getuser()
        return f"{self._prefix}{service}", username

    def get(self, service: str) -> str | None:
        service_name, username = self._keyring_id(service)
        try:
            secret = keyring.get_password(service_name, username)
        except KeyringError as exc:
            logger.warning("Could not read %s from keyring: %s", service_name, exc)
            return None
        if secret:
            logger.info("Found token in keystore for %s", service)
        return secret

    def set(self, service: str, secret: str) -> None:
        service_name, username = self._keyring_id(service)
        keyring.set_password(service_name, username, secret)
        logger.debug("Saved %s tokens to keyring", service)


class InMemoryCredentialStore:
    """Process-local CredentialStore, for tests and keyring-less hosts."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._secrets: dict[str, str] = dict(initial or {})

    def get(self, service: str) -> str | None:
        return self._secrets.get(service)

    def set(self, service: str, secret: str) -> None:
        self._secrets[service] = secret


def encode_tokens(token_response: dict[str, Any]) -> str:
    """Serialize a token response for storage."""
    return base64.b64encode(json.dumps(token_response).encode("utf-8")).decode("ascii")


def decode_tokens(blob: str) -> dict[str, Any] | None:
    """Decode a stored token blob; returns None (and logs) if it is unreadable."""
    try:
        raw = base64.b64decode(blob, validate=True)
    except (binascii.Error, ValueError) as exc:
        logger.warning("Found token in keystore but failed to base64 decode it: %s", exc)
        return None
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        logger.warning("Found token in keystore, but failed to decode: %s", exc)
        return None
    if not isinstance(data, dict):
        logger.warning("Found token in keystore, but it is not a token response")
        return None
    return data
