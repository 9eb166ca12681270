"""Sealing of OAuth handshake state.

The sealed token is the only state that crosses the vendor redirect, so it
has to be both private (it carries the orchestrator callback URL) and
tamper-evident. Fernet (AES-CBC + HMAC-SHA256) provides both.
"""

import base64
import hashlib
from typing import Optional, Protocol

from cryptography.fernet import Fernet, InvalidToken

from ..utils.errors import SealError


class StateSeal(Protocol):
    """Encrypt/decrypt service for handshake state."""

    def seal(self, plaintext: str) -> str:
        ...

    def unseal(self, token: str) -> str:
        ...


def derive_key(secret: str) -> bytes:
    """Derive a Fernet key from an arbitrary-length secret."""
    return base64.urlsafe_b64encode(hashlib.sha256(secret.encode("utf-8")).digest())


class FernetStateSeal:
    """StateSeal backed by ``cryptography``'s Fernet recipe.

    Without a configured secret every operation fails with ``SealError``;
    state is never sent through the redirect in plaintext.
    """

    def __init__(self, secret: Optional[str]):
        self._fernet = Fernet(derive_key(secret)) if secret else None

    def seal(self, plaintext: str) -> str:
        fernet = self._require_cipher()
        return fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def unseal(self, token: str) -> str:
        fernet = self._require_cipher()
        try:
            return fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError, TypeError) as e:
            raise SealError("Sealed state is invalid or was tampered with") from e

    def _require_cipher(self) -> Fernet:
        if self._fernet is None:
            raise SealError("Cipher secret is not configured (set CIPHER_MASTER)")
        return self._fernet
