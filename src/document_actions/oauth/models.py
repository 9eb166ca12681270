"""OAuth handshake and credential models."""

from __future__ import annotations

import json
import time
from typing import Any, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..utils.errors import SealError
from .seal import StateSeal

NO_CORRELATION_ID = "no-id"


class HandshakeState(BaseModel):
    """State carried through the vendor redirect inside the sealed token.

    Serialized with the wire keys ``stateUrl`` / ``webhookId``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    callback_url: str = Field(alias="stateUrl")
    correlation_id: str = Field(default=NO_CORRELATION_ID, alias="webhookId")

    @field_validator("callback_url")
    @classmethod
    def validate_callback_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("callback URL must be an absolute http(s) URL")
        return v

    @field_validator("correlation_id", mode="before")
    @classmethod
    def default_correlation_id(cls, v: Any) -> Any:
        return v or NO_CORRELATION_ID

    def seal(self, state_seal: StateSeal) -> str:
        """Serialize and seal this state for the redirect round trip."""
        return state_seal.seal(self.model_dump_json(by_alias=True))

    @classmethod
    def unseal(cls, token: str, state_seal: StateSeal) -> HandshakeState:
        """Recover a state from its sealed form.

        Raises:
            SealError: If the token was tampered with, sealed under another
                secret, or does not decode to a handshake state
        """
        plaintext = state_seal.unseal(token)
        try:
            return cls.model_validate_json(plaintext)
        except PydanticValidationError as e:
            raise SealError("Sealed state did not decode to a handshake state") from e


class TokenSet(BaseModel):
    """Vendor-issued token bundle.

    Unknown vendor keys (``id_token``, ``ext_expires_in`` ...) are kept so the
    orchestrator persists exactly what the vendor returned.
    """

    model_config = ConfigDict(extra="allow")

    access_token: str
    refresh_token: Optional[str] = None
    token_type: Optional[str] = "Bearer"
    scope: Optional[str] = None
    expiry_date: Optional[int] = None  # epoch milliseconds

    @classmethod
    def from_token_response(
        cls,
        data: dict[str, Any],
        refresh_token: Optional[str] = None,
    ) -> TokenSet:
        payload = dict(data)
        expires_in = payload.pop("expires_in", None)
        if expires_in is not None and "expiry_date" not in payload:
            payload["expiry_date"] = int(time.time() * 1000) + int(expires_in) * 1000
        if not payload.get("refresh_token") and refresh_token:
            payload["refresh_token"] = refresh_token
        return cls.model_validate(payload)


class Credentials(BaseModel):
    """Tokens bound to the redirect URI they were obtained with."""

    tokens: TokenSet
    redirect: str

    @classmethod
    def from_state_json(cls, state_json: Optional[str]) -> Optional[Credentials]:
        """Parse the orchestrator-persisted user state.

        Returns ``None`` when the state is absent, not JSON, or lacks
        authorized tokens; callers answer that with a login reset.
        """
        if not state_json:
            return None
        try:
            data = json.loads(state_json)
        except ValueError:
            return None
        if not isinstance(data, dict) or not data.get("tokens") or not data.get("redirect"):
            return None
        try:
            return cls.model_validate(data)
        except PydanticValidationError:
            return None

    def to_state_json(self) -> str:
        return self.model_dump_json(exclude_none=True)
