"""OAuth handshake state, sealing and credential models."""

from .models import NO_CORRELATION_ID, Credentials, HandshakeState, TokenSet
from .seal import FernetStateSeal, StateSeal

__all__ = [
    "NO_CORRELATION_ID",
    "Credentials",
    "HandshakeState",
    "TokenSet",
    "FernetStateSeal",
    "StateSeal",
]
