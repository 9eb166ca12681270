"""Document upload actions: OAuth handshake and batched table uploads."""

__version__ = "1.0.0"
