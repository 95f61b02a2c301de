"""
Signer capability.

Proof engines sign and verify through this narrow interface so that key
custody (HSM, remote signer, test keys) stays outside the core.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from backend.crypto.core import ed25519_sign_b64, ed25519_verify_b64


@runtime_checkable
class Signer(Protocol):
    def sign(self, data: bytes, key: bytes) -> str:
        ...

    def verify_signature(self, data: bytes, signature: str, key: bytes) -> bool:
        ...


class Ed25519Signer:
    """Ed25519 over raw 32-byte keys; signatures are base64 strings."""

    algorithm = "ed25519"

    def sign(self, data: bytes, key: bytes) -> str:
        return ed25519_sign_b64(data, key)

    def verify_signature(self, data: bytes, signature: str, key: bytes) -> bool:
        if not isinstance(signature, str) or not isinstance(key, (bytes, bytearray)):
            return False
        return ed25519_verify_b64(data, signature, bytes(key))


DEFAULT_SIGNER: Signer = Ed25519Signer()
