"""
Centralized cryptographic core operations for the grid proof engine.

This module provides canonical implementations of:
- Ed25519 signing and verification
- RFC 8785 JSON canonicalization
- SHA-256 hashing with domain separation

All operations are deterministic; digests are rendered as lowercase hex.
"""

import base64
import binascii
import hashlib
import json
from typing import Any, Tuple, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519


# Domain separation tags (prevent cross-type second preimage attacks)
DOMAIN_LEAF = b'\x00'
DOMAIN_NODE = b'\x01'
DOMAIN_GRID = b'\x02'
DOMAIN_STATE = b'\x03'
DOMAIN_SEQUENCE = b'\x04'
DOMAIN_CHALLENGE = b'\x05'
DOMAIN_POL = b'\x06'

DIGEST_HEX_LENGTH = 64


def _format_number(value: float) -> str:
    """
    Render a finite float the way ECMAScript ``Number.prototype.toString`` does.

    ``repr`` already yields the shortest round-tripping digits; only the layout
    (plain vs exponent form, no ``.0`` suffix, no exponent padding) differs.
    """
    if value == 0:
        return "0"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))

    sign = "-" if value < 0 else ""
    mantissa, _, exp = repr(abs(value)).partition("e")
    int_part, _, frac_part = mantissa.partition(".")
    digits = int_part + frac_part
    # Decimal point sits after ``point`` digits of ``digits``.
    point = len(int_part) + int(exp or 0)
    stripped = digits.lstrip("0")
    point -= len(digits) - len(stripped)
    digits = stripped.rstrip("0")
    k = len(digits)

    if k <= point <= 21:
        text = digits + "0" * (point - k)
    elif 0 < point <= 21:
        text = digits[:point] + "." + digits[point:]
    elif -6 < point <= 0:
        text = "0." + "0" * (-point) + digits
    else:
        exponent = point - 1
        exp_text = f"e+{exponent}" if exponent >= 0 else f"e-{-exponent}"
        head = digits if k == 1 else f"{digits[0]}.{digits[1:]}"
        text = head + exp_text
    return sign + text


def rfc8785_canonicalize(obj: Any) -> str:
    """
    Canonicalize JSON according to RFC 8785 (JSON Canonicalization Scheme).

    Rules:
    - Keys sorted lexicographically
    - No insignificant whitespace
    - Unicode emitted literally
    - Integers in decimal form; floats in ECMAScript (ES6) number form,
      so 100.0 becomes "100" and 1e-07 becomes "1e-7"

    Args:
        obj: Python object to canonicalize

    Returns:
        Canonical JSON string
    """
    def serialize_value(v: Any) -> str:
        if v is None:
            return "null"
        elif isinstance(v, bool):
            return "true" if v else "false"
        elif isinstance(v, int):
            return str(v)
        elif isinstance(v, float):
            if v != v or v in (float("inf"), float("-inf")):
                raise ValueError("RFC 8785 forbids NaN and infinite numbers")
            return _format_number(v)
        elif isinstance(v, str):
            return json.dumps(v, ensure_ascii=False)
        elif isinstance(v, (list, tuple)):
            items = [serialize_value(item) for item in v]
            return "[" + ",".join(items) + "]"
        elif isinstance(v, dict):
            pairs = []
            for key in sorted(v.keys()):
                key_str = json.dumps(key, ensure_ascii=False)
                val_str = serialize_value(v[key])
                pairs.append(f"{key_str}:{val_str}")
            return "{" + ",".join(pairs) + "}"
        else:
            raise TypeError(f"Cannot canonicalize value of type {type(v).__name__}")

    return serialize_value(obj)


def canonical_json_bytes(obj: Any) -> bytes:
    """RFC 8785 canonical form encoded as UTF-8."""
    return rfc8785_canonicalize(obj).encode('utf-8')


def sha256_hex(data: Union[str, bytes], domain: bytes = b'') -> str:
    """
    Compute SHA-256 hash and return as hex string.

    Args:
        data: Input data (string will be UTF-8 encoded)
        domain: Optional domain separation prefix

    Returns:
        64-character hex string
    """
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(domain + data).hexdigest()


def sha256_bytes(data: Union[str, bytes], domain: bytes = b'') -> bytes:
    """
    Compute SHA-256 hash and return as bytes.

    Args:
        data: Input data (string will be UTF-8 encoded)
        domain: Optional domain separation prefix

    Returns:
        32-byte digest
    """
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(domain + data).digest()


def is_hex_digest(value: Any) -> bool:
    """True for a 64-character lowercase hex string."""
    if not isinstance(value, str) or len(value) != DIGEST_HEX_LENGTH:
        return False
    return all(ch in "0123456789abcdef" for ch in value)


def ed25519_generate_keypair() -> Tuple[bytes, bytes]:
    """
    Generate Ed25519 keypair.

    Returns:
        Tuple of (private_key_bytes, public_key_bytes)
    """
    private_key = ed25519.Ed25519PrivateKey.generate()
    public_key = private_key.public_key()

    private_bytes = private_key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption()
    )

    public_bytes = public_key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw
    )

    return private_bytes, public_bytes


def ed25519_sign_b64(data: Union[str, bytes], private_key: bytes) -> str:
    """
    Sign data with Ed25519 and return base64-encoded signature.

    Args:
        data: Data to sign (string will be UTF-8 encoded)
        private_key: 32-byte Ed25519 private key

    Returns:
        Base64-encoded signature
    """
    if isinstance(data, str):
        data = data.encode('utf-8')

    private_key_obj = ed25519.Ed25519PrivateKey.from_private_bytes(private_key)
    signature = private_key_obj.sign(data)

    return base64.b64encode(signature).decode('ascii')


def ed25519_verify_b64(data: Union[str, bytes], signature_b64: str, public_key: bytes) -> bool:
    """
    Verify Ed25519 signature.

    Args:
        data: Data that was signed
        signature_b64: Base64-encoded signature
        public_key: 32-byte Ed25519 public key

    Returns:
        True if signature is valid
    """
    if isinstance(data, str):
        data = data.encode('utf-8')

    try:
        signature = base64.b64decode(signature_b64, validate=True)
        public_key_obj = ed25519.Ed25519PublicKey.from_public_bytes(public_key)
        public_key_obj.verify(signature, data)
        return True
    except (InvalidSignature, binascii.Error, ValueError, TypeError):
        return False
