"""
Cryptographic Primitives Module

Centralized cryptographic operations with domain separation.
"""

from backend.crypto.hashing import (
    compute_merkle_proof,
    hash_leaf,
    hash_node,
    merkle_root_from_hashes,
    verify_merkle_proof,
)

from backend.crypto.signer import DEFAULT_SIGNER, Ed25519Signer, Signer

from backend.crypto.core import (
    canonical_json_bytes,
    ed25519_generate_keypair,
    ed25519_sign_b64,
    ed25519_verify_b64,
    is_hex_digest,
    rfc8785_canonicalize,
    sha256_bytes,
    sha256_hex,
)

__all__ = [
    "DEFAULT_SIGNER",
    "Ed25519Signer",
    "Signer",
    "compute_merkle_proof",
    "hash_leaf",
    "hash_node",
    "merkle_root_from_hashes",
    "verify_merkle_proof",
    "canonical_json_bytes",
    "ed25519_generate_keypair",
    "ed25519_sign_b64",
    "ed25519_verify_b64",
    "is_hex_digest",
    "rfc8785_canonicalize",
    "sha256_bytes",
    "sha256_hex",
]
