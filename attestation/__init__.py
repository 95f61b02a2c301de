"""Commitment and Proof-of-Placement package."""

from .commitment import (
    InclusionProof,
    deserialize,
    hamming_distance,
    hash_grid,
    hash_row,
    hash_state,
    inclusion_proof,
    merkle_root,
    serialize,
    verify_inclusion,
)
from .placement import (
    ChainVerification,
    PlacementProof,
    build_chain,
    generate,
    verify,
    verify_chain,
    verify_chain_detailed,
)

__all__: list[str] = [
    "InclusionProof",
    "deserialize",
    "hamming_distance",
    "hash_grid",
    "hash_row",
    "hash_state",
    "inclusion_proof",
    "merkle_root",
    "serialize",
    "verify_inclusion",
    "ChainVerification",
    "PlacementProof",
    "build_chain",
    "generate",
    "verify",
    "verify_chain",
    "verify_chain_detailed",
]
