"""
Domain-separated Merkle trees over ordered byte leaves.

Unlike a set commitment, leaf order is significant here: leaf ``i`` always sits
at position ``i`` so that inclusion proofs can be bound to an index.

- LEAF prefix for leaf nodes (prevents leaf/internal confusion)
- NODE prefix for internal nodes
- Duplicate last node for odd counts
"""

from __future__ import annotations

from typing import List, Sequence

from backend.crypto.core import (
    DOMAIN_LEAF,
    DOMAIN_NODE,
    is_hex_digest,
    sha256_bytes,
    sha256_hex,
)


def hash_leaf(data: bytes) -> bytes:
    return sha256_bytes(data, domain=DOMAIN_LEAF)


def hash_node(left: bytes, right: bytes) -> bytes:
    return sha256_bytes(left + right, domain=DOMAIN_NODE)


def _next_level(nodes: List[bytes]) -> List[bytes]:
    if len(nodes) % 2 == 1:
        nodes = nodes + [nodes[-1]]
    return [hash_node(nodes[i], nodes[i + 1]) for i in range(0, len(nodes), 2)]


def merkle_root_from_hashes(leaf_hashes: Sequence[bytes]) -> str:
    """
    Compute the Merkle root over already-hashed leaves.

    Args:
        leaf_hashes: 32-byte leaf digests, in tree order

    Returns:
        64-character hex Merkle root
    """
    if not leaf_hashes:
        return sha256_hex(b'', domain=DOMAIN_LEAF)

    nodes = list(leaf_hashes)
    while len(nodes) > 1:
        nodes = _next_level(nodes)
    return nodes[0].hex()


def compute_merkle_proof(leaf_index: int, leaf_hashes: Sequence[bytes]) -> List[str]:
    """
    Compute the sibling path for the leaf at ``leaf_index``.

    Left/right placement is implied by the bits of the index, so the path is a
    plain list of sibling digests from the leaf level upwards.

    Args:
        leaf_index: Index of leaf to prove
        leaf_hashes: All leaf digests in tree order

    Returns:
        List of hex sibling digests
    """
    if leaf_index < 0 or leaf_index >= len(leaf_hashes):
        raise ValueError(f"Invalid leaf index: {leaf_index}")

    nodes = list(leaf_hashes)
    proof: List[str] = []
    current_index = leaf_index

    while len(nodes) > 1:
        if len(nodes) % 2 == 1:
            nodes.append(nodes[-1])
        sibling_index = current_index + 1 if current_index % 2 == 0 else current_index - 1
        proof.append(nodes[sibling_index].hex())
        nodes = _next_level(nodes)
        current_index //= 2

    return proof


def merkle_depth(leaf_count: int) -> int:
    """Number of sibling hashes in a proof for a tree of ``leaf_count`` leaves."""
    depth = 0
    width = leaf_count
    while width > 1:
        width = (width + 1) // 2
        depth += 1
    return depth


def verify_merkle_proof(
    leaf_hash_hex: str,
    leaf_index: int,
    proof: Sequence[str],
    root: str,
    leaf_count: int,
) -> bool:
    """
    Verify a Merkle proof for a leaf digest at a fixed index.

    Returns False (never raises) for malformed digests, out-of-range indices,
    or a proof whose length does not match the tree depth.
    """
    if not isinstance(leaf_index, int) or isinstance(leaf_index, bool):
        return False
    if leaf_index < 0 or leaf_index >= leaf_count:
        return False
    if len(proof) != merkle_depth(leaf_count):
        return False
    if not is_hex_digest(leaf_hash_hex) or not is_hex_digest(root):
        return False
    if not all(is_hex_digest(sibling) for sibling in proof):
        return False

    current = bytes.fromhex(leaf_hash_hex)
    index = leaf_index
    for sibling_hex in proof:
        sibling = bytes.fromhex(sibling_hex)
        if index % 2 == 0:
            current = hash_node(current, sibling)
        else:
            current = hash_node(sibling, current)
        index //= 2

    return current.hex() == root
