"""
Commitment Engine
=================

Canonical serialization and hashing of grids and game states, plus a Merkle
tree over grid rows supporting row-level inclusion proofs.

- serialize(grid): 100 bytes, row-major, row 0 (bottom) first
- hash_grid(grid): SHA256(DOMAIN_GRID || serialize(grid))
- hash_state(state): SHA256(DOMAIN_STATE || serialize(grid) || RFC8785(header))
- merkle_root(grid): leaves are SHA256(DOMAIN_LEAF || row) for rows 0..9 in
  index order, internal nodes SHA256(DOMAIN_NODE || left || right), odd levels
  duplicate their last hash

PoP commitments are state commitments: the header binds the active piece and
the sequence cursor, i.e. everything the next transition depends on.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

from backend.crypto.core import (
    DOMAIN_GRID,
    DOMAIN_STATE,
    canonical_json_bytes,
    sha256_hex,
)
from backend.crypto.hashing import (
    compute_merkle_proof,
    hash_leaf,
    merkle_root_from_hashes,
    verify_merkle_proof,
)
from engine.grid import ROWS, Grid
from engine.state import GameState


@dataclass(frozen=True)
class InclusionProof:
    """Row inclusion proof: the row's leaf digest and its sibling path to the root."""

    row_index: int
    leaf_hash: str
    sibling_path: Tuple[str, ...]


def serialize(grid: Grid) -> bytes:
    return grid.cells


def deserialize(data: bytes) -> Grid:
    """Rebuild a grid from canonical bytes; raises ``MalformedGridError`` on bad input."""
    return Grid(bytes(data))


def hash_grid(grid: Grid) -> str:
    return sha256_hex(serialize(grid), domain=DOMAIN_GRID)


def hash_state(state: GameState) -> str:
    return sha256_hex(serialize(state.grid) + canonical_json_bytes(state.header()), domain=DOMAIN_STATE)


def hash_row(row: bytes) -> str:
    return hash_leaf(row).hex()


def _row_hashes(grid: Grid) -> Sequence[bytes]:
    return [hash_leaf(row) for row in grid.rows()]


def merkle_root(grid: Grid) -> str:
    return merkle_root_from_hashes(_row_hashes(grid))


def inclusion_proof(grid: Grid, row_index: int) -> InclusionProof:
    """
    Build the inclusion proof for one row.

    Raises:
        ValueError: row_index outside 0..9
    """
    leaves = _row_hashes(grid)
    path = compute_merkle_proof(row_index, leaves)
    return InclusionProof(row_index, leaves[row_index].hex(), tuple(path))


def verify_inclusion(root: str, row_index: int, leaf_hash: str, sibling_path: Sequence[str]) -> bool:
    """Recompute the path from ``leaf_hash`` at ``row_index`` and compare with ``root``."""
    if isinstance(sibling_path, (str, bytes)) or not isinstance(sibling_path, Sequence):
        return False
    return verify_merkle_proof(leaf_hash, row_index, list(sibling_path), root, ROWS)


def hamming_distance(a: Grid, b: Grid) -> int:
    """Number of cell positions whose canonical bytes differ."""
    return sum(1 for x, y in zip(serialize(a), serialize(b)) if x != y)
