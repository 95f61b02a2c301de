"""
Piece variants and the rotation table.

Offsets are (dr, dc) pairs relative to an anchor at the top-left corner of the
piece's bounding box: dr <= 0 (rows extend downward), dc >= 0. Rotation is a
pure function of (variant, rotation) computed by rotating the base shape
clockwise in 90-degree steps and re-normalising to the bounding box.
"""

from __future__ import annotations

from enum import IntEnum
from functools import lru_cache
from typing import Dict, Tuple

Offset = Tuple[int, int]

ROTATIONS: Tuple[int, ...] = (0, 90, 180, 270)


class PieceVariant(IntEnum):
    """Seven piece variants; the value doubles as the locked-cell symbol."""

    I = 1
    O = 2
    T = 3
    S = 4
    Z = 5
    J = 6
    L = 7


# Base shapes at rotation 0, drawn top row first.
_BASE_SHAPES: Dict[PieceVariant, Tuple[str, ...]] = {
    PieceVariant.I: ("####",),
    PieceVariant.O: ("##", "##"),
    PieceVariant.T: ("###", ".#."),
    PieceVariant.S: (".##", "##."),
    PieceVariant.Z: ("##.", ".##"),
    PieceVariant.J: ("#..", "###"),
    PieceVariant.L: ("..#", "###"),
}


def _normalise(offsets) -> Tuple[Offset, ...]:
    top = max(dr for dr, _ in offsets)
    left = min(dc for _, dc in offsets)
    return tuple(sorted((dr - top, dc - left) for dr, dc in offsets))


def _base_offsets(variant: PieceVariant) -> Tuple[Offset, ...]:
    shape = _BASE_SHAPES[variant]
    return _normalise(
        [(-r, c) for r, line in enumerate(shape) for c, ch in enumerate(line) if ch == "#"]
    )


def _rotate_cw(offsets: Tuple[Offset, ...]) -> Tuple[Offset, ...]:
    return _normalise([(-dc, dr) for dr, dc in offsets])


def validate_rotation(rotation: int) -> int:
    if isinstance(rotation, bool) or rotation not in ROTATIONS:
        raise ValueError(f"rotation must be one of {ROTATIONS}, got {rotation!r}")
    return rotation


@lru_cache(maxsize=None)
def piece_offsets(variant: PieceVariant, rotation: int) -> Tuple[Offset, ...]:
    """
    Return the sorted offsets of ``variant`` at ``rotation`` degrees clockwise.

    Total over the seven variants and four rotations; independent of any grid.
    """
    variant = PieceVariant(variant)
    validate_rotation(rotation)
    offsets = _base_offsets(variant)
    for _ in range(rotation // 90):
        offsets = _rotate_cw(offsets)
    return offsets


def rotate(rotation: int, clockwise: bool = True) -> int:
    validate_rotation(rotation)
    step = 90 if clockwise else 270
    return (rotation + step) % 360
