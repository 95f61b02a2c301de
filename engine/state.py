"""
Game state: a locked board plus the falling piece and the piece-sequence cursor.

The transition engine acts on ``GameState`` values. The locked board never
contains the active piece; ``render()`` overlays it for transcripts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from backend.crypto.core import DOMAIN_SEQUENCE, sha256_hex
from engine.grid import ROWS, Grid, MalformedGridError, Symbol, in_bounds
from engine.pieces import PieceVariant, piece_offsets, validate_rotation

SPAWN_ROW = ROWS - 1
SPAWN_COL = 3
SPAWN_ROTATION = 0


class MalformedStateError(ValueError):
    """State record that violates the game-state invariants."""


def sequence_variant(sequence_seed: str, index: int) -> PieceVariant:
    """The piece at position ``index`` of the sequence seeded by ``sequence_seed``."""
    digest = sha256_hex(f"{sequence_seed}:{index}", domain=DOMAIN_SEQUENCE)
    return PieceVariant(1 + int(digest[:8], 16) % len(PieceVariant))


@dataclass(frozen=True)
class ActivePiece:
    variant: PieceVariant
    rotation: int
    row: int
    col: int

    def cells(self) -> Tuple[Tuple[int, int], ...]:
        return tuple(
            (self.row + dr, self.col + dc)
            for dr, dc in piece_offsets(self.variant, self.rotation)
        )

    def moved(self, d_row: int = 0, d_col: int = 0) -> "ActivePiece":
        return ActivePiece(self.variant, self.rotation, self.row + d_row, self.col + d_col)

    def rotated_to(self, rotation: int) -> "ActivePiece":
        return ActivePiece(self.variant, rotation, self.row, self.col)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "variant": self.variant.name,
            "rotation": self.rotation,
            "row": self.row,
            "col": self.col,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActivePiece":
        if not isinstance(data, dict) or set(data) != {"variant", "rotation", "row", "col"}:
            raise MalformedStateError(f"active piece record has wrong fields: {data!r}")
        try:
            variant = PieceVariant[data["variant"]]
        except (KeyError, TypeError):
            raise MalformedStateError(f"unknown piece variant {data['variant']!r}") from None
        for key in ("rotation", "row", "col"):
            if isinstance(data[key], bool) or not isinstance(data[key], int):
                raise MalformedStateError(f"active piece {key} must be an integer")
        try:
            validate_rotation(data["rotation"])
        except ValueError as exc:
            raise MalformedStateError(str(exc)) from None
        return cls(variant, data["rotation"], data["row"], data["col"])


def spawn_piece(sequence_seed: str, index: int) -> ActivePiece:
    return ActivePiece(sequence_variant(sequence_seed, index), SPAWN_ROTATION, SPAWN_ROW, SPAWN_COL)


def fits(grid: Grid, cells) -> bool:
    return all(in_bounds(r, c) and grid.is_empty_at(r, c) for r, c in cells)


@dataclass(frozen=True)
class GameState:
    """
    Immutable game state.

    Attributes:
        grid: Locked cells only
        active: Falling piece, or None once the game is over
        sequence_seed: Hex seed of the deterministic piece sequence
        sequence_index: Number of pieces spawned so far
        game_over: Terminal flag; set iff ``active`` is None
    """

    grid: Grid
    active: Optional[ActivePiece]
    sequence_seed: str
    sequence_index: int
    game_over: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.grid, Grid):
            raise MalformedStateError("state grid must be a Grid")
        if self.game_over != (self.active is None):
            raise MalformedStateError("game_over must be set exactly when there is no active piece")
        if not isinstance(self.sequence_seed, str) or not self.sequence_seed:
            raise MalformedStateError("sequence_seed must be a non-empty string")
        if isinstance(self.sequence_index, bool) or not isinstance(self.sequence_index, int) or self.sequence_index < 0:
            raise MalformedStateError("sequence_index must be a non-negative integer")
        if self.active is not None and not fits(self.grid, self.active.cells()):
            raise MalformedStateError("active piece overlaps locked cells or leaves the board")

    def header(self) -> Dict[str, Any]:
        """Everything besides the locked cells that the next transition depends on."""
        return {
            "active": self.active.to_dict() if self.active is not None else None,
            "game_over": self.game_over,
            "sequence_index": self.sequence_index,
            "sequence_seed": self.sequence_seed,
        }

    def render(self) -> Grid:
        """The locked board with the active piece drawn as ``Symbol.ACTIVE``."""
        if self.active is None:
            return self.grid
        return self.grid.with_cells({cell: Symbol.ACTIVE for cell in self.active.cells()})

    def to_dict(self) -> Dict[str, Any]:
        record = self.header()
        record["grid"] = self.grid.to_wire()
        return record

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GameState":
        expected = {"grid", "active", "game_over", "sequence_index", "sequence_seed"}
        if not isinstance(data, dict) or set(data) != expected:
            raise MalformedStateError(f"state record must have exactly the fields {sorted(expected)}")
        if not isinstance(data["grid"], str):
            raise MalformedStateError("state grid must be the wire string form")
        if not isinstance(data["game_over"], bool):
            raise MalformedStateError("game_over must be a boolean")
        try:
            grid = Grid.from_wire(data["grid"])
        except MalformedGridError as exc:
            raise MalformedStateError(f"invalid grid: {exc}") from exc
        active = ActivePiece.from_dict(data["active"]) if data["active"] is not None else None
        return cls(
            grid=grid,
            active=active,
            sequence_seed=data["sequence_seed"],
            sequence_index=data["sequence_index"],
            game_over=data["game_over"],
        )


def new_game(grid: Grid, sequence_seed: str) -> GameState:
    """Starting state: spawn piece 0 onto ``grid`` (terminal at once if the spawn is blocked)."""
    piece = spawn_piece(sequence_seed, 0)
    if not fits(grid, piece.cells()):
        return GameState(grid, None, sequence_seed, 1, game_over=True)
    return GameState(grid, piece, sequence_seed, 1)


__all__ = [
    "ActivePiece",
    "GameState",
    "MalformedStateError",
    "SPAWN_COL",
    "SPAWN_ROTATION",
    "SPAWN_ROW",
    "fits",
    "new_game",
    "sequence_variant",
    "spawn_piece",
]
