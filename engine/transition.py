"""
Transition Engine
=================

The sole authority on legal moves. ``step`` is a pure function of
(state, action): the same inputs always produce the same successor and
witness, or the same rejection. States are immutable, so a rejected move
leaves the caller's state untouched by construction.

Rotation has no wall-kick search: the rotated offsets are tested at the
current anchor and a collision rejects the move.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Tuple

from engine.actions import Action
from engine.grid import COLS, ROWS, Grid, Symbol, in_bounds
from engine.pieces import PieceVariant, rotate
from engine.state import ActivePiece, GameState, fits, spawn_piece

REASON_COLLISION = "collision"
REASON_OUT_OF_BOUNDS = "out_of_bounds"
REASON_GAME_OVER = "game_over"

_SHIFTS = {
    Action.SHIFT_LEFT: (0, -1),
    Action.SHIFT_RIGHT: (0, 1),
    Action.SOFT_DROP: (-1, 0),
}


class IllegalMoveError(Exception):
    """Action rejected by the transition engine. Recoverable: pick another action or stop."""

    def __init__(self, action: Action, reason: str, detail: str = "") -> None:
        self.action = action
        self.reason = reason
        message = f"{action.value} rejected: {reason}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


@dataclass(frozen=True)
class Witness:
    """Minimal transition data: the acted-on piece in its post-action position."""

    variant: PieceVariant
    anchor_row: int
    anchor_col: int
    rotation: int
    cleared_rows: Tuple[int, ...] = ()

    @classmethod
    def of(cls, piece: ActivePiece, cleared_rows: Iterable[int] = ()) -> "Witness":
        return cls(piece.variant, piece.row, piece.col, piece.rotation, tuple(cleared_rows))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "piece": self.variant.name,
            "anchor_row": self.anchor_row,
            "anchor_col": self.anchor_col,
            "rotation": self.rotation,
            "cleared_rows": list(self.cleared_rows),
        }


@dataclass(frozen=True)
class Transition:
    state: GameState
    witness: Witness


def _check_placement(action: Action, grid: Grid, piece: ActivePiece) -> None:
    cells = piece.cells()
    if not all(in_bounds(r, c) for r, c in cells):
        raise IllegalMoveError(action, REASON_OUT_OF_BOUNDS)
    if not fits(grid, cells):
        raise IllegalMoveError(action, REASON_COLLISION)


def clear_full_rows(grid: Grid) -> Tuple[Grid, Tuple[int, ...]]:
    """
    Remove every full row and backfill empty rows at the top.

    Rows above a removed row drop by one per removal below them. Returns the
    new grid and the ascending pre-clear indices of the removed rows.
    """
    cleared = tuple(i for i in range(ROWS) if grid.is_row_full(i))
    if not cleared:
        return grid, ()
    kept = [grid.row(i) for i in range(ROWS) if i not in cleared]
    backfill = [bytes(COLS)] * len(cleared)
    return grid.with_rows(kept + backfill), cleared


def drop_distance(grid: Grid, piece: ActivePiece) -> int:
    distance = 0
    while fits(grid, piece.moved(d_row=-(distance + 1)).cells()):
        distance += 1
    return distance


def _hard_drop(state: GameState, piece: ActivePiece) -> Transition:
    landed = piece.moved(d_row=-drop_distance(state.grid, piece))
    locked = state.grid.with_cells({cell: int(landed.variant) for cell in landed.cells()})
    cleared_grid, cleared = clear_full_rows(locked)

    next_piece = spawn_piece(state.sequence_seed, state.sequence_index)
    if fits(cleared_grid, next_piece.cells()):
        successor = GameState(cleared_grid, next_piece, state.sequence_seed, state.sequence_index + 1)
    else:
        successor = GameState(
            cleared_grid, None, state.sequence_seed, state.sequence_index + 1, game_over=True
        )
    return Transition(successor, Witness.of(landed, cleared))


def step(state: GameState, action: Action) -> Transition:
    """
    Apply ``action`` to ``state``.

    Raises:
        IllegalMoveError: collision, out-of-bounds, or the game is already over
    """
    action = Action.parse(action)
    piece = state.active
    if state.game_over or piece is None:
        raise IllegalMoveError(action, REASON_GAME_OVER)

    if action is Action.HARD_DROP:
        return _hard_drop(state, piece)

    if action in _SHIFTS:
        d_row, d_col = _SHIFTS[action]
        moved = piece.moved(d_row=d_row, d_col=d_col)
    else:
        moved = piece.rotated_to(rotate(piece.rotation, clockwise=action is Action.ROTATE_CW))

    _check_placement(action, state.grid, moved)
    successor = GameState(state.grid, moved, state.sequence_seed, state.sequence_index)
    return Transition(successor, Witness.of(moved))


def apply(state: GameState, action: Action) -> GameState:
    return step(state, action).state


def is_legal(state: GameState, action: Action) -> bool:
    try:
        step(state, action)
    except IllegalMoveError:
        return False
    return True


@dataclass(frozen=True)
class ReplayResult:
    """Outcome of replaying a trajectory from a starting state."""

    initial_state: GameState
    final_state: GameState
    moves: int
    lines_per_drop: Tuple[int, ...] = ()
    witnesses: Tuple[Witness, ...] = field(default=(), repr=False)

    @property
    def lines_cleared(self) -> int:
        return sum(self.lines_per_drop)

    @property
    def targets_remaining(self) -> int:
        return self.final_state.grid.count(Symbol.TARGET)


def replay(state: GameState, actions: Iterable[Action]) -> ReplayResult:
    """Apply ``actions`` in order; the first illegal one raises ``IllegalMoveError``."""
    current = state
    lines: List[int] = []
    witnesses: List[Witness] = []
    for action in actions:
        transition = step(current, action)
        witnesses.append(transition.witness)
        if Action.parse(action) is Action.HARD_DROP:
            lines.append(len(transition.witness.cleared_rows))
        current = transition.state
    return ReplayResult(
        initial_state=state,
        final_state=current,
        moves=len(witnesses),
        lines_per_drop=tuple(lines),
        witnesses=tuple(witnesses),
    )
