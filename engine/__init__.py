"""Deterministic 10x10 falling-piece engine: grid model, pieces, actions, transitions."""

from .actions import Action
from .grid import (
    ALPHABET_SIZE,
    COLS,
    ROWS,
    Grid,
    MalformedGridError,
    Symbol,
)
from .pieces import PieceVariant, piece_offsets
from .state import ActivePiece, GameState, MalformedStateError, new_game
from .transition import (
    IllegalMoveError,
    ReplayResult,
    Transition,
    Witness,
    apply,
    is_legal,
    replay,
    step,
)

__all__: list[str] = [
    "Action",
    "ALPHABET_SIZE",
    "COLS",
    "ROWS",
    "Grid",
    "MalformedGridError",
    "Symbol",
    "PieceVariant",
    "piece_offsets",
    "ActivePiece",
    "GameState",
    "MalformedStateError",
    "new_game",
    "IllegalMoveError",
    "ReplayResult",
    "Transition",
    "Witness",
    "apply",
    "is_legal",
    "replay",
    "step",
]
