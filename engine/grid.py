"""
Grid State Model
================

A ``Grid`` is an immutable 10x10 board. Its canonical form is a 100-byte
buffer in row-major order:

- row 0 first; row 0 is the BOTTOM row, row 9 the top
- columns left to right within a row
- one byte per cell holding the symbol's alphabet index (0..10)

This traversal order is consensus-critical: commitments are computed over
these bytes, so it must never change.

Wire form: 10 newline-separated lines of 10 Braille symbols, in the same row
order. Value ``v`` is rendered as ``chr(0x2800 + SYMBOL_OFFSETS[v])``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Iterable, Iterator, Mapping, Sequence, Tuple

ROWS = 10
COLS = 10
CELL_COUNT = ROWS * COLS

BRAILLE_BASE = 0x2800

# Blank Braille cell, then the Braille digit patterns 1..9, 0.
SYMBOL_OFFSETS: Tuple[int, ...] = (
    0x00, 0x01, 0x03, 0x09, 0x19, 0x11, 0x0B, 0x1B, 0x13, 0x0A, 0x1A,
)


class Symbol(IntEnum):
    """The 11-member cell alphabet."""

    EMPTY = 0
    I = 1
    O = 2
    T = 3
    S = 4
    Z = 5
    J = 6
    L = 7
    OBSTACLE = 8
    TARGET = 9
    ACTIVE = 10


ALPHABET_SIZE = len(Symbol)

_CHAR_BY_VALUE: Tuple[str, ...] = tuple(chr(BRAILLE_BASE + off) for off in SYMBOL_OFFSETS)
_VALUE_BY_CHAR: Dict[str, int] = {ch: value for value, ch in enumerate(_CHAR_BY_VALUE)}


class MalformedGridError(ValueError):
    """Grid input with wrong dimensions or an out-of-alphabet value."""


def symbol_to_char(value: int) -> str:
    if not 0 <= value < ALPHABET_SIZE:
        raise MalformedGridError(f"symbol value {value} outside alphabet 0..{ALPHABET_SIZE - 1}")
    return _CHAR_BY_VALUE[value]


def char_to_symbol(ch: str) -> int:
    try:
        return _VALUE_BY_CHAR[ch]
    except KeyError:
        raise MalformedGridError(f"character {ch!r} (U+{ord(ch):04X}) is not a grid symbol") from None


def in_bounds(row: int, col: int) -> bool:
    return 0 <= row < ROWS and 0 <= col < COLS


@dataclass(frozen=True)
class Grid:
    """Immutable 10x10 board backed by its canonical bytes."""

    cells: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.cells, bytes):
            raise MalformedGridError(f"grid cells must be bytes, got {type(self.cells).__name__}")
        if len(self.cells) != CELL_COUNT:
            raise MalformedGridError(f"grid must hold exactly {CELL_COUNT} cells, got {len(self.cells)}")
        bad = [v for v in self.cells if v >= ALPHABET_SIZE]
        if bad:
            raise MalformedGridError(f"grid holds out-of-alphabet value {bad[0]}")

    # ------------------------------------------------------------------ #
    # Construction
    # ------------------------------------------------------------------ #

    @classmethod
    def empty(cls) -> "Grid":
        return cls(bytes(CELL_COUNT))

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[int]]) -> "Grid":
        """Build a grid from 10 rows of 10 symbol values, row 0 (bottom) first."""
        if len(rows) != ROWS:
            raise MalformedGridError(f"expected {ROWS} rows, got {len(rows)}")
        flat = bytearray()
        for index, row in enumerate(rows):
            if len(row) != COLS:
                raise MalformedGridError(f"row {index} has {len(row)} cells, expected {COLS}")
            for value in row:
                if isinstance(value, bool) or not isinstance(value, int):
                    raise MalformedGridError(f"row {index} holds non-integer value {value!r}")
                if not 0 <= value < ALPHABET_SIZE:
                    raise MalformedGridError(f"row {index} holds out-of-alphabet value {value}")
                flat.append(value)
        return cls(bytes(flat))

    @classmethod
    def from_wire(cls, text: str) -> "Grid":
        """Parse the newline-separated Braille wire form."""
        lines = text.split("\n")
        if len(lines) != ROWS:
            raise MalformedGridError(f"wire grid must have {ROWS} lines, got {len(lines)}")
        rows = []
        for index, line in enumerate(lines):
            if len(line) != COLS:
                raise MalformedGridError(f"wire line {index} has {len(line)} symbols, expected {COLS}")
            rows.append([char_to_symbol(ch) for ch in line])
        return cls.from_rows(rows)

    # ------------------------------------------------------------------ #
    # Access
    # ------------------------------------------------------------------ #

    def cell(self, row: int, col: int) -> int:
        if not in_bounds(row, col):
            raise IndexError(f"cell ({row}, {col}) outside {ROWS}x{COLS} grid")
        return self.cells[row * COLS + col]

    def is_empty_at(self, row: int, col: int) -> bool:
        return in_bounds(row, col) and self.cells[row * COLS + col] == Symbol.EMPTY

    def row(self, index: int) -> bytes:
        if not 0 <= index < ROWS:
            raise IndexError(f"row {index} outside 0..{ROWS - 1}")
        return self.cells[index * COLS:(index + 1) * COLS]

    def rows(self) -> Tuple[bytes, ...]:
        return tuple(self.row(i) for i in range(ROWS))

    def is_row_full(self, index: int) -> bool:
        return all(v != Symbol.EMPTY for v in self.row(index))

    def count(self, symbol: int) -> int:
        return self.cells.count(bytes([symbol]))

    def occupied(self) -> Iterator[Tuple[int, int]]:
        for offset, value in enumerate(self.cells):
            if value != Symbol.EMPTY:
                yield divmod(offset, COLS)

    def stack_height(self) -> int:
        """1 + index of the highest row holding any occupied cell (0 for an empty grid)."""
        for index in range(ROWS - 1, -1, -1):
            if any(v != Symbol.EMPTY for v in self.row(index)):
                return index + 1
        return 0

    # ------------------------------------------------------------------ #
    # Derivation (always returns a new Grid)
    # ------------------------------------------------------------------ #

    def with_cells(self, updates: Mapping[Tuple[int, int], int]) -> "Grid":
        buf = bytearray(self.cells)
        for (row, col), value in updates.items():
            if not in_bounds(row, col):
                raise MalformedGridError(f"cell ({row}, {col}) outside {ROWS}x{COLS} grid")
            buf[row * COLS + col] = value
        return Grid(bytes(buf))

    def with_rows(self, rows: Iterable[bytes]) -> "Grid":
        return Grid(b"".join(rows))

    def to_wire(self) -> str:
        return "\n".join(
            "".join(_CHAR_BY_VALUE[v] for v in self.row(i)) for i in range(ROWS)
        )

    def __str__(self) -> str:
        return self.to_wire()
