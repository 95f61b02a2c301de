"""Closed action set for the transition engine."""

from __future__ import annotations

from enum import Enum


class Action(str, Enum):
    """Player actions. Values are the wire names used in PoP records."""

    SHIFT_LEFT = "ShiftLeft"
    SHIFT_RIGHT = "ShiftRight"
    SOFT_DROP = "SoftDrop"
    ROTATE_CW = "RotateCW"
    ROTATE_CCW = "RotateCCW"
    HARD_DROP = "HardDrop"

    @classmethod
    def parse(cls, value: str) -> "Action":
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError(f"action must be a string, got {type(value).__name__}")
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"unknown action {value!r}") from None

    def __str__(self) -> str:
        return self.value
