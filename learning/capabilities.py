"""
External capabilities consumed by the PoL engine.

The core never looks inside an agent: it hands over the initial state and
challenge, and treats the returned action sequence as an opaque, fully-formed
trajectory.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, Sequence, runtime_checkable

from backend.crypto.signer import DEFAULT_SIGNER, Ed25519Signer, Signer
from engine.actions import Action
from engine.state import GameState

if TYPE_CHECKING:
    from .challenge import Challenge


@runtime_checkable
class Agent(Protocol):
    agent_id: str

    def play(self, initial_state: GameState, challenge: "Challenge") -> Sequence[Action]:
        ...


__all__ = ["Agent", "DEFAULT_SIGNER", "Ed25519Signer", "Signer"]
