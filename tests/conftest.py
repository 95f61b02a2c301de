# tests/conftest.py
from typing import List, Sequence

import pytest

from backend.crypto.core import ed25519_generate_keypair
from engine.actions import Action
from engine.grid import Grid
from engine.pieces import PieceVariant
from engine.state import ActivePiece, GameState
from learning.challenge import Challenge, generate_challenge

# Any non-empty hex string works as a sequence seed for hand-built states.
TEST_SEQUENCE_SEED = "00000000000000aa"


class ScriptedAgent:
    """Plays the same action list on every attempt."""

    def __init__(self, agent_id: str, actions: Sequence[Action]):
        self.agent_id = agent_id
        self.actions = list(actions)

    def play(self, initial_state: GameState, challenge: Challenge) -> List[Action]:
        return list(self.actions)


class ImprovingAgent:
    """Wastes fewer shift moves on each successive attempt, so its score rises."""

    def __init__(self, agent_id: str = "improver", wasted_pairs: int = 6):
        self.agent_id = agent_id
        self.wasted_pairs = wasted_pairs
        self.attempts = 0

    def play(self, initial_state: GameState, challenge: Challenge) -> List[Action]:
        pairs = max(self.wasted_pairs - self.attempts, 0)
        self.attempts += 1
        return [Action.SHIFT_LEFT, Action.SHIFT_RIGHT] * pairs + [Action.HARD_DROP]


def make_state(grid: Grid, variant: PieceVariant = PieceVariant.I, rotation: int = 0, row: int = 9, col: int = 3) -> GameState:
    return GameState(grid, ActivePiece(variant, rotation, row, col), TEST_SEQUENCE_SEED, 1)


@pytest.fixture(scope="session")
def keypair():
    return ed25519_generate_keypair()


@pytest.fixture(scope="session")
def other_keypair():
    return ed25519_generate_keypair()


@pytest.fixture
def challenge() -> Challenge:
    return generate_challenge(seed=42, difficulty=0.0)


@pytest.fixture
def hard_challenge() -> Challenge:
    return generate_challenge(seed=7, difficulty=1.0)


@pytest.fixture
def empty_state() -> GameState:
    return make_state(Grid.empty())


@pytest.fixture
def state_factory():
    return make_state


@pytest.fixture
def scripted_agent():
    return ScriptedAgent


@pytest.fixture
def improving_agent() -> ImprovingAgent:
    return ImprovingAgent()
