"""
Scoring policies and challenge constraints.

Scoring is a closed set of named policies with explicit parameters rather than
an opaque callable, so a challenge (and every PoL built on it) can be
serialized and re-scored independently.

standard-v1 (canonical default):
    line rewards per drop {1: 100, 2: 300, 3: 500, 4: 800}
    move cost 1 per action
    completion bonus 1000 when every constraint holds at trajectory end

Only PoP-valid trajectories have a score; anything else raises
``InvalidTrajectoryError`` before scoring.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Sequence

from engine.actions import Action
from engine.transition import IllegalMoveError, ReplayResult, replay

if TYPE_CHECKING:
    from .challenge import Challenge


class InvalidTrajectoryError(ValueError):
    """Trajectory that cannot be scored: an illegal move or a blown move budget."""

    def __init__(self, message: str, attempt: Optional[int] = None) -> None:
        self.attempt = attempt
        if attempt is not None:
            message = f"attempt {attempt}: {message}"
        super().__init__(message)


class ScoringPolicyId(str, Enum):
    STANDARD = "standard-v1"
    LINES_ONLY = "lines-only-v1"

    @classmethod
    def parse(cls, value: str) -> "ScoringPolicyId":
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"unknown scoring policy {value!r}") from None


@dataclass(frozen=True)
class ScoringPolicy:
    policy_id: ScoringPolicyId
    line_rewards: Mapping[int, int]
    move_cost: int
    completion_bonus: int

    def line_reward(self, lines: int) -> int:
        return self.line_rewards.get(lines, 0)


_STANDARD_LINE_REWARDS = {1: 100, 2: 300, 3: 500, 4: 800}

SCORING_POLICIES: Dict[ScoringPolicyId, ScoringPolicy] = {
    ScoringPolicyId.STANDARD: ScoringPolicy(
        ScoringPolicyId.STANDARD, _STANDARD_LINE_REWARDS, move_cost=1, completion_bonus=1000
    ),
    ScoringPolicyId.LINES_ONLY: ScoringPolicy(
        ScoringPolicyId.LINES_ONLY, _STANDARD_LINE_REWARDS, move_cost=0, completion_bonus=0
    ),
}


def get_policy(policy_id: ScoringPolicyId) -> ScoringPolicy:
    return SCORING_POLICIES[ScoringPolicyId(policy_id)]


class ConstraintKind(str, Enum):
    NO_TOP_OUT = "no_top_out"
    MIN_LINES = "min_lines"
    MAX_HEIGHT = "max_height"
    CLEAR_TARGETS = "clear_targets"


@dataclass(frozen=True)
class Constraint:
    """A condition checked against the final state of a trajectory."""

    kind: ConstraintKind
    value: int = 0

    def evaluate(self, result: ReplayResult) -> bool:
        final = result.final_state
        if self.kind is ConstraintKind.NO_TOP_OUT:
            return not final.game_over
        if self.kind is ConstraintKind.MIN_LINES:
            return result.lines_cleared >= self.value
        if self.kind is ConstraintKind.MAX_HEIGHT:
            return final.grid.stack_height() <= self.value
        if self.kind is ConstraintKind.CLEAR_TARGETS:
            return result.targets_remaining == 0
        raise ValueError(f"unhandled constraint kind {self.kind}")

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "value": self.value}


def constraints_satisfied(constraints: Sequence[Constraint], result: ReplayResult) -> bool:
    return all(constraint.evaluate(result) for constraint in constraints)


def score_replay(
    policy_id: ScoringPolicyId,
    constraints: Sequence[Constraint],
    result: ReplayResult,
) -> float:
    """Score an already-validated replay."""
    policy = get_policy(policy_id)
    score = sum(policy.line_reward(lines) for lines in result.lines_per_drop)
    score -= policy.move_cost * result.moves
    if policy.completion_bonus and constraints_satisfied(constraints, result):
        score += policy.completion_bonus
    return float(score)


def replay_trajectory(challenge: "Challenge", actions: Sequence[Action], attempt: Optional[int] = None) -> ReplayResult:
    """
    Replay ``actions`` from the challenge's initial state within its move budget.

    Raises:
        InvalidTrajectoryError: budget exceeded or an action was illegal
    """
    if len(actions) > challenge.max_moves:
        raise InvalidTrajectoryError(
            f"{len(actions)} actions exceed the move budget of {challenge.max_moves}", attempt
        )
    try:
        return replay(challenge.initial_state, actions)
    except IllegalMoveError as exc:
        raise InvalidTrajectoryError(f"illegal move: {exc}", attempt) from exc
    except ValueError as exc:
        raise InvalidTrajectoryError(f"malformed action: {exc}", attempt) from exc


def score_trajectory(challenge: "Challenge", actions: Sequence[Action]) -> float:
    result = replay_trajectory(challenge, actions)
    return score_replay(challenge.scoring_policy, challenge.constraints, result)

