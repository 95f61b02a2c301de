"""
Challenge Generator
===================

Expands (seed, difficulty) into a reproducible task. Generation reads no
clock, environment, or global randomness: every draw comes from a
``DeterministicPRNG`` seeded by the challenge seed, so regenerating a
challenge yields byte-identical ``canonical_bytes()`` forever.

Difficulty scaling:
    garbage rows      round(difficulty * 4) bottom rows
    fill probability  0.55 + 0.35 * difficulty per garbage cell (>= 1 hole per row)
    target cell       one filled cell of the top garbage row, if any garbage
    max_moves         120 - round(difficulty * 60)
    constraints       no_top_out, min_lines(1 + round(3d)),
                      max_height(8 - round(2d)), clear_targets
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Tuple

from backend.crypto.core import DOMAIN_CHALLENGE, canonical_json_bytes, sha256_hex
from engine.grid import COLS, Grid, Symbol
from engine.state import GameState, new_game

from .prng import DeterministicPRNG, int_to_hex_seed
from .scoring import Constraint, ConstraintKind, ScoringPolicyId

logger = logging.getLogger("ChallengeGenerator")

CHALLENGE_SCHEMA_VERSION = "1.0.0"

MAX_GARBAGE_ROWS = 4
BASE_FILL_PROBABILITY = 0.55
FILL_PROBABILITY_SPAN = 0.35
BASE_MAX_MOVES = 120
MAX_MOVES_SPAN = 60


class ChallengeDeterminismViolation(AssertionError):
    """Regenerating a challenge from the same inputs produced different bytes (a defect)."""


@dataclass(frozen=True)
class Challenge:
    """Seed-derived task: initial state, constraints, move budget, scoring policy."""

    seed: int
    difficulty: float
    initial_state: GameState
    constraints: Tuple[Constraint, ...]
    max_moves: int
    scoring_policy: ScoringPolicyId

    def to_dict(self) -> Dict[str, Any]:
        """Wire record; the initial state is regenerated from seed and difficulty."""
        return {
            "seed": self.seed,
            "difficulty": self.difficulty,
            "max_moves": self.max_moves,
            "scoring_policy": self.scoring_policy.value,
        }

    def full_record(self) -> Dict[str, Any]:
        record = self.to_dict()
        record["schema_version"] = CHALLENGE_SCHEMA_VERSION
        record["constraints"] = [c.to_dict() for c in self.constraints]
        record["initial_state"] = self.initial_state.to_dict()
        return record

    def canonical_bytes(self) -> bytes:
        return canonical_json_bytes(self.full_record())

    def digest(self) -> str:
        return sha256_hex(self.canonical_bytes(), domain=DOMAIN_CHALLENGE)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Challenge":
        """
        Rebuild a challenge from its wire record by regeneration.

        Raises:
            ValueError: unknown fields, or max_moves disagreeing with the seed
        """
        expected = {"seed", "difficulty", "max_moves", "scoring_policy"}
        if not isinstance(data, dict) or set(data) != expected:
            raise ValueError(f"challenge record must have exactly the fields {sorted(expected)}")
        challenge = generate_challenge(
            data["seed"], data["difficulty"], ScoringPolicyId.parse(data["scoring_policy"])
        )
        if challenge.max_moves != data["max_moves"]:
            raise ValueError(
                f"challenge max_moves {data['max_moves']!r} does not match regenerated "
                f"value {challenge.max_moves}"
            )
        return challenge


def _validate_inputs(seed: int, difficulty: float) -> float:
    if isinstance(seed, bool) or not isinstance(seed, int) or seed < 0:
        raise ValueError(f"seed must be a non-negative integer, got {seed!r}")
    if isinstance(difficulty, bool) or not isinstance(difficulty, (int, float)):
        raise ValueError(f"difficulty must be a number, got {difficulty!r}")
    difficulty = float(difficulty)
    if not math.isfinite(difficulty) or not 0.0 <= difficulty <= 1.0:
        raise ValueError(f"difficulty must lie in [0, 1], got {difficulty!r}")
    return difficulty


def _garbage_grid(prng: DeterministicPRNG, difficulty: float) -> Grid:
    garbage_rows = round(difficulty * MAX_GARBAGE_ROWS)
    fill_probability = BASE_FILL_PROBABILITY + FILL_PROBABILITY_SPAN * difficulty
    updates: Dict[Tuple[int, int], int] = {}

    for row in range(garbage_rows):
        row_prng = prng.for_path("row", str(row))
        filled = [col for col in range(COLS) if row_prng.chance(fill_probability)]
        if len(filled) == COLS:
            filled.remove(row_prng.below(COLS))
        for col in filled:
            updates[(row, col)] = Symbol.OBSTACLE

    if garbage_rows:
        top = garbage_rows - 1
        candidates = sorted(col for (row, col) in updates if row == top)
        if candidates:
            target_col = prng.for_path("target").choice(candidates)
            updates[(top, target_col)] = Symbol.TARGET

    return Grid.empty().with_cells(updates)


def _constraints(difficulty: float) -> Tuple[Constraint, ...]:
    return (
        Constraint(ConstraintKind.NO_TOP_OUT),
        Constraint(ConstraintKind.MIN_LINES, 1 + round(difficulty * 3)),
        Constraint(ConstraintKind.MAX_HEIGHT, 8 - round(difficulty * 2)),
        Constraint(ConstraintKind.CLEAR_TARGETS),
    )


def generate_challenge(
    seed: int,
    difficulty: float,
    scoring_policy: ScoringPolicyId = ScoringPolicyId.STANDARD,
) -> Challenge:
    """
    Deterministically expand ``seed`` and ``difficulty`` into a challenge.

    Args:
        seed: Non-negative integer seed
        difficulty: Float in [0, 1]; scales obstacle density, budget, constraints
        scoring_policy: Named scoring policy recorded with the challenge

    Returns:
        Challenge whose canonical bytes depend only on the arguments

    Raises:
        ValueError: seed or difficulty out of range
    """
    difficulty = _validate_inputs(seed, difficulty)
    scoring_policy = ScoringPolicyId(scoring_policy)
    prng = DeterministicPRNG(int_to_hex_seed(seed))

    grid = _garbage_grid(prng.for_path("grid", repr(difficulty)), difficulty)
    sequence_seed = prng.for_path("sequence").seed
    initial_state = new_game(grid, sequence_seed)

    challenge = Challenge(
        seed=seed,
        difficulty=difficulty,
        initial_state=initial_state,
        constraints=_constraints(difficulty),
        max_moves=BASE_MAX_MOVES - round(difficulty * MAX_MOVES_SPAN),
        scoring_policy=scoring_policy,
    )
    logger.debug(
        f"[CHALLENGE] seed={seed} difficulty={difficulty} "
        f"obstacles={grid.count(Symbol.OBSTACLE)} max_moves={challenge.max_moves}"
    )
    return challenge


def check_challenge_determinism(
    seed: int,
    difficulty: float,
    scoring_policy: ScoringPolicyId = ScoringPolicyId.STANDARD,
) -> bytes:
    """
    Regenerate a challenge twice and compare canonical bytes.

    Intended for property tests; a violation is an implementation defect.
    """
    first = generate_challenge(seed, difficulty, scoring_policy).canonical_bytes()
    second = generate_challenge(seed, difficulty, scoring_policy).canonical_bytes()
    if first != second:
        raise ChallengeDeterminismViolation(
            f"challenge seed={seed} difficulty={difficulty} regenerated to different bytes"
        )
    return first
