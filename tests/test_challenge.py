"""
Tests for deterministic challenge generation and scoring policies.
"""

import pytest

from engine.actions import Action
from engine.grid import COLS, Symbol
from learning.challenge import (
    Challenge,
    check_challenge_determinism,
    generate_challenge,
)
from learning.prng import DeterministicPRNG, int_to_hex_seed
from learning.scoring import (
    ConstraintKind,
    InvalidTrajectoryError,
    ScoringPolicyId,
    replay_trajectory,
    score_trajectory,
)


class TestChallengeDeterminism:
    """Regeneration is byte-identical."""

    @pytest.mark.parametrize("seed", [0, 1, 42, 2**40 + 3])
    @pytest.mark.parametrize("difficulty", [0.0, 0.25, 0.5, 1.0])
    def test_regeneration_is_byte_identical(self, seed, difficulty):
        check_challenge_determinism(seed, difficulty)

    def test_digest_is_stable(self):
        assert generate_challenge(9, 0.5).digest() == generate_challenge(9, 0.5).digest()

    def test_seed_changes_challenge(self):
        assert generate_challenge(1, 0.75).canonical_bytes() != generate_challenge(2, 0.75).canonical_bytes()

    def test_policy_is_part_of_challenge(self):
        standard = generate_challenge(5, 0.5)
        lines_only = generate_challenge(5, 0.5, ScoringPolicyId.LINES_ONLY)
        assert standard.canonical_bytes() != lines_only.canonical_bytes()
        assert standard.initial_state == lines_only.initial_state

    def test_wire_round_trip_regenerates(self):
        challenge = generate_challenge(11, 0.3)
        assert Challenge.from_dict(challenge.to_dict()) == challenge

    def test_wire_record_with_wrong_budget_rejected(self):
        record = generate_challenge(11, 0.3).to_dict()
        record["max_moves"] += 1
        with pytest.raises(ValueError):
            Challenge.from_dict(record)


class TestDifficultyScaling:
    """Difficulty drives obstacles, budget and constraints."""

    def test_zero_difficulty_is_empty_board(self):
        challenge = generate_challenge(3, 0.0)
        assert challenge.initial_state.grid.stack_height() == 0
        assert challenge.max_moves == 120

    def test_full_difficulty_garbage(self):
        challenge = generate_challenge(3, 1.0)
        grid = challenge.initial_state.grid
        assert challenge.max_moves == 60
        assert grid.stack_height() <= 4
        for row in range(4):
            assert not grid.is_row_full(row)
        assert grid.count(Symbol.TARGET) == 1
        assert any(grid.cell(3, c) == Symbol.TARGET for c in range(COLS))

    def test_constraints_scale(self):
        easy = {c.kind: c.value for c in generate_challenge(3, 0.0).constraints}
        hard = {c.kind: c.value for c in generate_challenge(3, 1.0).constraints}
        assert easy[ConstraintKind.MIN_LINES] == 1
        assert hard[ConstraintKind.MIN_LINES] == 4
        assert easy[ConstraintKind.MAX_HEIGHT] == 8
        assert hard[ConstraintKind.MAX_HEIGHT] == 6

    def test_initial_state_has_active_piece(self):
        state = generate_challenge(3, 1.0).initial_state
        assert state.active is not None
        assert not state.game_over

    @pytest.mark.parametrize("difficulty", [-0.1, 1.5, float("nan"), True])
    def test_invalid_difficulty_rejected(self, difficulty):
        with pytest.raises(ValueError):
            generate_challenge(1, difficulty)

    def test_negative_seed_rejected(self):
        with pytest.raises(ValueError):
            generate_challenge(-1, 0.5)


class TestScoring:
    """Named scoring policies."""

    def test_standard_policy_charges_moves(self, challenge):
        actions = [Action.SHIFT_LEFT, Action.SHIFT_RIGHT, Action.HARD_DROP]
        assert score_trajectory(challenge, actions) == -3.0

    def test_lines_only_policy_ignores_moves(self):
        challenge = generate_challenge(42, 0.0, ScoringPolicyId.LINES_ONLY)
        assert score_trajectory(challenge, [Action.SHIFT_LEFT, Action.HARD_DROP]) == 0.0

    def test_budget_is_enforced(self, hard_challenge):
        actions = [Action.SHIFT_LEFT, Action.SHIFT_RIGHT] * 30 + [Action.HARD_DROP]
        with pytest.raises(InvalidTrajectoryError):
            replay_trajectory(hard_challenge, actions)

    def test_illegal_trajectory_is_unscorable(self, challenge):
        with pytest.raises(InvalidTrajectoryError):
            score_trajectory(challenge, [Action.SOFT_DROP] * 12)

    def test_unknown_policy_rejected(self):
        with pytest.raises(ValueError):
            ScoringPolicyId.parse("fastest-v9")


class TestDeterministicPRNG:
    """Seeded, path-scoped randomness."""

    def test_same_seed_same_stream(self):
        a = DeterministicPRNG(int_to_hex_seed(7))
        b = DeterministicPRNG(int_to_hex_seed(7))
        assert [a.random() for _ in range(5)] == [b.random() for _ in range(5)]

    def test_paths_are_independent(self):
        root = DeterministicPRNG(int_to_hex_seed(7))
        assert root.for_path("grid").seed != root.for_path("sequence").seed
        assert root.for_path("grid").seed == DeterministicPRNG(int_to_hex_seed(7)).for_path("grid").seed

    def test_below_stays_in_range(self):
        prng = DeterministicPRNG("abc")
        assert all(0 <= prng.below(10) < 10 for _ in range(200))
