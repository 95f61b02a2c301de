"""
Tests for Proof-of-Placement generation, verification and chains.
"""

import json
from dataclasses import replace

import pytest

from attestation.commitment import hash_state
from attestation.placement import (
    PlacementProof,
    build_chain,
    chain_from_dicts,
    chain_to_dicts,
    generate,
    verify,
    verify_chain,
    verify_chain_detailed,
)
from engine.actions import Action
from engine.grid import Grid, Symbol
from engine.state import new_game
from engine.transition import IllegalMoveError, apply

CHAIN_ACTIONS = [
    Action.SHIFT_LEFT,
    Action.ROTATE_CW,
    Action.SOFT_DROP,
    Action.HARD_DROP,
    Action.SHIFT_RIGHT,
    Action.HARD_DROP,
]


@pytest.fixture
def start_state():
    return new_game(Grid.empty(), "0000000000000042")


@pytest.fixture
def chain(start_state):
    pops, _ = build_chain(start_state, CHAIN_ACTIONS)
    return pops


class TestSinglePlacement:
    """Generation and verification of one PoP."""

    def test_generate_commits_both_states(self, empty_state):
        pop = generate(empty_state, Action.HARD_DROP)
        assert pop.prev_commit == hash_state(empty_state)
        assert pop.next_commit == hash_state(apply(empty_state, Action.HARD_DROP))
        assert pop.witness.anchor_row == 0
        assert pop.signature is None

    def test_verify_accepts_honest_pop(self, empty_state):
        pop = generate(empty_state, Action.SHIFT_RIGHT)
        assert verify(pop, empty_state)

    def test_verify_is_idempotent(self, empty_state):
        pop = generate(empty_state, Action.ROTATE_CW)
        before = pop.to_json()
        results = [verify(pop, empty_state) for _ in range(3)]
        assert results == [True, True, True]
        assert pop.to_json() == before

    def test_verify_rejects_wrong_predecessor(self, empty_state):
        pop = generate(empty_state, Action.SHIFT_RIGHT)
        other = apply(empty_state, Action.SHIFT_LEFT)
        assert not verify(pop, other)

    def test_verify_rejects_swapped_action(self, empty_state):
        pop = generate(empty_state, Action.SHIFT_RIGHT)
        assert not verify(replace(pop, action=Action.SHIFT_LEFT), empty_state)

    def test_verify_rejects_forged_witness(self, empty_state):
        pop = generate(empty_state, Action.HARD_DROP)
        forged = replace(pop, witness=replace(pop.witness, cleared_rows=(0,)))
        assert not verify(forged, empty_state)

    def test_verify_is_total_on_garbage(self, empty_state):
        pop = generate(empty_state, Action.SHIFT_RIGHT)
        assert not verify(replace(pop, action="Teleport"), empty_state)
        assert not verify(replace(pop, witness=None), empty_state)

    def test_illegal_move_produces_no_pop(self, state_factory):
        state = state_factory(Grid.empty(), col=0)
        with pytest.raises(IllegalMoveError):
            generate(state, Action.SHIFT_LEFT)

    def test_pop_for_row_clear_records_cleared_rows(self, state_factory):
        grid = Grid.empty().with_cells({(0, c): Symbol.OBSTACLE for c in range(10) if c not in (3, 4, 5, 6)})
        pop = generate(state_factory(grid), Action.HARD_DROP)
        assert pop.witness.cleared_rows == (0,)


class TestSignatures:
    """Optional per-placement signatures."""

    def test_signed_pop_verifies_with_key(self, empty_state, keypair):
        private_key, public_key = keypair
        pop = generate(empty_state, Action.HARD_DROP, signing_key=private_key)
        assert pop.signature is not None
        assert verify(pop, empty_state, public_key)

    def test_signed_pop_without_key_fails_closed(self, empty_state, keypair):
        private_key, _ = keypair
        pop = generate(empty_state, Action.HARD_DROP, signing_key=private_key)
        assert not verify(pop, empty_state)

    def test_wrong_key_rejected(self, empty_state, keypair, other_keypair):
        pop = generate(empty_state, Action.HARD_DROP, signing_key=keypair[0])
        assert not verify(pop, empty_state, other_keypair[1])

    def test_unsigned_pop_verifies_with_key(self, empty_state, keypair):
        pop = generate(empty_state, Action.HARD_DROP)
        assert verify(pop, empty_state, keypair[1])


class TestWireFormat:
    """Strict JSON records."""

    def test_json_round_trip(self, empty_state):
        pop = generate(empty_state, Action.HARD_DROP)
        assert PlacementProof.from_json(pop.to_json()) == pop

    def test_record_keys(self, empty_state):
        record = json.loads(generate(empty_state, Action.SOFT_DROP).to_json())
        assert set(record) == {"prev_commit", "action", "next_commit", "witness", "signature"}
        assert record["action"] == "SoftDrop"
        assert set(record["witness"]) == {"piece", "anchor_row", "anchor_col", "rotation", "cleared_rows"}

    def test_uppercase_digest_rejected(self, empty_state):
        record = generate(empty_state, Action.SOFT_DROP).to_dict()
        record["prev_commit"] = record["prev_commit"].upper()
        with pytest.raises(ValueError):
            PlacementProof.from_dict(record)

    def test_extra_field_rejected(self, empty_state):
        record = generate(empty_state, Action.SOFT_DROP).to_dict()
        record["note"] = "hi"
        with pytest.raises(ValueError):
            PlacementProof.from_dict(record)


class TestChains:
    """Chain linkage and tamper evidence."""

    def test_honest_chain_verifies(self, chain, start_state):
        result = verify_chain_detailed(chain, start_state)
        assert result.valid
        assert result.checked == len(CHAIN_ACTIONS)
        assert result.final_state == build_chain(start_state, CHAIN_ACTIONS)[1]

    def test_chain_links_by_digest(self, chain):
        for earlier, later in zip(chain, chain[1:]):
            assert earlier.next_commit == later.prev_commit

    def test_empty_chain_verifies(self, start_state):
        assert verify_chain([], start_state)

    def test_dropped_frame_breaks_linkage(self, chain, start_state):
        result = verify_chain_detailed(chain[:2] + chain[3:], start_state)
        assert not result.valid
        assert result.failed_at == 2

    def test_reordered_frames_rejected(self, chain, start_state):
        swapped = [chain[1], chain[0]] + chain[2:]
        assert not verify_chain(swapped, start_state)

    def test_wrong_initial_state_rejected(self, chain, start_state):
        assert not verify_chain(chain, apply(start_state, Action.SHIFT_RIGHT))

    @pytest.mark.parametrize("junk", ["garbage", None, 42, {"prev_commit": "00"}])
    def test_chain_is_total_on_garbage_frames(self, chain, start_state, junk):
        """A non-PoP frame fails the chain at its index instead of raising."""
        result = verify_chain_detailed(chain + [junk], start_state)
        assert not result.valid
        assert result.failed_at == len(chain)
        assert not verify_chain([junk] + chain, start_state)

    def test_dict_round_trip(self, chain, start_state):
        restored = chain_from_dicts(chain_to_dicts(chain))
        assert restored == chain
        assert verify_chain(restored, start_state)

    @pytest.mark.parametrize("frame", range(len(CHAIN_ACTIONS)))
    def test_any_bit_flip_in_frame_is_detected(self, chain, start_state, frame):
        """Flipping any bit of frame i's canonical JSON fails parsing or fails the chain at i."""
        original = chain[frame].to_json().encode("utf-8")
        for position in range(len(original)):
            tampered_bytes = bytearray(original)
            tampered_bytes[position] ^= 0x01
            try:
                tampered = PlacementProof.from_json(tampered_bytes.decode("utf-8"))
            except (ValueError, UnicodeDecodeError):
                continue
            tampered_chain = list(chain)
            tampered_chain[frame] = tampered
            result = verify_chain_detailed(tampered_chain, start_state)
            assert not result.valid, f"flip at byte {position} went undetected"
            assert result.failed_at == frame
