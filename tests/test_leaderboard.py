"""
Tests for the verified leaderboard: acceptance, rejection, ranking,
concurrent submission and the JSONL audit log.
"""

import logging
from concurrent.futures import ThreadPoolExecutor

import pytest

from backend.logging.jsonl_writer import JsonlWriter, encode_record, read_jsonl
from engine.actions import Action
from learning.challenge import generate_challenge
from learning.config import ProofConfig
from learning.proof_of_learning import FAILURE_SIGNATURE_INVALID, generate
from ledger.leaderboard import FAILURE_DUPLICATE, Leaderboard, SubmissionRejected


@pytest.fixture
def pol(challenge, improving_agent, keypair):
    return generate(improving_agent, challenge, num_attempts=4, signing_key=keypair[0])


@pytest.fixture
def steady_pol(challenge, scripted_agent, keypair):
    agent = scripted_agent("steady", [Action.HARD_DROP])
    return generate(agent, challenge, num_attempts=4, signing_key=keypair[0])


class TestSubmission:
    """Verification-gated inserts."""

    def test_valid_submission_accepted(self, pol, keypair):
        board = Leaderboard()
        entry = board.submit(pol, keypair[1])
        assert len(board) == 1
        assert entry.agent_id == "improver"
        assert entry.slope == pol.improvement.slope
        assert entry.pol_digest == pol.digest()
        assert entry.sequence == 0

    def test_invalid_submission_rejected_with_failures(self, pol, other_keypair):
        board = Leaderboard()
        with pytest.raises(SubmissionRejected) as excinfo:
            board.submit(pol, other_keypair[1])
        assert excinfo.value.result.failure_kinds() == [FAILURE_SIGNATURE_INVALID]
        assert len(board) == 0

    def test_duplicate_rejected(self, pol, keypair):
        board = Leaderboard()
        board.submit(pol, keypair[1])
        with pytest.raises(SubmissionRejected) as excinfo:
            board.submit(pol, keypair[1])
        assert [f.kind for f in excinfo.value.failures] == [FAILURE_DUPLICATE]
        assert len(board) == 1

    def test_boards_are_independent(self, pol, keypair):
        first, second = Leaderboard(), Leaderboard()
        first.submit(pol, keypair[1])
        assert len(second) == 0

    def test_acceptance_is_logged(self, pol, keypair, caplog):
        with caplog.at_level(logging.INFO, logger="Leaderboard"):
            Leaderboard().submit(pol, keypair[1])
        assert any("[ACCEPT]" in record.getMessage() for record in caplog.records)


class TestRankings:
    """Slope ordering."""

    def test_rankings_sorted_by_slope(self, pol, steady_pol, keypair):
        board = Leaderboard()
        board.submit(steady_pol, keypair[1])
        board.submit(pol, keypair[1])
        ranked = board.rankings()
        assert [e.agent_id for e in ranked] == ["improver", "steady"]

    def test_ties_broken_by_submission_order(self, challenge, scripted_agent, keypair):
        board = Leaderboard()
        for name in ("first", "second", "third"):
            agent = scripted_agent(name, [Action.HARD_DROP])
            board.submit(generate(agent, challenge, 3, keypair[0]), keypair[1])
        assert [e.agent_id for e in board.rankings()] == ["first", "second", "third"]

    def test_rankings_filter_by_challenge(self, pol, keypair, improving_agent):
        board = Leaderboard()
        board.submit(pol, keypair[1])
        other = generate(improving_agent, generate_challenge(99, 0.0), 3, keypair[0])
        board.submit(other, keypair[1])
        assert [e.challenge_seed for e in board.rankings(challenge_seed=99)] == [99]
        assert len(board.rankings()) == 2

    def test_snapshot_unaffected_by_later_inserts(self, pol, steady_pol, keypair):
        board = Leaderboard()
        board.submit(pol, keypair[1])
        snapshot = board.entries()
        board.submit(steady_pol, keypair[1])
        assert len(snapshot) == 1
        assert len(board.entries()) == 2


class TestConcurrency:
    """Serialized writers, lock-free readers."""

    def test_concurrent_distinct_submissions(self, challenge, scripted_agent, keypair):
        pols = [
            generate(scripted_agent(f"agent-{i}", [Action.SHIFT_LEFT] * (i % 3) + [Action.HARD_DROP]), challenge, 2, keypair[0])
            for i in range(8)
        ]
        board = Leaderboard()
        with ThreadPoolExecutor(max_workers=8) as pool:
            entries = list(pool.map(lambda p: board.submit(p, keypair[1]), pols))
        assert len(board) == 8
        assert sorted(e.sequence for e in entries) == list(range(8))
        assert {e.agent_id for e in board.rankings()} == {f"agent-{i}" for i in range(8)}

    def test_concurrent_duplicates_accept_exactly_once(self, pol, keypair):
        board = Leaderboard()

        def attempt(_):
            try:
                board.submit(pol, keypair[1])
                return True
            except SubmissionRejected:
                return False

        with ThreadPoolExecutor(max_workers=6) as pool:
            outcomes = list(pool.map(attempt, range(6)))
        assert outcomes.count(True) == 1
        assert len(board) == 1


class TestAuditLog:
    """JSONL audit trail of accepted entries."""

    def test_accepted_entries_written(self, tmp_path, pol, steady_pol, other_keypair, keypair):
        path = tmp_path / "audit" / "leaderboard.jsonl"
        board = Leaderboard(audit_log=JsonlWriter(str(path)))
        board.submit(pol, keypair[1])
        with pytest.raises(SubmissionRejected):
            board.submit(steady_pol, other_keypair[1])
        board.close()

        records = list(read_jsonl(str(path)))
        assert len(records) == 1
        assert records[0]["agent_id"] == "improver"
        assert records[0]["pol_digest"] == pol.digest()

    def test_log_path_from_config(self, tmp_path, pol, keypair):
        path = tmp_path / "board.jsonl"
        board = Leaderboard(config=ProofConfig(leaderboard_log_path=str(path)))
        board.submit(pol, keypair[1])
        board.close()
        assert [r["sequence"] for r in read_jsonl(str(path))] == [0]

    def test_lines_are_compact_and_key_sorted(self, tmp_path, pol, keypair):
        path = tmp_path / "board.jsonl"
        with JsonlWriter(str(path)) as writer:
            board = Leaderboard(audit_log=writer)
            entry = board.submit(pol, keypair[1])
            assert writer.records_written == 1
        assert writer.closed
        line = path.read_text(encoding="utf-8")
        assert line == encode_record(entry.to_dict()) + "\n"
        assert line.startswith('{"agent_id":"improver",')
        assert " " not in line

    def test_writer_rejects_after_close(self, tmp_path):
        writer = JsonlWriter(str(tmp_path / "x.jsonl"))
        writer.close()
        with pytest.raises(ValueError):
            writer.write({"a": 1})

    def test_reader_rejects_corrupt_line(self, tmp_path):
        path = tmp_path / "bad.jsonl"
        path.write_text('{"ok": 1}\n{not json}\n', encoding="utf-8")
        with pytest.raises(ValueError):
            list(read_jsonl(str(path)))
