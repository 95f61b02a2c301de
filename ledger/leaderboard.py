"""
Leaderboard
===========

Accepts Proof-of-Learning submissions, verifies them exhaustively, and ranks
accepted entries by learning slope.

Concurrency:
    Submissions may arrive from many threads. Verification runs outside the
    writer lock; the duplicate check and insert run under it. Accepted entries
    are held in an immutable tuple that is replaced wholesale, so readers take
    a consistent snapshot without locking.

Audit log:
    When configured, each accepted entry is appended to a JSONL file in
    acceptance order.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Tuple

from backend.crypto.signer import DEFAULT_SIGNER, Signer
from backend.logging.jsonl_writer import JsonlWriter
from learning.config import ProofConfig
from learning.proof_of_learning import (
    ProofOfLearning,
    VerificationFailure,
    VerificationResult,
    verify,
)

logger = logging.getLogger("Leaderboard")

FAILURE_DUPLICATE = "duplicate_submission"


class SubmissionRejected(Exception):
    """A submission failed verification or was already accepted."""

    def __init__(self, result: VerificationResult) -> None:
        self.result = result
        kinds = ", ".join(result.failure_kinds()) or "unknown"
        super().__init__(f"submission rejected: {kinds}")

    @property
    def failures(self) -> Tuple[VerificationFailure, ...]:
        return self.result.failures


@dataclass(frozen=True)
class LeaderboardEntry:
    agent_id: str
    challenge_seed: int
    difficulty: float
    slope: float
    pct_improvement: float
    best: float
    final: float
    num_attempts: int
    pol_digest: str
    sequence: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class Leaderboard:
    """
    Verified PoL rankings.

    Args:
        config: Proof configuration used for verification and the audit path
        audit_log: Explicit audit sink; overrides ``config.leaderboard_log_path``
        signer: Signer capability used to check submission signatures
    """

    def __init__(
        self,
        config: Optional[ProofConfig] = None,
        audit_log: Optional[JsonlWriter] = None,
        signer: Signer = DEFAULT_SIGNER,
    ) -> None:
        self.config = config or ProofConfig()
        self.signer = signer
        if audit_log is None and self.config.leaderboard_log_path:
            audit_log = JsonlWriter(self.config.leaderboard_log_path)
        self._audit_log = audit_log
        self._lock = threading.Lock()
        self._entries: Tuple[LeaderboardEntry, ...] = ()
        self._digests: frozenset = frozenset()

    def submit(self, pol: ProofOfLearning, public_key: Optional[bytes]) -> LeaderboardEntry:
        """
        Verify and insert a submission.

        Raises:
            SubmissionRejected: verification failed or the PoL was already accepted
        """
        result = verify(pol, public_key, self.signer, self.config)
        if not result.valid:
            logger.warning(f"[REJECT] agent={pol.agent_id} failures={result.failure_kinds()}")
            raise SubmissionRejected(result)

        digest = pol.digest()
        with self._lock:
            if digest in self._digests:
                logger.warning(f"[REJECT] agent={pol.agent_id} duplicate digest={digest[:16]}")
                raise SubmissionRejected(
                    VerificationResult(
                        valid=False,
                        failures=(VerificationFailure(FAILURE_DUPLICATE, f"PoL {digest} already accepted"),),
                        attempts_checked=result.attempts_checked,
                    )
                )
            entry = LeaderboardEntry(
                agent_id=pol.agent_id,
                challenge_seed=pol.challenge.seed,
                difficulty=pol.challenge.difficulty,
                slope=pol.improvement.slope,
                pct_improvement=pol.improvement.pct_improvement,
                best=pol.improvement.best,
                final=pol.improvement.final,
                num_attempts=pol.num_attempts,
                pol_digest=digest,
                sequence=len(self._entries),
            )
            if self._audit_log is not None:
                self._audit_log.write(entry.to_dict())
            self._entries = self._entries + (entry,)
            self._digests = self._digests | {digest}

        logger.info(
            f"[ACCEPT] agent={entry.agent_id} seed={entry.challenge_seed} "
            f"slope={entry.slope:.4f} sequence={entry.sequence}"
        )
        return entry

    def entries(self) -> Tuple[LeaderboardEntry, ...]:
        """Accepted entries in acceptance order."""
        return self._entries

    def rankings(self, challenge_seed: Optional[int] = None) -> List[LeaderboardEntry]:
        """Entries ordered by slope (descending); earlier submissions win ties."""
        snapshot = self._entries
        if challenge_seed is not None:
            snapshot = tuple(e for e in snapshot if e.challenge_seed == challenge_seed)
        return sorted(snapshot, key=lambda e: (-e.slope, e.sequence))

    def close(self) -> None:
        if self._audit_log is not None:
            self._audit_log.close()

    def __len__(self) -> int:
        return len(self._entries)
