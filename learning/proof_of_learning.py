"""
Proof-of-Learning (PoL) Engine
==============================

A PoL bundles one PoP chain per attempt at a challenge, the score of each
attempt, and improvement metrics over the score sequence, signed by the
submitting agent's key.

Verification (``verify``) checks:
1. The challenge regenerates identically from its seed and difficulty
2. Scores are index-aligned with attempts
3. Every attempt's PoP chain verifies from the challenge's initial state
4. Every attempt stays within the move budget
5. Every claimed score matches the replayed score within tolerance
6. Claimed improvement matches improvement recomputed from replayed scores
7. The top-level signature over (seed, scores, improvement) is valid

All checks run to completion and accumulate itemized failures, so one report
explains every discrepancy. Verification never mutates the PoL.

Wire record:
    {
      "challenge": {"seed", "difficulty", "max_moves", "scoring_policy"},
      "attempts": [[<PoP>, ...], ...],
      "scores": [<number>, ...],
      "improvement": {"slope", "pct_improvement", "initial", "final", "best", "mean"},
      "agent_id": <string>,
      "signature": <base64> | null
    }
"""

from __future__ import annotations

import json
import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from attestation.placement import (
    PlacementProof,
    build_chain,
    chain_from_dicts,
    chain_to_dicts,
    verify_chain_detailed,
)
from backend.crypto.core import DOMAIN_POL, canonical_json_bytes, rfc8785_canonicalize, sha256_hex
from backend.crypto.signer import DEFAULT_SIGNER, Signer
from engine.actions import Action
from engine.state import GameState
from engine.transition import IllegalMoveError, ReplayResult

from .capabilities import Agent
from .challenge import Challenge, generate_challenge
from .config import ProofConfig
from .improvement import ImprovementMetrics, compute_improvement, metrics_match
from .scoring import InvalidTrajectoryError, score_replay

logger = logging.getLogger("PoLEngine")

FAILURE_CHALLENGE_MISMATCH = "challenge_mismatch"
FAILURE_LENGTH_MISMATCH = "length_mismatch"
FAILURE_CHAIN_INVALID = "chain_invalid"
FAILURE_BUDGET_EXCEEDED = "budget_exceeded"
FAILURE_SCORE_MISMATCH = "score_mismatch"
FAILURE_IMPROVEMENT_MISMATCH = "improvement_mismatch"
FAILURE_SIGNATURE_MISSING = "signature_missing"
FAILURE_SIGNATURE_INVALID = "signature_invalid"

_POL_FIELDS = {"challenge", "attempts", "scores", "improvement", "agent_id", "signature"}


@dataclass(frozen=True)
class ProofOfLearning:
    """Immutable record of an agent's repeated attempts at one challenge."""

    challenge: Challenge
    attempts: Tuple[Tuple[PlacementProof, ...], ...]
    scores: Tuple[float, ...]
    improvement: ImprovementMetrics
    agent_id: str
    signature: Optional[str] = None

    @property
    def num_attempts(self) -> int:
        return len(self.attempts)

    def signing_payload(self) -> bytes:
        return signing_payload(self.challenge.seed, self.scores, self.improvement)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "challenge": self.challenge.to_dict(),
            "attempts": [chain_to_dicts(chain) for chain in self.attempts],
            "scores": list(self.scores),
            "improvement": self.improvement.to_dict(),
            "agent_id": self.agent_id,
            "signature": self.signature,
        }

    def to_json(self) -> str:
        return rfc8785_canonicalize(self.to_dict())

    def digest(self) -> str:
        return sha256_hex(canonical_json_bytes(self.to_dict()), domain=DOMAIN_POL)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProofOfLearning":
        """Strict parse of a wire record; raises ``ValueError`` on any deviation."""
        if not isinstance(data, dict) or set(data) != _POL_FIELDS:
            raise ValueError(f"PoL record must have exactly the fields {sorted(_POL_FIELDS)}")
        if not isinstance(data["attempts"], list) or not isinstance(data["scores"], list):
            raise ValueError("attempts and scores must be lists")
        scores = []
        for value in data["scores"]:
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                raise ValueError(f"score {value!r} is not a finite number")
            scores.append(float(value))
        if not isinstance(data["agent_id"], str):
            raise ValueError("agent_id must be a string")
        signature = data["signature"]
        if signature is not None and not isinstance(signature, str):
            raise ValueError("signature must be a string or null")
        return cls(
            challenge=Challenge.from_dict(data["challenge"]),
            attempts=tuple(tuple(chain_from_dicts(chain)) for chain in data["attempts"]),
            scores=tuple(scores),
            improvement=ImprovementMetrics.from_dict(data["improvement"]),
            agent_id=data["agent_id"],
            signature=signature,
        )

    @classmethod
    def from_json(cls, text: str) -> "ProofOfLearning":
        return cls.from_dict(json.loads(text))


def signing_payload(seed: int, scores: Sequence[float], improvement: ImprovementMetrics) -> bytes:
    """Canonical bytes of the signed tuple (seed, scores, improvement)."""
    return canonical_json_bytes(
        {"seed": seed, "scores": [float(s) for s in scores], "improvement": improvement.to_dict()}
    )


@dataclass(frozen=True)
class VerificationFailure:
    """One itemized discrepancy; ``attempt`` is None for PoL-level checks."""

    kind: str
    message: str
    attempt: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "attempt": self.attempt, "message": self.message}


@dataclass(frozen=True)
class VerificationResult:
    valid: bool
    failures: Tuple[VerificationFailure, ...] = ()
    attempts_checked: int = 0
    recomputed_scores: Tuple[Optional[float], ...] = field(default=(), repr=False)

    def failure_kinds(self) -> List[str]:
        return sorted({failure.kind for failure in self.failures})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "attempts_checked": self.attempts_checked,
            "failures": [failure.to_dict() for failure in self.failures],
        }


def chain_replay(initial_state: GameState, pops: Sequence[PlacementProof], final_state: GameState) -> ReplayResult:
    """Trajectory summary reconstructed from an already-verified chain."""
    return ReplayResult(
        initial_state=initial_state,
        final_state=final_state,
        moves=len(pops),
        lines_per_drop=tuple(
            len(pop.witness.cleared_rows) for pop in pops if pop.action is Action.HARD_DROP
        ),
        witnesses=tuple(pop.witness for pop in pops),
    )


# --------------------------------------------------------------------------- #
# Generation
# --------------------------------------------------------------------------- #

def generate(
    agent: Agent,
    challenge: Challenge,
    num_attempts: int,
    signing_key: bytes,
    signer: Signer = DEFAULT_SIGNER,
    config: Optional[ProofConfig] = None,
) -> ProofOfLearning:
    """
    Run ``num_attempts`` attempts, prove each as a PoP chain, score and sign.

    Args:
        agent: Agent capability; ``play`` is called once per attempt
        challenge: Challenge to attempt
        num_attempts: Number of attempts (>= 1)
        signing_key: Key for the top-level signature
        signer: Signer capability
        config: Proof configuration (``sign_placements`` also signs every PoP)

    Raises:
        InvalidTrajectoryError: an attempt exceeded the budget or made an illegal move
    """
    if isinstance(num_attempts, bool) or not isinstance(num_attempts, int) or num_attempts < 1:
        raise ValueError(f"num_attempts must be a positive integer, got {num_attempts!r}")
    config = config or ProofConfig()
    placement_key = signing_key if config.sign_placements else None

    attempts: List[Tuple[PlacementProof, ...]] = []
    scores: List[float] = []
    for attempt in range(num_attempts):
        actions = list(agent.play(challenge.initial_state, challenge))
        if len(actions) > challenge.max_moves:
            raise InvalidTrajectoryError(
                f"{len(actions)} actions exceed the move budget of {challenge.max_moves}", attempt
            )
        try:
            pops, final_state = build_chain(challenge.initial_state, actions, placement_key, signer)
        except IllegalMoveError as exc:
            raise InvalidTrajectoryError(f"illegal move: {exc}", attempt) from exc
        except ValueError as exc:
            raise InvalidTrajectoryError(f"malformed action: {exc}", attempt) from exc

        summary = chain_replay(challenge.initial_state, pops, final_state)
        score = score_replay(challenge.scoring_policy, challenge.constraints, summary)
        attempts.append(tuple(pops))
        scores.append(score)
        logger.debug(f"[ATTEMPT] agent={agent.agent_id} attempt={attempt} moves={len(pops)} score={score}")

    improvement = compute_improvement(scores)
    signature = signer.sign(signing_payload(challenge.seed, scores, improvement), signing_key)
    logger.info(
        f"[POL] agent={agent.agent_id} seed={challenge.seed} attempts={num_attempts} "
        f"slope={improvement.slope:.4f} pct={improvement.pct_improvement:.4f}"
    )
    return ProofOfLearning(
        challenge=challenge,
        attempts=tuple(attempts),
        scores=tuple(scores),
        improvement=improvement,
        agent_id=agent.agent_id,
        signature=signature,
    )


# --------------------------------------------------------------------------- #
# Verification
# --------------------------------------------------------------------------- #

def trusted_challenge(pol: ProofOfLearning, failures: List[VerificationFailure]) -> Optional[Challenge]:
    claimed = pol.challenge
    try:
        regenerated = generate_challenge(claimed.seed, claimed.difficulty, claimed.scoring_policy)
    except ValueError as exc:
        failures.append(VerificationFailure(FAILURE_CHALLENGE_MISMATCH, f"challenge cannot be regenerated: {exc}"))
        return None
    if regenerated != claimed:
        failures.append(
            VerificationFailure(
                FAILURE_CHALLENGE_MISMATCH,
                f"challenge does not match regeneration from seed {claimed.seed}",
            )
        )
    return regenerated


def verify_attempt(
    pol: ProofOfLearning,
    index: int,
    challenge: Challenge,
    public_key: Optional[bytes],
    signer: Signer,
    config: ProofConfig,
) -> Tuple[List[VerificationFailure], Optional[float]]:
    """Fully verify one attempt; returns its failures and the replayed score (None if unreplayable)."""
    failures: List[VerificationFailure] = []
    chain = pol.attempts[index]

    if len(chain) > challenge.max_moves:
        failures.append(
            VerificationFailure(
                FAILURE_BUDGET_EXCEEDED,
                f"{len(chain)} moves exceed the budget of {challenge.max_moves}",
                index,
            )
        )

    detail = verify_chain_detailed(chain, challenge.initial_state, public_key, signer)
    if not detail.valid:
        failures.append(
            VerificationFailure(
                FAILURE_CHAIN_INVALID,
                f"frame {detail.failed_at}: {detail.reason}",
                index,
            )
        )
        return failures, None

    summary = chain_replay(challenge.initial_state, chain, detail.final_state)
    score = score_replay(challenge.scoring_policy, challenge.constraints, summary)
    if index < len(pol.scores):
        claimed = pol.scores[index]
        if not math.isclose(claimed, score, rel_tol=0.0, abs_tol=config.score_tolerance):
            failures.append(
                VerificationFailure(
                    FAILURE_SCORE_MISMATCH,
                    f"claimed score {claimed} but replay scores {score}",
                    index,
                )
            )
    return failures, score


def check_signature(
    pol: ProofOfLearning,
    public_key: Optional[bytes],
    signer: Signer,
    failures: List[VerificationFailure],
) -> None:
    if pol.signature is None:
        failures.append(VerificationFailure(FAILURE_SIGNATURE_MISSING, "PoL carries no signature"))
    elif public_key is None or not signer.verify_signature(pol.signing_payload(), pol.signature, public_key):
        failures.append(VerificationFailure(FAILURE_SIGNATURE_INVALID, "top-level signature does not verify"))


def verify(
    pol: ProofOfLearning,
    public_key: Optional[bytes],
    signer: Signer = DEFAULT_SIGNER,
    config: Optional[ProofConfig] = None,
) -> VerificationResult:
    """Exhaustively verify every attempt of ``pol``; never raises for a well-formed PoL."""
    config = config or ProofConfig()
    failures: List[VerificationFailure] = []

    challenge = trusted_challenge(pol, failures)
    if len(pol.scores) != len(pol.attempts):
        failures.append(
            VerificationFailure(
                FAILURE_LENGTH_MISMATCH,
                f"{len(pol.scores)} scores for {len(pol.attempts)} attempts",
            )
        )

    recomputed: List[Optional[float]] = []
    if challenge is not None:
        for index in range(len(pol.attempts)):
            attempt_failures, score = verify_attempt(pol, index, challenge, public_key, signer, config)
            failures.extend(attempt_failures)
            recomputed.append(score)

        if all(score is not None for score in recomputed):
            expected = compute_improvement(recomputed)
            basis = "replayed scores"
        else:
            expected = compute_improvement(pol.scores)
            basis = "claimed scores"
        if not metrics_match(pol.improvement, expected, config.score_tolerance):
            failures.append(
                VerificationFailure(
                    FAILURE_IMPROVEMENT_MISMATCH,
                    f"claimed improvement {pol.improvement.to_dict()} differs from {basis} {expected.to_dict()}",
                )
            )

    check_signature(pol, public_key, signer, failures)

    result = VerificationResult(
        valid=not failures,
        failures=tuple(failures),
        attempts_checked=len(recomputed),
        recomputed_scores=tuple(recomputed),
    )
    if failures:
        logger.warning(
            f"[VERIFY] agent={pol.agent_id} seed={pol.challenge.seed} "
            f"failed with {len(failures)} issue(s): {result.failure_kinds()}"
        )
    else:
        logger.info(f"[VERIFY] agent={pol.agent_id} seed={pol.challenge.seed} PASS")
    return result


def verify_batch(
    pols: Sequence[ProofOfLearning],
    public_keys: Sequence[Optional[bytes]],
    signer: Signer = DEFAULT_SIGNER,
    config: Optional[ProofConfig] = None,
) -> List[VerificationResult]:
    """Verify independent submissions concurrently; results are in input order."""
    if len(pols) != len(public_keys):
        raise ValueError(f"{len(pols)} PoLs but {len(public_keys)} public keys")
    config = config or ProofConfig()
    with ThreadPoolExecutor(max_workers=config.max_workers) as pool:
        return list(pool.map(lambda pair: verify(pair[0], pair[1], signer, config), zip(pols, public_keys)))
