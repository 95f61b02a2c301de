"""
Optimistic Verification
=======================

Probabilistic PoL verification: fully verify a uniformly random subset of
attempts instead of all of them.

Sample size:
    m = min(n, max(1, ceil(n * sample_rate)))

Randomness:
    Indices are drawn without replacement from a caller-supplied
    ``numpy.random.Generator`` (e.g. ``Generator(PCG64(seed))``), so a given
    seed always samples the same attempts and detection-rate experiments are
    reproducible.

Detection probability:
    For an adversary corrupting a fraction k of n attempts, the design
    estimate is 1 - (1 - k)^(n * s). Sampling without replacement makes the
    exact probability hypergeometric (``exact_detection_probability``), which
    is never lower than the estimate. Both are statistical properties of
    repeated runs, not a guarantee for any single one.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Set, Tuple

import numpy as np
from numpy.random import Generator

from backend.crypto.signer import DEFAULT_SIGNER, Signer

from .config import ProofConfig
from .proof_of_learning import (
    FAILURE_LENGTH_MISMATCH,
    ProofOfLearning,
    VerificationFailure,
    check_signature,
    trusted_challenge,
    verify_attempt,
)


@dataclass(frozen=True)
class SampledVerificationResult:
    sampled_indices: Tuple[int, ...]
    all_passed: bool
    failures: Tuple[VerificationFailure, ...]
    sample_rate: float
    num_attempts: int


def sample_size(num_attempts: int, sample_rate: float) -> int:
    if not 0 < sample_rate <= 1:
        raise ValueError(f"sample_rate must be in (0, 1], got {sample_rate}")
    if num_attempts <= 0:
        return 0
    return min(num_attempts, max(1, math.ceil(num_attempts * sample_rate)))


def sample_attempt_indices(num_attempts: int, sample_rate: float, rng: Generator) -> Tuple[int, ...]:
    """Draw ``sample_size`` distinct attempt indices, returned in ascending order."""
    count = sample_size(num_attempts, sample_rate)
    if count == 0:
        return ()
    chosen = rng.choice(num_attempts, size=count, replace=False)
    return tuple(sorted(int(i) for i in chosen))


def detection_probability(corrupted_fraction: float, num_attempts: int, sample_rate: float) -> float:
    """Design estimate 1 - (1 - k)^(n * s)."""
    return 1.0 - (1.0 - corrupted_fraction) ** (num_attempts * sample_rate)


def exact_detection_probability(corrupted: int, num_attempts: int, samples: int) -> float:
    """Probability that ``samples`` draws without replacement hit at least one of ``corrupted`` attempts."""
    if corrupted <= 0:
        return 0.0
    if samples > num_attempts - corrupted:
        return 1.0
    miss = math.comb(num_attempts - corrupted, samples) / math.comb(num_attempts, samples)
    return 1.0 - miss


def optimistic_verify(
    pol: ProofOfLearning,
    public_key: Optional[bytes],
    sample_rate: Optional[float],
    rng: Generator,
    signer: Signer = DEFAULT_SIGNER,
    config: Optional[ProofConfig] = None,
) -> SampledVerificationResult:
    """
    Verify the signature, the challenge, and a random sample of attempts.

    Args:
        pol: Submission to check
        public_key: Agent's public key
        sample_rate: Fraction of attempts to verify, in (0, 1]; None uses
            ``config.default_sample_rate``
        rng: Seeded numpy Generator; the only source of randomness
        signer: Signer capability
        config: Proof configuration (score tolerance, default sample rate)
    """
    config = config or ProofConfig()
    if sample_rate is None:
        sample_rate = config.default_sample_rate
    failures: List[VerificationFailure] = []
    indices = sample_attempt_indices(pol.num_attempts, sample_rate, rng)

    challenge = trusted_challenge(pol, failures)
    if len(pol.scores) != len(pol.attempts):
        failures.append(
            VerificationFailure(
                FAILURE_LENGTH_MISMATCH,
                f"{len(pol.scores)} scores for {len(pol.attempts)} attempts",
            )
        )
    if challenge is not None:
        for index in indices:
            attempt_failures, _ = verify_attempt(pol, index, challenge, public_key, signer, config)
            failures.extend(attempt_failures)
    check_signature(pol, public_key, signer, failures)

    return SampledVerificationResult(
        sampled_indices=indices,
        all_passed=not failures,
        failures=tuple(failures),
        sample_rate=float(sample_rate),
        num_attempts=pol.num_attempts,
    )


def empirical_detection_rate(
    corrupted: Set[int],
    num_attempts: int,
    sample_rate: float,
    trials: int,
    seed: int,
) -> float:
    """
    Fraction of ``trials`` sampling rounds that hit a corrupted index.

    Runs the same sampler ``optimistic_verify`` uses, from ``Generator(PCG64(seed))``.
    """
    rng = np.random.Generator(np.random.PCG64(seed))
    hits = 0
    for _ in range(trials):
        if corrupted.intersection(sample_attempt_indices(num_attempts, sample_rate, rng)):
            hits += 1
    return hits / trials
