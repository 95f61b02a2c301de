"""Challenges, scoring, improvement metrics, and Proof-of-Learning."""

from .capabilities import Agent
from .challenge import Challenge, ChallengeDeterminismViolation, check_challenge_determinism, generate_challenge
from .config import ProofConfig
from .improvement import ImprovementMetrics, compute_improvement, metrics_match
from .prng import DeterministicPRNG, int_to_hex_seed
from .proof_of_learning import (
    ProofOfLearning,
    VerificationFailure,
    VerificationResult,
    generate,
    verify,
    verify_batch,
)
from .sampling import (
    SampledVerificationResult,
    detection_probability,
    empirical_detection_rate,
    exact_detection_probability,
    optimistic_verify,
    sample_attempt_indices,
)
from .scoring import (
    Constraint,
    ConstraintKind,
    InvalidTrajectoryError,
    ScoringPolicyId,
    score_trajectory,
)

__all__: list[str] = [
    "Agent",
    "Challenge",
    "ChallengeDeterminismViolation",
    "check_challenge_determinism",
    "generate_challenge",
    "ProofConfig",
    "ImprovementMetrics",
    "compute_improvement",
    "metrics_match",
    "DeterministicPRNG",
    "int_to_hex_seed",
    "ProofOfLearning",
    "VerificationFailure",
    "VerificationResult",
    "generate",
    "verify",
    "verify_batch",
    "SampledVerificationResult",
    "detection_probability",
    "empirical_detection_rate",
    "exact_detection_probability",
    "optimistic_verify",
    "sample_attempt_indices",
    "Constraint",
    "ConstraintKind",
    "InvalidTrajectoryError",
    "ScoringPolicyId",
    "score_trajectory",
]
