"""
Deterministic PRNG for challenge generation.

Challenges must regenerate byte-identically forever, so every draw is derived
from ``random.Random.random()`` alone: CPython guarantees that method keeps
producing the same sequence for the same seed across releases, while helpers
such as ``randint``/``choice`` carry no such promise.
"""

import hashlib
import random
from typing import Sequence, TypeVar

T = TypeVar("T")


def int_to_hex_seed(seed: int) -> str:
    """Convert integer seed to hex string.

    Args:
        seed: Non-negative integer seed

    Returns:
        Hex string representation (at least 16 digits)
    """
    if isinstance(seed, bool) or not isinstance(seed, int) or seed < 0:
        raise ValueError(f"seed must be a non-negative integer, got {seed!r}")
    return f"{seed:016x}"


class DeterministicPRNG:
    """Deterministic pseudo-random number generator with hierarchical seeding.

    This PRNG ensures:
    - Identical seeds produce identical sequences
    - Hierarchical path-based seeding for independent streams
    - Full reproducibility across runs and interpreter versions
    """

    def __init__(self, seed: str):
        """Initialize PRNG with hex seed string.

        Args:
            seed: Hex string seed (e.g., from int_to_hex_seed)
        """
        self.seed = seed
        self._rng = random.Random(seed)

    def for_path(self, *path_components: str) -> "DeterministicPRNG":
        """Create a child PRNG for a specific path.

        Each path gets an independent but deterministic random stream, so
        adding draws to one stream never shifts another.
        """
        path_str = "/".join(path_components)
        combined = f"{self.seed}::{path_str}"
        child_seed = hashlib.sha256(combined.encode("utf-8")).hexdigest()[:16]
        return DeterministicPRNG(child_seed)

    def random(self) -> float:
        return self._rng.random()

    def below(self, n: int) -> int:
        """Random integer in [0, n)."""
        if n <= 0:
            raise ValueError(f"upper bound must be positive, got {n}")
        return min(int(self._rng.random() * n), n - 1)

    def choice(self, seq: Sequence[T]) -> T:
        return seq[self.below(len(seq))]

    def chance(self, probability: float) -> bool:
        return self._rng.random() < probability
