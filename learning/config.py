"""
Proof Engine Configuration

Verification tolerances, sampling defaults, and leaderboard sinks shared by
the PoL engine and the leaderboard.
"""

from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any
import json
import os

import yaml


@dataclass
class ProofConfig:
    """Configuration for PoL generation, verification, and leaderboard intake."""

    # Verification
    score_tolerance: float = 1e-6

    # Optimistic verification
    default_sample_rate: float = 0.1

    # Generation
    sign_placements: bool = False

    # Parallel verification
    max_workers: int = 4

    # Leaderboard audit log (JSONL); None disables it
    leaderboard_log_path: Optional[str] = None

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Validate configuration parameters."""
        if not self.score_tolerance >= 0:
            raise ValueError(f"score_tolerance must be ≥0, got {self.score_tolerance}")
        if not 0 < self.default_sample_rate <= 1:
            raise ValueError(
                f"default_sample_rate must be in (0, 1], got {self.default_sample_rate}"
            )
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be ≥1, got {self.max_workers}")

    # ---------------------------------------------------------------------#
    # Serialization helpers
    # ---------------------------------------------------------------------#

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    def to_json(self, filepath: str) -> None:
        """Save configuration to JSON file."""
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=True)

    @classmethod
    def from_json(cls, filepath: str) -> 'ProofConfig':
        """Load configuration from JSON file."""
        with open(filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return cls(**data)

    @classmethod
    def from_yaml(cls, filepath: str) -> 'ProofConfig':
        """Load configuration from a YAML file; a top-level ``proof`` mapping is accepted too."""
        with open(filepath, 'r', encoding='utf-8') as handle:
            data = yaml.safe_load(handle.read()) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{filepath}: expected a mapping at top level")
        if "proof" in data and isinstance(data["proof"], dict):
            data = data["proof"]
        return cls(**data)

    @classmethod
    def from_env(cls) -> 'ProofConfig':
        """
        Load configuration from environment variables.

        Environment variables:
            GRIDPROOF_SCORE_TOLERANCE (default 1e-6)
            GRIDPROOF_SAMPLE_RATE (default 0.1)
            GRIDPROOF_SIGN_PLACEMENTS (default false)
            GRIDPROOF_MAX_WORKERS (default 4)
            GRIDPROOF_LEADERBOARD_LOG (default unset)
        """
        return cls(
            score_tolerance=float(os.getenv("GRIDPROOF_SCORE_TOLERANCE", "1e-6")),
            default_sample_rate=float(os.getenv("GRIDPROOF_SAMPLE_RATE", "0.1")),
            sign_placements=os.getenv("GRIDPROOF_SIGN_PLACEMENTS", "false").lower() == "true",
            max_workers=int(os.getenv("GRIDPROOF_MAX_WORKERS", "4")),
            leaderboard_log_path=os.getenv("GRIDPROOF_LEADERBOARD_LOG") or None,
        )
