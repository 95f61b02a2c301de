"""
Improvement metrics over an ordered score sequence.

    slope            least-squares slope of score against attempt index
    pct_improvement  (last - first) / max(first, 1)
    initial, final, best, mean

Fewer than two scores is a defined degenerate case: slope and
pct_improvement are 0, the remaining fields describe the single score (or
are 0 for an empty sequence).
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Sequence

import numpy as np

_FIELDS = ("slope", "pct_improvement", "initial", "final", "best", "mean")


@dataclass(frozen=True)
class ImprovementMetrics:
    slope: float = 0.0
    pct_improvement: float = 0.0
    initial: float = 0.0
    final: float = 0.0
    best: float = 0.0
    mean: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImprovementMetrics":
        if not isinstance(data, dict) or set(data) != set(_FIELDS):
            raise ValueError(f"improvement record must have exactly the fields {list(_FIELDS)}")
        values = {}
        for key in _FIELDS:
            value = data[key]
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                raise ValueError(f"improvement field {key} must be a finite number")
            values[key] = float(value)
        return cls(**values)


def compute_improvement(scores: Sequence[float]) -> ImprovementMetrics:
    values = np.asarray(list(scores), dtype=np.float64)
    if values.size == 0:
        return ImprovementMetrics()
    if values.size == 1:
        only = float(values[0])
        return ImprovementMetrics(0.0, 0.0, only, only, only, only)

    index = np.arange(values.size, dtype=np.float64)
    slope = float(np.polyfit(index, values, 1)[0])
    first = float(values[0])
    last = float(values[-1])
    return ImprovementMetrics(
        slope=slope,
        pct_improvement=(last - first) / max(first, 1.0),
        initial=first,
        final=last,
        best=float(values.max()),
        mean=float(values.mean()),
    )


def metrics_match(claimed: ImprovementMetrics, recomputed: ImprovementMetrics, tolerance: float) -> bool:
    """Field-wise comparison with an absolute tolerance plus a small relative slack."""
    return all(
        math.isclose(getattr(claimed, key), getattr(recomputed, key), rel_tol=1e-9, abs_tol=tolerance)
        for key in _FIELDS
    )
