"""Inverse probability of selection weights for the stage-2 subsample."""
# ruff: noqa: N803

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray

__all__ = [
    "ObservationWeights",
    "bound",
    "compute_observation_weights",
    "weight_diagnostics",
    "weight_upper_bound",
]

logger = logging.getLogger(__name__)

# Share of sampled units truncated at the upper bound above which callers are warned
TRUNCATION_WARNING_SHARE = 0.05


def bound(x: Any, bounds: tuple[float, float] | list[float]) -> NDArray[Any]:
    """Clip x to [min(bounds), max(bounds)]."""
    return np.clip(np.asarray(x, dtype=float), min(bounds), max(bounds))


def weight_upper_bound(n_sampled: int | float) -> float:
    """sqrt(n) * ln(n) / 5 for n sampled units."""
    return float(np.sqrt(n_sampled) * np.log(n_sampled) / 5)


@dataclass(frozen=True)
class ObservationWeights:
    """Stage-2 observation weights.

    Attributes:
        weights: Delta_W / pi clipped to [0, upper_bound]
        raw: Unbounded ratio Delta_W / pi
        normalized: raw rescaled to sum to sum(Delta_W); diagnostic only
        upper_bound: sqrt(sum(Delta_W)) * ln(sum(Delta_W)) / 5
    """

    weights: NDArray[Any]
    raw: NDArray[Any]
    normalized: NDArray[Any]
    upper_bound: float


def compute_observation_weights(Delta_W: NDArray[Any], pi: NDArray[Any]) -> ObservationWeights:
    """Build the bounded inverse probability of selection weights.

    Units outside the subsample get weight 0. A zero probability for a
    sampled unit gives an infinite ratio, which the upper bound truncates.
    """
    Delta_W = np.asarray(Delta_W, dtype=float)
    pi = np.asarray(pi, dtype=float)
    n_sampled = Delta_W.sum()

    with np.errstate(divide="ignore", invalid="ignore"):
        raw = np.where(Delta_W == 1, Delta_W / pi, 0.0)
        normalized = raw / raw.sum() * n_sampled
    ub = weight_upper_bound(n_sampled)
    weights = bound(raw, (0, ub))

    return ObservationWeights(weights=weights, raw=raw, normalized=normalized, upper_bound=ub)


def weight_diagnostics(
    observation_weights: ObservationWeights,
    Delta_W: NDArray[Any],
    warn: bool = True,
) -> dict[str, Any]:
    """Summarize the weights of the sampled units.

    Returns:
        Dictionary with the upper bound, truncation count and share,
        effective sample size and weight statistics
    """
    sampled = np.asarray(Delta_W) == 1
    w = observation_weights.weights[sampled]
    n_truncated = int(np.sum(observation_weights.raw[sampled] > observation_weights.upper_bound))
    share_truncated = n_truncated / max(len(w), 1)

    diagnostics = {
        "upper_bound": observation_weights.upper_bound,
        "n_sampled": int(sampled.sum()),
        "n_truncated": n_truncated,
        "share_truncated": share_truncated,
        "effective_sample_size": float(np.sum(w) ** 2 / np.sum(w**2)) if np.any(w > 0) else 0.0,
        "normalized_sum": float(np.sum(observation_weights.normalized)),
        "weight_statistics": {
            "mean": float(np.mean(w)),
            "std": float(np.std(w)),
            "min": float(np.min(w)),
            "max": float(np.max(w)),
        },
    }

    if warn and share_truncated > TRUNCATION_WARNING_SHARE:
        warnings.warn(
            f"{n_truncated} of {len(w)} sampled units ({share_truncated:.1%}) have "
            f"weights truncated at {observation_weights.upper_bound:.3f}; "
            "check the sampling model for near-zero probabilities"
        )
    logger.debug(
        "Observation weights: upper bound %.3f, %d truncated, ESS %.1f",
        observation_weights.upper_bound,
        n_truncated,
        diagnostics["effective_sample_size"],
    )
    return diagnostics
