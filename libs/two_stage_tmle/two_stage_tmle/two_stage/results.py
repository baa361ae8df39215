"""Result container of the two-stage TMLE pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from ..estimators.tmle import TMLEResult
from .sampling import SamplingModelResult

__all__ = ["RESULT_KIND", "TwoStageTMLEResult"]

RESULT_KIND = "two_stage_tmle"


@dataclass(frozen=True)
class TwoStageTMLEResult:
    """Outcome of a two-stage TMLE run.

    Attributes:
        tmle: Full-sample TMLE result, None when the estimation failed
        two_stage: Stage-2 sampling model
        aug_w: Augmentation covariates Q0W and Q1W, None without augmentation
        weights: Observation weights of all units (0 outside the subsample)
        warnings: Diagnostic messages collected during the run
        kind: Result tag
        weight_diagnostics: Truncation and effective sample size summary
    """

    tmle: Optional[TMLEResult]
    two_stage: SamplingModelResult
    aug_w: Optional[pd.DataFrame]
    weights: NDArray[Any]
    warnings: tuple[str, ...] = ()
    kind: str = RESULT_KIND
    weight_diagnostics: dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.tmle is not None

    def summary(self) -> str:
        sampled = self.weights > 0
        lines = [
            "Two-Stage TMLE Summary",
            "=" * 40,
            f"Sampling probabilities: {self.two_stage.type}",
        ]
        if self.two_stage.formula is not None:
            lines.append(f"  Formula: {self.two_stage.formula}")
        if self.two_stage.coef is not None:
            lines.append("  Coefficients:")
            lines.extend(
                f"    {name}: {value:.4f}" for name, value in self.two_stage.coef.items()
            )
        lines.append(
            f"Weights: {int(np.sum(sampled))} positive, "
            f"range [{np.min(self.weights[sampled]):.3f}, {np.max(self.weights):.3f}]"
            if np.any(sampled)
            else "Weights: none positive"
        )
        if self.weight_diagnostics:
            lines.append(
                f"  Upper bound: {self.weight_diagnostics['upper_bound']:.3f}, "
                f"truncated: {self.weight_diagnostics['n_truncated']}"
            )
        lines.append(
            "Augmented W: "
            + ("no" if self.aug_w is None else ", ".join(self.aug_w.columns))
        )
        lines.append("")
        if self.tmle is None:
            lines.append("TMLE: not available")
        else:
            lines.append(self.tmle.summary())
        if self.warnings:
            lines.extend(["", "Warnings:"])
            lines.extend(f"  - {message}" for message in self.warnings)
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.summary()
