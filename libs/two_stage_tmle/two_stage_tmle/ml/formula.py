"""Parametric GLMs specified by model formulas.

Formulas use the Wilkinson notation of patsy
(``"Delta.W ~ I(W1 > 0)"``, ``"Y ~ A + W1"``). Column names containing dots
are not valid Python identifiers inside a formula, so both the formula and
the data frame are rewritten with underscores before fitting.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np
import pandas as pd
import statsmodels.api as sm
import statsmodels.formula.api as smf
from numpy.typing import NDArray

__all__ = ["FormulaGLM", "fit_formula_glm", "sanitize_name"]

_FAMILIES = {
    "binomial": sm.families.Binomial,
    "gaussian": sm.families.Gaussian,
}


def sanitize_name(name: str) -> str:
    """Replace characters that patsy cannot parse as part of a name."""
    return re.sub(r"[^0-9A-Za-z_]", "_", str(name))


def _sanitize_formula(formula: str, names: list[str]) -> str:
    # Longest names first so that "W.stage2" is rewritten before "W"
    for name in sorted(names, key=len, reverse=True):
        clean = sanitize_name(name)
        if clean != name:
            pattern = r"(?<![0-9A-Za-z_.])" + re.escape(name) + r"(?![0-9A-Za-z_])"
            formula = re.sub(pattern, clean, formula)
    return formula


@dataclass
class FormulaGLM:
    """A fitted formula GLM able to predict on frames with the original names."""

    formula: str
    family: str
    result: Any

    @property
    def params(self) -> pd.Series:
        return self.result.params

    def predict(self, data: pd.DataFrame) -> NDArray[Any]:
        frame = data.rename(columns=sanitize_name)
        predicted = np.asarray(self.result.predict(frame), dtype=float)
        # Formulas without data terms ("y ~ 1") may predict a single row
        return np.broadcast_to(predicted, (len(frame),)).copy()


def fit_formula_glm(
    formula: str,
    data: pd.DataFrame,
    family: str = "binomial",
    sample_weight: Optional[NDArray[Any]] = None,
) -> FormulaGLM:
    """Fit a GLM from an R-style formula.

    Args:
        formula: Model formula, e.g. ``"Delta.W ~ I(W1 > 0)"``
        data: Frame holding the response and every referenced predictor
        family: 'binomial' or 'gaussian'
        sample_weight: Optional prior (variance) weights

    Returns:
        FormulaGLM wrapping the fitted statsmodels results
    """
    if family not in _FAMILIES:
        raise ValueError(f"family must be one of {sorted(_FAMILIES)}, got '{family}'")

    clean_formula = _sanitize_formula(formula, [str(c) for c in data.columns])
    frame = data.rename(columns=sanitize_name)
    model = smf.glm(
        clean_formula,
        data=frame,
        family=_FAMILIES[family](),
        var_weights=sample_weight,
    )
    return FormulaGLM(formula=formula, family=family, result=model.fit())
