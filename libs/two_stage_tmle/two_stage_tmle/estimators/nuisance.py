"""Estimation of conditional probabilities of binary indicators.

One routine covers every binary nuisance regression of the pipeline: the
stage-2 sampling probabilities, the treatment mechanism, the outcome
missingness mechanism and the mediator mechanism. The regression is fitted
either from a parametric formula or with a cross-validated Super Learner.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from ..core.base import DataValidationError
from ..ml.formula import fit_formula_glm
from ..ml.super_learner import SuperLearner, SuperLearnerConfig
from ..utils.logging import progress_level

__all__ = ["GEstimate", "estimate_g"]

logger = logging.getLogger(__name__)

TYPE_PARAMETRIC = "parametric"
TYPE_SUPER_LEARNER = "super learner"
TYPE_NO_VARIATION = "no variation"


@dataclass(frozen=True)
class GEstimate:
    """Fitted conditional probability of a binary indicator.

    Attributes:
        probabilities: Fitted P(indicator = 1 | predictors) for every unit
        type: 'parametric', 'super learner' or 'no variation'
        coef: GLM coefficients or Super Learner weights
        discrete_sl: Whether discrete Super Learner selection was used
        formula: Formula of a parametric fit
    """

    probabilities: NDArray[Any]
    type: str
    coef: Optional[pd.Series]
    discrete_sl: Optional[bool]
    formula: Optional[str] = None
    predictor: Callable[[pd.DataFrame], NDArray[Any]] = field(
        default=None, repr=False, compare=False
    )

    def predict(self, data: pd.DataFrame) -> NDArray[Any]:
        """Predict probabilities for new predictor values."""
        return self.predictor(data)


def estimate_g(
    data: pd.DataFrame,
    outcome: str,
    formula: Optional[str] = None,
    library: Optional[Sequence[str]] = None,
    id: Optional[NDArray[Any]] = None,  # noqa: A002
    V: int = 10,  # noqa: N803
    discrete_sl: bool = True,
    obs_weights: Optional[NDArray[Any]] = None,
    message: str = "",
    random_state: Optional[int] = None,
    verbose: bool = False,
) -> GEstimate:
    """Estimate P(outcome = 1 | other columns of data).

    Args:
        data: Frame with the binary outcome column and the predictors
        outcome: Name of the binary column to model
        formula: Parametric model formula; takes precedence over the library
        library: Super Learner library used when no formula is given
        id: Cluster identifiers, kept together in cross-validation folds
        V: Number of cross-validation folds
        discrete_sl: Discrete vs. ensemble Super Learner selection
        obs_weights: Observation weights
        message: Label of the quantity being estimated, for logging
        random_state: Random state for the Super Learner
        verbose: Log progress at INFO level

    Returns:
        GEstimate with fitted probabilities and provenance
    """
    if outcome not in data.columns:
        raise DataValidationError(f"Column '{outcome}' not found in model frame")

    level = progress_level(verbose)
    y = data[outcome].to_numpy(dtype=float)
    predictors = data.drop(columns=[outcome])

    if np.all(y == y[0]):
        logger.log(level, "Estimating %s: no variation in %s", message, outcome)
        constant = float(y[0])
        return GEstimate(
            probabilities=np.full(len(y), constant),
            type=TYPE_NO_VARIATION,
            coef=None,
            discrete_sl=None,
            predictor=lambda frame: np.full(len(frame), constant),
        )

    if formula is not None:
        logger.log(level, "Estimating %s with formula '%s'", message, formula)
        glm = fit_formula_glm(formula, data, family="binomial", sample_weight=obs_weights)
        return GEstimate(
            probabilities=glm.predict(data),
            type=TYPE_PARAMETRIC,
            coef=glm.params,
            discrete_sl=None,
            formula=formula,
            predictor=glm.predict,
        )

    if library is None:
        raise DataValidationError(
            f"Either a formula or a library is required to estimate {message or outcome}"
        )
    if predictors.shape[1] == 0:
        raise DataValidationError(
            f"No predictors to estimate {message or outcome}; use an intercept-only formula"
        )

    logger.log(
        level,
        "Estimating %s with %s Super Learner (V=%d): %s",
        message,
        "discrete" if discrete_sl else "ensemble",
        V,
        list(library),
    )
    columns = list(predictors.columns)
    sl = SuperLearner(
        base_learners=list(library),
        task_type="classification",
        config=SuperLearnerConfig(
            cv_folds=V, discrete=discrete_sl, random_state=random_state
        ),
    )
    sl.fit(predictors.to_numpy(dtype=float), y, sample_weight=obs_weights, groups=id)

    def predict(frame: pd.DataFrame) -> NDArray[Any]:
        return np.clip(sl.predict_response(frame[columns].to_numpy(dtype=float)), 0.0, 1.0)

    return GEstimate(
        probabilities=predict(predictors),
        type=TYPE_SUPER_LEARNER,
        coef=sl.coef_,
        discrete_sl=discrete_sl,
        predictor=predict,
    )
