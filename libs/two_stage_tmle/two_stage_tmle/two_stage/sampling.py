"""Stage-2 sampling probabilities pi = P(Delta_W = 1 | conditioning set)."""
# ruff: noqa: N803, N806

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from ..core.base import ConfigurationError, DataValidationError
from ..core.config import VALID_CONDITIONING_NAMES, LibraryConfig
from ..estimators.nuisance import estimate_g
from ..utils.logging import progress_level
from ..utils.validation import validate_probabilities
from .inputs import TwoStageData

__all__ = [
    "SAMPLING_OUTCOME",
    "SamplingModelResult",
    "estimate_sampling_probabilities",
    "resolve_conditioning_set",
    "validate_conditioning_set",
]

logger = logging.getLogger(__name__)

SAMPLING_OUTCOME = "Delta.W"

TYPE_USER_SUPPLIED = "user supplied"


@dataclass(frozen=True)
class SamplingModelResult:
    """Stage-2 sampling model.

    Attributes:
        pi: Probability of selection into stage 2, one per unit
        type: 'user supplied', 'parametric' or 'super learner'
        coef: GLM coefficients or Super Learner weights, None when user supplied
        discrete_sl: Whether discrete Super Learner selection was used
        formula: Formula of a parametric fit
        library: Learners of a Super Learner fit
        predictors: Columns of the conditioning set
    """

    pi: NDArray[Any]
    type: str
    coef: Optional[pd.Series] = None
    discrete_sl: Optional[bool] = None
    formula: Optional[str] = None
    library: Optional[tuple[str, ...]] = None
    predictors: tuple[str, ...] = ()


def validate_conditioning_set(cond_set_names: Sequence[str], Y: NDArray[Any]) -> list[str]:
    """Check the conditioning-set names before any model is fitted.

    Raises:
        ConfigurationError: If a name is not one of 'A', 'W', 'Y'
        DataValidationError: If 'Y' is requested while outcomes are missing
    """
    names = list(cond_set_names)
    if not all(name in VALID_CONDITIONING_NAMES for name in names):
        raise ConfigurationError("cond_set_names must be any combination of 'A', 'W', 'Y'")
    if "Y" in names and np.isnan(Y).any():
        raise DataValidationError(
            "Cannot condition on the outcome to evaluate sampling probabilities "
            "when some outcome values are missing"
        )
    return names


def resolve_conditioning_set(
    cond_set_names: Sequence[str],
    data: TwoStageData,
    W_Q: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """Materialize the conditioning set as a predictor frame.

    'A' and 'Y' become columns of the same name, 'W' contributes every stage-1
    covariate under its own name, and the augmentation columns are appended
    when present. An empty set with no augmentation gives a frame without
    columns, which only an intercept-only formula can use.
    """
    names = validate_conditioning_set(cond_set_names, data.Y)

    columns = {
        "A": lambda: data.A.reshape(-1, 1),
        "W": lambda: data.W,
        "Y": lambda: data.Y.reshape(-1, 1),
    }
    parts = []
    for name in names:
        values = columns[name]()
        if isinstance(values, pd.DataFrame):
            parts.append(values.reset_index(drop=True))
        else:
            parts.append(pd.DataFrame(values, columns=[name]))
    if W_Q is not None:
        parts.append(W_Q.reset_index(drop=True))

    if not parts:
        return pd.DataFrame(index=range(data.n))
    frame = pd.concat(parts, axis=1)
    if frame.columns.duplicated().any():
        duplicated = list(frame.columns[frame.columns.duplicated()])
        raise DataValidationError(f"Conditioning set has duplicated columns: {duplicated}")
    return frame


def estimate_sampling_probabilities(
    data: TwoStageData,
    cond_set_names: Sequence[str],
    library: LibraryConfig,
    pi: Optional[Any] = None,
    piform: Optional[str] = None,
    W_Q: Optional[pd.DataFrame] = None,
    random_state: Optional[int] = None,
    verbose: bool = False,
) -> SamplingModelResult:
    """Estimate (or accept) the stage-2 sampling probabilities.

    Args:
        data: Normalized observation set
        cond_set_names: Predictors of selection, any of 'A', 'W', 'Y'
        library: Super Learner library, folds and selection mode
        pi: User-supplied probabilities; bypasses estimation
        piform: Parametric formula, e.g. "Delta.W ~ I(W1 > 0)"
        W_Q: Augmentation covariates
        random_state: Random seed
        verbose: Log progress at INFO level

    Returns:
        SamplingModelResult
    """
    if pi is not None:
        logger.log(progress_level(verbose), "Using user supplied sampling probabilities")
        return SamplingModelResult(
            pi=validate_probabilities(pi, "pi", data.n),
            type=TYPE_USER_SUPPLIED,
        )

    frame = resolve_conditioning_set(cond_set_names, data, W_Q)
    predictors = tuple(frame.columns)
    frame.insert(0, SAMPLING_OUTCOME, data.Delta_W)

    g = estimate_g(
        frame,
        SAMPLING_OUTCOME,
        formula=piform,
        library=library.learners,
        id=data.id,
        V=library.cv_folds,
        discrete_sl=library.discrete,
        message="sampling weights",
        random_state=random_state,
        verbose=verbose,
    )
    return SamplingModelResult(
        pi=g.probabilities,
        type=g.type,
        coef=g.coef,
        discrete_sl=g.discrete_sl,
        formula=g.formula,
        library=None if piform is not None else tuple(library.learners),
        predictors=predictors,
    )
