"""Stage-1 outcome regression used to augment the sampling model.

The predicted outcomes under control and treatment summarize the stage-1
information about Y, and adding them to the sampling model lets the stage-2
probabilities depend on the outcome regression. Predictions are out-of-fold,
so no unit's augmentation covariate is fitted on its own outcome.
"""
# ruff: noqa: N803, N806

from __future__ import annotations

import logging
from typing import Any, Optional

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from ..core.base import DataValidationError
from ..core.config import LibraryConfig
from ..ml.cross_fitting import create_folds, cross_fit
from ..ml.super_learner import SuperLearner, SuperLearnerConfig
from ..utils.logging import progress_level

__all__ = ["AUGMENTATION_COLUMNS", "evaluate_augmented_covariates"]

logger = logging.getLogger(__name__)

AUGMENTATION_COLUMNS = ("Q0W", "Q1W")

# Binomial predictions are kept inside [1 - Q_BOUND, Q_BOUND]
Q_BOUND = 0.9995


def evaluate_augmented_covariates(
    Y: NDArray[Any],
    A: NDArray[Any],
    W: pd.DataFrame,
    Delta: NDArray[Any],
    id: NDArray[Any],  # noqa: A002
    family: str,
    library: LibraryConfig,
    random_state: Optional[int] = None,
    n_jobs: int = 1,
    verbose: bool = False,
) -> pd.DataFrame:
    """Cross-validated predictions of E[Y|A=0,W] and E[Y|A=1,W] for every unit.

    Args:
        Y: Outcome
        A: Binary treatment
        W: Stage-1 covariates
        Delta: Missing-outcome indicator; the regression is fitted where Delta = 1
        id: Cluster identifiers, never split across folds
        family: 'gaussian' or 'binomial'
        library: Learners, fold count and selection mode
        random_state: Random seed
        n_jobs: Parallel jobs over folds
        verbose: Log progress at INFO level

    Returns:
        DataFrame with columns Q0W and Q1W, one row per unit
    """
    n = len(Y)
    observed = (Delta == 1) & ~np.isnan(Y)
    if not observed.any():
        raise DataValidationError("No observed outcomes to fit the augmentation regression")

    logger.log(
        progress_level(verbose),
        "Augmenting W: %d-fold cross-validated %s Super Learner on %d observed outcomes",
        library.cv_folds,
        family,
        int(observed.sum()),
    )

    X = W.to_numpy(dtype=float)
    X_obs = np.column_stack([A.astype(float), X])
    X_control = np.column_stack([np.zeros(n), X])
    X_treated = np.column_stack([np.ones(n), X])
    Y_fit = np.where(observed, Y, 0.0)
    task_type = "classification" if family == "binomial" else "regression"

    folds = create_folds(n, library.cv_folds, groups=id, random_state=random_state)

    def fit_fold(train_idx: NDArray[Any], val_idx: NDArray[Any]) -> dict[str, NDArray[Any]]:
        rows = train_idx[observed[train_idx]]
        sl = SuperLearner(
            base_learners=library.learners,
            task_type=task_type,
            config=SuperLearnerConfig(
                cv_folds=library.cv_folds,
                discrete=library.discrete,
                random_state=random_state,
            ),
        )
        sl.fit(X_obs[rows], Y_fit[rows], groups=id[rows])
        return {
            "Q0W": sl.predict_response(X_control[val_idx]),
            "Q1W": sl.predict_response(X_treated[val_idx]),
        }

    predictions = cross_fit(fit_fold, folds, n, n_jobs=n_jobs)
    W_Q = pd.DataFrame({name: predictions[name] for name in AUGMENTATION_COLUMNS})

    if family == "binomial":
        W_Q = W_Q.clip(1 - Q_BOUND, Q_BOUND)
    else:
        W_Q = W_Q.clip(np.min(Y[observed]), np.max(Y[observed]))
    return W_Q
