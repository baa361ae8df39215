"""Cross-fitting infrastructure for out-of-fold nuisance predictions.

Cross-fitting (sample splitting) is used wherever a fitted regression feeds a
later estimation step, so that the downstream step never sees predictions
that were fitted on the same unit. Fold assignment keeps all units of an
independent cluster (``id``) in the same fold.
"""
# ruff: noqa: N803

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np
from joblib import Parallel, delayed
from numpy.typing import NDArray
from sklearn.model_selection import KFold, StratifiedKFold

from ..core.base import DataValidationError

__all__ = [
    "CrossFitData",
    "create_folds",
    "cross_fit",
]


@dataclass
class CrossFitData:
    """Training and validation indices for each fold."""

    n_folds: int
    train_indices: list[NDArray[Any]]
    val_indices: list[NDArray[Any]]
    grouped: bool = False
    fold_timings: list[float] = field(default_factory=list)

    def fold_of(self, n: int) -> NDArray[Any]:
        """Fold number of every unit."""
        folds = np.full(n, -1, dtype=int)
        for fold_idx, val_idx in enumerate(self.val_indices):
            folds[val_idx] = fold_idx
        return folds


def create_folds(
    n: int,
    n_folds: int,
    groups: Optional[NDArray[Any]] = None,
    stratify: Optional[NDArray[Any]] = None,
    random_state: Optional[int] = None,
) -> CrossFitData:
    """Create cross-validation splits.

    Args:
        n: Number of units
        n_folds: Number of folds (V)
        groups: Cluster identifiers; clusters are never split across folds
        stratify: Binary target to stratify on when units are independent
        random_state: Random state for the fold shuffle

    Returns:
        CrossFitData object with splits

    Raises:
        DataValidationError: If there are fewer independent units than folds
    """
    if n_folds < 2:
        raise DataValidationError(f"At least 2 folds are required, got {n_folds}")

    if groups is not None:
        groups = np.asarray(groups)
        unique_groups = np.unique(groups)
        if len(unique_groups) < len(groups):
            return _create_group_folds(groups, unique_groups, n_folds, random_state)

    if n < n_folds:
        raise DataValidationError(
            f"Cannot split {n} observations into {n_folds} folds"
        )

    X_index = np.arange(n)
    splits = None
    if stratify is not None:
        _, class_counts = np.unique(np.asarray(stratify), return_counts=True)
        if len(class_counts) == 2 and class_counts.min() >= n_folds:
            splitter = StratifiedKFold(
                n_splits=n_folds, shuffle=True, random_state=random_state
            )
            splits = list(splitter.split(X_index, stratify))

    if splits is None:
        splitter = KFold(n_splits=n_folds, shuffle=True, random_state=random_state)
        splits = list(splitter.split(X_index))

    return CrossFitData(
        n_folds=n_folds,
        train_indices=[train_idx for train_idx, _ in splits],
        val_indices=[val_idx for _, val_idx in splits],
    )


def _create_group_folds(
    groups: NDArray[Any],
    unique_groups: NDArray[Any],
    n_folds: int,
    random_state: Optional[int],
) -> CrossFitData:
    if len(unique_groups) < n_folds:
        raise DataValidationError(
            f"Cannot split {len(unique_groups)} independent units (ids) into {n_folds} folds"
        )

    rng = np.random.default_rng(random_state)
    shuffled = rng.permutation(unique_groups)
    group_fold = {group: i % n_folds for i, group in enumerate(shuffled)}
    unit_fold = np.array([group_fold[g] for g in groups])

    all_idx = np.arange(len(groups))
    return CrossFitData(
        n_folds=n_folds,
        train_indices=[all_idx[unit_fold != k] for k in range(n_folds)],
        val_indices=[all_idx[unit_fold == k] for k in range(n_folds)],
        grouped=True,
    )


def cross_fit(
    fit_fold: Callable[[NDArray[Any], NDArray[Any]], dict[str, NDArray[Any]]],
    folds: CrossFitData,
    n: int,
    n_jobs: int = 1,
) -> dict[str, NDArray[Any]]:
    """Run a fit/predict routine on every fold and assemble predictions.

    Args:
        fit_fold: Callable receiving (train_idx, val_idx) and returning a
            dictionary of predictions for the validation units
        folds: Fold assignment
        n: Number of units
        n_jobs: Number of parallel jobs (1 runs sequentially)

    Returns:
        Dictionary of out-of-fold predictions, one array of length n per key
    """

    def timed(train_idx: NDArray[Any], val_idx: NDArray[Any]) -> tuple[dict, float]:
        start = time.perf_counter()
        predictions = fit_fold(train_idx, val_idx)
        return predictions, time.perf_counter() - start

    pairs = list(zip(folds.train_indices, folds.val_indices))
    if n_jobs != 1 and len(pairs) > 1:
        fold_results = Parallel(n_jobs=n_jobs, prefer="threads")(
            delayed(timed)(train_idx, val_idx) for train_idx, val_idx in pairs
        )
    else:
        fold_results = [timed(train_idx, val_idx) for train_idx, val_idx in pairs]

    estimates: dict[str, NDArray[Any]] = {}
    folds.fold_timings = []
    for (_, val_idx), (predictions, elapsed) in zip(pairs, fold_results):
        folds.fold_timings.append(elapsed)
        for param_name, values in predictions.items():
            if param_name not in estimates:
                estimates[param_name] = np.full(n, np.nan)
            estimates[param_name][val_idx] = values

    for param_name, values in estimates.items():
        if np.any(np.isnan(values)):
            raise ValueError(f"Some samples missing cross-fitted estimates for {param_name}")

    return estimates
