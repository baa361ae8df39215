"""Normalization and validation of the two-stage observation set."""
# ruff: noqa: N803, N806

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from ..core.base import DataValidationError
from ..utils.validation import as_vector, validate_binary, validate_lengths

__all__ = ["TwoStageData", "normalize_inputs", "normalize_covariates"]


@dataclass(frozen=True)
class TwoStageData:
    """Validated two-stage observation set.

    Attributes:
        Y: Outcome (may contain NaN where Delta is 0)
        A: Binary treatment
        W: Stage-1 covariates measured on every unit
        Delta_W: Indicator of selection into the stage-2 subsample
        W_stage2: Stage-2 covariates, one row per unit with Delta_W = 1
        Z: Optional binary mediator
        Delta: Missing-outcome indicator (1 = observed)
        id: Independent-unit identifiers
    """

    Y: NDArray[Any]
    A: NDArray[Any]
    W: pd.DataFrame
    Delta_W: NDArray[Any]
    W_stage2: pd.DataFrame
    Z: Optional[NDArray[Any]]
    Delta: NDArray[Any]
    id: NDArray[Any]

    @property
    def n(self) -> int:
        return len(self.Y)

    @property
    def n_sampled(self) -> int:
        return int(self.Delta_W.sum())


def _is_unnamed(columns: pd.Index) -> bool:
    return isinstance(columns, pd.RangeIndex) or all(
        isinstance(c, (int, np.integer)) for c in columns
    )


def normalize_covariates(values: Any, prefix: str, single_name: str) -> pd.DataFrame:
    """Convert covariates to a DataFrame with string column names.

    A vector becomes a single column named ``single_name``; an unnamed matrix
    gets columns ``prefix1..prefixk``. Named frames and Series keep their names.
    """
    if isinstance(values, pd.DataFrame):
        frame = values.reset_index(drop=True)
        if _is_unnamed(frame.columns):
            if frame.shape[1] == 1:
                frame.columns = [single_name]
            else:
                frame.columns = [f"{prefix}{i + 1}" for i in range(frame.shape[1])]
        return frame.rename(columns=str)

    if isinstance(values, pd.Series):
        name = single_name if values.name is None else str(values.name)
        return values.reset_index(drop=True).to_frame(name=name)

    array = np.asarray(values)
    if array.ndim == 1:
        return pd.DataFrame({single_name: array})
    if array.ndim != 2:
        raise DataValidationError(f"Covariates must be 1- or 2-dimensional, got shape {array.shape}")
    if array.shape[1] == 1:
        return pd.DataFrame(array, columns=[single_name])
    return pd.DataFrame(array, columns=[f"{prefix}{i + 1}" for i in range(array.shape[1])])


def normalize_inputs(
    Y: Any,
    A: Any,
    W: Any,
    Delta_W: Any,
    W_stage2: Any,
    Z: Optional[Any] = None,
    Delta: Optional[Any] = None,
    id: Optional[Any] = None,  # noqa: A002
) -> TwoStageData:
    """Bring the raw inputs into a validated TwoStageData container.

    Raises:
        DataValidationError: On length mismatches, non-binary indicators or a
            stage-2 covariate matrix whose row count differs from sum(Delta_W)
    """
    Y_arr = as_vector(Y, "Y")
    n = len(Y_arr)

    # A 1-D W is named W1 and a 1-D W_stage2 W.stage2
    W_frame = normalize_covariates(W, prefix="W", single_name="W1")
    W2_frame = normalize_covariates(W_stage2, prefix="W.stage2_", single_name="W.stage2")

    validate_lengths(n, A=as_vector(A, "A"), W=W_frame, Delta_W=as_vector(Delta_W, "Delta_W"))
    A_arr = validate_binary(A, "A")
    Delta_W_arr = validate_binary(Delta_W, "Delta_W")

    if len(W2_frame) != Delta_W_arr.sum():
        raise DataValidationError(
            f"W_stage2 must have one row per unit with Delta_W = 1: "
            f"got {len(W2_frame)} rows and sum(Delta_W) = {int(Delta_W_arr.sum())}"
        )
    if Delta_W_arr.sum() == 0:
        raise DataValidationError("No units were sampled into stage 2 (sum(Delta_W) = 0)")

    Z_arr = None if Z is None else validate_binary(Z, "Z")
    Delta_arr = np.ones(n, dtype=int) if Delta is None else validate_binary(Delta, "Delta")
    id_arr = np.arange(1, n + 1) if id is None else np.asarray(id)
    validate_lengths(n, Z=Z_arr, Delta=Delta_arr, id=id_arr)

    if W_frame.isna().any().any():
        raise DataValidationError("W cannot contain missing values")

    return TwoStageData(
        Y=Y_arr,
        A=A_arr,
        W=W_frame,
        Delta_W=Delta_W_arr,
        W_stage2=W2_frame,
        Z=Z_arr,
        Delta=Delta_arr,
        id=id_arr,
    )
