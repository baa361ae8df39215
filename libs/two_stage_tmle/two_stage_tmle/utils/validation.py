"""Validation utilities shared by the pipeline and the estimators."""

from typing import Any, Optional

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from ..core.base import DataValidationError


def as_vector(values: Any, name: str, dtype: Any = float) -> NDArray[Any]:
    """Convert a sequence, Series or single-column frame to a 1-D array.

    Raises:
        DataValidationError: If the values are not one-dimensional
    """
    if isinstance(values, pd.DataFrame):
        if values.shape[1] != 1:
            raise DataValidationError(f"{name} must be a vector, got {values.shape[1]} columns")
        values = values.iloc[:, 0]
    array = np.asarray(values, dtype=dtype)
    if array.ndim == 2 and array.shape[1] == 1:
        array = array[:, 0]
    if array.ndim != 1:
        raise DataValidationError(f"{name} must be a vector, got shape {array.shape}")
    return array


def validate_binary(values: Any, name: str) -> NDArray[Any]:
    """Validate and convert an indicator to an integer 0/1 array.

    Raises:
        DataValidationError: If the indicator has missing or non 0/1 values
    """
    array = as_vector(values, name)
    if np.isnan(array).any():
        raise DataValidationError(f"{name} cannot contain missing values")
    unique_vals = set(np.unique(array))
    if not unique_vals.issubset({0.0, 1.0}):
        raise DataValidationError(
            f"{name} must be binary (0/1), got values {sorted(unique_vals)[:5]}"
        )
    return array.astype(int)


def validate_lengths(n: int, **arrays: Optional[Any]) -> None:
    """Check that every supplied per-unit input has n entries.

    Raises:
        DataValidationError: If a length differs from n
    """
    for name, values in arrays.items():
        if values is None:
            continue
        if len(values) != n:
            raise DataValidationError(
                f"{name} must have the same number of observations as Y. "
                f"Got {len(values)} and {n} respectively."
            )


def validate_probabilities(values: Any, name: str, n: int) -> NDArray[Any]:
    """Validate user-supplied probabilities.

    Raises:
        DataValidationError: If values are missing, of wrong length or outside [0, 1]
    """
    array = as_vector(values, name)
    validate_lengths(n, **{name: array})
    if np.isnan(array).any():
        raise DataValidationError(f"{name} cannot contain missing values")
    if np.any(array < 0) or np.any(array > 1):
        raise DataValidationError(f"{name} must lie in [0, 1]")
    return array
