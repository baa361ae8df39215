"""Base classes and interfaces for the two-stage TMLE estimators.

This module provides the data models, the standardized effect result and the
exception taxonomy shared by the nuisance estimators, the TMLE estimator and
the two-stage pipeline.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from pydantic import BaseModel, Field, field_validator


class TreatmentData(BaseModel):
    """Data model for a binary point treatment."""

    values: pd.Series | NDArray[Any] = Field(
        ..., description="Treatment assignment values"
    )
    name: str = Field(default="A", description="Name of the treatment variable")
    treatment_type: str = Field(
        default="binary",
        description="Type of treatment, only 'binary' is supported",
    )

    model_config = {"arbitrary_types_allowed": True}

    @field_validator("treatment_type")
    @classmethod
    def validate_treatment_type(cls, v: str) -> str:
        """Validate treatment type is one of allowed values."""
        if v != "binary":
            raise ValueError("treatment_type must be 'binary'")
        return v

    @field_validator("values")
    @classmethod
    def validate_values(cls, v: pd.Series | NDArray[Any]) -> pd.Series | NDArray[Any]:
        """Validate treatment values are not empty."""
        if len(v) == 0:
            raise ValueError("Treatment values cannot be empty")
        return v


class OutcomeData(BaseModel):
    """Data model for the outcome variable.

    Outcome values may be missing (NaN) for units whose missing-outcome
    indicator is zero.
    """

    values: pd.Series | NDArray[Any] = Field(..., description="Outcome values")
    name: str = Field(default="Y", description="Name of the outcome variable")
    outcome_type: str = Field(
        default="continuous",
        description="Type of outcome: 'continuous' or 'binary'",
    )

    model_config = {"arbitrary_types_allowed": True}

    @field_validator("outcome_type")
    @classmethod
    def validate_outcome_type(cls, v: str) -> str:
        """Validate outcome type is one of allowed values."""
        allowed_types = {"continuous", "binary"}
        if v not in allowed_types:
            raise ValueError(f"outcome_type must be one of {allowed_types}")
        return v

    @field_validator("values")
    @classmethod
    def validate_values(cls, v: pd.Series | NDArray[Any]) -> pd.Series | NDArray[Any]:
        """Validate outcome values are not empty."""
        if len(v) == 0:
            raise ValueError("Outcome values cannot be empty")
        return v


class CovariateData(BaseModel):
    """Data model for covariates used for adjustment."""

    values: pd.DataFrame = Field(..., description="Covariate values")

    model_config = {"arbitrary_types_allowed": True}

    @field_validator("values")
    @classmethod
    def validate_values(cls, v: pd.DataFrame) -> pd.DataFrame:
        """Validate covariate values are not empty and have unique names."""
        if len(v) == 0:
            raise ValueError("Covariate values cannot be empty")
        if v.columns.duplicated().any():
            duplicated = list(v.columns[v.columns.duplicated()])
            raise ValueError(f"Covariate names must be unique, duplicated: {duplicated}")
        return v

    @property
    def names(self) -> list[str]:
        return [str(c) for c in self.values.columns]


@dataclass(frozen=True)
class ParameterEstimate:
    """A ratio parameter (relative risk or odds ratio) with its interval."""

    estimate: float
    ci_lower: float
    ci_upper: float
    p_value: float
    log_se: float


@dataclass
class CausalEffect:
    """Data class representing a targeted effect estimate.

    Returned by the TMLE estimator for the marginal effect and, when a
    mediator is supplied, for each controlled direct effect.
    """

    # Core estimates
    ate: float  # Average Treatment Effect
    ate_se: float | None = None  # Standard error of ATE
    ate_ci_lower: float | None = None  # Lower confidence interval
    ate_ci_upper: float | None = None  # Upper confidence interval
    ate_p_value: float | None = None
    confidence_level: float = 0.95  # Confidence level for intervals

    # Potential outcomes means
    potential_outcome_treated: float | None = None  # E[Y(1)]
    potential_outcome_control: float | None = None  # E[Y(0)]
    potential_outcome_treated_se: float | None = None
    potential_outcome_control_se: float | None = None

    # Binary outcomes only
    relative_risk: ParameterEstimate | None = None
    odds_ratio: ParameterEstimate | None = None

    # Method-specific information
    method: str = "TMLE"
    n_observations: int | None = None
    n_treated: int | None = None
    n_control: int | None = None
    diagnostics: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        """Validate the causal effect estimates after initialization."""
        if self.ate_ci_lower is not None and self.ate_ci_upper is not None:
            if self.ate_ci_lower > self.ate_ci_upper:
                raise ValueError("Lower confidence bound cannot exceed upper bound")

        if self.confidence_level <= 0 or self.confidence_level >= 1:
            raise ValueError("Confidence level must be between 0 and 1")

    @property
    def is_significant(self) -> bool:
        """Check whether the confidence interval excludes zero."""
        if self.ate_ci_lower is None or self.ate_ci_upper is None:
            return False
        return self.ate_ci_lower > 0 or self.ate_ci_upper < 0

    @property
    def confidence_interval(self) -> tuple[float, float] | None:
        """Get confidence interval as a tuple.

        Returns:
            Tuple of (lower_bound, upper_bound) or None if not available
        """
        if self.ate_ci_lower is not None and self.ate_ci_upper is not None:
            return (self.ate_ci_lower, self.ate_ci_upper)
        return None

    def summary_lines(self) -> list[str]:
        level = int(round(self.confidence_level * 100))
        lines = [
            f"E[Y(1)]: {self.potential_outcome_treated:.4f}",
            f"E[Y(0)]: {self.potential_outcome_control:.4f}",
            f"ATE: {self.ate:.4f}",
        ]
        if self.ate_se is not None:
            lines.append(f"  SE: {self.ate_se:.4f}, p-value: {self.ate_p_value:.4g}")
            lines.append(
                f"  {level}% CI: [{self.ate_ci_lower:.4f}, {self.ate_ci_upper:.4f}]"
            )
        for label, ratio in (
            ("Relative risk", self.relative_risk),
            ("Odds ratio", self.odds_ratio),
        ):
            if ratio is not None:
                lines.append(
                    f"{label}: {ratio.estimate:.4f} "
                    f"({level}% CI: [{ratio.ci_lower:.4f}, {ratio.ci_upper:.4f}], "
                    f"p-value: {ratio.p_value:.4g})"
                )
        return lines


class TwoStageTMLEError(Exception):
    """Base exception class for two-stage TMLE errors."""

    pass


class ConfigurationError(TwoStageTMLEError):
    """Raised when estimation options are invalid."""

    pass


class DataValidationError(TwoStageTMLEError):
    """Raised when input data fails validation."""

    pass


class EstimationError(TwoStageTMLEError):
    """Raised when estimation process fails."""

    pass


class BaseEstimator(abc.ABC):
    """Abstract base class for the targeted estimators.

    Attributes:
        is_fitted: Whether the estimator has been fitted to data
        treatment_data: The treatment assignment data
        outcome_data: The outcome variable data
        covariate_data: The covariate data
    """

    def __init__(
        self,
        random_state: int | None = None,
        verbose: bool = False,
    ) -> None:
        """Initialize the base estimator.

        Args:
            random_state: Random seed for fold assignment and learners
            verbose: Whether to log progress at INFO level
        """
        self.random_state = random_state
        self.verbose = verbose
        self.is_fitted = False

        self.treatment_data: TreatmentData | None = None
        self.outcome_data: OutcomeData | None = None
        self.covariate_data: CovariateData | None = None

    @abc.abstractmethod
    def _fit_implementation(
        self,
        treatment: TreatmentData,
        outcome: OutcomeData,
        covariates: CovariateData,
        **design: Any,
    ) -> None:
        """Implement the specific fitting logic for this estimator.

        Args:
            treatment: Treatment assignment data
            outcome: Outcome variable data
            covariates: Covariate data for adjustment
            **design: Estimator specific per-unit design vectors
        """
        pass

    def fit(
        self,
        treatment: TreatmentData,
        outcome: OutcomeData,
        covariates: CovariateData,
        **design: Any,
    ) -> BaseEstimator:
        """Fit the estimator to data.

        Returns:
            self: The fitted estimator instance

        Raises:
            DataValidationError: If input data fails validation
            EstimationError: If fitting process fails
        """
        self._validate_inputs(treatment, outcome, covariates)

        self.treatment_data = treatment
        self.outcome_data = outcome
        self.covariate_data = covariates
        self.is_fitted = False

        try:
            self._fit_implementation(treatment, outcome, covariates, **design)
            self.is_fitted = True
        except (DataValidationError, EstimationError):
            raise
        except Exception as e:
            raise EstimationError(f"Failed to fit estimator: {str(e)}") from e

        return self

    def _validate_inputs(
        self,
        treatment: TreatmentData,
        outcome: OutcomeData,
        covariates: CovariateData,
    ) -> None:
        """Validate input data shared by all estimators.

        Raises:
            DataValidationError: If any validation checks fail
        """
        if len(treatment.values) != len(outcome.values):
            raise DataValidationError(
                f"Treatment ({len(treatment.values)}) and outcome ({len(outcome.values)}) "
                "must have the same number of observations"
            )

        if len(covariates.values) != len(treatment.values):
            raise DataValidationError(
                f"Covariates ({len(covariates.values)}) must have the same number "
                f"of observations as treatment ({len(treatment.values)})"
            )

        treatment_values = np.asarray(treatment.values, dtype=float)
        if np.isnan(treatment_values).any():
            raise DataValidationError("Treatment values cannot contain missing data")

        if not set(np.unique(treatment_values)).issubset({0.0, 1.0}):
            raise DataValidationError("Binary treatment must be coded 0/1")

        if len(np.unique(treatment_values)) < 2:
            raise DataValidationError(
                "Binary treatment must have both treated and control units"
            )

        if len(treatment_values) < 10:
            raise DataValidationError("Minimum sample size of 10 observations required")

        if covariates.values.isna().any().any():
            raise DataValidationError("Covariates cannot contain missing data")

    def summary(self) -> str:
        """Provide a summary of the fitted estimator.

        Returns:
            String summary of estimator status
        """
        if not self.is_fitted:
            return f"{self.__class__.__name__} (not fitted)"

        assert self.treatment_data is not None
        values = np.asarray(self.treatment_data.values)
        return "\n".join(
            [
                f"{self.__class__.__name__} Summary",
                "=" * 40,
                f"Observations: {len(values)}",
                f"Treated units: {int(np.sum(values == 1))}",
                f"Control units: {int(np.sum(values == 0))}",
            ]
        )
