"""Core data models, configuration and errors."""

from .base import (
    BaseEstimator,
    CausalEffect,
    ConfigurationError,
    CovariateData,
    DataValidationError,
    EstimationError,
    OutcomeData,
    ParameterEstimate,
    TreatmentData,
    TwoStageTMLEError,
)
from .config import LibraryConfig, TwoStageTMLEConfig

__all__ = [
    "BaseEstimator",
    "CausalEffect",
    "ConfigurationError",
    "CovariateData",
    "DataValidationError",
    "EstimationError",
    "LibraryConfig",
    "OutcomeData",
    "ParameterEstimate",
    "TreatmentData",
    "TwoStageTMLEConfig",
    "TwoStageTMLEError",
]
