"""Targeted maximum likelihood estimation for two-stage sampling designs.

Stage-1 data (Y, A, W) are available on every unit, stage-2 covariates only
on a subsample. Effects are estimated by TMLE on the subsample, weighted by
the inverse of the (estimated) stage-2 sampling probabilities.
"""

__version__ = "0.1.0"

from .core import *
from .estimators import TMLEEstimator, TMLEResult, estimate_g, tmle
from .ml import SuperLearner, SuperLearnerConfig
from .two_stage import (
    SamplingModelResult,
    TwoStageTMLE,
    TwoStageTMLEResult,
    two_stage_tmle,
)
from .utils import setup_logging

__all__ = [
    "__version__",
    "BaseEstimator",
    "CausalEffect",
    "ConfigurationError",
    "CovariateData",
    "DataValidationError",
    "EstimationError",
    "LibraryConfig",
    "OutcomeData",
    "ParameterEstimate",
    "SamplingModelResult",
    "SuperLearner",
    "SuperLearnerConfig",
    "TMLEEstimator",
    "TMLEResult",
    "TreatmentData",
    "TwoStageTMLE",
    "TwoStageTMLEConfig",
    "TwoStageTMLEError",
    "TwoStageTMLEResult",
    "estimate_g",
    "setup_logging",
    "tmle",
    "two_stage_tmle",
]
