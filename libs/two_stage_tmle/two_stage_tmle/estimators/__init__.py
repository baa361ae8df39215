"""Targeted estimators and their nuisance regressions."""

from .nuisance import GEstimate, estimate_g
from .tmle import TMLEEstimator, TMLEResult, tmle

__all__ = [
    "GEstimate",
    "TMLEEstimator",
    "TMLEResult",
    "estimate_g",
    "tmle",
]
