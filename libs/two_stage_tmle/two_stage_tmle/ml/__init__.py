"""Machine learning infrastructure for the nuisance regressions.

This module provides the Super Learner ensemble, the learner registry,
cross-fitting utilities and formula-driven parametric GLMs.
"""

from .cross_fitting import CrossFitData, create_folds, cross_fit
from .formula import FormulaGLM, fit_formula_glm
from .learners import available_learners, resolve_learner_name
from .super_learner import SuperLearner, SuperLearnerConfig

__all__ = [
    "CrossFitData",
    "FormulaGLM",
    "SuperLearner",
    "SuperLearnerConfig",
    "available_learners",
    "create_folds",
    "cross_fit",
    "fit_formula_glm",
    "resolve_learner_name",
]
