"""Registry of candidate learners for Super Learner libraries.

Each named learner maps to a regression and a classification factory, so a
single library name list can be used for continuous outcomes as well as for
the binary treatment, missingness and sampling models.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import numpy as np
from numpy.typing import NDArray
from sklearn.base import BaseEstimator as SklearnBaseEstimator
from sklearn.dummy import DummyClassifier, DummyRegressor
from sklearn.ensemble import (
    GradientBoostingClassifier,
    GradientBoostingRegressor,
    RandomForestClassifier,
    RandomForestRegressor,
)
from sklearn.linear_model import (
    LassoCV,
    LinearRegression,
    LogisticRegression,
    LogisticRegressionCV,
    Ridge,
)
from sklearn.pipeline import Pipeline, make_pipeline
from sklearn.preprocessing import SplineTransformer, StandardScaler

__all__ = [
    "LEARNER_REGISTRY",
    "available_learners",
    "fit_learner",
    "make_learner",
    "predict_learner",
    "resolve_learner_name",
]

LearnerFactory = Callable[[int | None], SklearnBaseEstimator]

# Names used by the R SuperLearner/tmle packages mapped to registry names
_ALIASES = {
    "SL.mean": "mean",
    "SL.glm": "glm",
    "SL.gam": "gam",
    "SL.glmnet": "glmnet",
    "SL.randomForest": "random_forest",
    "SL.gbm": "bart",
    "SL.bart": "bart",
    "SL.dbarts": "bart",
    "tmle.SL.dbarts2": "bart",
    "tmle.SL.dbarts.k.5": "bart",
    "linear_regression": "glm",
    "logistic_regression": "glm",
    "lasso": "glmnet",
    "lasso_logistic": "glmnet",
}


def _gam_regressor(random_state: int | None) -> SklearnBaseEstimator:
    return make_pipeline(
        SplineTransformer(n_knots=4, degree=3, extrapolation="linear"),
        Ridge(alpha=1e-3),
    )


def _gam_classifier(random_state: int | None) -> SklearnBaseEstimator:
    return make_pipeline(
        SplineTransformer(n_knots=4, degree=3, extrapolation="linear"),
        LogisticRegression(C=1e3, max_iter=2000),
    )


def _glmnet_regressor(random_state: int | None) -> SklearnBaseEstimator:
    return make_pipeline(
        StandardScaler(), LassoCV(cv=5, random_state=random_state, max_iter=5000)
    )


def _glmnet_classifier(random_state: int | None) -> SklearnBaseEstimator:
    return make_pipeline(
        StandardScaler(),
        LogisticRegressionCV(
            Cs=10,
            cv=5,
            penalty="l1",
            solver="liblinear",
            random_state=random_state,
            max_iter=2000,
        ),
    )


# name -> (regression factory, classification factory)
LEARNER_REGISTRY: dict[str, tuple[LearnerFactory, LearnerFactory]] = {
    "mean": (
        lambda rs: DummyRegressor(strategy="mean"),
        lambda rs: DummyClassifier(strategy="prior"),
    ),
    "glm": (
        lambda rs: LinearRegression(),
        lambda rs: LogisticRegression(penalty=None, max_iter=2000),
    ),
    "gam": (_gam_regressor, _gam_classifier),
    "glmnet": (_glmnet_regressor, _glmnet_classifier),
    # Tree ensemble standing in for BART
    "bart": (
        lambda rs: GradientBoostingRegressor(
            n_estimators=100, max_depth=2, learning_rate=0.1, random_state=rs
        ),
        lambda rs: GradientBoostingClassifier(
            n_estimators=100, max_depth=2, learning_rate=0.1, random_state=rs
        ),
    ),
    "random_forest": (
        lambda rs: RandomForestRegressor(
            n_estimators=200, min_samples_leaf=5, random_state=rs
        ),
        lambda rs: RandomForestClassifier(
            n_estimators=200, min_samples_leaf=5, random_state=rs
        ),
    ),
}


def available_learners() -> list[str]:
    """Names accepted in a learner library, aliases included."""
    return sorted(set(LEARNER_REGISTRY) | set(_ALIASES))


def resolve_learner_name(name: str) -> str:
    """Map a library entry (registry name or R alias) to its registry name.

    Raises:
        ValueError: If the learner is not registered
    """
    resolved = _ALIASES.get(name, name)
    if resolved not in LEARNER_REGISTRY:
        raise ValueError(
            f"Unknown learner '{name}'. Available learners: {available_learners()}"
        )
    return resolved


def make_learner(
    name: str, task_type: str, random_state: int | None = None
) -> SklearnBaseEstimator:
    """Instantiate a registered learner for 'regression' or 'classification'."""
    regressor, classifier = LEARNER_REGISTRY[resolve_learner_name(name)]
    if task_type == "classification":
        return classifier(random_state)
    return regressor(random_state)


def fit_learner(
    model: Any,
    X: NDArray[Any],
    y: NDArray[Any],
    sample_weight: NDArray[Any] | None = None,
) -> Any:
    """Fit a learner, routing sample weights to the final step of pipelines."""
    if sample_weight is None:
        return model.fit(X, y)
    if isinstance(model, Pipeline):
        final_step = model.steps[-1][0]
        return model.fit(X, y, **{f"{final_step}__sample_weight": sample_weight})
    return model.fit(X, y, sample_weight=sample_weight)


def predict_learner(model: Any, X: NDArray[Any], task_type: str) -> NDArray[Any]:
    """Predict the conditional mean: P(y=1|X) for classifiers, E[y|X] otherwise."""
    if task_type == "classification":
        proba = model.predict_proba(X)
        classes = list(model.classes_)
        if 1 in classes:
            return np.asarray(proba[:, classes.index(1)], dtype=float)
        # Training fold held a single class
        return np.full(X.shape[0], float(classes[0] == 1))
    return np.asarray(model.predict(X), dtype=float)
