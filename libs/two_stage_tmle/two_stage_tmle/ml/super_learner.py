"""Super Learner ensemble for nuisance regressions.

The Super Learner estimates the cross-validated risk of every candidate in a
library and either selects the best single candidate (discrete Super Learner)
or combines all candidates with non-negative weights summing to one
(ensemble Super Learner, weights from non-negative least squares on the
cross-validated predictions).
"""
# ruff: noqa: N803

from __future__ import annotations

import logging
import warnings
from typing import Any, Optional

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from pydantic import BaseModel, Field
from scipy.optimize import nnls
from sklearn.base import clone

from .cross_fitting import CrossFitData, create_folds
from .learners import fit_learner, make_learner, predict_learner, resolve_learner_name

__all__ = ["SuperLearner", "SuperLearnerConfig"]

logger = logging.getLogger(__name__)


class SuperLearnerConfig(BaseModel):
    """Configuration for a Super Learner fit.

    Attributes:
        cv_folds: Number of cross-validation folds (V)
        discrete: Select the single best learner instead of a weighted ensemble
        random_state: Random state for folds and stochastic learners
    """

    cv_folds: int = Field(default=10, ge=2, description="Number of CV folds")
    discrete: bool = Field(default=False, description="Use discrete selection")
    random_state: Optional[int] = Field(default=None, description="Random seed")


class SuperLearner:
    """Cross-validated ensemble of candidate regressions.

    Attributes:
        base_learners: Library of candidate learners (names or estimators)
        task_type: 'regression', 'classification' or 'auto'
        config: SuperLearnerConfig
    """

    def __init__(
        self,
        base_learners: list[str] | dict[str, Any] | None = None,
        task_type: str = "auto",
        config: Optional[SuperLearnerConfig] = None,
    ) -> None:
        if task_type not in {"auto", "regression", "classification"}:
            raise ValueError(
                "task_type must be one of 'auto', 'regression', 'classification'"
            )
        if base_learners is None:
            base_learners = ["glm", "glmnet", "bart"]
        if isinstance(base_learners, dict):
            self.base_learners: dict[str, Any] = dict(base_learners)
        else:
            # Validate names eagerly so a bad library fails before any fitting
            self.base_learners = {
                name: resolve_learner_name(name) for name in base_learners
            }
        if not self.base_learners:
            raise ValueError("Super Learner library cannot be empty")

        self.task_type = task_type
        self.config = config or SuperLearnerConfig()

        self.is_fitted = False
        self.fitted_learners_: dict[str, Any] = {}
        self.cv_predictions_: Optional[pd.DataFrame] = None
        self.cv_risk_: Optional[pd.Series] = None
        self.coef_: Optional[pd.Series] = None
        self.failed_learners_: list[str] = []
        self.folds_: Optional[CrossFitData] = None
        self._cv_target: Optional[NDArray[Any]] = None
        self._cv_weights: Optional[NDArray[Any]] = None

    def _template(self, name: str) -> Any:
        spec = self.base_learners[name]
        if isinstance(spec, str):
            return make_learner(spec, self.task_type, self.config.random_state)
        return clone(spec)

    def _detect_task_type(self, y: NDArray[Any]) -> str:
        if set(np.unique(y)).issubset({0.0, 1.0}):
            return "classification"
        return "regression"

    def fit(
        self,
        X: pd.DataFrame | NDArray[Any],
        y: pd.Series | NDArray[Any],
        sample_weight: Optional[NDArray[Any]] = None,
        groups: Optional[NDArray[Any]] = None,
    ) -> SuperLearner:
        """Fit the library by V-fold cross-validation and combine the learners.

        Args:
            X: Predictors
            y: Target
            sample_weight: Observation weights used for fitting and risk
            groups: Cluster identifiers kept together within folds

        Returns:
            self
        """
        X_arr = np.asarray(X, dtype=float)
        y_arr = np.asarray(y, dtype=float)
        n = len(y_arr)
        weights = np.ones(n) if sample_weight is None else np.asarray(sample_weight, dtype=float)

        if self.task_type == "auto":
            self.task_type = self._detect_task_type(y_arr)

        self.folds_ = create_folds(
            n,
            self.config.cv_folds,
            groups=groups,
            stratify=y_arr if self.task_type == "classification" else None,
            random_state=self.config.random_state,
        )

        names = list(self.base_learners)
        Z = np.full((n, len(names)), np.nan)
        self.failed_learners_ = []
        for j, name in enumerate(names):
            try:
                for train_idx, val_idx in zip(
                    self.folds_.train_indices, self.folds_.val_indices
                ):
                    model = fit_learner(
                        self._template(name),
                        X_arr[train_idx],
                        y_arr[train_idx],
                        weights[train_idx],
                    )
                    Z[val_idx, j] = predict_learner(model, X_arr[val_idx], self.task_type)
            except Exception as e:
                warnings.warn(
                    f"Learner '{name}' failed during cross-validation ({e}); "
                    "it is removed from the Super Learner library"
                )
                self.failed_learners_.append(name)

        active = [j for j, name in enumerate(names) if name not in self.failed_learners_]
        if not active:
            raise ValueError("All learners in the Super Learner library failed")

        residuals = Z[:, active] - y_arr[:, None]
        risks = np.average(residuals**2, axis=0, weights=weights)
        self.cv_risk_ = pd.Series(
            np.full(len(names), np.nan), index=names, name="cv_risk"
        )
        self.cv_risk_.iloc[active] = risks
        self.cv_predictions_ = pd.DataFrame(Z, columns=names)
        self._cv_target = y_arr
        self._cv_weights = weights

        coef = np.zeros(len(names))
        coef[active] = self._combine(Z[:, active], y_arr, weights, risks)
        self.coef_ = pd.Series(coef, index=names, name="coef")

        self.fitted_learners_ = {}
        for j in active:
            if coef[j] > 0:
                name = names[j]
                self.fitted_learners_[name] = fit_learner(
                    self._template(name), X_arr, y_arr, weights
                )

        self.is_fitted = True
        logger.debug(
            "Super Learner fitted (%s, %s): coefficients %s",
            self.task_type,
            "discrete" if self.config.discrete else "ensemble",
            self.coef_.round(4).to_dict(),
        )
        return self

    def _combine(
        self,
        Z: NDArray[Any],
        y: NDArray[Any],
        weights: NDArray[Any],
        risks: NDArray[Any],
    ) -> NDArray[Any]:
        best = np.zeros(Z.shape[1])
        best[int(np.argmin(risks))] = 1.0
        if self.config.discrete or Z.shape[1] == 1:
            return best

        root_w = np.sqrt(weights)
        coef, _ = nnls(Z * root_w[:, None], y * root_w)
        if coef.sum() <= 0:
            return best
        return coef / coef.sum()

    def predict_response(self, X: pd.DataFrame | NDArray[Any]) -> NDArray[Any]:
        """Ensemble prediction of E[y|X] (a probability for classification)."""
        if not self.is_fitted or self.coef_ is None:
            raise ValueError("Super Learner must be fitted before prediction")
        X_arr = np.asarray(X, dtype=float)
        prediction = np.zeros(X_arr.shape[0])
        for name, model in self.fitted_learners_.items():
            prediction += self.coef_[name] * predict_learner(model, X_arr, self.task_type)
        return prediction

    def predict(self, X: pd.DataFrame | NDArray[Any]) -> NDArray[Any]:
        """Predict outcomes, or class labels for classification."""
        prediction = self.predict_response(X)
        if self.task_type == "classification":
            return (prediction >= 0.5).astype(int)
        return prediction

    def predict_proba(self, X: pd.DataFrame | NDArray[Any]) -> NDArray[Any]:
        """Class probabilities for classification, shape (n, 2)."""
        if self.task_type != "classification":
            raise ValueError("predict_proba is only available for classification")
        p = np.clip(self.predict_response(X), 0.0, 1.0)
        return np.column_stack([1 - p, p])

    def get_learner_performance(self) -> dict[str, float]:
        """Cross-validated risk (mean squared error) of every learner."""
        if self.cv_risk_ is None:
            raise ValueError("Super Learner must be fitted first")
        return {name: float(risk) for name, risk in self.cv_risk_.items()}

    def get_ensemble_performance(self) -> dict[str, float]:
        """Risk of the combined cross-validated predictions."""
        if self.cv_predictions_ is None or self.coef_ is None:
            raise ValueError("Super Learner must be fitted first")
        Z = self.cv_predictions_.fillna(0.0).to_numpy()
        combined = Z @ self.coef_.to_numpy()
        mse = float(
            np.average((combined - self._cv_target) ** 2, weights=self._cv_weights)
        )
        return {"mse": mse, "rmse": float(np.sqrt(mse))}

    def get_learner_weights(self) -> dict[str, float]:
        """Weight of each learner (1 for the selected learner when discrete)."""
        if self.coef_ is None:
            raise ValueError("Super Learner must be fitted first")
        return {name: float(weight) for name, weight in self.coef_.items()}
