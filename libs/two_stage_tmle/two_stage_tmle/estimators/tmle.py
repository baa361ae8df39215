"""Targeted Maximum Likelihood Estimation (TMLE) for a binary point treatment.

TMLE is a doubly robust, semi-parametric estimation method that combines
machine learning for nuisance parameter estimation with a targeting step that
removes the plug-in bias for the parameter of interest.

The estimator supports:
- Cross-validated Super Learner (or formula GLM) initial outcome regression
- Observation weights, e.g. inverse probability of censoring weights
- Outcomes missing at random given treatment and covariates (``Delta``)
- Dependent units through a cluster identifier (``id``)
- A binary mediator, giving controlled direct effects at each mediator level
- Relative risk and odds ratio for binary outcomes

Continuous outcomes are scaled to [0, 1] and targeted on the logistic scale,
which keeps the targeted predictions inside the observed outcome range.
"""
# ruff: noqa: N803, N806

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np
import pandas as pd
import statsmodels.api as sm
from numpy.typing import NDArray
from scipy.special import expit, logit
from scipy.stats import norm

from ..core.base import (
    BaseEstimator,
    CausalEffect,
    ConfigurationError,
    CovariateData,
    DataValidationError,
    EstimationError,
    OutcomeData,
    ParameterEstimate,
    TreatmentData,
)
from ..ml.cross_fitting import create_folds, cross_fit
from ..ml.formula import fit_formula_glm
from ..ml.learners import resolve_learner_name
from ..ml.super_learner import SuperLearner, SuperLearnerConfig
from ..utils.logging import progress_level
from ..utils.validation import as_vector, validate_binary, validate_lengths
from .nuisance import GEstimate, estimate_g

__all__ = [
    "DEFAULT_G_LIBRARY",
    "DEFAULT_Q_LIBRARY",
    "TMLEEstimator",
    "TMLEResult",
    "tmle",
]

logger = logging.getLogger(__name__)

DEFAULT_Q_LIBRARY = ("glm", "glmnet", "bart")
DEFAULT_G_LIBRARY = ("glm", "gam", "bart")

FAMILIES = ("gaussian", "binomial")


@dataclass(frozen=True)
class _Arm:
    """A treatment (and mediator) level at which the outcome is predicted."""

    label: str
    A: int
    Z: Optional[int] = None


@dataclass
class TMLEResult:
    """Result of a TMLE fit.

    Attributes:
        effects: Effect estimates, keyed 'marginal' or by mediator level ('Z=0', 'Z=1')
        Qinit: Initial outcome predictions on the outcome scale
        Qstar: Targeted outcome predictions on the outcome scale
        g: Treatment mechanism P(A=1|W)
        g_Delta: Outcome missingness mechanism P(Delta=1|A,Z,W), if outcomes are missing
        g_Z: Mediator mechanism P(Z=1|A,W), if a mediator is supplied
        epsilon: Fluctuation coefficients, one per clever covariate
        family: Outcome regression family
        Q_type: 'super learner' or 'parametric'
        Q_coef: Super Learner weights (averaged over folds) or GLM coefficients
    """

    effects: dict[str, CausalEffect]
    Qinit: pd.DataFrame
    Qstar: pd.DataFrame
    g: GEstimate
    g_Delta: Optional[GEstimate]
    g_Z: Optional[GEstimate]
    epsilon: pd.Series
    family: str
    Q_type: str
    Q_coef: Optional[pd.Series] = None
    diagnostics: dict[str, Any] = field(default_factory=dict)

    @property
    def effect(self) -> CausalEffect:
        """The marginal effect (unavailable when a mediator was supplied)."""
        if "marginal" not in self.effects:
            raise KeyError(
                f"No marginal effect; controlled direct effects available: {list(self.effects)}"
            )
        return self.effects["marginal"]

    def summary(self) -> str:
        lines = [
            "TMLE Summary",
            "=" * 40,
            f"Outcome family: {self.family}",
            f"Initial outcome regression: {self.Q_type}",
            f"Treatment mechanism: {self.g.type}",
        ]
        if self.g_Delta is not None:
            lines.append(f"Missingness mechanism: {self.g_Delta.type}")
        if self.g_Z is not None:
            lines.append(f"Mediator mechanism: {self.g_Z.type}")
        for key, effect in self.effects.items():
            lines.extend(["", f"Effect ({key}):"])
            lines.extend(f"  {line}" for line in effect.summary_lines())
        return "\n".join(lines)


class TMLEEstimator(BaseEstimator):
    """Targeted Maximum Likelihood Estimation of treatment effects.

    Attributes:
        family: Outcome regression family, 'gaussian' or 'binomial'
        Q_library: Super Learner library for the outcome regression
        g_library: Super Learner library for the treatment mechanism
        Qform: Optional parametric outcome regression formula
        gform: Optional parametric treatment mechanism formula
        cv_Qinit: Cross-validate the initial outcome predictions
        g_bound: Lower bound on the treatment, mediator and missingness probabilities
    """

    def __init__(
        self,
        family: str = "gaussian",
        Q_library: Optional[Sequence[str]] = None,
        g_library: Optional[Sequence[str]] = None,
        g_Delta_library: Optional[Sequence[str]] = None,
        g_Z_library: Optional[Sequence[str]] = None,
        Qform: Optional[str] = None,
        gform: Optional[str] = None,
        g_Delta_form: Optional[str] = None,
        g_Z_form: Optional[str] = None,
        Q_discrete_sl: bool = False,
        g_discrete_sl: bool = False,
        V_Q: int = 10,
        V_g: int = 10,
        cv_Qinit: bool = True,
        g_bound: Optional[float] = None,
        alpha: float = 0.9995,
        confidence_level: float = 0.95,
        n_jobs: int = 1,
        random_state: Optional[int] = None,
        verbose: bool = False,
    ) -> None:
        """Initialize the TMLE estimator.

        Args:
            family: Outcome regression family
            Q_library: Library for the outcome regression
            g_library: Library for the treatment mechanism
            g_Delta_library: Library for the outcome missingness mechanism
            g_Z_library: Library for the mediator mechanism
            Qform: Parametric outcome regression formula, e.g. "Y ~ A + W1"
            gform: Parametric treatment mechanism formula, e.g. "A ~ W1 + W2"
            g_Delta_form: Parametric missingness formula
            g_Z_form: Parametric mediator formula
            Q_discrete_sl: Discrete Super Learner for the outcome regression
            g_discrete_sl: Discrete Super Learner for the probabilities
            V_Q: Cross-validation folds for the outcome regression
            V_g: Cross-validation folds for the probabilities
            cv_Qinit: Cross-validate the initial outcome predictions
            g_bound: Probability lower bound, defaults to 5 / (sqrt(n) * ln(n))
            alpha: Scaled outcome predictions are bounded to [1 - alpha, alpha]
            confidence_level: Confidence level for intervals
            n_jobs: Parallel jobs for the cross-fitted outcome regression
            random_state: Random seed
            verbose: Log progress at INFO level
        """
        super().__init__(random_state=random_state, verbose=verbose)

        if family not in FAMILIES:
            raise ConfigurationError(f"family must be one of {FAMILIES}, got '{family}'")
        if not 0.5 < alpha < 1:
            raise ConfigurationError("alpha must be between 0.5 and 1")
        if g_bound is not None and not 0 < g_bound < 0.5:
            raise ConfigurationError("g_bound must be between 0 and 0.5")
        if min(V_Q, V_g) < 2:
            raise ConfigurationError("V_Q and V_g must be at least 2")

        self.family = family
        self.Q_library = self._validate_library(Q_library or DEFAULT_Q_LIBRARY)
        self.g_library = self._validate_library(g_library or DEFAULT_G_LIBRARY)
        self.g_Delta_library = self._validate_library(g_Delta_library or self.g_library)
        self.g_Z_library = self._validate_library(g_Z_library or self.g_library)
        self.Qform = Qform
        self.gform = gform
        self.g_Delta_form = g_Delta_form
        self.g_Z_form = g_Z_form
        self.Q_discrete_sl = Q_discrete_sl
        self.g_discrete_sl = g_discrete_sl
        self.V_Q = V_Q
        self.V_g = V_g
        self.cv_Qinit = cv_Qinit
        self.g_bound = g_bound
        self.alpha = alpha
        self.confidence_level = confidence_level
        self.n_jobs = n_jobs

        self.result_: Optional[TMLEResult] = None

    @staticmethod
    def _validate_library(library: Sequence[str]) -> list[str]:
        try:
            return [resolve_learner_name(name) for name in library]
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    def _fit_implementation(
        self,
        treatment: TreatmentData,
        outcome: OutcomeData,
        covariates: CovariateData,
        mediator: Optional[Any] = None,
        missing_outcome: Optional[Any] = None,
        obs_weights: Optional[Any] = None,
        id: Optional[Any] = None,  # noqa: A002
    ) -> None:
        """Fit the initial regressions, target them and estimate the effects."""
        level = progress_level(self.verbose)
        W = covariates.values.reset_index(drop=True)
        A = np.asarray(treatment.values, dtype=float)
        Y = as_vector(outcome.values, "Y")
        n = len(A)

        for reserved in ("A", "Z", "Y", "Delta"):
            if reserved in W.columns:
                raise DataValidationError(
                    f"Covariate name '{reserved}' is reserved, rename the column"
                )

        Delta = np.ones(n, dtype=int) if missing_outcome is None else validate_binary(missing_outcome, "Delta")
        Z = None if mediator is None else validate_binary(mediator, "Z")
        weights = np.ones(n) if obs_weights is None else as_vector(obs_weights, "obs_weights")
        ids = np.arange(n) if id is None else np.asarray(id)
        validate_lengths(n, Delta=Delta, Z=Z, obs_weights=weights, id=ids)

        if not np.all(np.isfinite(weights)) or np.any(weights < 0) or weights.sum() <= 0:
            raise DataValidationError(
                "obs_weights must be finite, non-negative and not all zero"
            )

        observed = Delta == 1
        if not observed.any():
            raise DataValidationError("All outcome values are missing")
        if np.isnan(Y[observed]).any():
            raise DataValidationError("Outcome values are missing for units with Delta = 1")
        Y = np.where(observed, Y, 0.0)

        if self.family == "binomial":
            if not set(np.unique(Y[observed])).issubset({0.0, 1.0}):
                raise DataValidationError("Binomial family requires a 0/1 outcome")
            lower, upper = 0.0, 1.0
        else:
            lower, upper = float(Y[observed].min()), float(Y[observed].max())
            if upper <= lower:
                raise EstimationError("Outcome has no variation")
        Y_scaled = np.where(observed, (Y - lower) / (upper - lower), 0.0)

        g_bound = self.g_bound if self.g_bound is not None else 5 / (np.sqrt(n) * np.log(n))
        logger.log(level, "TMLE: n=%d, family=%s, g bound=%.4f", n, self.family, g_bound)

        arms = self._arms(Z is not None)
        design = W.copy()
        design["A"] = A
        if Z is not None:
            design["Z"] = Z
        arm_designs = {arm.label: self._set_arm(design, arm) for arm in arms}

        # Initial outcome regression Q(A, Z, W) on the [0, 1] scale
        Q, Q_type, Q_coef = self._initial_outcome(
            design, arm_designs, Y_scaled, observed, weights, ids
        )
        Q = Q.clip(1 - self.alpha, self.alpha)

        # Treatment mechanism g(1|W)
        g_frame = W.copy()
        g_frame["A"] = A
        g = estimate_g(
            g_frame,
            "A",
            formula=self.gform,
            library=self.g_library,
            id=ids,
            V=self.V_g,
            discrete_sl=self.g_discrete_sl,
            obs_weights=weights,
            message="treatment mechanism",
            random_state=self.random_state,
            verbose=self.verbose,
        )
        g1W = np.clip(g.probabilities, g_bound, 1 - g_bound)

        # Mediator mechanism P(Z=1|A,W)
        g_Z = None
        gZ1 = {}
        if Z is not None:
            z_frame = g_frame.copy()
            z_frame["Z"] = Z
            g_Z = estimate_g(
                z_frame,
                "Z",
                formula=self.g_Z_form,
                library=self.g_Z_library,
                id=ids,
                V=self.V_g,
                discrete_sl=self.g_discrete_sl,
                obs_weights=weights,
                message="mediator mechanism",
                random_state=self.random_state,
                verbose=self.verbose,
            )
            for a in (0, 1):
                a_frame = g_frame.copy()
                a_frame["A"] = float(a)
                gZ1[a] = np.clip(g_Z.predict(a_frame), g_bound, 1 - g_bound)

        # Outcome missingness mechanism P(Delta=1|A,Z,W)
        g_Delta = None
        p_observed = {arm.label: np.ones(n) for arm in arms}
        if not observed.all():
            delta_frame = design.copy()
            delta_frame["Delta"] = Delta
            g_Delta = estimate_g(
                delta_frame,
                "Delta",
                formula=self.g_Delta_form,
                library=self.g_Delta_library,
                id=ids,
                V=self.V_g,
                discrete_sl=self.g_discrete_sl,
                obs_weights=weights,
                message="missingness mechanism",
                random_state=self.random_state,
                verbose=self.verbose,
            )
            for arm in arms:
                p_observed[arm.label] = np.clip(
                    g_Delta.predict(arm_designs[arm.label]), g_bound, 1.0
                )

        # Clever covariates and arm indicators
        H: dict[str, NDArray[Any]] = {}
        indicator: dict[str, NDArray[Any]] = {}
        for arm in arms:
            g_arm = g1W if arm.A == 1 else 1 - g1W
            in_arm = A == arm.A
            if Z is not None:
                g_arm = g_arm * (gZ1[arm.A] if arm.Z == 1 else 1 - gZ1[arm.A])
                in_arm = in_arm & (Z == arm.Z)
            H[arm.label] = 1 / (g_arm * p_observed[arm.label])
            indicator[arm.label] = in_arm.astype(float)

        epsilon = self._fluctuate(Q, H, indicator, Y_scaled, observed, weights)
        logger.log(level, "Fluctuation coefficients: %s", epsilon.round(6).to_dict())

        Qstar = pd.DataFrame(index=Q.index)
        offset_update = np.zeros(n)
        for arm in arms:
            Qstar[arm.label] = expit(logit(Q[arm.label]) + epsilon[arm.label] * H[arm.label])
            offset_update += epsilon[arm.label] * indicator[arm.label] * H[arm.label]
        Qstar.insert(0, "QAW", expit(logit(Q["QAW"]) + offset_update))

        scale = upper - lower
        Q_outcome = Q * scale + lower
        Qstar_outcome = Qstar * scale + lower

        effects = self._estimate_effects(
            arms, Qstar_outcome, H, indicator, Y, Delta, weights, ids, A
        )
        for effect in effects.values():
            effect.diagnostics = {
                **(effect.diagnostics or {}),
                "g_bound": float(g_bound),
                "epsilon": epsilon.to_dict(),
                "n_missing_outcomes": int(np.sum(~observed)),
            }

        self.result_ = TMLEResult(
            effects=effects,
            Qinit=Q_outcome,
            Qstar=Qstar_outcome,
            g=g,
            g_Delta=g_Delta,
            g_Z=g_Z,
            epsilon=epsilon,
            family=self.family,
            Q_type=Q_type,
            Q_coef=Q_coef,
            diagnostics={
                "g_bound": float(g_bound),
                "outcome_bounds": (lower, upper),
                "n_independent_units": int(len(np.unique(ids))),
            },
        )

    @staticmethod
    def _arms(with_mediator: bool) -> list[_Arm]:
        if not with_mediator:
            return [_Arm("Q1W", 1), _Arm("Q0W", 0)]
        return [
            _Arm(f"Q{a}W.Z{z}", a, z) for z in (0, 1) for a in (1, 0)
        ]

    @staticmethod
    def _set_arm(design: pd.DataFrame, arm: _Arm) -> pd.DataFrame:
        frame = design.copy()
        frame["A"] = float(arm.A)
        if arm.Z is not None:
            frame["Z"] = float(arm.Z)
        return frame

    def _initial_outcome(
        self,
        design: pd.DataFrame,
        arm_designs: dict[str, pd.DataFrame],
        Y_scaled: NDArray[Any],
        observed: NDArray[Any],
        weights: NDArray[Any],
        ids: NDArray[Any],
    ) -> tuple[pd.DataFrame, str, Optional[pd.Series]]:
        """Predict Q at the observed and at every counterfactual treatment level."""
        level = progress_level(self.verbose)
        frames = {"QAW": design, **arm_designs}

        if self.Qform is not None:
            logger.log(level, "Estimating initial Q with formula '%s'", self.Qform)
            fit_frame = design.loc[observed].copy()
            fit_frame["Y"] = Y_scaled[observed]
            glm = fit_formula_glm(
                self.Qform,
                fit_frame,
                family=self.family,
                sample_weight=weights[observed],
            )
            Q = pd.DataFrame({label: glm.predict(frame) for label, frame in frames.items()})
            return Q, "parametric", glm.params

        task_type = "classification" if self.family == "binomial" else "regression"
        X = {label: frame.to_numpy(dtype=float) for label, frame in frames.items()}
        fold_coefs: list[pd.Series] = []

        def fit_super_learner(rows: NDArray[Any]) -> SuperLearner:
            sl = SuperLearner(
                base_learners=self.Q_library,
                task_type=task_type,
                config=SuperLearnerConfig(
                    cv_folds=self.V_Q,
                    discrete=self.Q_discrete_sl,
                    random_state=self.random_state,
                ),
            )
            sl.fit(X["QAW"][rows], Y_scaled[rows], sample_weight=weights[rows], groups=ids[rows])
            fold_coefs.append(sl.coef_)
            return sl

        n = len(Y_scaled)
        if self.cv_Qinit:
            logger.log(
                level,
                "Estimating cross-validated initial Q (V=%d) with %s",
                self.V_Q,
                self.Q_library,
            )
            folds = create_folds(n, self.V_Q, groups=ids, random_state=self.random_state)

            def fit_fold(train_idx: NDArray[Any], val_idx: NDArray[Any]) -> dict[str, NDArray[Any]]:
                sl = fit_super_learner(train_idx[observed[train_idx]])
                return {label: sl.predict_response(x[val_idx]) for label, x in X.items()}

            predictions = cross_fit(fit_fold, folds, n, n_jobs=self.n_jobs)
        else:
            logger.log(level, "Estimating initial Q with %s", self.Q_library)
            sl = fit_super_learner(np.flatnonzero(observed))
            predictions = {label: sl.predict_response(x) for label, x in X.items()}

        Q = pd.DataFrame({label: predictions[label] for label in frames})
        Q_coef = pd.concat(fold_coefs, axis=1).mean(axis=1).rename("coef")
        return Q, "super learner", Q_coef

    @staticmethod
    def _fluctuate(
        Q: pd.DataFrame,
        H: dict[str, NDArray[Any]],
        indicator: dict[str, NDArray[Any]],
        Y_scaled: NDArray[Any],
        observed: NDArray[Any],
        weights: NDArray[Any],
    ) -> pd.Series:
        """Weighted logistic fluctuation of logit(Q) along the clever covariates."""
        labels = list(H)
        exog = np.column_stack([indicator[label] * H[label] for label in labels])[observed]
        offset = logit(Q["QAW"].to_numpy())[observed]
        model = sm.GLM(
            Y_scaled[observed],
            exog,
            family=sm.families.Binomial(),
            offset=offset,
            var_weights=weights[observed],
        )
        coefficients = np.asarray(model.fit().params, dtype=float)
        if not np.all(np.isfinite(coefficients)):
            raise EstimationError("Targeting step did not converge")
        return pd.Series(coefficients, index=labels, name="epsilon")

    def _estimate_effects(
        self,
        arms: list[_Arm],
        Qstar: pd.DataFrame,
        H: dict[str, NDArray[Any]],
        indicator: dict[str, NDArray[Any]],
        Y: NDArray[Any],
        Delta: NDArray[Any],
        weights: NDArray[Any],
        ids: NDArray[Any],
        A: NDArray[Any],
    ) -> dict[str, CausalEffect]:
        """Plug-in estimates with influence curve based inference."""
        z_crit = norm.ppf(1 - (1 - self.confidence_level) / 2)
        norm_weights = weights / weights.mean()

        mean_outcome: dict[str, float] = {}
        influence: dict[str, NDArray[Any]] = {}
        for arm in arms:
            q = Qstar[arm.label].to_numpy()
            psi = float(np.sum(weights * q) / np.sum(weights))
            mean_outcome[arm.label] = psi
            influence[arm.label] = norm_weights * (
                Delta * indicator[arm.label] * H[arm.label] * (Y - q) + q - psi
            )

        def standard_error(ic: NDArray[Any]) -> float:
            by_unit = pd.Series(ic).groupby(ids).mean()
            return float(np.sqrt(np.var(by_unit, ddof=1) / len(by_unit)))

        def ratio(log_estimate: float, ic: NDArray[Any]) -> ParameterEstimate:
            se = standard_error(ic)
            return ParameterEstimate(
                estimate=float(np.exp(log_estimate)),
                ci_lower=float(np.exp(log_estimate - z_crit * se)),
                ci_upper=float(np.exp(log_estimate + z_crit * se)),
                p_value=float(2 * norm.sf(abs(log_estimate / se))) if se > 0 else float("nan"),
                log_se=se,
            )

        contrasts = (
            [("marginal", "Q1W", "Q0W", None)]
            if arms[0].Z is None
            else [(f"Z={z}", f"Q1W.Z{z}", f"Q0W.Z{z}", z) for z in (0, 1)]
        )

        effects = {}
        for key, treated, control, z in contrasts:
            ey1, ey0 = mean_outcome[treated], mean_outcome[control]
            ic1, ic0 = influence[treated], influence[control]
            ate = ey1 - ey0
            ate_se = standard_error(ic1 - ic0)

            relative_risk = odds_ratio = None
            if self.family == "binomial" and 0 < ey0 < 1 and 0 < ey1 < 1:
                relative_risk = ratio(np.log(ey1 / ey0), ic1 / ey1 - ic0 / ey0)
                odds_ratio = ratio(
                    np.log(ey1 / (1 - ey1)) - np.log(ey0 / (1 - ey0)),
                    ic1 / (ey1 * (1 - ey1)) - ic0 / (ey0 * (1 - ey0)),
                )

            effects[key] = CausalEffect(
                ate=ate,
                ate_se=ate_se,
                ate_ci_lower=ate - z_crit * ate_se,
                ate_ci_upper=ate + z_crit * ate_se,
                ate_p_value=float(2 * norm.sf(abs(ate / ate_se))) if ate_se > 0 else float("nan"),
                confidence_level=self.confidence_level,
                potential_outcome_treated=ey1,
                potential_outcome_control=ey0,
                potential_outcome_treated_se=standard_error(ic1),
                potential_outcome_control_se=standard_error(ic0),
                relative_risk=relative_risk,
                odds_ratio=odds_ratio,
                method="TMLE" if z is None else f"TMLE (controlled direct effect, Z={z})",
                n_observations=len(A),
                n_treated=int(np.sum(A == 1)),
                n_control=int(np.sum(A == 0)),
                diagnostics={"mediator_level": z},
            )
        return effects

    def estimate_ate(self) -> CausalEffect:
        """The marginal effect of the fitted estimator."""
        if not self.is_fitted or self.result_ is None:
            raise EstimationError("Estimator must be fitted before estimation")
        return self.result_.effect

    def summary(self) -> str:
        if not self.is_fitted or self.result_ is None:
            return super().summary()
        return "\n".join([super().summary(), "", self.result_.summary()])


def tmle(
    Y: Any,
    A: Any,
    W: Any,
    Z: Optional[Any] = None,
    Delta: Optional[Any] = None,
    obs_weights: Optional[Any] = None,
    id: Optional[Any] = None,  # noqa: A002
    **options: Any,
) -> TMLEResult:
    """Fit a TMLE and return its result.

    Args:
        Y: Outcome, may be missing where Delta is 0
        A: Binary treatment
        W: Covariates (DataFrame, or array with columns named W1..Wk)
        Z: Optional binary mediator
        Delta: Optional missing-outcome indicator (1 = observed)
        obs_weights: Optional observation weights
        id: Optional cluster identifiers
        **options: Keyword arguments of TMLEEstimator

    Returns:
        TMLEResult
    """
    estimator = TMLEEstimator(**options)
    if not isinstance(W, pd.DataFrame):
        values = np.asarray(W, dtype=float)
        if values.ndim == 1:
            values = values[:, None]
        W = pd.DataFrame(values, columns=[f"W{i + 1}" for i in range(values.shape[1])])

    estimator.fit(
        TreatmentData(values=np.asarray(A, dtype=float)),
        OutcomeData(
            values=np.asarray(Y, dtype=float),
            outcome_type="binary" if estimator.family == "binomial" else "continuous",
        ),
        CovariateData(values=W),
        mediator=Z,
        missing_outcome=Delta,
        obs_weights=obs_weights,
        id=id,
    )
    assert estimator.result_ is not None
    return estimator.result_
