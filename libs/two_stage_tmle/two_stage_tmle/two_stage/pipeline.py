"""Two-stage design TMLE.

Stage 1 measures (Y, A, W) on every unit; stage 2 measures additional
covariates W_stage2 on a subsample selected with Delta_W = 1. The pipeline

1. optionally augments W with cross-validated stage-1 outcome predictions,
2. estimates the sampling probabilities pi = P(Delta_W = 1 | A, W, Y),
3. builds bounded inverse probability of selection weights, and
4. runs TMLE on the subsample with all covariates and those weights.

A failure of the final TMLE does not discard the sampling model: the result
carries the estimated probabilities and weights with ``tmle=None``.
"""
# ruff: noqa: N803, N806

from __future__ import annotations

import logging
import warnings
from collections.abc import Sequence
from typing import Any, Optional

import pandas as pd
from pydantic import ValidationError

from ..core.base import ConfigurationError, DataValidationError
from ..core.config import LibraryConfig, TwoStageTMLEConfig
from ..estimators.tmle import FAMILIES, tmle
from ..utils.logging import progress_level
from .augmentation import evaluate_augmented_covariates
from .inputs import TwoStageData, normalize_inputs
from .results import TwoStageTMLEResult
from .sampling import estimate_sampling_probabilities, validate_conditioning_set
from .weights import (
    TRUNCATION_WARNING_SHARE,
    compute_observation_weights,
    weight_diagnostics,
)

__all__ = ["TMLE_FAILURE_MESSAGE", "TwoStageTMLE", "assemble_covariates", "two_stage_tmle"]

logger = logging.getLogger(__name__)

TMLE_FAILURE_MESSAGE = "Error calling tmle. Estimated sampling probabilities will be returned"


def _library(
    base: LibraryConfig,
    learners: Optional[Sequence[str]] = None,
    cv_folds: Optional[int] = None,
    discrete: Optional[bool] = None,
) -> LibraryConfig:
    try:
        return LibraryConfig(
            learners=list(learners) if learners is not None else list(base.learners),
            cv_folds=cv_folds if cv_folds is not None else base.cv_folds,
            discrete=discrete if discrete is not None else base.discrete,
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid library configuration: {e}") from e


def assemble_covariates(data: TwoStageData, W_Q: Optional[pd.DataFrame]) -> pd.DataFrame:
    """Covariates of the subsample: stage-1 W, the augmentation columns, W_stage2."""
    sampled = data.Delta_W == 1
    W_sub = data.W.loc[sampled].reset_index(drop=True)
    W_stage2 = data.W_stage2.reset_index(drop=True)

    if W_Q is None:
        covariates = pd.concat([W_sub, W_stage2], axis=1)
    else:
        W_Q_sub = W_Q.loc[sampled].reset_index(drop=True)
        covariates = pd.concat([W_sub, W_Q_sub, W_stage2], axis=1)

    if covariates.columns.duplicated().any():
        duplicated = list(covariates.columns[covariates.columns.duplicated()])
        raise DataValidationError(
            f"Stage-1 and stage-2 covariates share column names: {duplicated}"
        )
    return covariates


def two_stage_tmle(
    Y: Any,
    A: Any,
    W: Any,
    Delta_W: Any,
    W_stage2: Any,
    Z: Optional[Any] = None,
    Delta: Optional[Any] = None,
    pi: Optional[Any] = None,
    piform: Optional[str] = None,
    pi_library: Optional[Sequence[str]] = None,
    V_pi: Optional[int] = None,
    pi_discrete_sl: Optional[bool] = None,
    cond_set_names: Optional[Sequence[str]] = None,
    id: Optional[Any] = None,  # noqa: A002
    Q_family: Optional[str] = None,
    augment_w: Optional[bool] = None,
    aug_w_library: Optional[Sequence[str]] = None,
    rare_outcome: bool = False,
    verbose: bool = False,
    config: Optional[TwoStageTMLEConfig] = None,
    **kwargs: Any,
) -> TwoStageTMLEResult:
    """Estimate a treatment effect from a two-stage sample.

    Args:
        Y: Outcome measured in stage 1
        A: Binary treatment
        W: Stage-1 covariates (vector, matrix or DataFrame)
        Delta_W: Indicator of selection into stage 2
        W_stage2: Stage-2 covariates, one row per unit with Delta_W = 1
        Z: Optional binary mediator
        Delta: Optional missing-outcome indicator (1 = observed)
        pi: Known sampling probabilities; skips the sampling model
        piform: Parametric sampling model, e.g. "Delta.W ~ I(W1 > 0)"
        pi_library: Super Learner library for the sampling model
        V_pi: Cross-validation folds for the sampling model
        pi_discrete_sl: Discrete Super Learner for the sampling model
        cond_set_names: Predictors of selection, any of 'A', 'W', 'Y'
        id: Independent-unit identifiers
        Q_family: Outcome regression family, 'gaussian' or 'binomial'
        augment_w: Add cross-validated outcome predictions to the sampling model
        aug_w_library: Super Learner library of the augmentation regression
        rare_outcome: Use a conservative outcome regression library for the TMLE
        verbose: Log progress at INFO level
        config: Defaults for every option left as None
        **kwargs: Passed unchecked to the TMLE estimator; a ``random_state`` among
            them also seeds the augmentation and sampling fits

    Returns:
        TwoStageTMLEResult

    Raises:
        ConfigurationError: Invalid conditioning-set names, learners or family
        DataValidationError: Invalid or inconsistent inputs
    """
    config = config or TwoStageTMLEConfig()
    level = progress_level(verbose)
    random_state = kwargs.get("random_state", config.random_state)

    sampling_library = _library(config.sampling, pi_library, V_pi, pi_discrete_sl)
    augmentation_library = _library(config.augmentation, aug_w_library)
    cond_set_names = list(cond_set_names) if cond_set_names is not None else config.cond_set_names
    Q_family = Q_family or config.q_family
    augment_w = config.augment_w if augment_w is None else augment_w
    if Q_family not in FAMILIES:
        raise ConfigurationError(f"Q_family must be one of {FAMILIES}, got '{Q_family}'")

    data = normalize_inputs(Y, A, W, Delta_W, W_stage2, Z=Z, Delta=Delta, id=id)
    logger.log(
        level,
        "Two-stage TMLE: %d units, %d sampled into stage 2",
        data.n,
        data.n_sampled,
    )

    if pi is None:
        validate_conditioning_set(cond_set_names, data.Y)

    W_Q = None
    if augment_w:
        W_Q = evaluate_augmented_covariates(
            data.Y,
            data.A,
            data.W,
            data.Delta,
            data.id,
            family=Q_family,
            library=augmentation_library,
            random_state=random_state,
            n_jobs=config.n_jobs,
            verbose=verbose,
        )

    sampling = estimate_sampling_probabilities(
        data,
        cond_set_names,
        sampling_library,
        pi=pi,
        piform=piform,
        W_Q=W_Q,
        random_state=random_state,
        verbose=verbose,
    )

    observation_weights = compute_observation_weights(data.Delta_W, sampling.pi)
    diagnostics = weight_diagnostics(observation_weights, data.Delta_W)
    messages = []
    if diagnostics["share_truncated"] > TRUNCATION_WARNING_SHARE:
        messages.append(
            f"{diagnostics['n_truncated']} sampled units have weights truncated "
            f"at {observation_weights.upper_bound:.3f}"
        )

    covariates = assemble_covariates(data, W_Q)
    sampled = data.Delta_W == 1

    arguments = dict(kwargs)
    arguments.setdefault("random_state", random_state)
    arguments.setdefault("n_jobs", config.n_jobs)
    arguments.update(
        Y=data.Y[sampled],
        A=data.A[sampled],
        W=covariates,
        Z=None if data.Z is None else data.Z[sampled],
        Delta=data.Delta[sampled],
        obs_weights=observation_weights.weights[sampled],
        id=data.id[sampled],
        family=Q_family,
        verbose=verbose,
    )
    if rare_outcome:
        arguments.update(
            Q_library=list(config.rare_outcome.learners),
            Q_discrete_sl=config.rare_outcome.discrete,
            V_Q=config.rare_outcome.cv_folds,
        )

    logger.log(level, "Running TMLE on %d sampled units", int(sampled.sum()))
    try:
        tmle_result = tmle(**arguments)
    except Exception as e:
        logger.debug("TMLE failed", exc_info=True)
        warnings.warn(TMLE_FAILURE_MESSAGE)
        messages.append(f"{TMLE_FAILURE_MESSAGE}: {type(e).__name__}: {e}")
        tmle_result = None

    return TwoStageTMLEResult(
        tmle=tmle_result,
        two_stage=sampling,
        aug_w=W_Q,
        weights=observation_weights.weights,
        warnings=tuple(messages),
        weight_diagnostics=diagnostics,
    )


class TwoStageTMLE:
    """Estimator-style interface to ``two_stage_tmle``.

    Options given to the constructor are defaults for every ``fit`` call;
    keyword arguments of ``fit`` take precedence, including ``config``.
    """

    def __init__(self, config: Optional[TwoStageTMLEConfig] = None, **options: Any) -> None:
        self.config = config or TwoStageTMLEConfig()
        self.options = options
        self.result_: Optional[TwoStageTMLEResult] = None
        self.is_fitted = False

    def fit(
        self,
        Y: Any,
        A: Any,
        W: Any,
        Delta_W: Any,
        W_stage2: Any,
        **kwargs: Any,
    ) -> TwoStageTMLEResult:
        arguments = {**self.options, **kwargs}
        config = arguments.pop("config", None) or self.config
        self.result_ = two_stage_tmle(Y, A, W, Delta_W, W_stage2, config=config, **arguments)
        self.is_fitted = True
        return self.result_

    def summary(self) -> str:
        if self.result_ is None:
            return f"{self.__class__.__name__} (not fitted)"
        return self.result_.summary()
