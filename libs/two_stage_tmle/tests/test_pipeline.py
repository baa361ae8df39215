"""Tests for the two-stage TMLE pipeline."""

import numpy as np
import pandas as pd
import pytest

from two_stage_tmle import TwoStageTMLE, TwoStageTMLEResult, two_stage_tmle
from two_stage_tmle.core.base import ConfigurationError, DataValidationError
from two_stage_tmle.estimators.tmle import tmle as real_tmle
from two_stage_tmle.two_stage import pipeline
from two_stage_tmle.two_stage.weights import weight_upper_bound


@pytest.fixture
def captured_tmle_arguments(monkeypatch):
    """Record the arguments the pipeline passes to the TMLE estimator."""
    captured = {}

    def recording_tmle(**kwargs):
        captured.update(kwargs)
        return real_tmle(**kwargs)

    monkeypatch.setattr(pipeline, "tmle", recording_tmle)
    return captured


class TestParametricPipeline:
    """End-to-end run with parametric sampling, outcome and treatment models."""

    @pytest.fixture
    def result(self, two_stage_data, fast_config):
        return two_stage_tmle(
            **two_stage_data,
            piform="Delta.W ~ I(W1 > 0)",
            V_pi=5,
            Qform="Y ~ A + W1",
            gform="A ~ W1 + W2 + W3",
            augment_w=False,
            config=fast_config,
        )

    def test_result_shape(self, result):
        assert isinstance(result, TwoStageTMLEResult)
        assert result.kind == "two_stage_tmle"
        assert result.tmle is not None
        assert result.aug_w is None
        assert result.warnings == ()

    def test_weights(self, result, two_stage_data):
        ub = weight_upper_bound(400)
        delta_w = two_stage_data["Delta_W"]

        assert np.sum(result.weights > 0) == 400
        assert np.all(result.weights[delta_w == 0] == 0)
        assert np.all(result.weights >= 0)
        assert np.all(result.weights <= ub)

    def test_sampling_model(self, result):
        assert result.two_stage.type == "parametric"
        assert result.two_stage.formula == "Delta.W ~ I(W1 > 0)"
        assert len(result.two_stage.pi) == 1000
        assert len(result.two_stage.coef) == 2

    def test_effect_estimate(self, result):
        effect = result.tmle.effect
        assert effect.ate == pytest.approx(1.0, abs=0.5)
        assert effect.ate_ci_lower < effect.ate < effect.ate_ci_upper
        assert effect.n_observations == 400

    def test_summary(self, result):
        text = result.summary()
        assert "Two-Stage TMLE Summary" in text
        assert "parametric" in text
        assert str(result) == text


class TestUserSuppliedProbabilities:
    def test_weights_equal_clipped_ratio(self, two_stage_data, fast_config, fast_tmle_options):
        delta_w = two_stage_data["Delta_W"]
        pi = np.where(two_stage_data["W"]["W1"] > 1, 0.5, 0.35)

        result = two_stage_tmle(
            **two_stage_data,
            pi=pi,
            augment_w=False,
            config=fast_config,
            **fast_tmle_options,
        )

        expected = np.clip(delta_w / pi, 0, weight_upper_bound(delta_w.sum()))
        assert result.two_stage.type == "user supplied"
        assert result.two_stage.coef is None
        assert result.two_stage.discrete_sl is None
        np.testing.assert_allclose(result.weights, expected)

    def test_conditioning_set_not_checked(self, two_stage_data, fast_config, fast_tmle_options):
        pi = np.full(1000, 0.4)
        result = two_stage_tmle(
            **two_stage_data,
            pi=pi,
            cond_set_names=["bogus"],
            augment_w=False,
            config=fast_config,
            **fast_tmle_options,
        )
        assert result.two_stage.type == "user supplied"

    def test_wrong_length(self, two_stage_data, fast_config):
        with pytest.raises(DataValidationError, match="pi"):
            two_stage_tmle(
                **two_stage_data, pi=np.full(10, 0.4), augment_w=False, config=fast_config
            )


class TestConditioningSetErrors:
    """Conditioning-set errors are raised before any model is fitted."""

    @pytest.fixture(autouse=True)
    def no_fitting(self, monkeypatch):
        def fail(*args, **kwargs):
            raise AssertionError("a model was fitted")

        monkeypatch.setattr(pipeline, "evaluate_augmented_covariates", fail)
        monkeypatch.setattr(pipeline, "estimate_sampling_probabilities", fail)

    def test_invalid_name(self, two_stage_data, fast_config):
        with pytest.raises(ConfigurationError, match="any combination of 'A', 'W', 'Y'"):
            two_stage_tmle(**two_stage_data, cond_set_names=["A", "X"], config=fast_config)

    def test_missing_outcome_in_conditioning_set(self, two_stage_data, fast_config):
        data = dict(two_stage_data)
        Y = data["Y"].copy()
        Y[:5] = np.nan
        data["Y"] = Y
        delta = np.ones(1000, dtype=int)
        delta[:5] = 0

        with pytest.raises(DataValidationError, match="Cannot condition on the outcome"):
            two_stage_tmle(**data, Delta=delta, config=fast_config)


class TestAugmentation:
    def test_without_augmentation(
        self, two_stage_data, fast_config, fast_tmle_options, captured_tmle_arguments
    ):
        result = two_stage_tmle(
            **two_stage_data, augment_w=False, config=fast_config, **fast_tmle_options
        )

        assert result.aug_w is None
        covariates = captured_tmle_arguments["W"]
        assert list(covariates.columns) == ["W1", "W2", "W3"]
        assert "Q0W" not in covariates.columns
        assert "Q1W" not in covariates.columns

    def test_with_augmentation(
        self, two_stage_data, fast_config, fast_tmle_options, captured_tmle_arguments
    ):
        result = two_stage_tmle(**two_stage_data, config=fast_config, **fast_tmle_options)

        assert list(result.aug_w.columns) == ["Q0W", "Q1W"]
        assert len(result.aug_w) == 1000
        assert result.two_stage.type == "super learner"
        assert "Q0W" in result.two_stage.predictors

        covariates = captured_tmle_arguments["W"]
        assert list(covariates.columns) == ["W1", "W2", "Q0W", "Q1W", "W3"]
        sampled = two_stage_data["Delta_W"] == 1
        np.testing.assert_allclose(covariates["Q1W"], result.aug_w["Q1W"][sampled])


class TestTMLEInvocation:
    def test_subsample_arguments(
        self, two_stage_data, fast_config, fast_tmle_options, captured_tmle_arguments
    ):
        result = two_stage_tmle(
            **two_stage_data,
            augment_w=False,
            Q_family="gaussian",
            config=fast_config,
            **fast_tmle_options,
        )

        sampled = two_stage_data["Delta_W"] == 1
        assert len(captured_tmle_arguments["Y"]) == 400
        np.testing.assert_allclose(captured_tmle_arguments["Y"], two_stage_data["Y"][sampled])
        np.testing.assert_allclose(captured_tmle_arguments["obs_weights"], result.weights[sampled])
        assert captured_tmle_arguments["family"] == "gaussian"
        assert captured_tmle_arguments["Q_library"] == ["glm", "mean"]

    def test_rare_outcome_library(
        self, two_stage_data, fast_config, fast_tmle_options, captured_tmle_arguments
    ):
        two_stage_tmle(
            **two_stage_data,
            augment_w=False,
            rare_outcome=True,
            config=fast_config,
            **fast_tmle_options,
        )

        assert captured_tmle_arguments["Q_library"] == ["glm"]
        assert captured_tmle_arguments["Q_discrete_sl"] is True
        assert captured_tmle_arguments["V_Q"] == 3

    def test_estimation_failure_returns_sampling_model(
        self, two_stage_data, fast_config, fast_tmle_options
    ):
        with pytest.warns(UserWarning, match="Error calling tmle"):
            result = two_stage_tmle(
                **two_stage_data,
                augment_w=False,
                config=fast_config,
                not_an_option=1,
                **fast_tmle_options,
            )

        assert result.tmle is None
        assert not result.succeeded
        assert result.two_stage.type == "super learner"
        assert np.sum(result.weights > 0) == 400
        assert any("not_an_option" in message for message in result.warnings)
        assert "TMLE: not available" in result.summary()


class TestBinaryOutcome:
    def test_ratios(self, binary_two_stage_data, fast_config, fast_tmle_options):
        result = two_stage_tmle(
            **binary_two_stage_data,
            Q_family="binomial",
            config=fast_config,
            **fast_tmle_options,
        )

        effect = result.tmle.effect
        assert 0 < effect.potential_outcome_control < 1
        assert effect.relative_risk is not None
        assert effect.odds_ratio is not None
        assert effect.relative_risk.ci_lower < effect.relative_risk.estimate
        assert ((result.aug_w > 0) & (result.aug_w < 1)).all().all()

    def test_invalid_family(self, binary_two_stage_data, fast_config):
        with pytest.raises(ConfigurationError, match="Q_family"):
            two_stage_tmle(**binary_two_stage_data, Q_family="poisson", config=fast_config)


class TestInputs:
    def test_vector_covariates(self, two_stage_data, fast_config, fast_tmle_options, captured_tmle_arguments):
        sampled = two_stage_data["Delta_W"] == 1
        two_stage_tmle(
            Y=two_stage_data["Y"],
            A=two_stage_data["A"],
            W=two_stage_data["W"]["W1"].to_numpy(),
            Delta_W=two_stage_data["Delta_W"],
            W_stage2=two_stage_data["W_stage2"]["W3"].to_numpy(),
            augment_w=False,
            config=fast_config,
            **fast_tmle_options,
        )
        assert list(captured_tmle_arguments["W"].columns) == ["W1", "W.stage2"]
        assert len(captured_tmle_arguments["W"]) == sampled.sum()

    def test_stage2_row_mismatch(self, two_stage_data, fast_config):
        data = dict(two_stage_data)
        data["W_stage2"] = data["W_stage2"].iloc[:100]
        with pytest.raises(DataValidationError, match="sum\\(Delta_W\\)"):
            two_stage_tmle(**data, config=fast_config)

    def test_shared_covariate_names(self, two_stage_data, fast_config):
        data = dict(two_stage_data)
        data["W_stage2"] = data["W_stage2"].rename(columns={"W3": "W1"})
        with pytest.raises(DataValidationError, match="share column names"):
            two_stage_tmle(**data, augment_w=False, config=fast_config)

    def test_unknown_sampling_learner(self, two_stage_data, fast_config):
        with pytest.raises(ConfigurationError, match="Unknown learner"):
            two_stage_tmle(**two_stage_data, pi_library=["SL.unknown"], config=fast_config)


class TestEstimatorInterface:
    def test_fit_matches_function(self, two_stage_data, fast_config):
        options = {
            "piform": "Delta.W ~ I(W1 > 0)",
            "Qform": "Y ~ A + W1",
            "gform": "A ~ W1 + W2 + W3",
            "augment_w": False,
        }
        estimator = TwoStageTMLE(fast_config, **options)
        assert "not fitted" in estimator.summary()

        result = estimator.fit(**two_stage_data)
        expected = two_stage_tmle(**two_stage_data, config=fast_config, **options)

        assert estimator.is_fitted
        assert result.tmle.effect.ate == pytest.approx(expected.tmle.effect.ate)
        np.testing.assert_allclose(result.weights, expected.weights)
        assert "Two-Stage TMLE Summary" in estimator.summary()

    def test_config_given_to_fit(self, two_stage_data, fast_config):
        estimator = TwoStageTMLE(
            piform="Delta.W ~ W1", Qform="Y ~ A + W1", gform="A ~ W1", augment_w=False
        )
        result = estimator.fit(**two_stage_data, config=fast_config, piform="Delta.W ~ 1")

        assert result.two_stage.formula == "Delta.W ~ 1"
        assert estimator.config is not fast_config

    def test_result_is_immutable(self, two_stage_data, fast_config):
        result = TwoStageTMLE(fast_config, piform="Delta.W ~ W1", Qform="Y ~ A + W1",
                              gform="A ~ W1", augment_w=False).fit(**two_stage_data)
        with pytest.raises(AttributeError):
            result.tmle = None
        assert isinstance(result.aug_w, (pd.DataFrame, type(None)))


class TestEmptyConditioningSet:
    def test_augmentation_columns_only(self, two_stage_data, fast_config, fast_tmle_options):
        result = two_stage_tmle(
            **two_stage_data, cond_set_names=[], config=fast_config, **fast_tmle_options
        )

        assert result.two_stage.type == "super learner"
        assert result.two_stage.predictors == ("Q0W", "Q1W")
        assert result.tmle is not None

    def test_intercept_only_sampling_model(self, two_stage_data, fast_config):
        result = two_stage_tmle(
            **two_stage_data,
            cond_set_names=[],
            piform="Delta.W ~ 1",
            Qform="Y ~ A + W1",
            gform="A ~ W1 + W2 + W3",
            augment_w=False,
            config=fast_config,
        )

        assert result.two_stage.predictors == ()
        np.testing.assert_allclose(result.two_stage.pi, 0.4, rtol=1e-6)
        sampled = two_stage_data["Delta_W"] == 1
        np.testing.assert_allclose(result.weights[sampled], 2.5, rtol=1e-6)
        assert result.tmle is not None


class TestRandomState:
    def test_keyword_seeds_every_stage(self, two_stage_data, fast_config, fast_tmle_options, monkeypatch):
        seeds = {}

        def recorder(name, function):
            def record(*args, **kwargs):
                seeds[name] = kwargs["random_state"]
                return function(*args, **kwargs)

            return record

        for name in ("evaluate_augmented_covariates", "estimate_sampling_probabilities", "tmle"):
            monkeypatch.setattr(pipeline, name, recorder(name, getattr(pipeline, name)))

        options = {**fast_tmle_options, "random_state": 7}
        two_stage_tmle(**two_stage_data, config=fast_config, **options)

        assert seeds == {
            "evaluate_augmented_covariates": 7,
            "estimate_sampling_probabilities": 7,
            "tmle": 7,
        }

    def test_repeated_runs_match(self, two_stage_data, fast_config, fast_tmle_options):
        options = {**fast_tmle_options, "random_state": 11}
        first = two_stage_tmle(**two_stage_data, config=fast_config, **options)
        second = two_stage_tmle(**two_stage_data, config=fast_config, **options)

        pd.testing.assert_frame_equal(first.aug_w, second.aug_w)
        assert first.tmle.effect.ate == pytest.approx(second.tmle.effect.ate)
