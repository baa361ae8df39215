"""Tests for the stage-2 sampling model."""

import numpy as np
import pandas as pd
import pytest

from two_stage_tmle.core.base import ConfigurationError, DataValidationError
from two_stage_tmle.core.config import LibraryConfig
from two_stage_tmle.estimators.nuisance import estimate_g
from two_stage_tmle.two_stage.inputs import normalize_inputs
from two_stage_tmle.two_stage.sampling import (
    SAMPLING_OUTCOME,
    estimate_sampling_probabilities,
    resolve_conditioning_set,
    validate_conditioning_set,
)


@pytest.fixture
def data(two_stage_data):
    return normalize_inputs(**two_stage_data)


@pytest.fixture
def glm_library():
    return LibraryConfig(learners=["glm", "mean"], cv_folds=3, discrete=False)


class TestConditioningSet:
    def test_default_columns(self, data):
        frame = resolve_conditioning_set(["A", "W", "Y"], data)
        assert list(frame.columns) == ["A", "W1", "W2", "Y"]
        np.testing.assert_array_equal(frame["A"], data.A)

    def test_order_follows_names(self, data):
        frame = resolve_conditioning_set(["Y", "A"], data)
        assert list(frame.columns) == ["Y", "A"]

    def test_augmentation_columns_appended(self, data):
        W_Q = pd.DataFrame({"Q0W": np.zeros(data.n), "Q1W": np.ones(data.n)})
        frame = resolve_conditioning_set(["W"], data, W_Q)
        assert list(frame.columns) == ["W1", "W2", "Q0W", "Q1W"]

    def test_empty_set(self, data):
        frame = resolve_conditioning_set([], data)
        assert frame.shape == (data.n, 0)
        assert validate_conditioning_set([], data.Y) == []

    def test_empty_set_with_augmentation(self, data):
        W_Q = pd.DataFrame({"Q0W": np.zeros(data.n), "Q1W": np.ones(data.n)})
        frame = resolve_conditioning_set([], data, W_Q)
        assert list(frame.columns) == ["Q0W", "Q1W"]

    def test_invalid_name(self, data):
        with pytest.raises(ConfigurationError, match="any combination"):
            resolve_conditioning_set(["A", "V"], data)

    def test_outcome_with_missing_values(self):
        Y = np.array([1.0, np.nan, 2.0])
        with pytest.raises(DataValidationError, match="Cannot condition on the outcome"):
            validate_conditioning_set(["A", "Y"], Y)
        assert validate_conditioning_set(["A", "W"], Y) == ["A", "W"]

    def test_duplicated_columns(self, two_stage_data):
        inputs = dict(two_stage_data)
        inputs["W"] = inputs["W"].rename(columns={"W2": "A"})
        data = normalize_inputs(**inputs)
        with pytest.raises(DataValidationError, match="duplicated"):
            resolve_conditioning_set(["A", "W"], data)


class TestSamplingProbabilities:
    def test_parametric(self, data, glm_library):
        result = estimate_sampling_probabilities(
            data, ["A", "W", "Y"], glm_library, piform="Delta.W ~ I(W1 > 0)"
        )

        assert result.type == "parametric"
        assert result.formula == "Delta.W ~ I(W1 > 0)"
        assert result.library is None
        assert result.discrete_sl is None
        # Two distinct fitted probabilities, matching the sampled shares
        assert len(np.unique(result.pi.round(10))) == 2
        assert result.pi.mean() == pytest.approx(data.Delta_W.mean(), abs=1e-6)

    def test_intercept_only(self, data, glm_library):
        result = estimate_sampling_probabilities(data, [], glm_library, piform="Delta.W ~ 1")

        assert result.type == "parametric"
        assert result.predictors == ()
        assert list(result.coef.index) == ["Intercept"]
        np.testing.assert_allclose(result.pi, data.Delta_W.mean(), rtol=1e-6)

    def test_super_learner_without_predictors(self, data, glm_library):
        with pytest.raises(DataValidationError, match="intercept-only formula"):
            estimate_sampling_probabilities(data, [], glm_library)

    def test_underscore_response_name(self, data, glm_library):
        result = estimate_sampling_probabilities(
            data, ["W"], glm_library, piform="Delta_W ~ W1 + W2"
        )
        assert list(result.coef.index) == ["Intercept", "W1", "W2"]

    def test_super_learner(self, data, glm_library):
        result = estimate_sampling_probabilities(data, ["A", "W", "Y"], glm_library, random_state=0)

        assert result.type == "super learner"
        assert result.discrete_sl is False
        assert result.library == ("glm", "mean")
        assert result.predictors == ("A", "W1", "W2", "Y")
        assert result.coef.sum() == pytest.approx(1.0)
        assert np.all((result.pi >= 0) & (result.pi <= 1))

    def test_user_supplied(self, data, glm_library):
        pi = np.full(data.n, 0.4)
        result = estimate_sampling_probabilities(data, ["bogus"], glm_library, pi=pi)

        assert result.type == "user supplied"
        assert result.coef is None
        np.testing.assert_array_equal(result.pi, pi)

    def test_user_supplied_out_of_range(self, data, glm_library):
        with pytest.raises(DataValidationError, match=r"\[0, 1\]"):
            estimate_sampling_probabilities(data, ["A"], glm_library, pi=np.full(data.n, 1.5))


class TestEstimateG:
    def test_no_variation(self):
        frame = pd.DataFrame({SAMPLING_OUTCOME: np.ones(10), "W1": np.arange(10.0)})
        g = estimate_g(frame, SAMPLING_OUTCOME, library=["glm"])

        assert g.type == "no variation"
        np.testing.assert_array_equal(g.probabilities, np.ones(10))
        np.testing.assert_array_equal(g.predict(frame.iloc[:3]), np.ones(3))

    def test_requires_formula_or_library(self):
        frame = pd.DataFrame({"A": [0, 1] * 10, "W1": np.arange(20.0)})
        with pytest.raises(DataValidationError, match="formula or a library"):
            estimate_g(frame, "A")

    def test_missing_outcome_column(self):
        with pytest.raises(DataValidationError, match="not found"):
            estimate_g(pd.DataFrame({"W1": [1.0]}), "A", library=["glm"])

    def test_predict_new_data(self, random_state):
        rng = np.random.default_rng(random_state)
        W1 = rng.normal(size=300)
        frame = pd.DataFrame({"A": rng.binomial(1, 1 / (1 + np.exp(-W1))), "W1": W1})

        g = estimate_g(frame, "A", library=["glm"], V=3, random_state=random_state)
        new = pd.DataFrame({"W1": [-3.0, 0.0, 3.0]})

        predictions = g.predict(new)
        assert predictions[0] < predictions[1] < predictions[2]
