"""Tests for the Super Learner and the learner registry."""

import numpy as np
import pytest
from sklearn.base import BaseEstimator, RegressorMixin
from sklearn.linear_model import LinearRegression

from two_stage_tmle.ml.learners import available_learners, make_learner, resolve_learner_name
from two_stage_tmle.ml.super_learner import SuperLearner, SuperLearnerConfig


class BrokenRegressor(RegressorMixin, BaseEstimator):
    """Regressor whose fit always fails."""

    def fit(self, X, y, sample_weight=None):
        raise RuntimeError("cannot fit")


class TestLearnerRegistry:
    def test_r_aliases(self):
        assert resolve_learner_name("SL.glm") == "glm"
        assert resolve_learner_name("tmle.SL.dbarts2") == "bart"
        assert resolve_learner_name("SL.glmnet") == "glmnet"
        assert "SL.gam" in available_learners()

    def test_unknown_learner(self):
        with pytest.raises(ValueError, match="Unknown learner"):
            resolve_learner_name("SL.unknown")

    @pytest.mark.parametrize("name", ["mean", "glm", "gam", "glmnet", "bart", "random_forest"])
    def test_every_learner_fits(self, name):
        rng = np.random.default_rng(0)
        X = rng.normal(size=(120, 2))
        y_reg = X[:, 0] + rng.normal(size=120)
        y_clf = (y_reg > 0).astype(float)

        regressor = make_learner(name, "regression", random_state=0).fit(X, y_reg)
        classifier = make_learner(name, "classification", random_state=0).fit(X, y_clf)

        assert regressor.predict(X).shape == (120,)
        assert classifier.predict_proba(X).shape == (120, 2)


class TestSuperLearner:
    """Test Super Learner ensemble method."""

    @pytest.fixture
    def regression_data(self):
        """Generate synthetic regression data."""
        rng = np.random.default_rng(42)
        X = rng.normal(size=(200, 3))
        y = X @ np.array([1.5, -1.0, 0.5]) + rng.normal(0, 0.5, 200)
        return X, y

    @pytest.fixture
    def classification_data(self):
        rng = np.random.default_rng(42)
        X = rng.normal(size=(300, 2))
        y = rng.binomial(1, 1 / (1 + np.exp(-(X[:, 0] - X[:, 1])))).astype(float)
        return X, y

    def test_ensemble_weights(self, regression_data):
        X, y = regression_data
        sl = SuperLearner(["glm", "mean"], config=SuperLearnerConfig(cv_folds=5, random_state=0))
        sl.fit(X, y)

        weights = sl.get_learner_weights()
        assert sl.task_type == "regression"
        assert sum(weights.values()) == pytest.approx(1.0)
        assert all(w >= 0 for w in weights.values())
        assert weights["glm"] > weights["mean"]

    def test_discrete_selection(self, regression_data):
        X, y = regression_data
        sl = SuperLearner(
            ["glm", "mean"], config=SuperLearnerConfig(cv_folds=5, discrete=True, random_state=0)
        )
        sl.fit(X, y)

        assert sl.get_learner_weights() == {"glm": 1.0, "mean": 0.0}
        assert list(sl.fitted_learners_) == ["glm"]

    def test_performance(self, regression_data):
        X, y = regression_data
        sl = SuperLearner(["glm", "mean"], config=SuperLearnerConfig(cv_folds=5, random_state=0))
        sl.fit(X, y)

        performance = sl.get_learner_performance()
        ensemble = sl.get_ensemble_performance()
        assert performance["glm"] < performance["mean"]
        assert ensemble["mse"] <= performance["mean"]
        assert ensemble["rmse"] == pytest.approx(np.sqrt(ensemble["mse"]))

    def test_classification(self, classification_data):
        X, y = classification_data
        sl = SuperLearner(["glm", "mean"], config=SuperLearnerConfig(cv_folds=5, random_state=0))
        sl.fit(X, y)

        proba = sl.predict_proba(X)
        assert sl.task_type == "classification"
        assert proba.shape == (300, 2)
        np.testing.assert_allclose(proba.sum(axis=1), 1.0)
        assert set(np.unique(sl.predict(X))) <= {0, 1}

    def test_sample_weights_and_groups(self, regression_data):
        X, y = regression_data
        groups = np.repeat(np.arange(50), 4)
        sl = SuperLearner(["glm"], config=SuperLearnerConfig(cv_folds=5, random_state=0))
        sl.fit(X, y, sample_weight=np.linspace(0.5, 2, 200), groups=groups)

        assert sl.folds_.grouped
        assert sl.predict_response(X[:5]).shape == (5,)

    def test_custom_learners(self, regression_data):
        X, y = regression_data
        sl = SuperLearner({"linear": LinearRegression()}, task_type="regression")
        sl.fit(X, y)
        assert sl.get_learner_weights() == {"linear": 1.0}

    def test_failed_learner_removed(self, regression_data):
        X, y = regression_data
        sl = SuperLearner({"glm": "glm", "broken": BrokenRegressor()}, task_type="regression")

        with pytest.warns(UserWarning, match="broken"):
            sl.fit(X, y)

        assert sl.failed_learners_ == ["broken"]
        assert sl.get_learner_weights()["broken"] == 0.0

    def test_all_learners_fail(self, regression_data):
        X, y = regression_data
        sl = SuperLearner({"broken": BrokenRegressor()}, task_type="regression")
        with pytest.warns(UserWarning), pytest.raises(ValueError, match="All learners"):
            sl.fit(X, y)

    def test_errors(self):
        with pytest.raises(ValueError, match="Unknown learner"):
            SuperLearner(["not_a_learner"])
        with pytest.raises(ValueError, match="task_type"):
            SuperLearner(["glm"], task_type="ranking")
        with pytest.raises(ValueError, match="fitted"):
            SuperLearner(["glm"]).predict_response(np.zeros((2, 2)))
        with pytest.raises(ValueError):
            SuperLearnerConfig(cv_folds=1)
