"""Shared test fixtures for the two-stage TMLE library.

The two-stage data follow the reference usage: 1000 units, three
covariates, and 400 units sampled into stage 2 (more likely when W1 > 1)
on whom W3 is measured.
"""

import numpy as np
import pandas as pd
import pytest

from two_stage_tmle.core.config import LibraryConfig, TwoStageTMLEConfig


@pytest.fixture
def random_state():
    """Provide a consistent random state for reproducible tests."""
    return 42


def _expit(x):
    return 1 / (1 + np.exp(-x))


@pytest.fixture
def two_stage_data(random_state):
    """Two-stage sample with a continuous outcome and a true ATE of 1."""
    rng = np.random.default_rng(random_state)
    n = 1000
    W1, W2, W3 = rng.normal(size=(3, n))
    A = rng.binomial(1, _expit(-1 + 0.2 * W1 + 0.3 * W2 + 0.1 * W3))
    Y = 10 + A + W1 + W2 + A * W1 + W3 + rng.normal(size=n)

    # 400 units with data on W3, more likely if W1 > 1
    p_sample = 0.5 + 0.2 * (W1 > 1)
    rows = rng.choice(n, size=400, replace=False, p=p_sample / p_sample.sum())
    Delta_W = np.zeros(n, dtype=int)
    Delta_W[rows] = 1

    return {
        "Y": Y,
        "A": A,
        "W": pd.DataFrame({"W1": W1, "W2": W2}),
        "Delta_W": Delta_W,
        "W_stage2": pd.DataFrame({"W3": W3[Delta_W == 1]}),
    }


@pytest.fixture
def binary_two_stage_data(random_state):
    """Two-stage sample with a binary outcome."""
    rng = np.random.default_rng(random_state + 1)
    n = 800
    W1, W2, W3 = rng.normal(size=(3, n))
    A = rng.binomial(1, _expit(-0.5 + 0.3 * W1 + 0.2 * W3))
    Y = rng.binomial(1, _expit(-1 + 0.8 * A + 0.5 * W1 - 0.4 * W2 + 0.3 * W3)).astype(float)

    Delta_W = rng.binomial(1, _expit(0.2 + 0.5 * Y + 0.3 * W2))
    return {
        "Y": Y,
        "A": A,
        "W": pd.DataFrame({"W1": W1, "W2": W2}),
        "Delta_W": Delta_W,
        "W_stage2": pd.DataFrame({"W3": W3[Delta_W == 1]}),
    }


@pytest.fixture
def point_treatment_data(random_state):
    """Single-stage data for the TMLE estimator, true ATE of 2."""
    rng = np.random.default_rng(random_state)
    n = 600
    W = pd.DataFrame({"W1": rng.normal(size=n), "W2": rng.normal(size=n)})
    A = rng.binomial(1, _expit(0.4 * W["W1"] - 0.3 * W["W2"]))
    Y = 1 + 2 * A + W["W1"] + 0.5 * W["W2"] + rng.normal(size=n)
    return {"Y": Y.to_numpy(), "A": A, "W": W}


@pytest.fixture
def fast_config(random_state):
    """Configuration with small libraries and few folds."""
    return TwoStageTMLEConfig(
        sampling=LibraryConfig(learners=["glm"], cv_folds=3, discrete=True),
        augmentation=LibraryConfig(learners=["glm", "mean"], cv_folds=3),
        rare_outcome=LibraryConfig(learners=["glm"], cv_folds=3, discrete=True),
        random_state=random_state,
    )


@pytest.fixture
def fast_tmle_options(random_state):
    """TMLE options with small libraries and few folds."""
    return {
        "Q_library": ["glm", "mean"],
        "g_library": ["glm"],
        "V_Q": 3,
        "V_g": 3,
        "random_state": random_state,
    }
