"""Two-stage design TMLE on simulated data.

1000 units have (Y, A, W1, W2); W3 is only measured on a subsample of 400
units, selected with higher probability when W1 > 1. The true average
treatment effect is 1.
"""

import numpy as np
import pandas as pd

from two_stage_tmle import two_stage_tmle
from two_stage_tmle.utils import setup_logging


def simulate_two_stage_data(n: int = 1000, n_sample: int = 400, seed: int = 42) -> dict:
    """Simulate a two-stage sample.

    Args:
        n: Number of stage-1 units
        n_sample: Number of units sampled into stage 2
        seed: Random seed

    Returns:
        Keyword arguments for ``two_stage_tmle``
    """
    rng = np.random.default_rng(seed)
    W1, W2, W3 = rng.normal(size=(3, n))
    A = rng.binomial(1, 1 / (1 + np.exp(-(-1 + 0.2 * W1 + 0.3 * W2 + 0.1 * W3))))
    Y = 10 + A + W1 + W2 + A * W1 + W3 + rng.normal(size=n)

    p_sample = 0.5 + 0.2 * (W1 > 1)
    rows = rng.choice(n, size=n_sample, replace=False, p=p_sample / p_sample.sum())
    Delta_W = np.zeros(n, dtype=int)
    Delta_W[rows] = 1

    return {
        "Y": Y,
        "A": A,
        "W": pd.DataFrame({"W1": W1, "W2": W2}),
        "Delta_W": Delta_W,
        "W_stage2": pd.DataFrame({"W3": W3[Delta_W == 1]}),
    }


def main() -> None:
    setup_logging()
    data = simulate_two_stage_data()

    print("1. Parametric models, no augmentation")
    result1 = two_stage_tmle(
        **data,
        piform="Delta.W ~ I(W1 > 0)",
        V_pi=5,
        verbose=True,
        Qform="Y ~ A + W1",
        gform="A ~ W1 + W2 + W3",
        augment_w=False,
    )
    print(result1)

    print("\n2. Parametric sampling model, Super Learner for everything else")
    result2 = two_stage_tmle(
        **data,
        piform="Delta.W ~ I(W1 > 0)",
        V_pi=5,
        verbose=True,
        random_state=42,
    )
    print(result2)


if __name__ == "__main__":
    main()
