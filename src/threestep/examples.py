"""
Example configuration and simulated data for a 3-class model.

Five binary indicators (u1-u5), two covariates of class membership
(x1, x2) and one distal outcome (d1) with class-specific means.
About 5% of d1 is missing so the missing-value sentinel is exercised.
"""
from pathlib import Path
from typing import Union

import numpy as np
import pandas as pd

from threestep.config import PipelineConfig


# Item-endorsement probabilities per class (rows) and indicator (columns).
EXAMPLE_PROFILES = (
    (0.90, 0.85, 0.80, 0.85, 0.90),
    (0.80, 0.75, 0.20, 0.15, 0.20),
    (0.10, 0.15, 0.10, 0.20, 0.15),
)
EXAMPLE_DISTAL_MEANS = (2.0, 0.5, -1.0)


def simulate_example_data(n: int = 600, seed: int = 2204) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    k = len(EXAMPLE_PROFILES)

    x1 = rng.normal(size=n)
    x2 = rng.binomial(1, 0.5, size=n).astype(float)

    # Multinomial logit membership, class 3 as reference
    eta = np.column_stack([0.8 * x1 + 0.3 * x2, -0.5 * x1 + 0.6 * x2, np.zeros(n)])
    prob = np.exp(eta) / np.exp(eta).sum(axis=1, keepdims=True)
    cls = np.array([rng.choice(k, p=p) for p in prob])

    profiles = np.asarray(EXAMPLE_PROFILES)
    data = {}
    for j in range(profiles.shape[1]):
        data[f"u{j + 1}"] = rng.binomial(1, profiles[cls, j]).astype(float)
    data["x1"] = np.round(x1, 4)
    data["x2"] = x2
    d1 = np.asarray(EXAMPLE_DISTAL_MEANS)[cls] + rng.normal(size=n)
    d1[rng.random(n) < 0.05] = np.nan
    data["d1"] = np.round(d1, 4)

    return pd.DataFrame(data)


def build_example_config(output_dir: Union[str, Path], class_count: int = 3) -> PipelineConfig:
    return PipelineConfig(
        output_dir=Path(output_dir).resolve(),
        indicators=("u1", "u2", "u3", "u4", "u5"),
        class_count=class_count,
        covariates=("x1", "x2"),
        distal_outcomes=("d1",),
        starts=(200, 50),
    ).validate()
