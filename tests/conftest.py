"""
Central pytest configuration for the MiniStan test suite.

This file is automatically discovered by pytest and holds the fixtures shared
across test modules:

- **Data**: a small two-group dataset with known group means.
- **Fits**: sampling runs that several modules inspect. Runs are expensive, so
  the shared fits are session-scoped and must never be modified by tests.

Notes
-----
- Install the package in editable mode (``pip install -e .[test]``) so that
  imports resolve the same way locally and in CI.
- Keep this file focused on test setup.
"""

import numpy as np
import pytest

import ministan as ms
from ministan.model.components import parameters


GROUP_MEANS = {"a": 10.0, "b": 20.0}
"""Exact sample means of the groups in the ``two_group_data`` fixture."""


class PooledNormal(ms.Model):
    """Single-mean model of the two-group data, used as a poor comparison model."""

    def __init__(self, default_data=None):
        super().__init__(default_data=default_data)
        self.mu = parameters.Normal(mu=0.0, sigma=100.0)
        self.y = parameters.Normal(mu=self.mu, sigma=1.0, field="value")


def make_two_group_data(seed: int = 0) -> ms.Dataset:
    """Five observations per group with sample means of exactly 10 and 20 and a
    sample standard deviation of exactly 1 within each group."""
    rng = np.random.default_rng(seed)
    values, groups = [], []
    for label, mean in GROUP_MEANS.items():
        noise = rng.normal(size=5)
        noise = (noise - noise.mean()) / noise.std(ddof=1)
        values.extend((mean + noise).tolist())
        groups.extend([label] * 5)
    return ms.Dataset(values, groups)


@pytest.fixture(scope="session")
def two_group_data():
    """Ten observations in two groups ("a" and "b") with means 10 and 20."""
    return make_two_group_data()


@pytest.fixture(scope="session")
def two_group_fit(two_group_data):
    """Four chains of 2000 iterations (1000 warm-up) of the two-group model."""
    return ms.builtin_models.TwoGroupNormal().mcmc(
        data=two_group_data, chains=4, iterations=2000, warmup=1000, seed=1
    )


@pytest.fixture(scope="session")
def pooled_fit(two_group_data):
    """Two chains of the single-mean model on the same data."""
    return PooledNormal().mcmc(
        data=two_group_data, chains=2, iterations=1000, warmup=500, seed=2
    )


@pytest.fixture
def small_run_kwargs():
    """Sampler settings for quick runs whose quality does not matter."""
    return {"chains": 2, "iterations": 200, "warmup": 100}
