"""Tests for convergence diagnostics and posterior summaries."""

import arviz as az
import numpy as np
import pytest

from ministan.exceptions import InsufficientChainsError
from ministan.stats import convergence, summary


def ar1_chains(phi, n_chains=4, n_draws=1000, seed=0):
    """Stationary AR(1) chains with unit marginal variance."""
    rng = np.random.default_rng(seed)
    draws = np.empty((n_chains, n_draws))
    draws[:, 0] = rng.normal(size=n_chains)
    noise_scale = np.sqrt(1 - phi**2)
    for t in range(1, n_draws):
        draws[:, t] = phi * draws[:, t - 1] + noise_scale * rng.normal(size=n_chains)
    return draws


class TestEffectiveSampleSize:
    def test_independent_draws(self):
        draws = np.random.default_rng(0).normal(size=(4, 1000))
        for method in ("basic", "bulk"):
            value = convergence.ess(draws, method=method)
            assert 3000 < value <= 4000

    def test_matches_arviz(self):
        draws = ar1_chains(0.5)
        assert convergence.ess(draws) == pytest.approx(az.ess(draws, method="identity"))
        assert convergence.ess(draws, method="bulk") == pytest.approx(
            az.ess(draws, method="bulk")
        )

    def test_autocorrelated_draws(self):
        # The asymptotic ESS is N (1 - phi) / (1 + phi), about 210 here
        value = convergence.ess(ar1_chains(0.9))
        assert 0 < value < 600

    def test_bounded_by_number_of_draws(self):
        # Anticorrelated draws would give an ESS above N without the cap
        draws = ar1_chains(-0.5)
        assert az.ess(draws, method="identity") > 4000
        assert convergence.ess(draws) == 4000

    def test_elementwise(self):
        draws = np.random.default_rng(1).normal(size=(2, 500, 3, 2))
        values = convergence.ess(draws)
        assert values.shape == (3, 2)
        assert values[1, 0] == pytest.approx(convergence.ess(draws[..., 1, 0]))

    def test_constant_draws(self):
        assert convergence.ess(np.ones((2, 100))) == 200

    @pytest.mark.parametrize("n_draws", [1, 2, 3])
    def test_short_chains(self, n_draws):
        """Chains too short for autocorrelations count every draw."""
        draws = np.random.default_rng(n_draws).normal(size=(2, n_draws, 3))
        for method in ("basic", "bulk"):
            np.testing.assert_array_equal(
                convergence.ess(draws, method=method), np.full(3, 2 * n_draws)
            )
        assert convergence.ess([[0.1, 0.5, -0.3], [1.2, -0.7, 0.4]]) == 6
        assert np.all(convergence.mcse_mean(draws) > 0)

    def test_invalid_input(self):
        with pytest.raises(ValueError):
            convergence.ess(np.zeros(10))

    def test_mcse(self):
        draws = np.random.default_rng(2).normal(size=(4, 1000))
        assert convergence.mcse_mean(draws) == pytest.approx(
            az.mcse(draws, method="mean")
        )
        assert convergence.mcse_mean(draws) == pytest.approx(
            draws.std() / np.sqrt(4000), rel=0.1
        )
        assert convergence.relative_ess(draws) == pytest.approx(
            convergence.ess(draws) / 4000
        )


class TestRhat:
    def test_permuted_copies(self):
        """Chains that are permutations of the same draws have an R-hat of ~1."""
        rng = np.random.default_rng(0)
        base = rng.normal(size=1000)
        draws = np.stack([rng.permutation(base) for _ in range(4)])
        value = convergence.rhat(draws)
        assert 0.99 <= value <= 1.05

    def test_formula(self):
        draws = ar1_chains(0.3, n_chains=3, n_draws=200, seed=5)
        n = draws.shape[1]
        within = draws.var(axis=1, ddof=1).mean()
        between = n * draws.mean(axis=1).var(ddof=1)
        expected = np.sqrt(((n - 1) / n * within + between / n) / within)
        assert convergence.rhat(draws) == pytest.approx(expected)

    def test_disjoint_chains(self):
        rng = np.random.default_rng(1)
        draws = np.stack(
            [rng.normal(size=500), rng.normal(size=500) + 10, rng.normal(size=500)]
        )
        assert convergence.rhat(draws) > 1.1

    def test_split_detects_trends(self):
        trend = np.linspace(0, 10, 1000) + np.random.default_rng(2).normal(size=1000)
        draws = np.stack([trend, trend])
        assert convergence.rhat(draws) == pytest.approx(1.0, abs=0.01)
        assert convergence.rhat(draws, split=True) > 1.1

    def test_constant_chains(self):
        assert convergence.rhat(np.ones((3, 50))) == 1.0
        assert convergence.rhat(np.stack([np.ones(50), np.zeros(50)])) == np.inf

    def test_requires_two_chains(self):
        with pytest.raises(InsufficientChainsError):
            convergence.rhat(np.zeros((1, 100)))

    def test_short_chains(self):
        draws = np.random.default_rng(4).normal(size=(3, 3))
        assert np.isnan(convergence.rhat(draws))

    def test_elementwise(self):
        draws = np.random.default_rng(3).normal(size=(4, 200, 5))
        assert convergence.rhat(draws).shape == (5,)


class TestSummary:
    @pytest.fixture
    def draws(self):
        rng = np.random.default_rng(0)
        return {
            "mu": rng.normal(loc=[1.0, -1.0], size=(4, 500, 2)),
            "tau": rng.exponential(size=(4, 500)),
        }

    def test_table(self, draws):
        table = summary.summarize(draws)
        assert table.index.tolist() == ["mu[0]", "mu[1]", "tau"]
        assert table.columns.tolist() == [
            "mean",
            "sd",
            "2.5%",
            "50%",
            "97.5%",
            "mcse_mean",
            "ess",
            "ess_bulk",
            "r_hat",
        ]
        assert table.loc["mu[0]", "mean"] == pytest.approx(1.0, abs=0.1)
        assert table.loc["mu[1]", "mean"] == pytest.approx(-1.0, abs=0.1)
        assert table.loc["tau", "50%"] == pytest.approx(np.log(2), abs=0.1)

    def test_kinds_and_quantiles(self, draws):
        stats_only = summary.summarize(draws, ["tau"], quantiles=[0.1, 0.9], kind="stats")
        assert stats_only.columns.tolist() == ["mean", "sd", "10%", "90%"]
        diagnostics = summary.summarize(draws, ["mu"], kind="diagnostics")
        assert diagnostics.columns.tolist() == ["mcse_mean", "ess", "ess_bulk", "r_hat"]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"quantiles": [0.5, 1.5]},
            {"quantiles": [0.9, 0.1]},
            {"parameters": ["sigma"]},
        ],
    )
    def test_invalid_queries(self, draws, kwargs):
        with pytest.raises(ValueError):
            summary.summarize(draws, **kwargs)

    def test_derive_expression(self, draws):
        derived = summary.derive("mu[1] - mu[0] + exp(log(tau))", draws)
        np.testing.assert_allclose(
            derived, draws["mu"][..., 1] - draws["mu"][..., 0] + draws["tau"]
        )

    def test_derive_callable(self, draws):
        derived = summary.derive(lambda d: d["tau"] ** 2, draws)
        np.testing.assert_allclose(derived, draws["tau"] ** 2)

    @pytest.mark.parametrize(
        "quantity",
        ["sigma * 2", "mu +", "__import__('os')", "mu[5]", "tau.real"],
    )
    def test_derive_invalid(self, draws, quantity):
        with pytest.raises(ValueError):
            summary.derive(quantity, draws)

    def test_derive_requires_one_value_per_draw(self, draws):
        with pytest.raises(ValueError):
            summary.derive(lambda d: d["tau"].mean(), draws)
