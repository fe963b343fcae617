"""Tests for PSIS leave-one-out cross-validation and model comparison."""

import arviz as az
import numpy as np
import pytest

import ministan as ms
from ministan.model.results.loo import LooResult, loo_from_log_likelihood


class TestLooFromLogLikelihood:
    def test_stable_likelihood(self):
        """With a likelihood that barely varies, LOO equals the plain average."""
        rng = np.random.default_rng(0)
        log_lik = -1.0 + 1e-3 * rng.normal(size=(4000, 5))
        result = loo_from_log_likelihood(log_lik)
        assert isinstance(result, LooResult)
        assert result.elpd_loo == pytest.approx(-5.0, abs=1e-3)
        assert result.p_loo == pytest.approx(0.0, abs=1e-3)
        assert result.looic == pytest.approx(-2 * result.elpd_loo)
        assert result.looic_se == pytest.approx(2 * result.se)
        assert result.n_draws == 4000
        assert result.n_observations == 5
        assert result.n_flagged == 0
        assert result.pointwise.columns.tolist() == [
            "elpd_loo",
            "p_loo",
            "pareto_k",
            "flagged",
        ]

    def test_matches_arviz(self):
        rng = np.random.default_rng(5)
        log_lik = -1.0 + 0.5 * rng.standard_t(df=3, size=(2000, 4))
        result = loo_from_log_likelihood(log_lik)
        expected = az.loo(
            az.from_dict(log_likelihood={"y": log_lik[None]}), pointwise=True, reff=1.0
        )
        assert result.elpd_loo == pytest.approx(expected["elpd_loo"])
        assert result.se == pytest.approx(expected["se"])
        np.testing.assert_allclose(
            result.pointwise["pareto_k"].to_numpy(), expected["pareto_k"].values
        )

    def test_chains_are_pooled(self):
        rng = np.random.default_rng(1)
        log_lik = -2.0 + 0.1 * rng.normal(size=(4, 500, 3))
        result = loo_from_log_likelihood(log_lik)
        assert result.n_draws == 2000
        assert result.n_observations == 3

    def test_influential_observation_is_flagged(self):
        rng = np.random.default_rng(2)
        log_lik = -1.0 + 0.1 * rng.normal(size=(4000, 3))
        log_lik[:, 0] = np.log(rng.uniform(size=4000))
        with pytest.warns(ms.ImportanceSamplingWarning, match="1 of 3"):
            result = loo_from_log_likelihood(log_lik)
        assert result.n_flagged == 1
        assert result.pointwise["flagged"].tolist() == [True, False, False]
        assert result.pointwise.loc[0, "pareto_k"] > 0.7
        assert "Pareto k" in str(result)

    def test_invalid_shape(self):
        with pytest.raises(ValueError):
            loo_from_log_likelihood(np.zeros(10))


class TestLoo:
    def test_fit(self, two_group_fit):
        result = ms.loo(two_group_fit)
        assert result.n_draws == 4000
        assert result.n_observations == 10
        assert np.isfinite(result.elpd_loo)
        assert 0.5 < result.p_loo < 4
        assert two_group_fit.loo().elpd_loo == pytest.approx(result.elpd_loo)

    def test_order_of_observations(self, two_group_fit, two_group_data):
        order = np.random.default_rng(3).permutation(len(two_group_data))
        result = ms.loo(two_group_fit)
        reordered = ms.loo(two_group_fit, data=two_group_data.reorder(order))
        assert reordered.elpd_loo == pytest.approx(result.elpd_loo)
        assert reordered.se == pytest.approx(result.se)
        np.testing.assert_allclose(
            reordered.pointwise["elpd_loo"].to_numpy(),
            result.pointwise["elpd_loo"].to_numpy()[order],
        )


class TestCompare:
    def test_grouped_beats_pooled(self, two_group_fit, pooled_fit):
        table = ms.compare({"pooled": pooled_fit, "grouped": two_group_fit})
        assert table.index.tolist() == ["grouped", "pooled"]
        assert table["rank"].tolist() == [0, 1]
        assert table.loc["grouped", "elpd_diff"] == 0
        assert table.loc["grouped", "dse"] == 0
        assert not table.loc["grouped", "distinguishable"]
        assert table.loc["pooled", "elpd_diff"] > 0
        assert table.loc["pooled", "distinguishable"]
        assert table["weight"].sum() == pytest.approx(1.0, abs=1e-3)

    def test_sequences_and_loo_results(self, two_group_fit, pooled_fit):
        table = ms.compare([ms.loo(two_group_fit), pooled_fit])
        assert set(table.index) == {"model_0", "model_1"}
        assert table.index[0] == "model_0"

    def test_z_threshold(self, two_group_fit, pooled_fit):
        table = ms.compare({"grouped": two_group_fit, "pooled": pooled_fit}, z=1e6)
        assert not table["distinguishable"].any()

    def test_invalid(self, two_group_fit):
        with pytest.raises(ValueError, match="At least two"):
            ms.compare({"only": two_group_fit})
        other = loo_from_log_likelihood(
            -1.0 + 0.01 * np.random.default_rng(4).normal(size=(100, 4))
        )
        with pytest.raises(ValueError, match="same observations"):
            ms.compare({"fit": two_group_fit, "other": other})
