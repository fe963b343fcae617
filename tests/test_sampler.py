"""Tests for the multi-chain sampler: configuration, seeding, failures, and cancellation."""

import logging
import threading

import numpy as np
import pytest

import ministan as ms
from ministan.builtin_models import NealsFunnel, TwoGroupNormal

from conftest import PooledNormal


class TestSamplerConfig:
    def test_defaults(self):
        config = ms.SamplerConfig()
        assert (config.chains, config.iterations, config.warmup) == (4, 2000, 1000)
        assert config.kernel == "metropolis"
        assert config.target_acceptance == 0.6
        assert ms.SamplerConfig(kernel="hmc").target_acceptance == 0.8
        assert ms.SamplerConfig(target_acceptance=0.7).target_acceptance == 0.7

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"chains": 0},
            {"chains": 2.5},
            {"warmup": -1},
            {"iterations": 1000, "warmup": 1000},
            {"seed": -1},
            {"kernel": "nuts"},
            {"target_acceptance": 1.0},
            {"parallel_chains": 0},
            {"max_seconds": 0},
            {"step_size": -0.1},
            {"inits": "zero"},
            {"chains": 2, "inits": [{}, {}, {}]},
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            ms.SamplerConfig(**kwargs)

    def test_chain_inits(self):
        assert ms.SamplerConfig(chains=3).chain_inits() == [None, None, None]
        values = {"mu": 1.0}
        assert ms.SamplerConfig(chains=2, inits=values).chain_inits() == [values, values]
        per_chain = [{"mu": 1.0}, {"mu": 2.0}]
        assert ms.SamplerConfig(chains=2, inits=per_chain).chain_inits() == per_chain


class TestSeeding:
    """Runs are reproducible from their seed and chains are independent."""

    def test_same_seed_same_draws(self, two_group_data, small_run_kwargs):
        first = TwoGroupNormal().mcmc(two_group_data, seed=11, **small_run_kwargs)
        second = TwoGroupNormal().mcmc(two_group_data, seed=11, **small_run_kwargs)
        assert first.seed == second.seed == 11
        np.testing.assert_array_equal(first.draws()["mu_a"], second.draws()["mu_a"])

    def test_different_seeds_differ(self, two_group_data, small_run_kwargs):
        first = TwoGroupNormal().mcmc(two_group_data, seed=11, **small_run_kwargs)
        second = TwoGroupNormal().mcmc(two_group_data, seed=12, **small_run_kwargs)
        assert not np.array_equal(first.draws()["mu_a"], second.draws()["mu_a"])

    def test_chains_use_different_streams(self, two_group_data, small_run_kwargs):
        fit = TwoGroupNormal().mcmc(two_group_data, seed=11, **small_run_kwargs)
        first, second = fit.chains
        assert first.seed != second.seed
        assert not np.array_equal(first.draws["mu_a"], second.draws["mu_a"])

    def test_parallelism_does_not_change_draws(self, two_group_data, small_run_kwargs):
        parallel = TwoGroupNormal().mcmc(two_group_data, seed=5, **small_run_kwargs)
        serial = TwoGroupNormal().mcmc(
            two_group_data, seed=5, parallel_chains=1, **small_run_kwargs
        )
        for name in parallel.parameter_names:
            np.testing.assert_array_equal(parallel.draws()[name], serial.draws()[name])

    def test_global_seed(self, two_group_data, small_run_kwargs):
        ms.manual_seed(7)
        first = TwoGroupNormal().mcmc(two_group_data, **small_run_kwargs)
        ms.manual_seed(7)
        second = TwoGroupNormal().mcmc(two_group_data, **small_run_kwargs)
        assert first.seed == second.seed
        np.testing.assert_array_equal(first.draws()["delta"], second.draws()["delta"])


class TestSample:
    def test_shapes_and_bookkeeping(self, two_group_data, small_run_kwargs):
        fit = ms.sample(TwoGroupNormal(), two_group_data, seed=3, **small_run_kwargs)
        assert fit.n_chains == 2
        assert fit.n_draws == 100
        assert fit.chain_ids == [0, 1]
        assert fit.failed == {} and fit.cancelled == ()
        assert set(fit.parameter_names) == {"mu_a", "delta", "mu_b"}
        for chain in fit.chains:
            assert chain.n_warmup == 100
            assert chain.unconstrained.shape == (100, 2)
            assert chain.step_size > 0
            assert chain.inv_metric.shape == (2,)
            assert 0 <= chain.acceptance_rate <= 1

    def test_config_with_overrides(self, two_group_data):
        config = ms.SamplerConfig(chains=3, iterations=200, warmup=100, seed=3)
        fit = ms.sample(TwoGroupNormal(), two_group_data, config=config, chains=1)
        assert fit.n_chains == 1
        assert fit.config.seed == 3

    def test_user_inits(self, two_group_data):
        inits = {"mu_a": 10.0, "delta": 10.0}
        fit = TwoGroupNormal().mcmc(
            two_group_data, chains=2, iterations=2, warmup=1, seed=0, inits=inits
        )
        # The first warm-up draw starts from the supplied values
        for chain in fit.chains:
            assert abs(chain.warmup_draws["mu_a"][0] - 10.0) < 5

    def test_prior_inits(self, small_run_kwargs):
        fit = ms.builtin_models.EightSchools().mcmc(
            seed=0, inits="prior", **small_run_kwargs
        )
        assert fit.n_chains == 2

    def test_hmc(self):
        fit = NealsFunnel(n=1).mcmc(
            chains=2, iterations=150, warmup=50, kernel="hmc", seed=0
        )
        assert fit.n_draws == 100
        assert fit.draws()["x"].shape == (2, 100, 1)
        assert fit.config.target_acceptance == 0.8
        assert np.all(np.isfinite(fit.sample_stats["lp"].values))

    def test_acceptance_warning(self, two_group_data):
        with pytest.warns(ms.ConvergenceWarning, match="acceptance rate"):
            PooledNormal().mcmc(
                two_group_data,
                chains=1,
                iterations=200,
                warmup=1,
                step_size=1e4,
                seed=0,
            )


class TestFailures:
    """Chains that cannot start and runs that are cancelled."""

    def test_partial_failure(self, two_group_data, small_run_kwargs):
        good = {"mu_a": 10.0, "delta": 10.0, "sigma": 1.0}
        bad = {"mu_a": 10.0, "delta": 10.0, "sigma": -1.0}
        with pytest.warns(ms.PartialFailureWarning, match="3 of 4"):
            fit = TwoGroupNormal(sigma=None).mcmc(
                two_group_data,
                chains=4,
                iterations=200,
                warmup=100,
                seed=0,
                inits=[good, good, good, bad],
            )
        assert fit.chain_ids == [0, 1, 2]
        assert list(fit.failed) == [3]
        assert fit.draws()["sigma"].shape == (3, 100)

    def test_total_failure(self, two_group_data, small_run_kwargs):
        bad = {"mu_a": 10.0, "delta": 10.0, "sigma": -1.0}
        with pytest.raises(ms.NonFiniteInitError) as excinfo:
            TwoGroupNormal(sigma=None).mcmc(
                two_group_data, seed=0, inits=bad, **small_run_kwargs
            )
        assert excinfo.value.chain_id == 0
        assert excinfo.value.attempts == 1

    def test_cancel_before_start(self, two_group_data, small_run_kwargs):
        event = threading.Event()
        event.set()
        with pytest.warns(ms.PartialFailureWarning, match="2 were cancelled"):
            fit = ms.sample(
                TwoGroupNormal(),
                two_group_data,
                cancel_event=event,
                seed=0,
                **small_run_kwargs,
            )
        assert fit.n_chains == 0
        assert fit.cancelled == (0, 1)
        with pytest.raises(ms.InsufficientChainsError):
            fit.draws()

    def test_completed_chains_are_kept(self, two_group_data, caplog):
        """Chains finished before a cancellation stay in the fit, whole."""
        event = threading.Event()

        class CancelWhenChainStarts(logging.Handler):
            def emit(self, record):
                if record.getMessage().startswith("Chain 1 initialized"):
                    event.set()

        caplog.set_level(logging.DEBUG, logger="ministan.model.mcmc.sampler")
        logger = logging.getLogger("ministan.model.mcmc.sampler")
        handler = CancelWhenChainStarts(level=logging.DEBUG)
        logger.addHandler(handler)
        try:
            with pytest.warns(
                ms.PartialFailureWarning, match="1 of 3 chain\\(s\\) completed"
            ):
                fit = TwoGroupNormal().mcmc(
                    two_group_data,
                    chains=3,
                    iterations=200,
                    warmup=100,
                    parallel_chains=1,
                    cancel_event=event,
                    seed=0,
                )
        finally:
            logger.removeHandler(handler)

        assert [chain.chain_id for chain in fit.chains] == [0]
        assert fit.cancelled == (1, 2)
        assert fit.chains[0].draws["mu_a"].shape == (100,)
        assert fit.chains[0].warmup_draws["mu_a"].shape == (100,)
        assert fit.draws()["delta"].shape == (1, 100)

    def test_wall_clock_cap(self, two_group_data):
        with pytest.warns(ms.PartialFailureWarning):
            fit = TwoGroupNormal().mcmc(
                two_group_data,
                chains=2,
                iterations=10**6,
                warmup=10,
                max_seconds=0.2,
                seed=0,
            )
        assert fit.n_chains == 0
        assert fit.cancelled == (0, 1)
