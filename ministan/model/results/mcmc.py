# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Markov chain Monte Carlo results and diagnostics.

This module holds the output of :py:func:`ministan.sample`. A
:py:class:`Chain` records everything one chain produced: its retained and
warm-up draws of every named parameter, per-iteration sampler statistics, the
adapted step size and metric, and its seed. A :py:class:`FitResult` gathers the
completed chains of a run together with the model, data, and configuration that
produced them, and is the entry point for every downstream analysis:

    - Posterior summaries and post hoc derived quantities
    - Convergence diagnostics (R-hat, effective sample size, divergences) and a
      diagnostic report issuing :py:class:`~ministan.exceptions.ConvergenceWarning`
    - Pointwise log likelihood and PSIS leave-one-out cross-validation
    - Conversion to xarray datasets and ArviZ ``InferenceData``, and storage
      to NetCDF

Results are read-only. Every array held by a chain is frozen when the chain is
built, and the draws are always kept in iteration order.

Example:
    >>> fit = model.mcmc(data=data, chains=4, seed=1)
    >>> fit.summary(parameters=["delta"], derived={"ratio": "mu_b / mu_a"})
    >>> report = fit.diagnose()
    >>> fit.loo()
"""

from __future__ import annotations

import functools
import os
import warnings

from dataclasses import dataclass, field
from typing import Literal, Mapping, Optional, Sequence, TYPE_CHECKING, Union

import arviz as az
import numpy as np
import numpy.typing as npt
import pandas as pd
import xarray as xr

from ministan import utils
from ministan.defaults import (
    DEFAULT_ESS_THRESH,
    DEFAULT_QUANTILES,
    DEFAULT_RHAT_THRESH,
    LENIENT_RHAT_THRESH,
)
from ministan.exceptions import ConvergenceWarning, InsufficientChainsError
from ministan.stats import convergence, summary

if TYPE_CHECKING:
    from ministan import custom_types
    from ministan.dataset import Dataset
    from ministan.model.log_density import BoundModel
    from ministan.model.mcmc.sampler import SamplerConfig
    from ministan.model.model import Model
    from ministan.model.results.loo import LooResult

# Avoid a circular import
loo_module = utils.lazy_import("ministan.model.results.loo")

_STAT_SOURCES = {
    "lp": "log_density",
    "acceptance_rate": "accept_prob",
    "accepted": "accepted",
    "diverging": "divergent",
    "step_size": "step_size",
}
"""Per-iteration sampler statistics, named as ArviZ expects them, and the
keys they are recorded under by the sampler."""


class Chain:
    """The draws and statistics of one completed chain.

    Chains are built by the sampler and never modified afterwards.

    :param chain_id: Position of the chain in the run
    :type chain_id: int
    :param seed: Seed of the chain's random number generator
    :type seed: int
    :param draws: Retained draws of every named parameter, of shape
        (draws, ...)
    :type draws: Mapping[str, npt.NDArray]
    :param warmup_draws: Warm-up draws of every named parameter
    :type warmup_draws: Mapping[str, npt.NDArray]
    :param stats: Per-iteration statistics of the retained draws
    :type stats: Mapping[str, npt.NDArray]
    :param warmup_stats: Per-iteration statistics of the warm-up draws
    :type warmup_stats: Mapping[str, npt.NDArray]
    :param unconstrained: Retained draws on the unconstrained scale, of shape
        (draws, dim)
    :type unconstrained: npt.NDArray
    :param step_size: Step size after adaptation
    :type step_size: float
    :param inv_metric: Diagonal of the inverse metric after adaptation
    :type inv_metric: npt.NDArray
    """

    def __init__(
        self,
        chain_id: int,
        seed: int,
        draws: Mapping[str, npt.NDArray],
        warmup_draws: Mapping[str, npt.NDArray],
        stats: Mapping[str, npt.NDArray],
        warmup_stats: Mapping[str, npt.NDArray],
        unconstrained: npt.NDArray,
        step_size: float,
        inv_metric: npt.NDArray,
    ):
        self.chain_id = chain_id
        self.seed = seed
        self.draws = {name: utils.freeze(value) for name, value in draws.items()}
        self.warmup_draws = {
            name: utils.freeze(value) for name, value in warmup_draws.items()
        }
        self.stats = {name: utils.freeze(value) for name, value in stats.items()}
        self.warmup_stats = {
            name: utils.freeze(value) for name, value in warmup_stats.items()
        }
        self.unconstrained = utils.freeze(unconstrained)
        self.step_size = step_size
        self.inv_metric = utils.freeze(inv_metric)

    @classmethod
    def from_unconstrained(
        cls,
        bound: "BoundModel",
        *,
        chain_id: int,
        seed: int,
        thetas: npt.NDArray,
        stats: Mapping[str, npt.NDArray],
        warmup: int,
        step_size: float,
        inv_metric: npt.NDArray,
    ) -> "Chain":
        """Build a chain from the unconstrained states visited by the sampler.

        Every state is mapped back to the named parameters of the model. A
        rejected step repeats the previous state, whose values are reused.
        """
        evaluated = []
        previous_theta = previous_values = None
        for theta in thetas:
            if previous_values is None or not np.array_equal(theta, previous_theta):
                previous_theta, previous_values = theta, bound.evaluate(theta)
            evaluated.append(previous_values)
        all_draws = {
            name: np.stack([values[name] for values in evaluated])
            for name in evaluated[0]
        }

        return cls(
            chain_id=chain_id,
            seed=seed,
            draws={name: value[warmup:] for name, value in all_draws.items()},
            warmup_draws={name: value[:warmup] for name, value in all_draws.items()},
            stats={name: value[warmup:] for name, value in stats.items()},
            warmup_stats={name: value[:warmup] for name, value in stats.items()},
            unconstrained=thetas[warmup:],
            step_size=step_size,
            inv_metric=inv_metric,
        )

    def __repr__(self) -> str:
        return (
            f"Chain(chain_id={self.chain_id}, draws={self.n_draws}, "
            f"warmup={self.n_warmup}, divergences={self.n_divergent})"
        )

    @property
    def n_draws(self) -> int:
        """Number of retained draws."""
        return len(self.unconstrained)

    @property
    def n_warmup(self) -> int:
        """Number of warm-up draws."""
        return len(self.warmup_stats["accepted"])

    @property
    def parameter_names(self) -> tuple[str, ...]:
        """Names of every quantity with draws in this chain."""
        return tuple(self.draws)

    @property
    def accepted(self) -> npt.NDArray:
        """Whether each retained draw came from an accepted proposal."""
        return self.stats["accepted"]

    @property
    def divergent(self) -> npt.NDArray:
        """Whether each retained draw came from a divergent proposal."""
        return self.stats["divergent"]

    @property
    def log_density(self) -> npt.NDArray:
        """Log density of each retained draw on the unconstrained scale."""
        return self.stats["log_density"]

    @property
    def n_divergent(self) -> int:
        """Number of divergent transitions after warm-up."""
        return int(self.divergent.sum())

    @property
    def acceptance_rate(self) -> float:
        """Mean acceptance probability after warm-up."""
        return float(self.stats["accept_prob"].mean())


@dataclass(frozen=True)
class DiagnosticReport:
    """Outcome of :py:meth:`FitResult.diagnose`.

    :ivar table: Per-element diagnostics (``r_hat``, ``ess_bulk``, ``ess``) and
        the boolean flags ``r_hat_failed`` and ``ess_failed``
    :ivar divergences: Number of divergent transitions per chain
    :ivar r_hat_thresh: R-hat above which an element is flagged
    :ivar ess_thresh: Total effective sample size below which an element is
        flagged (the per-chain threshold times the number of chains)
    """

    table: pd.DataFrame
    divergences: dict[int, int]
    r_hat_thresh: float
    ess_thresh: float
    messages: tuple[str, ...] = field(default=())

    @property
    def failed_r_hat(self) -> list[str]:
        """Elements whose R-hat exceeds the threshold."""
        return self.table.index[self.table["r_hat_failed"]].tolist()

    @property
    def failed_ess(self) -> list[str]:
        """Elements whose bulk effective sample size is below the threshold."""
        return self.table.index[self.table["ess_failed"]].tolist()

    @property
    def n_divergent(self) -> int:
        """Total number of divergent transitions after warm-up."""
        return sum(self.divergences.values())

    @property
    def passed(self) -> bool:
        """Whether no diagnostic flagged the fit."""
        return not (self.failed_r_hat or self.failed_ess or self.n_divergent)

    def __str__(self) -> str:
        return "\n".join(self.messages) if self.messages else "All diagnostics passed."


class FitResult:
    """All completed chains of one sampling run.

    Users will not typically instantiate this class directly. It is returned by
    :py:func:`ministan.sample` and :py:meth:`ministan.Model.mcmc`.

    :param model: The model that was sampled
    :type model: Model
    :param bound: The model bound to the data it was conditioned on
    :type bound: BoundModel
    :param config: Configuration of the run
    :type config: SamplerConfig
    :param seed: Seed of the run
    :type seed: int
    :param chains: Completed chains, in chain order
    :type chains: Sequence[Chain]
    :param failed: Messages of the chains that failed to initialize, by chain id
    :type failed: Optional[Mapping[int, str]]
    :param cancelled: Ids of the chains that were cancelled
    :type cancelled: Sequence[int]

    :raises ValueError: If the chains differ in length or parameter set
    """

    def __init__(
        self,
        model: "Model",
        bound: "BoundModel",
        config: "SamplerConfig",
        seed: int,
        chains: Sequence[Chain],
        failed: Optional[Mapping[int, str]] = None,
        cancelled: Sequence[int] = (),
    ):
        # Every chain must cover the same draws of the same parameters
        for chain in chains[1:]:
            if chain.n_draws != chains[0].n_draws:
                raise ValueError(
                    f"Chain {chain.chain_id} has {chain.n_draws} draws; chain "
                    f"{chains[0].chain_id} has {chains[0].n_draws}."
                )
            if set(chain.parameter_names) != set(chains[0].parameter_names) or any(
                chain.draws[name].shape != chains[0].draws[name].shape
                for name in chain.parameter_names
            ):
                raise ValueError(
                    f"Chain {chain.chain_id} does not hold the same parameters as "
                    f"chain {chains[0].chain_id}."
                )

        self.model = model
        self.bound = bound
        self.data = bound.data
        self.config = config
        self.seed = seed
        self.chains = tuple(chains)
        self.failed = dict(failed or {})
        self.cancelled = tuple(cancelled)

    def __repr__(self) -> str:
        return (
            f"FitResult(chains={self.n_chains}, draws={self.n_draws}, "
            f"parameters={list(self.parameter_names)})"
        )

    def _require_chains(self, required: int = 1) -> None:
        if self.n_chains < required:
            raise InsufficientChainsError(required=required, available=self.n_chains)

    @property
    def n_chains(self) -> int:
        """Number of completed chains."""
        return len(self.chains)

    @property
    def n_draws(self) -> int:
        """Number of retained draws per chain."""
        return self.chains[0].n_draws if self.chains else 0

    @property
    def chain_ids(self) -> list[int]:
        """Ids of the completed chains."""
        return [chain.chain_id for chain in self.chains]

    @property
    def parameter_names(self) -> tuple[str, ...]:
        """Names of every quantity with draws: latent and transformed parameters."""
        return self.chains[0].parameter_names if self.chains else ()

    def _resolve_parameters(
        self, parameters: Union[str, Sequence[str], None]
    ) -> list[str]:
        """Turn a parameter query into a list of known names."""
        if parameters is None or parameters == "all":
            return list(self.parameter_names)
        if isinstance(parameters, str):
            parameters = [parameters]
        parameters = list(parameters)
        if unknown := [name for name in parameters if name not in self.parameter_names]:
            raise ValueError(
                f"Unknown parameter(s) {unknown}; options are "
                f"{list(self.parameter_names)}."
            )
        return parameters

    def draws(
        self,
        parameters: Union[str, Sequence[str], None] = None,
        warmup: bool = False,
    ) -> dict[str, npt.NDArray]:
        """Draws of named quantities, stacked over chains.

        :param parameters: Names to return, or "all". Defaults to all.
        :type parameters: Union[str, Sequence[str], None]
        :param warmup: Whether to return the warm-up draws instead of the
            retained ones. Defaults to False.
        :type warmup: bool

        :returns: Arrays of shape (chains, draws, ...) by name
        :rtype: dict[str, npt.NDArray]

        :raises InsufficientChainsError: If no chain completed
        """
        self._require_chains(1)
        return {
            name: np.stack(
                [
                    (chain.warmup_draws if warmup else chain.draws)[name]
                    for chain in self.chains
                ]
            )
            for name in self._resolve_parameters(parameters)
        }

    def derive(self, quantity: "custom_types.DerivedQuantity") -> npt.NDArray:
        """Compute a quantity from the draws without re-sampling.

        :param quantity: An expression string over parameter names (e.g.
            ``"mu_b - mu_a"``) or a callable taking the mapping returned by
            :py:meth:`draws`
        :type quantity: custom_types.DerivedQuantity

        :returns: Draws of the quantity, of shape (chains, draws, ...)
        :rtype: npt.NDArray
        """
        return summary.derive(quantity, self.draws())

    def _to_dataset(
        self, arrays: Mapping[str, npt.NDArray], n_draws: int
    ) -> xr.Dataset:
        """Package (chains, draws, ...) arrays as an xarray dataset."""
        return xr.Dataset(
            {
                name: (
                    ("chain", "draw")
                    + tuple(f"{name}_dim_{i}" for i in range(value.ndim - 2)),
                    value,
                )
                for name, value in arrays.items()
            },
            coords={"chain": self.chain_ids, "draw": np.arange(n_draws)},
            attrs={"seed": self.seed, "kernel": self.config.kernel},
        )

    @functools.cached_property
    def posterior(self) -> xr.Dataset:
        """Retained draws of every named quantity as an xarray dataset."""
        return self._to_dataset(self.draws(), self.n_draws)

    @functools.cached_property
    def warmup(self) -> xr.Dataset:
        """Warm-up draws of every named quantity as an xarray dataset."""
        return self._to_dataset(self.draws(warmup=True), self.config.warmup)

    def _stats(self, warmup: bool) -> dict[str, npt.NDArray]:
        self._require_chains(1)
        return {
            name: np.stack(
                [
                    (chain.warmup_stats if warmup else chain.stats)[source]
                    for chain in self.chains
                ]
            )
            for name, source in _STAT_SOURCES.items()
        }

    @functools.cached_property
    def sample_stats(self) -> xr.Dataset:
        """Per-iteration sampler statistics of the retained draws."""
        return self._to_dataset(self._stats(warmup=False), self.n_draws)

    def divergences(self) -> pd.Series:
        """Number of divergent transitions after warm-up, per chain."""
        return pd.Series(
            [chain.n_divergent for chain in self.chains],
            index=pd.Index(self.chain_ids, name="chain"),
            name="divergences",
        )

    def summary(
        self,
        parameters: Union[str, Sequence[str], None] = "all",
        quantiles: Sequence["custom_types.Float"] = DEFAULT_QUANTILES,
        derived: Optional[Mapping[str, "custom_types.DerivedQuantity"]] = None,
        kind: Literal["all", "stats", "diagnostics"] = "all",
    ) -> pd.DataFrame:
        """Posterior summary over the pooled draws of every chain.

        :param parameters: Names to summarize, or "all". Defaults to "all".
        :type parameters: Union[str, Sequence[str], None]
        :param quantiles: Quantiles to report. Defaults to 2.5%, 50%, 97.5%.
        :type quantiles: Sequence[custom_types.Float]
        :param derived: Derived quantities to summarize as well, by name. See
            :py:meth:`derive`.
        :type derived: Optional[Mapping[str, custom_types.DerivedQuantity]]
        :param kind: "stats" for the mean, sd, and quantiles; "diagnostics" for
            the MCSE of the mean, ESS, bulk ESS, and R-hat; "all" for both.
            Defaults to "all".
        :type kind: Literal["all", "stats", "diagnostics"]

        :returns: One row per scalar element
        :rtype: pd.DataFrame

        :raises InsufficientChainsError: If diagnostics are requested and fewer
            than 2 chains completed
        """
        if kind != "stats":
            self._require_chains(2)
        draws = self.draws(parameters)
        for name, quantity in (derived or {}).items():
            if name in draws:
                raise ValueError(f"Derived quantity '{name}' shadows a parameter.")
            draws[name] = self.derive(quantity)
        return summary.summarize(draws, quantiles=quantiles, kind=kind)

    def ess(
        self,
        parameters: Union[str, Sequence[str], None] = "all",
        method: Literal["basic", "bulk"] = "basic",
    ) -> dict[str, Union[float, npt.NDArray]]:
        """Effective sample size of every element of the requested parameters."""
        return {
            name: convergence.ess(value, method=method)
            for name, value in self.draws(parameters).items()
        }

    def rhat(
        self,
        parameters: Union[str, Sequence[str], None] = "all",
        split: bool = False,
    ) -> dict[str, Union[float, npt.NDArray]]:
        """R-hat of every element of the requested parameters.

        :raises InsufficientChainsError: If fewer than 2 chains completed
        """
        self._require_chains(2)
        return {
            name: convergence.rhat(value, split=split)
            for name, value in self.draws(parameters).items()
        }

    def calculate_diagnostics(
        self, parameters: Union[str, Sequence[str], None] = "all"
    ) -> pd.DataFrame:
        """Per-element MCSE, effective sample sizes, and R-hat."""
        return self.summary(parameters=parameters, kind="diagnostics")

    def evaluate_variable_diagnostic_stats(
        self,
        diagnostics: pd.DataFrame,
        r_hat_thresh: "custom_types.Float" = DEFAULT_RHAT_THRESH,
        ess_thresh: "custom_types.Float" = DEFAULT_ESS_THRESH,
    ) -> pd.DataFrame:
        """Flag elements with a high R-hat or a low bulk effective sample size.

        :param diagnostics: Output of :py:meth:`calculate_diagnostics`
        :type diagnostics: pd.DataFrame
        :param r_hat_thresh: R-hat above which an element fails. Defaults to 1.01.
        :type r_hat_thresh: custom_types.Float
        :param ess_thresh: Bulk ESS per chain below which an element fails.
            Defaults to 100.
        :type ess_thresh: custom_types.Float

        :returns: ``diagnostics`` with the boolean columns ``r_hat_failed`` and
            ``ess_failed`` added
        :rtype: pd.DataFrame
        """
        tests = diagnostics.copy()
        tests["r_hat_failed"] = ~(tests["r_hat"] <= r_hat_thresh)
        tests["ess_failed"] = ~(tests["ess_bulk"] >= ess_thresh * self.n_chains)
        return tests

    def identify_failed_diagnostics(
        self,
        tests: pd.DataFrame,
        r_hat_thresh: "custom_types.Float",
        ess_thresh: "custom_types.Float",
        silent: bool = False,
    ) -> DiagnosticReport:
        """Collect failed tests into a report and warn about them.

        Every failing category issues one
        :py:class:`~ministan.exceptions.ConvergenceWarning`. Unless ``silent``,
        a summary of every test is also printed.
        """
        divergences = self.divergences().to_dict()
        n_elements = len(tests)
        n_samples = self.n_chains * self.n_draws
        n_divergent = sum(divergences.values())

        messages = []
        if n_failed := int(tests["r_hat_failed"].sum()):
            messages.append(
                f"{n_failed} of {n_elements} parameter element(s) have R-hat above "
                f"{r_hat_thresh}: {tests.index[tests['r_hat_failed']].tolist()}."
            )
        if n_failed := int(tests["ess_failed"].sum()):
            messages.append(
                f"{n_failed} of {n_elements} parameter element(s) have a bulk ESS "
                f"below {ess_thresh * self.n_chains:g}: "
                f"{tests.index[tests['ess_failed']].tolist()}."
            )
        if n_divergent:
            messages.append(
                f"{n_divergent} of {n_samples} post-warm-up transition(s) diverged "
                f"(per chain: {divergences})."
            )
        for message in messages:
            warnings.warn(message, ConvergenceWarning)

        if not silent:
            header = "Diagnostic tests results' summaries:"
            print(header)
            print("-" * len(header))
            for column, label in (
                ("r_hat_failed", f"had an R-hat above {r_hat_thresh}"),
                ("ess_failed", f"had a bulk ESS below {ess_thresh * self.n_chains:g}"),
            ):
                n_failed = int(tests[column].sum())
                print(
                    f"{n_failed} of {n_elements} ({n_failed / n_elements:.2%}) "
                    f"parameter elements {label}."
                )
            print(
                f"{n_divergent} of {n_samples} ({n_divergent / n_samples:.2%}) "
                "samples diverged."
            )

        return DiagnosticReport(
            table=tests,
            divergences=divergences,
            r_hat_thresh=float(r_hat_thresh),
            ess_thresh=float(ess_thresh * self.n_chains),
            messages=tuple(messages),
        )

    def diagnose(
        self,
        r_hat_thresh: Optional["custom_types.Float"] = None,
        ess_thresh: "custom_types.Float" = DEFAULT_ESS_THRESH,
        policy: Literal["default", "lenient"] = "default",
        silent: bool = False,
    ) -> DiagnosticReport:
        """Run every convergence diagnostic and report the failures.

        Problems are reported, never raised: a fit that fails its diagnostics
        can still be inspected.

        :param r_hat_thresh: R-hat above which a parameter element fails.
            Defaults to 1.01 under the default policy and 1.1 under the lenient
            one.
        :type r_hat_thresh: Optional[custom_types.Float]
        :param ess_thresh: Bulk effective sample size per chain below which a
            parameter element fails. Defaults to 100.
        :type ess_thresh: custom_types.Float
        :param policy: Strictness policy setting the default R-hat threshold.
        :type policy: Literal["default", "lenient"]
        :param silent: Whether to suppress the printed summary. Defaults to False.
        :type silent: bool

        :returns: The diagnostic report
        :rtype: DiagnosticReport

        :raises InsufficientChainsError: If fewer than 2 chains completed
        """
        if r_hat_thresh is None:
            r_hat_thresh = (
                LENIENT_RHAT_THRESH if policy == "lenient" else DEFAULT_RHAT_THRESH
            )
        tests = self.evaluate_variable_diagnostic_stats(
            self.calculate_diagnostics(), r_hat_thresh=r_hat_thresh, ess_thresh=ess_thresh
        )
        return self.identify_failed_diagnostics(
            tests, r_hat_thresh=r_hat_thresh, ess_thresh=ess_thresh, silent=silent
        )

    def pointwise_log_likelihood(
        self, data: Union["Dataset", Mapping[str, "npt.ArrayLike"], None] = None
    ) -> npt.NDArray:
        """Log likelihood of every observation at every retained draw.

        :param data: Data to evaluate the likelihood on. Defaults to the data
            the model was fit to. Passing the same observations in another order
            gives the same values in that order.
        :type data: Union[Dataset, Mapping[str, npt.ArrayLike], None]

        :returns: Array of shape (chains, draws, observations)
        :rtype: npt.NDArray
        """
        self._require_chains(1)
        bound = self.bound if data is None else self.model.bind(data)
        result = np.empty((self.n_chains, self.n_draws, bound.n_observations))
        for chain_index, chain in enumerate(self.chains):
            previous = None
            for draw_index, theta in enumerate(chain.unconstrained):
                if previous is None or not np.array_equal(theta, previous):
                    values = bound.pointwise_log_likelihood(theta)
                    previous = theta
                result[chain_index, draw_index] = values
        return result

    def loo(self, data=None, **kwargs) -> "LooResult":
        """PSIS leave-one-out cross-validation. See :py:func:`ministan.loo`."""
        return loo_module.loo(self, data=data, **kwargs)

    def to_inference_data(self) -> az.InferenceData:
        """Convert the fit to an ArviZ ``InferenceData`` object.

        The object holds the posterior and warm-up draws, the sampler
        statistics, the pointwise log likelihood, and the observed data.
        """
        self._require_chains(1)
        posterior = self.draws()
        dims = {
            name: [f"{name}_dim_{i}" for i in range(value.ndim - 2)]
            for name, value in posterior.items()
        }
        dims["log_lik"] = ["observation"]
        return az.from_dict(
            posterior=posterior,
            sample_stats=self._stats(warmup=False),
            log_likelihood={"log_lik": self.pointwise_log_likelihood()},
            observed_data={name: np.asarray(value) for name, value in self.data.items()},
            warmup_posterior=self.draws(warmup=True) if self.config.warmup else None,
            warmup_sample_stats=self._stats(warmup=True) if self.config.warmup else None,
            save_warmup=bool(self.config.warmup),
            dims=dims,
        )

    def to_netcdf(self, filename: Union[str, os.PathLike]) -> str:
        """Write the fit to a NetCDF file with the h5netcdf engine.

        The file can be read back with :py:func:`arviz.from_netcdf`.

        :param filename: Path of the file to write
        :type filename: Union[str, os.PathLike]

        :returns: The path written to
        :rtype: str
        """
        return self.to_inference_data().to_netcdf(str(filename), engine="h5netcdf")
