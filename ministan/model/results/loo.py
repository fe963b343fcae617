# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Leave-one-out cross-validation and model comparison.

The expected log pointwise predictive density of a model,

.. math::
    \\mathrm{elpd}_{loo} = \\sum_{i=1}^{n} \\log p(y_i \\mid y_{-i}),

measures how well it predicts each observation when that observation is left
out of the fit. :py:func:`loo` estimates it from a single fit by
Pareto-smoothed importance sampling (PSIS-LOO): the draws of the full posterior
are reweighted by :math:`1 / p(y_i \\mid \\theta)` to approximate the posterior
without observation :math:`i`. The Pareto shape :math:`\\hat{k}` of each
observation's weights tells whether that approximation can be trusted;
observations above the threshold are flagged and warned about.

:py:func:`compare` ranks several fits of the same data by their
:math:`\\mathrm{elpd}_{loo}` and reports whether the differences are
distinguishable from zero given their standard errors.

Example:
    >>> loo_a = ms.loo(fit_a)
    >>> loo_a.pointwise[loo_a.pointwise["flagged"]]
    >>> ms.compare({"pooled": fit_a, "grouped": fit_b})
"""

from __future__ import annotations

import warnings

from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence, TYPE_CHECKING, Union

import arviz as az
import numpy as np
import numpy.typing as npt
import pandas as pd

from scipy.special import logsumexp

from ministan.defaults import DEFAULT_COMPARE_Z, DEFAULT_PARETO_K_THRESH
from ministan.exceptions import ImportanceSamplingWarning
from ministan.model.results.mcmc import FitResult
from ministan.stats import convergence

if TYPE_CHECKING:
    from ministan import custom_types
    from ministan.dataset import Dataset


@dataclass(frozen=True)
class LooResult:
    """PSIS-LOO estimate for one fit.

    :ivar elpd_loo: Expected log pointwise predictive density
    :ivar se: Standard error of ``elpd_loo``
    :ivar p_loo: Effective number of parameters
    :ivar looic: LOO information criterion, ``-2 * elpd_loo``
    :ivar n_draws: Number of posterior draws used
    :ivar pareto_k_thresh: Pareto shape above which an observation is flagged
    :ivar pointwise: Table indexed by observation with the columns
        ``elpd_loo``, ``p_loo``, ``pareto_k``, and ``flagged``
    :ivar elpd_data: The pointwise ArviZ estimate the fields are taken from,
        as accepted by :py:func:`arviz.compare`
    """

    elpd_loo: float
    se: float
    p_loo: float
    looic: float
    n_draws: int
    pareto_k_thresh: float
    pointwise: pd.DataFrame
    elpd_data: pd.Series = field(repr=False, compare=False)

    @property
    def looic_se(self) -> float:
        """Standard error of ``looic``."""
        return 2 * self.se

    @property
    def n_observations(self) -> int:
        """Number of observations."""
        return len(self.pointwise)

    @property
    def n_flagged(self) -> int:
        """Number of observations whose Pareto shape exceeds the threshold."""
        return int(self.pointwise["flagged"].sum())

    def __str__(self) -> str:
        lines = [
            f"PSIS-LOO from {self.n_draws} draws and {self.n_observations} observations",
            f"    elpd_loo {self.elpd_loo:10.2f}  (se {self.se:.2f})",
            f"    p_loo    {self.p_loo:10.2f}",
            f"    looic    {self.looic:10.2f}  (se {self.looic_se:.2f})",
        ]
        if self.n_flagged:
            lines.append(
                f"    {self.n_flagged} observation(s) with Pareto k > "
                f"{self.pareto_k_thresh}"
            )
        return "\n".join(lines)


def loo_from_log_likelihood(
    log_lik: "npt.ArrayLike",
    reff: Optional["custom_types.Float"] = None,
    pareto_k_thresh: "custom_types.Float" = DEFAULT_PARETO_K_THRESH,
) -> LooResult:
    """PSIS-LOO from a matrix of pointwise log likelihoods.

    :param log_lik: Log likelihood of every observation at every draw, of
        shape (chains, draws, observations) or (draws, observations)
    :type log_lik: npt.ArrayLike
    :param reff: Relative effective sample size of the draws. Estimated from
        ``log_lik`` when chains are given and None; 1 otherwise.
    :type reff: Optional[custom_types.Float]
    :param pareto_k_thresh: Pareto shape above which an observation is flagged.
        Defaults to 0.7.
    :type pareto_k_thresh: custom_types.Float

    :returns: The estimate
    :rtype: LooResult
    """
    log_lik = np.asarray(log_lik, dtype=float)
    if log_lik.ndim == 3:
        if reff is None:
            with np.errstate(under="ignore"):
                reff = convergence.relative_ess(np.exp(log_lik))
    elif log_lik.ndim == 2:
        log_lik = log_lik[None]
    else:
        raise ValueError(
            "The log likelihood must have shape (chains, draws, observations) or "
            f"(draws, observations); got {log_lik.shape}."
        )
    reff = 1.0 if reff is None or not np.isfinite(reff) else float(reff)
    n_observations = log_lik.shape[-1]
    n_draws = log_lik.shape[0] * log_lik.shape[1]

    # ArviZ warns with its own sample-size dependent threshold; flag with ours
    with warnings.catch_warnings():
        warnings.filterwarnings(
            "ignore", message="Estimated shape parameter of Pareto distribution"
        )
        elpd_data = az.loo(
            az.from_dict(
                log_likelihood={"log_lik": log_lik}, dims={"log_lik": ["observation"]}
            ),
            pointwise=True,
            reff=reff,
            scale="log",
        )
    elpd_i = np.asarray(elpd_data["loo_i"].values, dtype=float)
    pareto_k = np.asarray(elpd_data["pareto_k"].values, dtype=float)
    lppd_i = logsumexp(log_lik.reshape(n_draws, n_observations), axis=0) - np.log(
        n_draws
    )

    pointwise = pd.DataFrame(
        {
            "elpd_loo": elpd_i,
            "p_loo": lppd_i - elpd_i,
            "pareto_k": pareto_k,
            "flagged": pareto_k > pareto_k_thresh,
        },
        index=pd.RangeIndex(n_observations, name="observation"),
    )
    if n_flagged := int(pointwise["flagged"].sum()):
        warnings.warn(
            f"{n_flagged} of {n_observations} observation(s) have a Pareto k above "
            f"{pareto_k_thresh}; their PSIS-LOO estimates are unreliable.",
            ImportanceSamplingWarning,
        )

    elpd = float(elpd_data["elpd_loo"])
    return LooResult(
        elpd_loo=elpd,
        se=float(elpd_data["se"]),
        p_loo=float(elpd_data["p_loo"]),
        looic=-2 * elpd,
        n_draws=n_draws,
        pareto_k_thresh=float(pareto_k_thresh),
        pointwise=pointwise,
        elpd_data=elpd_data,
    )


def loo(
    fit: FitResult,
    data: Union["Dataset", Mapping[str, "npt.ArrayLike"], None] = None,
    pareto_k_thresh: "custom_types.Float" = DEFAULT_PARETO_K_THRESH,
) -> LooResult:
    """PSIS leave-one-out cross-validation of a fit.

    :param fit: The fit to score
    :type fit: FitResult
    :param data: Observations to score. Defaults to the data the model was fit
        to. The aggregate estimate does not depend on the order of the
        observations.
    :type data: Union[Dataset, Mapping[str, npt.ArrayLike], None]
    :param pareto_k_thresh: Pareto shape above which an observation is flagged.
        Defaults to 0.7.
    :type pareto_k_thresh: custom_types.Float

    :returns: The estimate
    :rtype: LooResult
    """
    return loo_from_log_likelihood(
        fit.pointwise_log_likelihood(data), pareto_k_thresh=pareto_k_thresh
    )


def compare(
    fits: Union[Mapping[str, Union[FitResult, LooResult]], Sequence[Union[FitResult, LooResult]]],
    z: "custom_types.Float" = DEFAULT_COMPARE_Z,
) -> pd.DataFrame:
    """Rank fits of the same observations by their expected predictive density.

    The difference in ``elpd_loo`` between each model and the best one is
    reported with the standard error of the pointwise differences. A difference
    is distinguishable from zero when it exceeds ``z`` standard errors.

    :param fits: Fits or LOO results to compare, by name. A sequence is named
        ``model_0``, ``model_1``, and so on.
    :type fits: Union[Mapping[str, Union[FitResult, LooResult]], Sequence[Union[FitResult, LooResult]]]
    :param z: Number of standard errors a difference must exceed. Defaults to 2.
    :type z: custom_types.Float

    :returns: One row per model, best first, with the columns ``rank``,
        ``elpd_loo``, ``p_loo``, ``elpd_diff``, ``weight`` (stacking weight),
        ``se``, ``dse``, ``distinguishable``, and ``n_flagged``
    :rtype: pd.DataFrame

    :raises ValueError: If fewer than two fits are given or they were scored on
        different numbers of observations
    """
    if not isinstance(fits, Mapping):
        fits = {f"model_{i}": fit for i, fit in enumerate(fits)}
    if len(fits) < 2:
        raise ValueError("At least two fits are needed for a comparison.")

    results = {
        name: fit if isinstance(fit, LooResult) else loo(fit)
        for name, fit in fits.items()
    }
    if len({result.n_observations for result in results.values()}) > 1:
        raise ValueError(
            "All fits must be scored on the same observations; got "
            f"{ {name: r.n_observations for name, r in results.items()} }."
        )

    # Rank by elpd, best first, and compare every model to the best one
    table = az.compare(
        {name: result.elpd_data for name, result in results.items()},
        ic="loo",
        scale="log",
    )
    table = table.drop(columns=["warning", "scale"])
    table["distinguishable"] = (table["rank"] > 0) & (
        table["elpd_diff"].abs() > z * table["dse"]
    )
    table["n_flagged"] = [results[name].n_flagged for name in table.index]
    return table
