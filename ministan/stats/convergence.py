# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Convergence diagnostics for Markov chain Monte Carlo draws.

All functions take draws laid out as ``(chains, draws, *shape)``: the first
axis indexes chains, the second the iterations of each chain in the order in
which they were drawn, and any remaining axes the elements of an array-valued
quantity. Results have shape ``shape``, or are floats for scalar quantities.

The estimates themselves are computed by ArviZ. This module fixes the variants
MiniStan reports and the conventions it relies on downstream:

    - **Effective sample size** (:py:func:`ess`): the number of independent
      draws carrying the same information as the autocorrelated draws at hand,
      :math:`\\hat{N}_{eff} = MN / \\hat{\\tau}` with
      :math:`\\hat{\\tau} = 1 + 2 \\sum_t \\hat{\\rho}_t`, autocorrelations
      estimated across all chains and summed with Geyer's initial positive and
      monotone sequence. The result is always clamped to :math:`(0, MN]`.
      Chains too short to estimate any autocorrelation are taken as
      independent draws.
    - **R-hat** (:py:func:`rhat`): the potential scale reduction factor,

      .. math::
          \\hat{R} = \\sqrt{\\frac{\\frac{N - 1}{N} W + \\frac{1}{N} B}{W}}

      where :math:`W` is the mean within-chain variance and :math:`B` is
      :math:`N` times the variance of the chain means. Constant chains give 1
      when they agree and infinity when they do not.

ESS can also be computed on rank-normalized, split chains ("bulk" ESS), and
R-hat on chains split in half.
"""

from __future__ import annotations

from typing import Literal, TYPE_CHECKING, Union

import arviz as az
import numpy as np
import numpy.typing as npt

from ministan.exceptions import InsufficientChainsError

if TYPE_CHECKING:
    from ministan import custom_types

# Minimum number of draws per chain for which ArviZ estimates autocorrelations
MIN_DRAWS = 4

# ArviZ method names of the variants reported here
_ESS_METHODS = {"basic": "identity", "bulk": "bulk"}


def _as_chains(draws: "npt.ArrayLike") -> npt.NDArray:
    """Check and convert draws to a float array of shape (chains, draws, ...)."""
    draws = np.asarray(draws, dtype=float)
    if draws.ndim < 2:
        raise ValueError(
            f"Draws must have shape (chains, draws, ...); got shape {draws.shape}."
        )
    return draws


def _unwrap(values) -> Union[float, npt.NDArray]:
    return float(values) if np.ndim(values) == 0 else values


def _run_arviz(func, draws: npt.NDArray, **kwargs) -> npt.NDArray:
    """Run an ArviZ diagnostic elementwise over draws of shape (chains, draws, ...)."""
    dataset = az.convert_to_dataset({"x": draws})
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.asarray(func(dataset, **kwargs)["x"].values, dtype=float)


def ess(
    draws: "npt.ArrayLike",
    method: Literal["basic", "bulk"] = "basic",
) -> Union[float, npt.NDArray]:
    """Effective sample size of every element of a quantity.

    :param draws: Draws of shape (chains, draws, ...), in iteration order
    :type draws: npt.ArrayLike
    :param method: "basic" estimates the ESS from the raw draws. "bulk" first
        splits the chains in half and rank-normalizes them, which makes the
        estimate robust to heavy tails and sensitive to chains that disagree.
        Defaults to "basic".
    :type method: Literal["basic", "bulk"]

    :returns: The effective sample size, in ``(0, chains * draws]`` for any
        finite draws. Chains shorter than 4 draws give ``chains * draws``.
    :rtype: Union[float, npt.NDArray]

    :raises ValueError: If ``method`` is unknown or the draws are not at least
        two-dimensional

    Example:
        >>> rng = np.random.default_rng(0)
        >>> ess(rng.normal(size=(4, 1000))) > 3000
        True
    """
    if method not in _ESS_METHODS:
        raise ValueError(
            f"Unknown ESS method {method!r}; options are {list(_ESS_METHODS)}."
        )
    draws = _as_chains(draws)
    n_total = draws.shape[0] * draws.shape[1]

    # Too few draws to estimate autocorrelations: count every draw
    if draws.shape[1] < MIN_DRAWS:
        finite = np.isfinite(draws).all(axis=(0, 1))
        return _unwrap(np.where(finite, float(n_total), np.nan))

    # Antithetic chains can give estimates above the number of draws
    values = _run_arviz(az.ess, draws, method=_ESS_METHODS[method])
    return _unwrap(np.minimum(values, n_total))


def rhat(draws: "npt.ArrayLike", split: bool = False) -> Union[float, npt.NDArray]:
    """Potential scale reduction factor of every element of a quantity.

    :param draws: Draws of shape (chains, draws, ...)
    :type draws: npt.ArrayLike
    :param split: Whether to split every chain in half first, which also
        detects trends within single chains. Defaults to False.
    :type split: bool

    :returns: R-hat. Identical chains give a value of 1; constant chains at
        different values give infinity. NaN when chains hold fewer than 4
        draws.
    :rtype: Union[float, npt.NDArray]

    :raises InsufficientChainsError: If fewer than 2 chains are given
    """
    draws = _as_chains(draws)
    if draws.shape[0] < 2:
        raise InsufficientChainsError(required=2, available=draws.shape[0])
    values = _run_arviz(az.rhat, draws, method="split" if split else "identity")

    # Chains without any within-chain variance either agree exactly or not at all
    if split:
        half = draws.shape[1] // 2
        draws = np.concatenate([draws[:, :half], draws[:, -half:]], axis=0)
    if draws.shape[1] >= MIN_DRAWS:
        constant = draws.var(axis=1).max(axis=0) == 0
        agree = np.ptp(draws.mean(axis=1), axis=0) == 0
        values = np.where(constant, np.where(agree, 1.0, np.inf), values)

    return _unwrap(values)


def mcse_mean(draws: "npt.ArrayLike") -> Union[float, npt.NDArray]:
    """Monte Carlo standard error of the posterior mean.

    :param draws: Draws of shape (chains, draws, ...)
    :type draws: npt.ArrayLike

    :returns: The standard error of every element. Chains shorter than 4 draws
        are treated as independent draws.
    :rtype: Union[float, npt.NDArray]
    """
    draws = _as_chains(draws)
    if draws.shape[1] < MIN_DRAWS:
        sd = draws.reshape(-1, *draws.shape[2:]).std(axis=0, ddof=1)
        return _unwrap(sd / np.sqrt(ess(draws)))
    return _unwrap(_run_arviz(az.mcse, draws, method="mean"))


def relative_ess(draws: "npt.ArrayLike") -> "custom_types.Float":
    """Mean effective sample size per draw over every element of a quantity."""
    draws = _as_chains(draws)
    return float(np.nanmean(ess(draws)) / (draws.shape[0] * draws.shape[1]))
