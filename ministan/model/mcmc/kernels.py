# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Transition kernels for MiniStan's Markov chain Monte Carlo sampler.

A kernel moves a chain from its current state to the next one. Every kernel
proposes a new point in the unconstrained parameter space and accepts it with
probability :math:`\\min(1, \\exp(\\Delta))`, where :math:`\\Delta` is the
difference in (joint) log density between the proposal and the current state.
A rejected proposal repeats the current state.

Two kernels are provided:

    - :py:class:`MetropolisKernel`: random-walk Metropolis with a diagonal
      Gaussian proposal. The proposal scale is the step size times the square
      root of the inverse metric.
    - :py:class:`HMCKernel`: Hamiltonian Monte Carlo with a fixed number of
      leapfrog steps and a diagonal Euclidean metric. Gradients are computed by
      central finite differences of the log density, so any model MiniStan can
      evaluate can also be sampled with HMC.

Kernels hold no chain state. Everything that changes between iterations (the
position, the step size, the metric, the random number generator) is passed in,
so a single kernel instance can safely be shared by every chain of a run.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, TYPE_CHECKING

import numpy as np
import numpy.typing as npt

from ministan.defaults import DEFAULT_LEAPFROG_STEPS, DEFAULT_MAX_ENERGY_ERROR

if TYPE_CHECKING:
    from ministan import custom_types

LogDensityFn = Callable[[npt.NDArray], float]


@dataclass(frozen=True)
class Transition:
    """Outcome of one kernel transition.

    :ivar theta: State of the chain after the transition
    :ivar log_density: Log density at ``theta``
    :ivar accept_prob: Metropolis acceptance probability of the proposal
    :ivar accepted: Whether the proposal was accepted
    :ivar divergent: Whether the proposal diverged
    """

    theta: npt.NDArray
    log_density: float
    accept_prob: float
    accepted: bool
    divergent: bool


def finite_difference_gradient(
    log_density: LogDensityFn,
    theta: npt.NDArray,
    rel_step: "custom_types.Float" = 6e-6,
) -> npt.NDArray:
    """Gradient of a log density by central finite differences.

    The step along coordinate :math:`i` is ``rel_step * max(1, |theta_i|)``.
    Each gradient costs ``2 * len(theta)`` log density evaluations.

    :param log_density: Function mapping an unconstrained vector to a log density
    :type log_density: LogDensityFn
    :param theta: Point at which to evaluate the gradient
    :type theta: npt.NDArray
    :param rel_step: Relative step size. Defaults to 6e-6.
    :type rel_step: custom_types.Float

    :returns: The gradient. Entries are non-finite if the log density is not
        finite on either side of ``theta``.
    :rtype: npt.NDArray
    """
    gradient = np.empty_like(theta)
    shifted = theta.copy()
    for i, value in enumerate(theta):
        step = rel_step * max(1.0, abs(value))
        shifted[i] = value + step
        upper = log_density(shifted)
        shifted[i] = value - step
        lower = log_density(shifted)
        shifted[i] = value
        gradient[i] = (upper - lower) / (2 * step)
    return gradient


class Kernel(ABC):
    """Base class for all transition kernels.

    :cvar DEFAULT_STEP_SIZE_SCALE: Multiplier for the initial step size. The
        initial step size is this scale divided by the square root of the
        dimension for :py:class:`MetropolisKernel` and the scale itself for
        :py:class:`HMCKernel`.
    """

    DEFAULT_STEP_SIZE_SCALE: float

    def __init__(self, log_density: LogDensityFn):
        self.log_density = log_density

    @abstractmethod
    def initial_step_size(self, dim: "custom_types.Integer") -> float:
        """Step size to start warm-up adaptation from."""

    @abstractmethod
    def transition(
        self,
        theta: npt.NDArray,
        log_density: float,
        step_size: float,
        inv_metric: npt.NDArray,
        rng: np.random.Generator,
    ) -> Transition:
        """Take one step from ``theta``.

        :param theta: Current state of the chain
        :type theta: npt.NDArray
        :param log_density: Log density at ``theta``
        :type log_density: float
        :param step_size: Current step size
        :type step_size: float
        :param inv_metric: Diagonal of the inverse metric
        :type inv_metric: npt.NDArray
        :param rng: The chain's random number generator
        :type rng: np.random.Generator

        :returns: The outcome of the transition
        :rtype: Transition
        """

    @staticmethod
    def _accept(log_ratio: float, rng: np.random.Generator) -> tuple[float, bool]:
        """Metropolis accept/reject. Returns the acceptance probability and decision."""
        if not np.isfinite(log_ratio):
            return 0.0, False
        accept_prob = float(np.exp(min(0.0, log_ratio)))
        return accept_prob, bool(np.log(rng.random()) < log_ratio)


class MetropolisKernel(Kernel):
    """Random-walk Metropolis with a diagonal Gaussian proposal.

    The proposal is ``theta + step_size * sqrt(inv_metric) * z`` with
    ``z ~ Normal(0, I)``. A proposal with a non-finite log density is counted as
    divergent and rejected.
    """

    DEFAULT_STEP_SIZE_SCALE = 2.38

    def initial_step_size(self, dim: "custom_types.Integer") -> float:
        return self.DEFAULT_STEP_SIZE_SCALE / np.sqrt(max(int(dim), 1))

    def transition(
        self,
        theta: npt.NDArray,
        log_density: float,
        step_size: float,
        inv_metric: npt.NDArray,
        rng: np.random.Generator,
    ) -> Transition:
        proposal = theta + step_size * np.sqrt(inv_metric) * rng.standard_normal(
            theta.shape
        )
        proposal_log_density = self.log_density(proposal)

        # A proposal outside of the support is rejected outright
        if not np.isfinite(proposal_log_density):
            return Transition(theta, log_density, 0.0, False, True)

        accept_prob, accepted = self._accept(
            proposal_log_density - log_density, rng
        )
        if accepted:
            return Transition(proposal, proposal_log_density, accept_prob, True, False)
        return Transition(theta, log_density, accept_prob, False, False)


class HMCKernel(Kernel):
    """Hamiltonian Monte Carlo with a diagonal Euclidean metric.

    Momenta are drawn as ``p ~ Normal(0, inv_metric^-1)`` and the Hamiltonian
    ``H = -log p(theta) + 0.5 * sum(inv_metric * p**2)`` is integrated with a
    fixed number of leapfrog steps. The trajectory is divergent when the energy
    error exceeds ``max_energy_error`` or becomes non-finite; divergent
    trajectories are rejected.

    :param log_density: Function mapping an unconstrained vector to a log density
    :type log_density: LogDensityFn
    :param leapfrog_steps: Number of leapfrog steps per transition. Defaults
        to 10.
    :type leapfrog_steps: custom_types.Integer
    :param max_energy_error: Energy error beyond which a trajectory is
        divergent. Defaults to 1000.
    :type max_energy_error: custom_types.Float
    """

    DEFAULT_STEP_SIZE_SCALE = 1.0

    def __init__(
        self,
        log_density: LogDensityFn,
        leapfrog_steps: "custom_types.Integer" = DEFAULT_LEAPFROG_STEPS,
        max_energy_error: "custom_types.Float" = DEFAULT_MAX_ENERGY_ERROR,
    ):
        super().__init__(log_density)
        self.leapfrog_steps = int(leapfrog_steps)
        self.max_energy_error = float(max_energy_error)

    def initial_step_size(self, dim: "custom_types.Integer") -> float:
        return self.DEFAULT_STEP_SIZE_SCALE

    def gradient(self, theta: npt.NDArray) -> npt.NDArray:
        """Gradient of the log density at ``theta``."""
        return finite_difference_gradient(self.log_density, theta)

    def transition(
        self,
        theta: npt.NDArray,
        log_density: float,
        step_size: float,
        inv_metric: npt.NDArray,
        rng: np.random.Generator,
    ) -> Transition:
        momentum = rng.standard_normal(theta.shape) / np.sqrt(inv_metric)
        initial_energy = -log_density + 0.5 * np.sum(inv_metric * momentum**2)

        # Leapfrog integration
        position = theta.copy()
        grad = self.gradient(position)
        momentum = momentum + 0.5 * step_size * grad
        for step in range(self.leapfrog_steps):
            position = position + step_size * inv_metric * momentum
            grad = self.gradient(position)
            if not np.all(np.isfinite(grad)):
                return Transition(theta, log_density, 0.0, False, True)
            if step < self.leapfrog_steps - 1:
                momentum = momentum + step_size * grad
        momentum = momentum + 0.5 * step_size * grad

        # Energy error decides both divergence and acceptance
        proposal_log_density = self.log_density(position)
        energy = -proposal_log_density + 0.5 * np.sum(inv_metric * momentum**2)
        energy_error = energy - initial_energy
        if not np.isfinite(energy_error) or energy_error > self.max_energy_error:
            return Transition(theta, log_density, 0.0, False, True)

        accept_prob, accepted = self._accept(-energy_error, rng)
        if accepted:
            return Transition(position, proposal_log_density, accept_prob, True, False)
        return Transition(theta, log_density, accept_prob, False, False)


KERNELS: dict[str, type[Kernel]] = {
    "metropolis": MetropolisKernel,
    "hmc": HMCKernel,
}
"""Kernels by the name accepted in the sampler configuration."""
