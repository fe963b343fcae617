# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Warm-up adaptation of the step size and diagonal metric.

Warm-up follows the schedule popularized by Stan. The step size is tuned
throughout warm-up by Nesterov dual averaging toward a target acceptance rate.
The diagonal of the inverse metric is estimated from the draws of a sequence of
expanding windows:

.. code-block:: text

    | init buffer | window | 2x window | 4x window ... | term buffer |

At the end of each window the metric is replaced by the regularized variance
of the draws collected in that window and dual averaging restarts from the new
step size. Adaptation is frozen once warm-up ends.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt

from ministan.defaults import (
    DEFAULT_BASE_WINDOW,
    DEFAULT_DUAL_AVERAGING,
    DEFAULT_INIT_BUFFER,
    DEFAULT_TERM_BUFFER,
)

if TYPE_CHECKING:
    from ministan import custom_types


class DualAveraging:
    """Nesterov dual averaging of the log step size.

    :param step_size: Step size to start from. The shrinkage point is set to
        ``log(10 * step_size)``.
    :type step_size: float
    :param target_acceptance: Acceptance probability to adapt toward
    :type target_acceptance: float
    :param gamma: Shrinkage strength. Defaults to 0.05.
    :param t0: Iteration offset damping the first updates. Defaults to 10.
    :param kappa: Decay exponent of the averaging weights. Defaults to 0.75.
    """

    def __init__(
        self,
        step_size: float,
        target_acceptance: float,
        gamma: float = DEFAULT_DUAL_AVERAGING["gamma"],
        t0: float = DEFAULT_DUAL_AVERAGING["t0"],
        kappa: float = DEFAULT_DUAL_AVERAGING["kappa"],
    ):
        self.target_acceptance = target_acceptance
        self.gamma = gamma
        self.t0 = t0
        self.kappa = kappa
        self.restart(step_size)

    def restart(self, step_size: float) -> None:
        """Start a fresh adaptation from ``step_size``."""
        self.mu = np.log(10 * step_size)
        self.counter = 0
        self.error_sum = 0.0
        self.log_step_size = np.log(step_size)
        self.log_step_size_bar = 0.0

    def update(self, accept_prob: float) -> float:
        """Record one acceptance probability and return the next step size."""
        self.counter += 1
        weight = 1.0 / (self.counter + self.t0)
        self.error_sum = (1 - weight) * self.error_sum + weight * (
            self.target_acceptance - accept_prob
        )
        self.log_step_size = (
            self.mu - np.sqrt(self.counter) / self.gamma * self.error_sum
        )
        eta = self.counter ** (-self.kappa)
        self.log_step_size_bar = (
            eta * self.log_step_size + (1 - eta) * self.log_step_size_bar
        )
        return float(np.exp(self.log_step_size))

    @property
    def final_step_size(self) -> float:
        """The averaged step size, used once adaptation stops."""
        return float(np.exp(self.log_step_size_bar))


def adaptation_windows(
    warmup: "custom_types.Integer",
    init_buffer: "custom_types.Integer" = DEFAULT_INIT_BUFFER,
    term_buffer: "custom_types.Integer" = DEFAULT_TERM_BUFFER,
    base_window: "custom_types.Integer" = DEFAULT_BASE_WINDOW,
) -> list[tuple[int, int]]:
    """Iteration ranges over which the metric is estimated.

    When the buffers and first window do not fit in ``warmup``, they are
    shrunk to 15%, 75%, and 10% of warm-up. Warm-up of fewer than 20 iterations
    adapts the step size only.

    :param warmup: Number of warm-up iterations
    :type warmup: custom_types.Integer
    :param init_buffer: Iterations before the first window. Defaults to 75.
    :type init_buffer: custom_types.Integer
    :param term_buffer: Iterations after the last window. Defaults to 50.
    :type term_buffer: custom_types.Integer
    :param base_window: Length of the first window. Defaults to 25.
    :type base_window: custom_types.Integer

    :returns: Half-open ``(start, end)`` iteration ranges, in order. Each window
        is twice as long as the one before, except the last, which is
        stretched to end where the terminal buffer begins.
    :rtype: list[tuple[int, int]]

    Example:
        >>> adaptation_windows(1000)
        [(75, 100), (100, 150), (150, 250), (250, 450), (450, 950)]
    """
    warmup = int(warmup)
    if warmup < 20:
        return []
    if init_buffer + base_window + term_buffer > warmup:
        init_buffer = int(0.15 * warmup)
        term_buffer = int(0.1 * warmup)
        base_window = warmup - init_buffer - term_buffer

    end_of_adaptation = warmup - term_buffer
    windows = []
    start, size = int(init_buffer), int(base_window)
    while start < end_of_adaptation:
        end = start + size

        # The next window would not fit, so absorb the rest into this one
        if end + 2 * size > end_of_adaptation:
            end = end_of_adaptation
        windows.append((start, end))
        start, size = end, 2 * size
    return windows


class WelfordVariance:
    """Running elementwise mean and variance."""

    def __init__(self, dim: "custom_types.Integer"):
        self.dim = int(dim)
        self.reset()

    def reset(self) -> None:
        self.count = 0
        self.mean = np.zeros(self.dim)
        self.m2 = np.zeros(self.dim)

    def add(self, theta: npt.NDArray) -> None:
        self.count += 1
        delta = theta - self.mean
        self.mean += delta / self.count
        self.m2 += delta * (theta - self.mean)

    def regularized_variance(self) -> npt.NDArray:
        """Sample variance shrunk toward 1e-3 for small window sizes."""
        n = self.count
        variance = self.m2 / (n - 1)
        return (n / (n + 5.0)) * variance + 1e-3 * (5.0 / (n + 5.0))


class WarmupAdaptation:
    """Step size and metric adaptation for one chain.

    Call :py:meth:`update` once per warm-up iteration with the chain's new state
    and the transition's acceptance probability. The current step size and
    inverse metric are available as attributes throughout, and are frozen at
    their adapted values after :py:meth:`finalize`.

    :param dim: Dimension of the unconstrained space
    :type dim: custom_types.Integer
    :param warmup: Number of warm-up iterations
    :type warmup: custom_types.Integer
    :param step_size: Initial step size
    :type step_size: float
    :param target_acceptance: Acceptance probability to adapt toward
    :type target_acceptance: float

    :ivar step_size: Current step size
    :ivar inv_metric: Current diagonal of the inverse metric
    """

    def __init__(
        self,
        dim: "custom_types.Integer",
        warmup: "custom_types.Integer",
        step_size: float,
        target_acceptance: float,
    ):
        self.step_size = step_size
        self.inv_metric = np.ones(int(dim))
        self.windows = adaptation_windows(warmup)
        self.dual_averaging = DualAveraging(step_size, target_acceptance)
        self.variance = WelfordVariance(dim)
        self.iteration = 0

    def update(self, theta: npt.NDArray, accept_prob: float) -> None:
        """Adapt after one warm-up iteration."""
        self.step_size = self.dual_averaging.update(accept_prob)

        # Collect draws for the metric while inside a window
        for start, end in self.windows:
            if start <= self.iteration < end:
                self.variance.add(theta)
                if self.iteration == end - 1:
                    self.inv_metric = self.variance.regularized_variance()
                    self.variance.reset()
                    self.dual_averaging.restart(self.step_size)
                break

        self.iteration += 1

    def finalize(self) -> None:
        """Freeze the step size at its averaged value."""
        if self.iteration > 0:
            self.step_size = self.dual_averaging.final_step_size
