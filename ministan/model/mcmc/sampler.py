# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Multi-chain posterior sampling for MiniStan models.

This module runs the chains of a sampling run and collects them into a
:py:class:`~ministan.model.results.mcmc.FitResult`. Chains are independent:
each one owns a random number generator spawned from a single
:py:class:`numpy.random.SeedSequence`, its own warm-up adaptation state, and
its own output buffers. They are fanned out over a thread pool and joined when
every chain has finished, failed, or been cancelled.

Failure and cancellation are handled per chain:

    - A chain that cannot find a starting point with finite log density
      raises :py:class:`~ministan.exceptions.NonFiniteInitError`. It is
      abandoned and reported with a
      :py:class:`~ministan.exceptions.PartialFailureWarning`; the run goes on
      with the remaining chains and fails only if none of them completes.
    - Cancellation (through a user-supplied :py:class:`threading.Event` or the
      ``max_seconds`` cap) is checked between iterations. A cancelled chain is
      discarded whole, so a fit never contains partially written chains.

Example:
    >>> import ministan as ms
    >>> model = ms.builtin_models.TwoGroupNormal()
    >>> config = ms.SamplerConfig(chains=4, iterations=2000, warmup=1000, seed=1)
    >>> fit = ms.sample(model, data, config=config)
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
import warnings

from concurrent.futures import as_completed, ThreadPoolExecutor
from typing import Any, Mapping, Optional, Sequence, TYPE_CHECKING, Union

import numpy as np
import numpy.typing as npt

from tqdm import tqdm

import ministan

from ministan.defaults import (
    DEFAULT_ACCEPTANCE_TOLERANCE,
    DEFAULT_CHAINS,
    DEFAULT_INIT_RADIUS,
    DEFAULT_ITERATIONS,
    DEFAULT_KERNEL,
    DEFAULT_LEAPFROG_STEPS,
    DEFAULT_MAX_ENERGY_ERROR,
    DEFAULT_MAX_INIT_ATTEMPTS,
    DEFAULT_TARGET_ACCEPTANCE,
    DEFAULT_WARMUP,
)
from ministan.exceptions import (
    ConvergenceWarning,
    NonFiniteInitError,
    PartialFailureWarning,
)
from ministan.model.mcmc import adaptation, kernels
from ministan.model.results import mcmc as mcmc_results

if TYPE_CHECKING:
    from ministan.dataset import Dataset
    from ministan.model.log_density import BoundModel
    from ministan.model.model import Model

logger = logging.getLogger(__name__)

InitType = Union[None, str, Mapping[str, Any], Sequence[Mapping[str, Any]]]


def _is_int(value: Any) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


@dataclasses.dataclass(frozen=True)
class SamplerConfig:
    """Configuration of a sampling run.

    :param chains: Number of independent chains. Must be at least 1. Defaults
        to 4.
    :param iterations: Iterations per chain, warm-up included. Must exceed
        ``warmup``. Defaults to 2000.
    :param warmup: Warm-up iterations per chain. Must be non-negative. Defaults
        to 1000.
    :param target_acceptance: Acceptance rate targeted by step size adaptation,
        in (0, 1). Defaults to 0.6 for the Metropolis kernel and 0.8 for HMC.
    :param seed: Seed of the run. The same seed reproduces every chain exactly.
        When None, a seed is drawn from :py:data:`ministan.RNG`.
    :param kernel: Transition kernel, "metropolis" or "hmc". Defaults to
        "metropolis".
    :param inits: Starting points. None or "random" draws each coordinate
        uniformly from ``(-init_radius, init_radius)`` on the unconstrained
        scale; "prior" draws from the prior; a mapping of latent parameter
        values is used for every chain; a sequence of mappings gives one
        starting point per chain.
    :param parallel_chains: Maximum number of chains run at once. Defaults to
        the number of chains.
    :param max_init_attempts: Random starting points tried per chain before
        giving up. Defaults to 100.
    :param init_radius: Half-width of the random initialization interval.
        Defaults to 2.
    :param step_size: Initial step size. Defaults to a kernel-specific value.
    :param leapfrog_steps: Leapfrog steps per HMC transition. Defaults to 10.
    :param max_energy_error: HMC energy error beyond which a transition is
        divergent. Defaults to 1000.
    :param max_seconds: Wall-clock cap on the run. Chains still running when it
        elapses are cancelled. Defaults to no cap.
    :param show_progress: Whether to display a progress bar per chain.
        Defaults to False.

    :raises ValueError: If any value is invalid
    """

    chains: int = DEFAULT_CHAINS
    iterations: int = DEFAULT_ITERATIONS
    warmup: int = DEFAULT_WARMUP
    target_acceptance: Optional[float] = None
    seed: Optional[int] = None
    kernel: str = DEFAULT_KERNEL
    inits: InitType = None
    parallel_chains: Optional[int] = None
    max_init_attempts: int = DEFAULT_MAX_INIT_ATTEMPTS
    init_radius: float = DEFAULT_INIT_RADIUS
    step_size: Optional[float] = None
    leapfrog_steps: int = DEFAULT_LEAPFROG_STEPS
    max_energy_error: float = DEFAULT_MAX_ENERGY_ERROR
    max_seconds: Optional[float] = None
    show_progress: bool = False

    def __post_init__(self):

        # Integer settings
        for name, minimum in (
            ("chains", 1),
            ("warmup", 0),
            ("max_init_attempts", 1),
            ("leapfrog_steps", 1),
        ):
            value = getattr(self, name)
            if not _is_int(value) or value < minimum:
                raise ValueError(f"`{name}` must be an integer >= {minimum}; got {value!r}.")
        if not _is_int(self.iterations) or self.iterations <= self.warmup:
            raise ValueError(
                f"`iterations` must be an integer greater than `warmup` ({self.warmup}); "
                f"got {self.iterations!r}."
            )
        if self.parallel_chains is not None and (
            not _is_int(self.parallel_chains) or self.parallel_chains < 1
        ):
            raise ValueError(
                f"`parallel_chains` must be a positive integer; got {self.parallel_chains!r}."
            )
        if self.seed is not None and (not _is_int(self.seed) or self.seed < 0):
            raise ValueError(f"`seed` must be a non-negative integer; got {self.seed!r}.")

        # Kernel and its defaults
        if self.kernel not in kernels.KERNELS:
            raise ValueError(
                f"Unknown kernel {self.kernel!r}. Options are {sorted(kernels.KERNELS)}."
            )
        if self.target_acceptance is None:
            object.__setattr__(
                self, "target_acceptance", DEFAULT_TARGET_ACCEPTANCE[self.kernel]
            )
        if not 0 < self.target_acceptance < 1:
            raise ValueError(
                f"`target_acceptance` must be in (0, 1); got {self.target_acceptance}."
            )

        # Positive real settings
        for name in ("init_radius", "step_size", "max_energy_error", "max_seconds"):
            value = getattr(self, name)
            if value is not None and not value > 0:
                raise ValueError(f"`{name}` must be positive; got {value!r}.")

        # Starting points
        if isinstance(self.inits, str):
            if self.inits not in ("random", "prior"):
                raise ValueError(
                    f"`inits` must be 'random', 'prior', or parameter values; "
                    f"got {self.inits!r}."
                )
        elif self.inits is not None and not isinstance(self.inits, Mapping):
            if len(self.inits) != self.chains:
                raise ValueError(
                    f"Got {len(self.inits)} sets of initial values for {self.chains} chains."
                )

    def chain_inits(self) -> list[InitType]:
        """Starting point specification for every chain."""
        if self.inits is None or isinstance(self.inits, (str, Mapping)):
            return [self.inits] * self.chains
        return list(self.inits)


def _initialize(
    bound: "BoundModel",
    config: SamplerConfig,
    chain_id: int,
    init: InitType,
    rng: np.random.Generator,
) -> tuple[npt.NDArray, float]:
    """Find a starting point with finite log density.

    User-supplied values are tried once; random and prior starting points are
    redrawn up to ``config.max_init_attempts`` times.

    :raises NonFiniteInitError: If no starting point has a finite log density
    """
    attempts = 1 if isinstance(init, Mapping) else config.max_init_attempts
    for attempt in range(1, attempts + 1):
        if isinstance(init, Mapping):
            theta = bound.unconstrain(init)
        elif init == "prior":
            theta = bound.sample_prior(rng)
        else:
            theta = rng.uniform(-config.init_radius, config.init_radius, size=bound.dim)

        log_density = bound.log_density(theta)
        if np.isfinite(log_density):
            logger.debug(
                "Chain %d initialized after %d attempt(s) with log density %.3f",
                chain_id,
                attempt,
                log_density,
            )
            return theta, log_density

    raise NonFiniteInitError(chain_id, attempts)


def _run_chain(
    bound: "BoundModel",
    config: SamplerConfig,
    chain_id: int,
    seed: int,
    init: InitType,
    should_stop,
) -> Optional[mcmc_results.Chain]:
    """Run one chain from initialization to its last iteration.

    :returns: The completed chain, or None if the chain was cancelled
    """
    rng = np.random.default_rng(seed)
    kernel_class = kernels.KERNELS[config.kernel]
    if kernel_class is kernels.HMCKernel:
        kernel = kernels.HMCKernel(
            bound.log_density,
            leapfrog_steps=config.leapfrog_steps,
            max_energy_error=config.max_energy_error,
        )
    else:
        kernel = kernel_class(bound.log_density)

    theta, log_density = _initialize(bound, config, chain_id, init, rng)
    adapter = adaptation.WarmupAdaptation(
        dim=bound.dim,
        warmup=config.warmup,
        step_size=float(config.step_size or kernel.initial_step_size(bound.dim)),
        target_acceptance=float(config.target_acceptance),
    )

    # Per-iteration buffers, owned by this chain only
    n_iter = config.iterations
    thetas = np.empty((n_iter, bound.dim))
    stats = {
        "log_density": np.empty(n_iter),
        "accept_prob": np.empty(n_iter),
        "accepted": np.empty(n_iter, dtype=bool),
        "divergent": np.empty(n_iter, dtype=bool),
        "step_size": np.empty(n_iter),
    }

    with tqdm(
        total=n_iter,
        desc=f"Chain {chain_id}",
        position=chain_id,
        leave=False,
        disable=not config.show_progress,
    ) as pbar:
        for iteration in range(n_iter):
            if should_stop():
                logger.info("Chain %d cancelled at iteration %d", chain_id, iteration)
                return None

            if iteration == config.warmup:
                adapter.finalize()
                logger.debug(
                    "Chain %d finished warm-up with step size %.4g",
                    chain_id,
                    adapter.step_size,
                )

            step_size = adapter.step_size
            transition = kernel.transition(
                theta, log_density, step_size, adapter.inv_metric, rng
            )
            theta, log_density = transition.theta, transition.log_density
            if iteration < config.warmup:
                adapter.update(theta, transition.accept_prob)

            thetas[iteration] = theta
            stats["log_density"][iteration] = log_density
            stats["accept_prob"][iteration] = transition.accept_prob
            stats["accepted"][iteration] = transition.accepted
            stats["divergent"][iteration] = transition.divergent
            stats["step_size"][iteration] = step_size
            pbar.update(1)

    return mcmc_results.Chain.from_unconstrained(
        bound,
        chain_id=chain_id,
        seed=seed,
        thetas=thetas,
        stats=stats,
        warmup=config.warmup,
        step_size=adapter.step_size,
        inv_metric=adapter.inv_metric,
    )


def _check_acceptance(chain: mcmc_results.Chain, config: SamplerConfig) -> None:
    """Warn when the realized acceptance rate strays far from the target."""
    if config.warmup == 0:
        return
    rate = chain.acceptance_rate
    if abs(rate - config.target_acceptance) > DEFAULT_ACCEPTANCE_TOLERANCE:
        warnings.warn(
            f"Chain {chain.chain_id} has an acceptance rate of {rate:.2f} after "
            f"warm-up, far from the target of {config.target_acceptance:.2f}. "
            "Consider a longer warm-up.",
            ConvergenceWarning,
        )


def sample(
    model: "Model",
    data: Union["Dataset", Mapping[str, "npt.ArrayLike"], None] = None,
    *,
    config: Optional[SamplerConfig] = None,
    cancel_event: Optional[threading.Event] = None,
    **kwargs,
) -> mcmc_results.FitResult:
    """Draw posterior samples from a model.

    :param model: The model to sample from
    :type model: Model
    :param data: Observed data. Defaults to the model's default data.
    :type data: Union[Dataset, Mapping[str, npt.ArrayLike], None]
    :param config: Sampler configuration. Defaults to a configuration built from
        ``kwargs``.
    :type config: Optional[SamplerConfig]
    :param cancel_event: Event that cancels every chain still running when set.
    :type cancel_event: Optional[threading.Event]
    :param kwargs: Fields of :py:class:`SamplerConfig`. When ``config`` is also
        given, these override its values.

    :returns: The fit, holding every completed chain
    :rtype: mcmc_results.FitResult

    :raises NonFiniteInitError: If no chain completed because none could be
        initialized
    :raises ValueError: If the configuration or data are invalid
    """
    if config is None:
        config = SamplerConfig(**kwargs)
    elif kwargs:
        config = dataclasses.replace(config, **kwargs)

    bound = model.bind(data)

    # Derive one independent seed per chain from the run seed
    seed = config.seed if config.seed is not None else int(ministan.RNG.integers(2**32))
    chain_seeds = [
        int(child.generate_state(1, np.uint64)[0])
        for child in np.random.SeedSequence(seed).spawn(config.chains)
    ]
    logger.info(
        "Sampling %d chain(s) of %d iterations (%d warm-up) with the %s kernel; seed %d",
        config.chains,
        config.iterations,
        config.warmup,
        config.kernel,
        seed,
    )

    # Cancellation: user event, wall-clock cap, or an unexpected error elsewhere
    abort = threading.Event()
    deadline = (
        None if config.max_seconds is None else time.monotonic() + config.max_seconds
    )

    def should_stop() -> bool:
        return (
            abort.is_set()
            or (cancel_event is not None and cancel_event.is_set())
            or (deadline is not None and time.monotonic() > deadline)
        )

    completed: dict[int, mcmc_results.Chain] = {}
    failed: dict[int, NonFiniteInitError] = {}
    cancelled: list[int] = []
    with ThreadPoolExecutor(
        max_workers=config.parallel_chains or config.chains,
        thread_name_prefix="ministan-chain",
    ) as executor:
        futures = {
            executor.submit(
                _run_chain, bound, config, chain_id, chain_seed, init, should_stop
            ): chain_id
            for chain_id, (chain_seed, init) in enumerate(
                zip(chain_seeds, config.chain_inits())
            )
        }
        for future in as_completed(futures):
            chain_id = futures[future]
            try:
                chain = future.result()
            except NonFiniteInitError as error:
                logger.warning("Chain %d abandoned: %s", chain_id, error)
                failed[chain_id] = error
                continue
            except Exception:
                abort.set()
                raise
            if chain is None:
                cancelled.append(chain_id)
            else:
                logger.debug("Chain %d completed", chain_id)
                completed[chain_id] = chain

    # A run fails only when nothing completed because nothing could start
    if not completed and failed and not cancelled:
        raise failed[min(failed)]
    if failed or cancelled:
        warnings.warn(
            f"{len(completed)} of {config.chains} chain(s) completed; "
            f"{len(failed)} failed to initialize and {len(cancelled)} were cancelled.",
            PartialFailureWarning,
        )

    chains = [completed[chain_id] for chain_id in sorted(completed)]
    for chain in chains:
        _check_acceptance(chain, config)

    return mcmc_results.FitResult(
        model=model,
        bound=bound,
        config=config,
        seed=seed,
        chains=chains,
        failed={chain_id: str(error) for chain_id, error in failed.items()},
        cancelled=sorted(cancelled),
    )
