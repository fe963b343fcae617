# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
MiniStan: Bayesian modeling with a native multi-chain MCMC sampler.

MiniStan is a Python package for declaring Bayesian models, drawing posterior
samples from them, and checking the quality of those samples. It follows the
workflow popularized by Stan and its R front ends (``rstan``, ``rstanarm``,
``brms``, ``loo``) but implements every step in Python:

Key Features:
    - Declarative model construction from distribution, constant, and
      transformation components, or from a plain mapping
    - Random-walk Metropolis and Hamiltonian Monte Carlo kernels with
      warm-up adaptation, one independently seeded generator per chain
    - Convergence diagnostics (effective sample size, R-hat) and posterior
      summaries
    - Pareto-smoothed importance sampling leave-one-out cross-validation
      and model comparison

Global Variables:
    RNG: Global random number generator for prior draws and seed derivation
    __version__: Package version string

Example:
    >>> import ministan as ms
    >>> ms.manual_seed(42)
    >>> data = ms.Dataset.from_records([(9.8, "a"), (20.3, "b"), ...])
    >>> model = ms.builtin_models.TwoGroupNormal()
    >>> fit = model.mcmc(data=data, chains=4, iterations=2000, warmup=1000)
    >>> fit.summary()
"""

from typing import Optional, TYPE_CHECKING

from typeguard import install_import_hook

import numpy as np

# Define the version
__version__ = "0.1.0"

# Set up type checking
install_import_hook("ministan")

# Define the global random number generator
RNG: np.random.Generator
"""Global random number generator for MiniStan.

This generator is used for prior draws and to derive a run seed when the
sampler is not given one. It is never handed to sampling threads: every chain
owns a generator spawned from its own seed sequence.

:type: np.random.Generator
"""

# Get custom types if TYPE_CHECKING is True
if TYPE_CHECKING:
    from ministan import custom_types


def manual_seed(seed: Optional["custom_types.Integer"] = None):
    """Set the seed for the global random number generator.

    :param seed: Seed value for random number generation. If None, uses
                system entropy to generate a random seed.
    :type seed: Union[custom_types.Integer, None]

    Example:
        >>> import ministan as ms
        >>> ms.manual_seed(42)
        >>> prior_draws = ms.builtin_models.NealsFunnel().draw(n=100)

    Note:
        Sampling runs started without an explicit ``seed`` draw their seed from
        this generator, so calling ``manual_seed`` once makes the whole script
        reproducible.
    """
    global RNG  # pylint: disable=global-statement
    RNG = np.random.default_rng(seed)


manual_seed()  # Set the seed for the global random number generator

# Import objects that should be easily accessible from the package level
# pylint: disable=wrong-import-position
from ministan import utils
from ministan.dataset import Dataset
from ministan.exceptions import (
    ConvergenceWarning,
    DefinitionError,
    ImportanceSamplingWarning,
    InsufficientChainsError,
    MiniStanError,
    MiniStanWarning,
    NonFiniteInitError,
    PartialFailureWarning,
)
from ministan.model.components.constants import Constant
from ministan.model.components.transformations.transformed_data import DataField
from ministan.model.declaration import declare
from ministan.model.mcmc.sampler import SamplerConfig, sample
from ministan.model.model import Model
from ministan.model.results.loo import compare, loo

parameters = utils.lazy_import("ministan.model.components.parameters")
operations = utils.lazy_import("ministan.operations")
builtin_models = utils.lazy_import("ministan.builtin_models")
