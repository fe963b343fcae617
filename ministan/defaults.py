# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Default configuration values for MiniStan package components.

This module centralizes default values used across various components of the
MiniStan package, including sampler settings, warm-up adaptation constants,
and diagnostic thresholds.

The module is organized into logical groups covering:
    - Sampler run configuration
    - Warm-up adaptation settings
    - Diagnostic thresholds for model validation
    - Summary and cross-validation settings

Default values cannot be programmatically altered. This documentation serves as a
reference for users and developers to understand the standard configuration used
by MiniStan.
"""

# Sampler defaults
DEFAULT_CHAINS: int = 4
"""Default number of independent chains per sampling run.

:type: int
"""

DEFAULT_ITERATIONS: int = 2000
"""Default number of iterations per chain, warm-up included.

:type: int
"""

DEFAULT_WARMUP: int = 1000
"""Default number of warm-up iterations per chain.

:type: int
"""

DEFAULT_KERNEL: str = "metropolis"
"""Default transition kernel. One of "metropolis" or "hmc".

:type: str
"""

DEFAULT_TARGET_ACCEPTANCE: dict[str, float] = {"metropolis": 0.6, "hmc": 0.8}
"""Default acceptance rate targeted during warm-up, per kernel.

Both values sit in the conventional 0.6-0.9 band. The random-walk kernel uses
the low end of the band because its mixing degrades quickly as the acceptance
rate grows.

:type: dict[str, float]
"""

DEFAULT_ACCEPTANCE_TOLERANCE: float = 0.15
"""Allowed distance between the realized post-warm-up acceptance rate and the
target before a warning is issued.

:type: float
"""

DEFAULT_MAX_INIT_ATTEMPTS: int = 100
"""Number of random starting points tried per chain before giving up.

:type: int
"""

DEFAULT_INIT_RADIUS: float = 2.0
"""Random starting points are drawn uniformly from (-radius, radius) on the
unconstrained scale.

:type: float
"""

DEFAULT_LEAPFROG_STEPS: int = 10
"""Number of leapfrog steps per HMC transition.

:type: int
"""

DEFAULT_MAX_ENERGY_ERROR: float = 1000.0
"""An HMC trajectory whose energy error exceeds this value is divergent.

:type: float
"""

# Warm-up adaptation defaults
DEFAULT_INIT_BUFFER: int = 75
"""Iterations at the start of warm-up used only for step size adaptation.

:type: int
"""

DEFAULT_TERM_BUFFER: int = 50
"""Iterations at the end of warm-up used only for step size adaptation.

:type: int
"""

DEFAULT_BASE_WINDOW: int = 25
"""Length of the first metric adaptation window. Later windows double.

:type: int
"""

DEFAULT_DUAL_AVERAGING: dict[str, float] = {"gamma": 0.05, "t0": 10.0, "kappa": 0.75}
"""Constants of the dual averaging step size adaptation.

:type: dict[str, float]
"""

# Diagnostic defaults
DEFAULT_RHAT_THRESH: float = 1.01
"""Default threshold for the R-hat convergence diagnostic.

Values above this threshold indicate potential convergence issues in MCMC
sampling across chains.

:type: float
"""

LENIENT_RHAT_THRESH: float = 1.1
"""R-hat threshold used by the lenient diagnostic policy.

:type: float
"""

DEFAULT_ESS_THRESH: int = 100  # Per chain
"""Default threshold for Effective Sample Size (ESS) per chain.

:type: int
"""

DEFAULT_PARETO_K_THRESH: float = 0.7
"""Pareto shape above which an importance-sampling approximation is unreliable.

:type: float
"""

DEFAULT_QUANTILES: tuple[float, ...] = (0.025, 0.5, 0.975)
"""Default quantiles reported by posterior summaries.

:type: tuple[float, ...]
"""

DEFAULT_COMPARE_Z: float = 2.0
"""Number of standard errors a difference in elpd must exceed to count as
distinguishable from zero.

:type: float
"""
