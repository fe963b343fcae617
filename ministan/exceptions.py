# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Custom exception and warning classes for the MiniStan package.

This module defines a hierarchy of custom exceptions used throughout the
MiniStan package to provide clear error reporting and exception handling.
All custom exceptions inherit from the base MiniStanError class to allow
for unified exception handling when needed.

Diagnostic problems (poor convergence, low effective sample size, unreliable
importance weights, chains lost during a run) are never raised. They are
reported with the warning classes defined here so that a non-converged or
unreliable fit can still be inspected.
"""


class MiniStanError(Exception):
    """Base class for all exceptions in the MiniStan package.

    Example:
        >>> try:
        ...     fit = model.mcmc(data=data)
        ... except MiniStanError as e:
        ...     print(f"MiniStan error occurred: {e}")
    """


class DefinitionError(MiniStanError, ValueError):
    """Raised when a model declaration is malformed.

    Raised at definition time only, never during sampling. Typical causes are a
    reference to an undeclared parameter, a non-positive scale argument, or a
    prior whose support is incompatible with where it is used. The message
    always names the offending parameter.

    :param parameter: Name of the offending parameter
    :type parameter: str
    :param message: Description of the problem
    :type message: str
    """

    def __init__(self, parameter: str, message: str):
        self.parameter = parameter
        super().__init__(f"Invalid definition for '{parameter}': {message}")


class NonFiniteInitError(MiniStanError):
    """Raised when a chain cannot find a starting point with finite log density.

    :param chain_id: Identifier of the chain that failed
    :type chain_id: int
    :param attempts: Number of starting points tried
    :type attempts: int
    """

    def __init__(self, chain_id: int, attempts: int):
        self.chain_id = chain_id
        self.attempts = attempts
        super().__init__(
            f"Chain {chain_id} could not find a starting point with finite log "
            f"density after {attempts} attempt(s). Check the initial values and "
            "the model's support constraints."
        )


class InsufficientChainsError(MiniStanError):
    """Raised when a diagnostic needs more completed chains than are available.

    Only the diagnostic call that needs the chains fails; the fit itself stays
    usable.

    :param required: Number of chains the diagnostic needs
    :type required: int
    :param available: Number of completed chains
    :type available: int
    """

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            f"At least {required} completed chain(s) are required; got {available}."
        )


class MiniStanWarning(UserWarning):
    """Base class for all warnings issued by MiniStan."""


class ConvergenceWarning(MiniStanWarning):
    """Issued when R-hat, effective sample size, or divergences flag a fit."""


class PartialFailureWarning(MiniStanWarning):
    """Issued when some, but not all, chains of a run failed or were cancelled."""


class ImportanceSamplingWarning(MiniStanWarning):
    """Issued when Pareto-smoothed importance weights are unreliable."""
