# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Parameter classes for defining probabilistic model components in MiniStan.

This module provides the parameter classes that serve as building blocks for
constructing probabilistic models in MiniStan. Each class represents a random
variable with a specific probability distribution. Densities and random draws
are delegated to the matching :py:mod:`scipy.stats` distribution; the classes
here take care of argument naming, support constraints, definition-time
validation, and the mapping between the constrained and unconstrained scales
used by the sampler.

A parameter is either *latent* (its value is inferred by the sampler) or
*observable* (its value is read from the bound dataset). Parameters with no
children in the model graph are observable unless explicitly marked latent with
:py:meth:`Parameter.as_latent`.

The following distributions are currently supported in MiniStan:

Continuous Univariate
^^^^^^^^^^^^^^^^^^^^^
- :py:class:`~ministan.model.components.parameters.Normal`
- :py:class:`~ministan.model.components.parameters.HalfNormal`
- :py:class:`~ministan.model.components.parameters.LogNormal`
- :py:class:`~ministan.model.components.parameters.Cauchy`
- :py:class:`~ministan.model.components.parameters.HalfCauchy`
- :py:class:`~ministan.model.components.parameters.StudentT`
- :py:class:`~ministan.model.components.parameters.Exponential`
- :py:class:`~ministan.model.components.parameters.Gamma`
- :py:class:`~ministan.model.components.parameters.InverseGamma`
- :py:class:`~ministan.model.components.parameters.Beta`
- :py:class:`~ministan.model.components.parameters.Uniform`

Discrete Univariate (observables only)
^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^
- :py:class:`~ministan.model.components.parameters.Poisson`
- :py:class:`~ministan.model.components.parameters.Binomial`
- :py:class:`~ministan.model.components.parameters.Bernoulli`
"""

from __future__ import annotations

from typing import Callable, Optional, TYPE_CHECKING

import numpy as np
import numpy.typing as npt

from scipy import special, stats

from ministan import utils
from ministan.exceptions import DefinitionError
from ministan.model.components import abstract_model_component
from ministan.model.components.transformations import transformed_parameters

constants = utils.lazy_import("ministan.model.components.constants")

if TYPE_CHECKING:
    from ministan import custom_types

# pylint: disable=too-many-lines


def _inverse_transform(x):
    """Element-wise inverse, used to turn rates into SciPy scales."""
    return 1 / x


def _exp_transform(x):
    """Element-wise exponential, used to turn log-scale locations into scales."""
    return np.exp(x)


def _source(
    component: abstract_model_component.AbstractModelComponent,
) -> abstract_model_component.AbstractModelComponent:
    """Follow indexing back to the component being indexed."""
    while isinstance(component, transformed_parameters.IndexParameter):
        component = component.parents["dist"]
    return component


class Parameter(abstract_model_component.AbstractModelComponent):
    """Base class for all probabilistic parameters in MiniStan models.

    :param shape: Shape of the parameter. Broadcast against the shapes of the
        distribution arguments. Defaults to ().
    :type shape: tuple[custom_types.Integer, ...] | custom_types.Integer
    :param field: Name of the dataset field holding the observed values. Passing
        a field marks the parameter as observable. Defaults to None (the
        parameter's own name is used if it turns out to be observable).
    :type field: Optional[str]
    :param kwargs: Distribution arguments (mu, sigma, etc. depending on subclass)

    :raises TypeError: If required distribution arguments are missing or
        unexpected ones are given

    :cvar SCIPY_DIST: Corresponding SciPy distribution
    :cvar ARG_TO_SCIPY_NAMES: Argument name mapping for the SciPy interface. Its
        keys are the arguments the distribution accepts.
    :cvar ARG_TO_SCIPY_TRANSFORMS: Functions converting arguments to SciPy's
        parametrization
    :cvar POSITIVE_PARAMS: Arguments that must be strictly positive
    :cvar PROBABILITY_PARAMS: Arguments that must lie in [0, 1]
    :cvar LOWER_BOUND: Lower bound of the support, if any
    :cvar UPPER_BOUND: Upper bound of the support, if any
    :cvar IS_DISCRETE: Whether the distribution has a discrete sample space
    """

    SCIPY_DIST: stats.rv_continuous | stats.rv_discrete | None = None
    """Corresponding SciPy distribution (e.g., `scipy.stats.norm`)."""

    ARG_TO_SCIPY_NAMES: dict[str, str] = {}
    """
    MiniStan follows Stan's parametrization of distributions, which can differ
    from SciPy's naming conventions. This dictionary maps between the two.
    """

    ARG_TO_SCIPY_TRANSFORMS: dict[str, Callable[[npt.NDArray], npt.NDArray]] = {}
    """
    Some distributions are parametrized differently in Stan and SciPy (rates
    versus scales, for instance). This dictionary provides functions converting
    arguments to SciPy's parametrization.
    """

    POSITIVE_PARAMS: set[str] = set()
    """Arguments that must be strictly positive."""

    PROBABILITY_PARAMS: set[str] = set()
    """Arguments that must be probabilities."""

    LOWER_BOUND: Optional["custom_types.Float"] = None
    """Lower bound of the support, if any."""

    UPPER_BOUND: Optional["custom_types.Float"] = None
    """Upper bound of the support, if any."""

    IS_DISCRETE: bool = False
    """Whether the sample space is discrete."""

    def __init__(
        self,
        *,
        shape: "tuple[custom_types.Integer, ...] | custom_types.Integer" = (),
        field: Optional[str] = None,
        **kwargs: "custom_types.CombinableParameterType",
    ):
        # Confirm that the class is fully defined
        if self.SCIPY_DIST is None:
            raise NotImplementedError(
                f"{self.__class__.__name__} must define `SCIPY_DIST`."
            )

        # Make sure we have exactly the expected arguments
        if missing_params := self.ARG_TO_SCIPY_NAMES.keys() - kwargs.keys():
            raise TypeError(
                f"Missing parameters {missing_params} for {self.__class__.__name__}."
            )
        if extra_params := kwargs.keys() - self.ARG_TO_SCIPY_NAMES.keys():
            raise TypeError(
                f"Unexpected parameters {extra_params} for {self.__class__.__name__}."
            )

        # Initialize the parameters
        super().__init__(shape=shape, **kwargs)

        # Parameters can be manually set as observables or latents, so we need a
        # flag to track this. `None` means the role is inferred from the graph.
        self._observable: Optional[bool] = None if field is None else True
        self._field = field

    def as_observable(self, field: Optional[str] = None) -> "Parameter":
        """Mark the parameter as observable (representing observed data).

        :param field: Name of the dataset field holding the observed values.
            Defaults to None (the parameter's name).
        :type field: Optional[str]

        :returns: Self-reference for method chaining
        :rtype: Parameter

        This method will typically not be needed, as MiniStan automatically
        treats parameters with no children in the dependency graph as observables.
        """
        self._observable = True
        if field is not None:
            self._field = field
        return self

    def as_latent(self) -> "Parameter":
        """Mark the parameter as latent even if nothing depends on it.

        :returns: Self-reference for method chaining
        :rtype: Parameter

        Example:
            >>> x = Normal(mu=0.0, sigma=3.0).as_latent()
        """
        if self._field is not None:
            raise ValueError("A parameter bound to a dataset field cannot be latent.")
        self._observable = False
        return self

    def _scipy_args(self, parent_values: dict[str, "custom_types.SampleType"]) -> dict:
        """Rename and transform argument values for the SciPy distribution."""
        return {
            self.ARG_TO_SCIPY_NAMES[name]: self.ARG_TO_SCIPY_TRANSFORMS.get(
                name, lambda x: x
            )(np.asarray(value, dtype=float))
            for name, value in parent_values.items()
        }

    def log_prob(
        self, value: "custom_types.SampleType", **parent_values
    ) -> npt.NDArray[np.floating]:
        """Evaluate the elementwise log density (or log mass) of a value.

        :param value: Value(s) at which to evaluate the density
        :type value: custom_types.SampleType
        :param parent_values: Values of the distribution arguments

        :returns: Elementwise log density. Invalid arguments and values outside
            of the support give ``-inf``.
        :rtype: npt.NDArray[np.floating]
        """
        method = self.SCIPY_DIST.logpmf if self.IS_DISCRETE else self.SCIPY_DIST.logpdf
        with np.errstate(all="ignore"):
            log_density = np.asarray(
                method(np.asarray(value), **self._scipy_args(parent_values)),
                dtype=float,
            )
        return np.where(np.isnan(log_density), -np.inf, log_density)

    def sample(
        self, rng: np.random.Generator, **parent_values
    ) -> npt.NDArray:
        """Draw one value of the parameter given the values of its arguments.

        :param rng: Random number generator to draw with
        :type rng: np.random.Generator
        :param parent_values: Values of the distribution arguments

        :returns: A draw with the parameter's shape, broadcast against the shapes
            of the argument values
        :rtype: npt.NDArray
        """
        args = self._scipy_args(parent_values)
        size = np.broadcast_shapes(
            self.shape or (), *(np.shape(arg) for arg in args.values())
        )
        return np.asarray(self.SCIPY_DIST.rvs(**args, size=size, random_state=rng))

    def support(
        self, **parent_values
    ) -> tuple[Optional["custom_types.SampleType"], Optional["custom_types.SampleType"]]:
        """Bounds of the support given the values of the arguments.

        :returns: ``(lower, upper)``; ``None`` marks an unbounded side
        """
        return self.LOWER_BOUND, self.UPPER_BOUND

    def has_positive_support(self) -> bool:
        """Whether every value in the support is non-negative."""
        return self.LOWER_BOUND is not None and self.LOWER_BOUND >= 0

    def has_unit_support(self) -> bool:
        """Whether the support lies within [0, 1]."""
        return self.has_positive_support() and (
            self.UPPER_BOUND is not None and self.UPPER_BOUND <= 1
        )

    def constrain(
        self, raw: npt.NDArray, **parent_values
    ) -> tuple["custom_types.SampleType", float]:
        """Map an unconstrained value onto the support.

        Lower-bounded supports use ``lower + exp(raw)``, upper-bounded supports
        ``upper - exp(raw)``, and supports bounded on both sides a scaled
        logistic function. Unbounded supports are left unchanged.

        :param raw: Value on the unconstrained scale
        :type raw: npt.NDArray
        :param parent_values: Values of the distribution arguments

        :returns: The constrained value and the log absolute Jacobian determinant
            of the transformation
        :rtype: tuple[custom_types.SampleType, float]
        """
        lower, upper = self.support(**parent_values)
        with np.errstate(all="ignore"):
            if lower is None and upper is None:
                return raw, 0.0
            if lower is not None and upper is not None:
                width = np.asarray(upper) - np.asarray(lower)
                value = lower + width * special.expit(raw)
                log_jacobian = np.sum(
                    np.broadcast_to(np.log(width), raw.shape)
                    + special.log_expit(raw)
                    + special.log_expit(-raw)
                )
                return value, float(log_jacobian)
            if lower is not None:
                return lower + np.exp(raw), float(np.sum(raw))
            return upper - np.exp(raw), float(np.sum(raw))

    def unconstrain(
        self, value: "custom_types.SampleType", **parent_values
    ) -> "custom_types.SampleType":
        """Inverse of :py:meth:`constrain`.

        :param value: Value on the support
        :type value: custom_types.SampleType

        :returns: The value on the unconstrained scale
        :rtype: custom_types.SampleType
        """
        value = np.asarray(value, dtype=float)
        lower, upper = self.support(**parent_values)
        with np.errstate(all="ignore"):
            if lower is None and upper is None:
                return value
            if lower is not None and upper is not None:
                return special.logit((value - lower) / (np.asarray(upper) - lower))
            if lower is not None:
                return np.log(value - lower)
            return np.log(upper - value)

    def prior_log_density(
        self, raw: npt.NDArray, value: npt.NDArray, **parent_values
    ) -> float:
        """Total log prior density contributed by a latent parameter.

        :param raw: The unconstrained value the sampler works with
        :type raw: npt.NDArray
        :param value: The corresponding constrained value
        :type value: npt.NDArray

        :returns: Sum of the elementwise log densities of ``value``
        :rtype: float
        """
        return float(np.sum(self.log_prob(value, **parent_values)))

    def validate_definition(self) -> None:
        """Check the parameter for definition errors.

        Called by the model once every component is registered. Checks that
        constant arguments respect their domains, that positive-only and
        probability arguments are not fed by parameters with incompatible
        supports, and that latent parameters are continuous with a known shape.

        :raises DefinitionError: If the definition is invalid
        """
        name = self.model_varname or self.__class__.__name__

        # Latent parameters must be continuous and of fixed shape
        if not self.observable:
            if self.IS_DISCRETE:
                raise DefinitionError(
                    name,
                    f"{self.__class__.__name__} is discrete; discrete parameters "
                    "can only be observed.",
                )
            if self.shape is None:
                raise DefinitionError(
                    name, "the shape of a latent parameter cannot depend on data."
                )

        # Check the arguments against their domains
        for argname in self.POSITIVE_PARAMS | self.PROBABILITY_PARAMS:
            source = _source(self.parents[argname])
            if isinstance(source, constants.Constant):
                if argname in self.POSITIVE_PARAMS and np.any(source.value <= 0):
                    raise DefinitionError(
                        name,
                        f"argument '{argname}' must be positive; got "
                        f"{source.value.tolist()}.",
                    )
                if argname in self.PROBABILITY_PARAMS and np.any(
                    (source.value < 0) | (source.value > 1)
                ):
                    raise DefinitionError(
                        name,
                        f"argument '{argname}' must lie in [0, 1]; got "
                        f"{source.value.tolist()}.",
                    )
            elif isinstance(source, Parameter):
                if argname in self.PROBABILITY_PARAMS:
                    if not source.has_unit_support():
                        raise DefinitionError(
                            name,
                            f"invalid prior support: argument '{argname}' must lie "
                            f"in [0, 1] but is fed by '{source.model_varname}', a "
                            f"{source.__class__.__name__} parameter.",
                        )
                elif not source.has_positive_support():
                    raise DefinitionError(
                        name,
                        f"invalid prior support: argument '{argname}' must be "
                        f"positive but is fed by '{source.model_varname}', a "
                        f"{source.__class__.__name__} parameter.",
                    )

    def __str__(self) -> str:
        args = ", ".join(
            f"{argname}={parent.model_varname if parent.is_named else _describe(parent)}"
            for argname, parent in self.parents.items()
        )
        return f"{self.model_varname or '<unnamed>'} ~ {self.__class__.__name__}({args})"

    @property
    def is_hyperparameter(self) -> bool:
        """Whether every argument of the parameter is a constant.

        Hyperparameters are top-level parameters in the model hierarchy that
        depend only on fixed constants rather than other random variables.
        """
        return all(
            isinstance(parent, constants.Constant) for parent in self.parents.values()
        )

    @property
    def observable(self) -> bool:
        """Whether the parameter represents observed data.

        Parameters are observable if explicitly marked as such or, unless
        explicitly marked latent, if they have no children.
        """
        if self._observable is not None:
            return self._observable
        return len(self._children) == 0

    @property
    def field(self) -> str:
        """Name of the dataset field holding the observed values."""
        return self._field or self.model_varname


def _describe(component: abstract_model_component.AbstractModelComponent) -> str:
    """Short description of an unnamed argument for printing."""
    if isinstance(component, constants.Constant):
        return str(component.value.tolist())
    return component.__class__.__name__


class ContinuousDistribution(Parameter, transformed_parameters.TransformableParameter):
    """Base class for parameters with continuous sample spaces.

    Continuous parameters also inherit the operator overloads that enable
    hierarchical model construction with plain arithmetic.
    """


class DiscreteDistribution(Parameter):
    """Base class for parameters with discrete sample spaces.

    All discrete distributions implemented in MiniStan are defined on the
    non-negative integers and can only be observed.
    """

    LOWER_BOUND: "custom_types.Integer" = 0
    IS_DISCRETE = True


class Normal(ContinuousDistribution):
    r"""Normal (Gaussian) distribution parameter.

    :param mu: Location parameter (mean)
    :type mu: custom_types.CombinableParameterType
    :param sigma: Scale parameter (standard deviation)
    :type sigma: custom_types.CombinableParameterType
    :param noncentered: Whether to use the non-centered parameterization in
        hierarchical models. Defaults to True.
    :type noncentered: bool
    :param kwargs: Additional keyword arguments passed to parent class

    Mathematical Definition:
        .. math::
            P(x | \mu, \sigma) = \frac{1}{\sigma\sqrt{2\pi}} *
            \exp\left(-\frac{((x-\mu)/\sigma)^2}{2}\right)

    In hierarchical models, the non-centered parametrization is used by default.
    The sampler then works with a standard normal variable and the parameter is
    defined as a transformation of it, which removes the funnel-shaped
    dependence between the parameter and its scale:

        .. math::
            \begin{align*}
            z &\sim \text{Normal}(0, 1) \\
            x &= \mu + \sigma * z
            \end{align*}
    """

    POSITIVE_PARAMS = {"sigma"}
    SCIPY_DIST = stats.norm
    ARG_TO_SCIPY_NAMES = {"mu": "loc", "sigma": "scale"}

    def __init__(
        self,
        *,
        mu: "custom_types.CombinableParameterType",
        sigma: "custom_types.CombinableParameterType",
        noncentered: bool = True,
        **kwargs,
    ):
        super().__init__(mu=mu, sigma=sigma, **kwargs)
        self._noncentered = noncentered

    def constrain(self, raw, **parent_values):
        if not self.is_noncentered:
            return super().constrain(raw, **parent_values)
        return parent_values["mu"] + parent_values["sigma"] * raw, 0.0

    def unconstrain(self, value, **parent_values):
        if not self.is_noncentered:
            return super().unconstrain(value, **parent_values)
        with np.errstate(all="ignore"):
            return (np.asarray(value, dtype=float) - parent_values["mu"]) / (
                parent_values["sigma"]
            )

    def prior_log_density(self, raw, value, **parent_values):
        # The non-centered variable is standard normal by construction
        if not self.is_noncentered:
            return super().prior_log_density(raw, value, **parent_values)
        return float(np.sum(stats.norm.logpdf(raw)))

    @property
    def is_noncentered(self) -> bool:
        """Whether the non-centered parameterization is in use.

        This requires that the ``noncentered`` flag was set, that the parameter
        is not a hyperparameter, and that it is not observable.
        """
        return self._noncentered and not self.is_hyperparameter and not self.observable


class HalfNormal(ContinuousDistribution):
    r"""Half-normal distribution parameter.

    The absolute value of a zero-mean normal variable. A common weakly
    informative prior for scale parameters.

    :param sigma: Scale parameter
    :type sigma: custom_types.CombinableParameterType
    """

    POSITIVE_PARAMS = {"sigma"}
    LOWER_BOUND = 0.0
    SCIPY_DIST = stats.halfnorm
    ARG_TO_SCIPY_NAMES = {"sigma": "scale"}


class LogNormal(ContinuousDistribution):
    r"""Log-normal distribution parameter.

    :param mu: Location of the logarithm of the variable
    :type mu: custom_types.CombinableParameterType
    :param sigma: Scale of the logarithm of the variable
    :type sigma: custom_types.CombinableParameterType

    Mathematical Definition:
        .. math::
            \log(X) \sim \text{Normal}(\mu, \sigma)
    """

    POSITIVE_PARAMS = {"sigma"}
    LOWER_BOUND = 0.0
    SCIPY_DIST = stats.lognorm
    ARG_TO_SCIPY_NAMES = {"mu": "scale", "sigma": "s"}
    ARG_TO_SCIPY_TRANSFORMS = {"mu": _exp_transform}


class Cauchy(ContinuousDistribution):
    """Cauchy distribution parameter with location ``mu`` and scale ``sigma``."""

    POSITIVE_PARAMS = {"sigma"}
    SCIPY_DIST = stats.cauchy
    ARG_TO_SCIPY_NAMES = {"mu": "loc", "sigma": "scale"}


class HalfCauchy(ContinuousDistribution):
    """Half-Cauchy distribution parameter with scale ``sigma``."""

    POSITIVE_PARAMS = {"sigma"}
    LOWER_BOUND = 0.0
    SCIPY_DIST = stats.halfcauchy
    ARG_TO_SCIPY_NAMES = {"sigma": "scale"}


class StudentT(ContinuousDistribution):
    r"""Student's t distribution parameter.

    :param nu: Degrees of freedom
    :type nu: custom_types.CombinableParameterType
    :param mu: Location parameter
    :type mu: custom_types.CombinableParameterType
    :param sigma: Scale parameter
    :type sigma: custom_types.CombinableParameterType

    Heavier tailed than the normal distribution, to which it converges as
    :math:`\nu \to \infty`. Commonly used for robust likelihoods.
    """

    POSITIVE_PARAMS = {"nu", "sigma"}
    SCIPY_DIST = stats.t
    ARG_TO_SCIPY_NAMES = {"nu": "df", "mu": "loc", "sigma": "scale"}


class Exponential(ContinuousDistribution):
    r"""Exponential distribution parameter with rate ``beta``.

    Mathematical Definition:
        .. math::
            P(x | \beta) = \beta e^{-\beta x} \text{ for } x \geq 0
    """

    POSITIVE_PARAMS = {"beta"}
    LOWER_BOUND = 0.0
    SCIPY_DIST = stats.expon
    ARG_TO_SCIPY_NAMES = {"beta": "scale"}
    ARG_TO_SCIPY_TRANSFORMS = {
        "beta": _inverse_transform
    }  # Transform the rate to the scipy distribution's scale parameter


class Gamma(ContinuousDistribution):
    r"""Gamma distribution parameter.

    :param alpha: Shape parameter
    :type alpha: custom_types.CombinableParameterType
    :param beta: Rate parameter
    :type beta: custom_types.CombinableParameterType

    Mathematical Definition:
        .. math::
            P(x | \alpha, \beta) = \frac{\beta^\alpha}{\Gamma(\alpha)} *
            x^{\alpha - 1} e^{-\beta x} \text{ for } x > 0
    """

    POSITIVE_PARAMS = {"alpha", "beta"}
    LOWER_BOUND = 0.0
    SCIPY_DIST = stats.gamma
    ARG_TO_SCIPY_NAMES = {"alpha": "a", "beta": "scale"}
    ARG_TO_SCIPY_TRANSFORMS = {"beta": _inverse_transform}


class InverseGamma(ContinuousDistribution):
    r"""Inverse gamma distribution parameter with shape ``alpha`` and scale ``beta``.

    Mathematical Definition:
        .. math::
            P(x | \alpha, \beta) = \frac{\beta^\alpha}{\Gamma(\alpha)} *
            x^{-\alpha - 1} e^{-\beta / x} \text{ for } x > 0
    """

    POSITIVE_PARAMS = {"alpha", "beta"}
    LOWER_BOUND = 0.0
    SCIPY_DIST = stats.invgamma
    ARG_TO_SCIPY_NAMES = {"alpha": "a", "beta": "scale"}


class Beta(ContinuousDistribution):
    r"""Beta distribution parameter.

    :param alpha: First shape parameter
    :type alpha: custom_types.CombinableParameterType
    :param beta: Second shape parameter
    :type beta: custom_types.CombinableParameterType

    Supported on the unit interval, which makes it the usual prior for
    probabilities.
    """

    POSITIVE_PARAMS = {"alpha", "beta"}
    LOWER_BOUND = 0.0
    UPPER_BOUND = 1.0
    SCIPY_DIST = stats.beta
    ARG_TO_SCIPY_NAMES = {"alpha": "a", "beta": "b"}


class Uniform(ContinuousDistribution):
    """Uniform distribution parameter on the interval ``(lower, upper)``.

    The support of a uniform parameter is given by its arguments, which may
    themselves be parameters.
    """

    SCIPY_DIST = stats.uniform
    ARG_TO_SCIPY_NAMES = {"lower": "loc", "upper": "scale"}

    def _scipy_args(self, parent_values):
        lower = np.asarray(parent_values["lower"], dtype=float)
        upper = np.asarray(parent_values["upper"], dtype=float)
        return {"loc": lower, "scale": upper - lower}

    def support(self, **parent_values):
        return (
            np.asarray(parent_values["lower"], dtype=float),
            np.asarray(parent_values["upper"], dtype=float),
        )

    def has_positive_support(self) -> bool:
        lower = _source(self.parents["lower"])
        return isinstance(lower, constants.Constant) and bool(np.all(lower.value >= 0))

    def has_unit_support(self) -> bool:
        upper = _source(self.parents["upper"])
        return (
            self.has_positive_support()
            and isinstance(upper, constants.Constant)
            and bool(np.all(upper.value <= 1))
        )

    def validate_definition(self) -> None:
        super().validate_definition()
        lower, upper = (_source(self.parents[arg]) for arg in ("lower", "upper"))
        if (
            isinstance(lower, constants.Constant)
            and isinstance(upper, constants.Constant)
            and np.any(lower.value >= upper.value)
        ):
            raise DefinitionError(
                self.model_varname or self.__class__.__name__,
                f"lower bound {lower.value.tolist()} must be below upper bound "
                f"{upper.value.tolist()}.",
            )


class Poisson(DiscreteDistribution):
    r"""Poisson distribution parameter with rate ``lambda_``.

    Mathematical Definition:
        .. math::
            P(X = k | \lambda) = \frac{\lambda^k e^{-\lambda}}{k!}
            \text{ for } k = 0, 1, 2, ...
    """

    POSITIVE_PARAMS = {"lambda_"}
    SCIPY_DIST = stats.poisson
    ARG_TO_SCIPY_NAMES = {"lambda_": "mu"}


class Binomial(DiscreteDistribution):
    r"""Binomial distribution parameter.

    :param N: Number of trials
    :type N: custom_types.CombinableParameterType
    :param theta: Success probability
    :type theta: custom_types.CombinableParameterType

    Mathematical Definition:
        .. math::
            P(X = k | N, \theta) = \binom{N}{k} \theta^k (1 - \theta)^{N - k}
            \text{ for } k = 0, 1, ..., N
    """

    PROBABILITY_PARAMS = {"theta"}
    SCIPY_DIST = stats.binom
    ARG_TO_SCIPY_NAMES = {"N": "n", "theta": "p"}

    def validate_definition(self) -> None:
        super().validate_definition()
        trials = _source(self.parents["N"])
        if isinstance(trials, constants.Constant) and (
            np.any(trials.value < 0) or np.any(trials.value != np.round(trials.value))
        ):
            raise DefinitionError(
                self.model_varname or self.__class__.__name__,
                f"argument 'N' must be a non-negative integer; got "
                f"{trials.value.tolist()}.",
            )


class Bernoulli(DiscreteDistribution):
    """Bernoulli distribution parameter with success probability ``theta``."""

    UPPER_BOUND = 1
    PROBABILITY_PARAMS = {"theta"}
    SCIPY_DIST = stats.bernoulli
    ARG_TO_SCIPY_NAMES = {"theta": "p"}
