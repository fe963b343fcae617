# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Core Model class for the MiniStan Bayesian modeling framework.

This module contains the Model class that serves as the primary interface for
building and fitting Bayesian models in MiniStan. The Model class orchestrates
the composition of model components (parameters, constants, dataset fields,
transformations) and provides methods for prior sampling, binding data, and
posterior sampling.

Components defined as instance attributes are registered automatically, which
enables intuitive model construction through simple attribute assignment:

.. code-block:: python

    import ministan as ms

    class TwoGroups(ms.Model):
        def __init__(self):
            super().__init__()
            self.mu_a = ms.parameters.Normal(mu=0.0, sigma=10.0)
            self.delta = ms.parameters.Normal(mu=0.0, sigma=10.0)
            self.y = ms.parameters.Normal(
                mu=self.mu_a + self.delta * ms.DataField("group"),
                sigma=1.0,
                field="value",
            )

The model definition is validated as soon as the instance is constructed; any
problem raises a :py:class:`~ministan.exceptions.DefinitionError` naming the
offending component.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, TYPE_CHECKING, Union

import numpy as np
import numpy.typing as npt

import ministan

from ministan import utils
from ministan.dataset import Dataset
from ministan.exceptions import DefinitionError
from ministan.model.components import abstract_model_component
from ministan.model.components import (
    constants as constants_module,
    parameters as parameters_module,
)
from ministan.model.components.transformations import (
    transformed_data,
    transformed_parameters as transformed_parameters_module,
)
from ministan.model.log_density import BoundModel, data_to_dict

sampler = utils.lazy_import("ministan.model.mcmc.sampler")

if TYPE_CHECKING:
    from ministan import custom_types
    from ministan.model.results import mcmc as mcmc_results


def model_comps_to_dict(
    model_comps: tuple[abstract_model_component.AbstractModelComponent, ...],
) -> dict[str, abstract_model_component.AbstractModelComponent]:
    """Convert a sequence of model components to a dictionary keyed by name.

    :param model_comps: Sequence of model components to convert
    :type model_comps: tuple[abstract_model_component.AbstractModelComponent, ...]

    :returns: Dictionary mapping component variable names to components
    :rtype: dict[str, abstract_model_component.AbstractModelComponent]
    """
    return {comp.model_varname: comp for comp in model_comps}


class Model:
    """Primary interface for Bayesian model construction and analysis in MiniStan.

    :param args: Positional arguments (unused, for subclass compatibility)
    :param default_data: Default observed data. When provided, any method
        requiring data uses it if not otherwise given. Defaults to None.
    :type default_data: Optional[Union[Dataset, Mapping[str, npt.ArrayLike]]]
    :param kwargs: Additional keyword arguments (unused, for subclass compatibility)

    :ivar _named_model_components: Components assigned to instance attributes
    :ivar _all_model_components: Every component, in dependency order
    :ivar _init_complete: Flag indicating initialization completion

    Models are built by subclassing Model and defining components as instance
    attributes in the ``__init__`` method. Attribute names become the names of
    the components; they cannot start with an underscore or contain a double
    underscore.

    Example:
        >>> class MyModel(Model):
        ...     def __init__(self):
        ...         super().__init__()
        ...         self.mu = ms.parameters.Normal(mu=0.0, sigma=1.0)
        ...         self.sigma = ms.parameters.HalfNormal(sigma=1.0)
        ...         self.y = ms.parameters.Normal(mu=self.mu, sigma=self.sigma)
        >>>
        >>> model = MyModel()
        >>> prior_samples = model.draw(n=1000)
        >>> fit = model.mcmc(data={"y": observed})
    """

    def __init__(
        self,
        *args,  # pylint: disable=unused-argument
        default_data: Optional[Union[Dataset, Mapping[str, "npt.ArrayLike"]]] = None,
        **kwargs,  # pylint: disable=unused-argument
    ):
        """This should be overridden by the subclass."""
        self._default_data = default_data

        self._named_model_components: tuple[
            abstract_model_component.AbstractModelComponent, ...
        ] = getattr(self, "_named_model_components", ())

        self._all_model_components: tuple[
            abstract_model_component.AbstractModelComponent, ...
        ] = getattr(self, "_all_model_components", ())

        self._init_complete: bool = getattr(self, "_init_complete", False)

    def __init_subclass__(cls, **kwargs):
        """Configure automatic component registration for Model subclasses.

        The subclass ``__init__`` is wrapped so that, once the outermost
        ``__init__`` has run, every component assigned to an instance attribute
        is named after that attribute and the whole definition is validated.

        :raises ValueError: If forbidden attribute names are used
        :raises DefinitionError: If the model definition is invalid
        """
        super().__init_subclass__(**kwargs)

        # The old __init__ method of the class is renamed to '_wrapped_init'
        if "_wrapped_init" in cls.__dict__:
            raise ValueError(
                "The attribute `_wrapped_init` cannot be defined in `Model` subclasses"
            )

        def __init__(self: "Model", *init_args, **init_kwargs):

            # Initialization is incomplete at this stage
            self._init_complete = False

            # Run the init method that was defined in the class.
            cls._wrapped_init(self, *init_args, **init_kwargs)

            # That's it if we are not the last subclass to be initialized
            if cls is not self.__class__:
                return

            # Find all the model components that are defined in the class
            named_model_components = {}
            for attr in vars(self).keys():
                if not isinstance(
                    retrieved := getattr(self, attr),
                    abstract_model_component.AbstractModelComponent,
                ):
                    continue

                # Double-underscore attributes are forbidden, as they clash with
                # how unnamed components are named
                if "__" in attr:
                    raise ValueError(
                        "Model component names cannot include double underscores: "
                        f"{attr} is invalid."
                    )
                if attr.startswith("_"):
                    raise ValueError(
                        "Model variable names cannot start with an underscore: "
                        f"{attr} is invalid."
                    )

                # Set the model variable name and record the model component
                retrieved.model_varname = attr
                named_model_components[attr] = retrieved

            self._named_model_components = tuple(named_model_components.values())
            self._register(self._named_model_components)
            self._init_complete = True

        # Add the new __init__ method
        cls._wrapped_init = cls.__init__
        cls.__init__ = __init__

    def _register(
        self,
        named_components: tuple[abstract_model_component.AbstractModelComponent, ...],
    ) -> None:
        """Collect every component in dependency order and validate the model."""
        self._named_model_components = named_components

        # Walk up from every named component. Components reached twice are only
        # recorded once, after all of their parents.
        ordered: dict[int, abstract_model_component.AbstractModelComponent] = {}
        for component in named_components:
            for ancestor in component.walk_tree():
                ordered.setdefault(id(ancestor), ancestor)
        self._all_model_components = tuple(ordered.values())

        # Latent parameters must be named explicitly
        for component in self._all_model_components:
            if (
                isinstance(component, parameters_module.Parameter)
                and not component.observable
                and not component.is_named
            ):
                raise DefinitionError(
                    component.model_varname or component.__class__.__name__,
                    "latent parameters must be assigned to a model attribute.",
                )

        # Check every parameter
        for param in self._all_model_components:
            if isinstance(param, parameters_module.Parameter):
                param.validate_definition()

    def bind(
        self, data: Optional[Union[Dataset, Mapping[str, "npt.ArrayLike"]]] = None
    ) -> BoundModel:
        """Bind the model to data, giving its log density function.

        :param data: Observed data. Defaults to None (use the default data).
        :type data: Optional[Union[Dataset, Mapping[str, npt.ArrayLike]]]

        :returns: The bound model
        :rtype: BoundModel

        :raises ValueError: If a needed data field is missing
        """
        return BoundModel(self, self._resolve_data(data))

    def _resolve_data(self, data):
        """Fall back on the default data when no data is given."""
        if data is None:
            return self._default_data
        return data

    def draw_once(
        self,
        rng: np.random.Generator,
        data: Optional[Union[Dataset, Mapping[str, "npt.ArrayLike"]]] = None,
    ) -> dict[str, npt.NDArray]:
        """Draw every component once from the prior (and prior predictive).

        :param rng: Random number generator to draw with
        :type rng: np.random.Generator
        :param data: Data supplying dataset fields. Defaults to None.
        :type data: Optional[Union[Dataset, Mapping[str, npt.ArrayLike]]]

        :returns: One draw of every named component
        :rtype: dict[str, npt.NDArray]

        :raises ValueError: If a dataset field is needed but not supplied
        """
        data = data_to_dict(data)
        values: dict[int, npt.NDArray] = {}
        with np.errstate(all="ignore"):
            for component in self._all_model_components:
                parent_values = {
                    name: values[id(parent)]
                    for name, parent in component.parents.items()
                }
                if isinstance(component, constants_module.Constant):
                    value = component.value
                elif isinstance(component, transformed_data.DataField):
                    if component.field not in data:
                        raise ValueError(
                            f"Drawing from the prior requires the data field "
                            f"'{component.field}'."
                        )
                    value = data[component.field]
                elif isinstance(component, parameters_module.Parameter):
                    value = component.sample(rng, **parent_values)
                else:
                    value = component(**parent_values)
                values[id(component)] = np.asarray(value)

        return {
            component.model_varname: values[id(component)]
            for component in self._named_model_components
        }

    def draw(
        self,
        n: "custom_types.Integer",
        *,
        seed: Optional["custom_types.Integer"] = None,
        data: Optional[Union[Dataset, Mapping[str, "npt.ArrayLike"]]] = None,
    ) -> dict[str, npt.NDArray]:
        """Draw samples from the model's prior distribution.

        Every named component is drawn, observables included, which gives prior
        predictive draws of the data alongside the prior draws of the parameters.

        :param n: Number of samples to draw
        :type n: custom_types.Integer
        :param seed: Random seed for reproducible sampling. Defaults to None
            (use the global random number generator).
        :type seed: Optional[custom_types.Integer]
        :param data: Data supplying dataset fields (such as group codes).
            Defaults to None (use the default data, if any).
        :type data: Optional[Union[Dataset, Mapping[str, npt.ArrayLike]]]

        :returns: Draws of every named component, stacked along a leading axis
            of length ``n``
        :rtype: dict[str, npt.NDArray]

        Example:
            >>> samples = model.draw(1000, seed=1)
            >>> samples["mu"].shape
            (1000,)
        """
        if n < 1:
            raise ValueError(f"`n` must be positive; got {n}.")
        rng = ministan.RNG if seed is None else np.random.default_rng(seed)
        data = self._resolve_data(data)
        draws = [self.draw_once(rng, data=data) for _ in range(int(n))]
        return {name: np.stack([draw[name] for draw in draws]) for name in draws[0]}

    def mcmc(
        self,
        data: Optional[Union[Dataset, Mapping[str, "npt.ArrayLike"]]] = None,
        **kwargs,
    ) -> "mcmc_results.FitResult":
        """Sample from the posterior with the native multi-chain sampler.

        :param data: Observed data. Defaults to None (use the default data).
        :type data: Optional[Union[Dataset, Mapping[str, npt.ArrayLike]]]
        :param kwargs: Sampler settings passed on to
            :py:func:`ministan.model.mcmc.sampler.sample` (``chains``,
            ``iterations``, ``warmup``, ``seed``, ``kernel``, ...)

        :returns: The fit
        :rtype: FitResult

        Example:
            >>> fit = model.mcmc(data=dataset, chains=4, iterations=2000, seed=1)
        """
        return sampler.sample(self, self._resolve_data(data), **kwargs)

    def __str__(self) -> str:
        """Components of the model, organized by type."""
        model_comps = {
            "Constants": [
                el
                for el in self.named_model_components
                if isinstance(el, constants_module.Constant)
            ],
            "Transformed Parameters": [
                el for el in self.transformed_parameters if el.is_named
            ],
            "Parameters": self.parameters,
            "Observables": self.observables,
        }
        return "\n\n".join(
            key + "\n" + "=" * len(key) + "\n" + "\n".join(str(el) for el in complist)
            for key, complist in model_comps.items()
            if len(complist) > 0
        )

    def __contains__(self, paramname: str) -> bool:
        """Check if the model has a named component called ``paramname``."""
        return paramname in self.named_model_components_dict

    def __getitem__(
        self, paramname: str
    ) -> abstract_model_component.AbstractModelComponent:
        """Retrieve a named model component.

        :raises KeyError: If no component has that name
        """
        return self.named_model_components_dict[paramname]

    def __setattr__(self, name: str, value: Any) -> None:
        """Set a model attribute, protecting components once initialized.

        :raises AttributeError: If attempting to replace a model component or
            add a new one after initialization
        """
        if getattr(self, "_init_complete", False) and (
            isinstance(value, abstract_model_component.AbstractModelComponent)
            or name in self.named_model_components_dict
        ):
            raise AttributeError(
                "Model components can only be set during initialization."
            )
        super().__setattr__(name, value)

    @property
    def default_data(self) -> Optional[Union[Dataset, Mapping[str, "npt.ArrayLike"]]]:
        """Default observed data used when none is passed to a method."""
        return self._default_data

    @property
    def named_model_components(
        self,
    ) -> tuple[abstract_model_component.AbstractModelComponent, ...]:
        """Components explicitly assigned as instance attributes."""
        return self._named_model_components

    @property
    def named_model_components_dict(
        self,
    ) -> dict[str, abstract_model_component.AbstractModelComponent]:
        """Named components keyed by name."""
        return model_comps_to_dict(self.named_model_components)

    @property
    def all_model_components(
        self,
    ) -> tuple[abstract_model_component.AbstractModelComponent, ...]:
        """Every component of the model, named or not, in dependency order."""
        return self._all_model_components

    @property
    def parameters(self) -> tuple[parameters_module.Parameter, ...]:
        """Latent parameters, in dependency order.

        These are the variables inferred by the sampler.
        """
        return tuple(
            comp
            for comp in self._all_model_components
            if isinstance(comp, parameters_module.Parameter) and not comp.observable
        )

    @property
    def hyperparameters(self) -> tuple[parameters_module.Parameter, ...]:
        """Latent parameters whose arguments are all constants."""
        return tuple(param for param in self.parameters if param.is_hyperparameter)

    @property
    def transformed_parameters(
        self,
    ) -> tuple[transformed_parameters_module.TransformedParameter, ...]:
        """Transformed parameters, named or not, in dependency order."""
        return tuple(
            comp
            for comp in self._all_model_components
            if isinstance(comp, transformed_parameters_module.TransformedParameter)
        )

    @property
    def transformed_parameter_dict(
        self,
    ) -> dict[str, transformed_parameters_module.TransformedParameter]:
        """Named transformed parameters keyed by name."""
        return model_comps_to_dict(
            tuple(comp for comp in self.transformed_parameters if comp.is_named)
        )

    @property
    def observables(self) -> tuple[parameters_module.Parameter, ...]:
        """Parameters representing observed data."""
        return tuple(
            comp
            for comp in self._all_model_components
            if isinstance(comp, parameters_module.Parameter) and comp.observable
        )

    @property
    def data_fields(self) -> tuple[str, ...]:
        """Names of every dataset field the model reads."""
        fields = []
        for comp in self._all_model_components:
            if isinstance(comp, transformed_data.DataField) or (
                isinstance(comp, parameters_module.Parameter) and comp.observable
            ):
                if comp.field not in fields:
                    fields.append(comp.field)
        return tuple(fields)
