# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Log density of a MiniStan model bound to a dataset.

A :py:class:`BoundModel` is the pure function the sampler works with. It maps a
flat vector of unconstrained parameter values to the log posterior density (up
to a constant) of the model given the bound data:

.. math::
    \\log p(\\theta \\mid y) = \\log p(\\theta) + \\log p(y \\mid \\theta)
    + \\log \\left| J(\\theta) \\right|

where the Jacobian term accounts for the transforms that map constrained
supports onto the real line. The component tree is evaluated in dependency
order; nothing is cached between calls, so a bound model can be shared by any
number of sampling threads.
"""

from __future__ import annotations

from typing import Mapping, Optional, TYPE_CHECKING, Union

import numpy as np
import numpy.typing as npt

from ministan import utils
from ministan.dataset import Dataset
from ministan.model.components import constants, parameters
from ministan.model.components.transformations import (
    transformed_data,
    transformed_parameters,
)

if TYPE_CHECKING:
    from ministan import custom_types
    from ministan.model.model import Model


def data_to_dict(
    data: Union[Dataset, Mapping[str, "npt.ArrayLike"], None],
) -> "custom_types.DataDict":
    """Convert any accepted form of data into read-only field arrays.

    :param data: A dataset, a mapping from field names to arrays, or None
    :type data: Union[Dataset, Mapping[str, npt.ArrayLike], None]

    :returns: Mapping from field names to read-only arrays
    :rtype: custom_types.DataDict

    :raises ValueError: If a field holds non-finite values
    """
    if data is None:
        return {}
    if isinstance(data, Dataset):
        data = data.to_dict()
    converted = {}
    for field, values in data.items():
        values = np.asarray(values)
        if np.issubdtype(values.dtype, np.number) and not np.all(np.isfinite(values)):
            raise ValueError(f"Data field '{field}' contains non-finite values.")
        converted[field] = utils.freeze(values)
    return converted


class BoundModel:
    """A model together with the data it is conditioned on.

    :param model: The model to bind
    :type model: Model
    :param data: The observed data. A :py:class:`~ministan.dataset.Dataset` or
        a mapping from field names to arrays.
    :type data: Union[Dataset, Mapping[str, npt.ArrayLike], None]

    :raises ValueError: If a field needed by the model is missing from the data

    :ivar dim: Number of unconstrained parameters
    :ivar parameter_names: Names of the latent parameters, in dependency order
    :ivar parameter_shapes: Shape of every latent parameter
    """

    def __init__(
        self,
        model: "Model",
        data: Union[Dataset, Mapping[str, "npt.ArrayLike"], None] = None,
    ):
        self.model = model
        self.data = data_to_dict(data)

        # Make sure that every field the model reads is present
        needed = set(model.data_fields)
        if missing := needed - set(self.data):
            raise ValueError(
                f"Missing data field(s) {sorted(missing)}; the model reads "
                f"{sorted(needed)}."
            )

        # Lay out the latent parameters along the unconstrained vector
        self._components = model.all_model_components
        self._latents = model.parameters
        self._observables = model.observables
        self._slices: dict[str, slice] = {}
        offset = 0
        for latent in self._latents:
            size = utils.n_elements(latent.shape)
            self._slices[latent.model_varname] = slice(offset, offset + size)
            offset += size
        self.dim: int = offset
        self.parameter_names: tuple[str, ...] = tuple(
            latent.model_varname for latent in self._latents
        )
        self.parameter_shapes: dict[str, tuple[int, ...]] = {
            latent.model_varname: latent.shape for latent in self._latents
        }

    def _raw(self, theta: npt.NDArray, latent: parameters.Parameter) -> npt.NDArray:
        """The block of ``theta`` holding one latent parameter."""
        return theta[self._slices[latent.model_varname]].reshape(latent.shape)

    def _walk(self, theta: npt.NDArray, constrained: Optional[Mapping] = None):
        """Evaluate every component in dependency order.

        Yields ``(component, value, log_density_increment, parent_values)``.
        Latent parameters are either read from ``theta`` or, when
        ``constrained`` is given, taken from that mapping of constrained values
        (in which case they contribute no density).
        """
        values: dict[int, npt.NDArray] = {}
        for component in self._components:
            parent_values = {
                name: values[id(parent)] for name, parent in component.parents.items()
            }
            increment = 0.0
            if isinstance(component, constants.Constant):
                value = component.value
            elif isinstance(component, transformed_data.DataField):
                value = self.data[component.field]
            elif isinstance(component, parameters.Parameter):
                if component.observable:
                    value = self.data[component.field]
                    increment = float(np.sum(component.log_prob(value, **parent_values)))
                elif constrained is not None:
                    value = np.broadcast_to(
                        np.asarray(constrained[component.model_varname], dtype=float),
                        component.shape,
                    )
                else:
                    raw = self._raw(theta, component)
                    value, log_jacobian = component.constrain(raw, **parent_values)
                    increment = (
                        component.prior_log_density(raw, value, **parent_values)
                        + log_jacobian
                    )
            else:
                value = component(**parent_values)
            values[id(component)] = np.asarray(value)
            yield component, values[id(component)], increment, parent_values

    def log_density(self, theta: npt.NDArray) -> float:
        """Log posterior density on the unconstrained scale, Jacobian included.

        :param theta: Unconstrained parameter vector of length :py:attr:`dim`
        :type theta: npt.NDArray

        :returns: The log density. Points outside of the support, or where any
            term is undefined, give ``-inf``.
        :rtype: float
        """
        with np.errstate(all="ignore"):
            total = 0.0
            for _, _, increment, _ in self._walk(np.asarray(theta, dtype=float)):
                total += increment
                if not np.isfinite(total):
                    return -np.inf
        return float(total)

    def log_prior(self, theta: npt.NDArray) -> float:
        """Log prior density on the unconstrained scale, Jacobian included."""
        with np.errstate(all="ignore"):
            total = sum(
                increment
                for component, _, increment, _ in self._walk(np.asarray(theta, dtype=float))
                if not (isinstance(component, parameters.Parameter) and component.observable)
            )
        return float(total) if np.isfinite(total) else -np.inf

    def evaluate(self, theta: npt.NDArray) -> dict[str, npt.NDArray]:
        """Values of every named latent and transformed parameter.

        :param theta: Unconstrained parameter vector
        :type theta: npt.NDArray

        :returns: Mapping from names to constrained values
        :rtype: dict[str, npt.NDArray]
        """
        with np.errstate(all="ignore"):
            return {
                component.model_varname: value
                for component, value, _, _ in self._walk(np.asarray(theta, dtype=float))
                if component.is_named
                and (
                    isinstance(component, transformed_parameters.TransformedParameter)
                    or (
                        isinstance(component, parameters.Parameter)
                        and not component.observable
                    )
                )
            }

    def constrain(self, theta: npt.NDArray) -> dict[str, npt.NDArray]:
        """Map an unconstrained vector to the constrained latent parameter values.

        :param theta: Unconstrained parameter vector
        :type theta: npt.NDArray

        :returns: Mapping from latent parameter names to values
        :rtype: dict[str, npt.NDArray]
        """
        evaluated = self.evaluate(theta)
        return {name: evaluated[name] for name in self.parameter_names}

    def unconstrain(self, values: Mapping[str, "npt.ArrayLike"]) -> npt.NDArray:
        """Map constrained latent parameter values to the unconstrained vector.

        :param values: Values of every latent parameter, keyed by name. Scalars
            are broadcast to the parameter's shape.
        :type values: Mapping[str, npt.ArrayLike]

        :returns: Unconstrained parameter vector
        :rtype: npt.NDArray

        :raises ValueError: If a latent parameter is missing or has the wrong shape
        """
        if missing := set(self.parameter_names) - set(values):
            raise ValueError(f"Missing values for latent parameter(s) {sorted(missing)}.")
        theta = np.empty(self.dim)
        with np.errstate(all="ignore"):
            try:
                for component, value, _, parent_values in self._walk(
                    theta, constrained=values
                ):
                    if isinstance(component, parameters.Parameter) and not (
                        component.observable
                    ):
                        theta[self._slices[component.model_varname]] = np.ravel(
                            component.unconstrain(value, **parent_values)
                        )
            except ValueError as error:
                raise ValueError(f"Invalid parameter values: {error}") from error
        return theta

    def pointwise_log_likelihood(self, theta: npt.NDArray) -> npt.NDArray:
        """Elementwise log likelihood of every observed value.

        :param theta: Unconstrained parameter vector
        :type theta: npt.NDArray

        :returns: One entry per observed value. Values of several observables are
            concatenated in dependency order.
        :rtype: npt.NDArray
        """
        pointwise = []
        with np.errstate(all="ignore"):
            for component, value, _, parent_values in self._walk(
                np.asarray(theta, dtype=float)
            ):
                if isinstance(component, parameters.Parameter) and component.observable:
                    pointwise.append(
                        np.broadcast_to(
                            component.log_prob(value, **parent_values), value.shape
                        ).ravel()
                    )
        return np.concatenate(pointwise) if pointwise else np.empty(0)

    def sample_prior(self, rng: np.random.Generator) -> npt.NDArray:
        """Draw the latent parameters from their prior.

        :param rng: Random number generator to draw with
        :type rng: np.random.Generator

        :returns: The draw, on the unconstrained scale
        :rtype: npt.NDArray
        """
        draws = self.model.draw_once(rng, data=self.data)
        return self.unconstrain({name: draws[name] for name in self.parameter_names})

    def flat_names(self) -> list[str]:
        """Names of the scalar elements of the unconstrained vector."""
        return [
            element
            for name in self.parameter_names
            for element in utils.element_names(name, self.parameter_shapes[name])
        ]

    @property
    def n_observations(self) -> int:
        """Number of observed values the likelihood is evaluated on."""
        return sum(int(np.size(self.data[obs.field])) for obs in self._observables)
