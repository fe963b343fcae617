# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Deterministic transformations of MiniStan model components.

Transformed parameters are the result of applying arithmetic, elementwise
functions, reductions, or indexing to other components. They are never sampled
directly: their values follow from the values of their parents whenever the
model is evaluated, which means that any transformed parameter assigned to a
model attribute is computed post hoc for every posterior draw.

Users rarely instantiate these classes. They are created by Python operators
on parameters and by the functions in :py:mod:`ministan.operations`:

.. code-block:: python

    self.mu_a = ms.parameters.Normal(mu=0.0, sigma=10.0)
    self.delta = ms.parameters.Normal(mu=0.0, sigma=10.0)
    self.mu_b = self.mu_a + self.delta            # AddParameter
    self.ratio = self.mu_b / self.mu_a            # DivideParameter
    self.scale = ms.operations.exp(self.log_tau)  # ExpParameter
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Optional, TYPE_CHECKING

import numpy as np
import numpy.typing as npt

from scipy import special

from ministan import utils
from ministan.model.components import abstract_model_component

if TYPE_CHECKING:
    from ministan import custom_types

constants = utils.lazy_import("ministan.model.components.constants")
transformed_data = utils.lazy_import(
    "ministan.model.components.transformations.transformed_data"
)


class TransformableParameter:
    """Mixin class enabling mathematical operator overloading for components.

    Each operator creates an appropriate TransformedParameter instance that
    represents the mathematical operation. Both left and right operand
    positions are supported, so mixed expressions with plain numbers work.

    Example:
        >>> param1 = Normal(mu=0, sigma=1)
        >>> param2 = Normal(mu=1, sigma=0.5)
        >>> sum_param = param1 + param2
        >>> scaled_param = 2 * param1
        >>> negated_param = -param1
    """

    def __add__(self, other: "custom_types.CombinableParameterType"):
        return AddParameter(self, other)

    def __radd__(self, other: "custom_types.CombinableParameterType"):
        return AddParameter(other, self)

    def __sub__(self, other: "custom_types.CombinableParameterType"):
        return SubtractParameter(self, other)

    def __rsub__(self, other: "custom_types.CombinableParameterType"):
        return SubtractParameter(other, self)

    def __mul__(self, other: "custom_types.CombinableParameterType"):
        return MultiplyParameter(self, other)

    def __rmul__(self, other: "custom_types.CombinableParameterType"):
        return MultiplyParameter(other, self)

    def __truediv__(self, other: "custom_types.CombinableParameterType"):
        return DivideParameter(self, other)

    def __rtruediv__(self, other: "custom_types.CombinableParameterType"):
        return DivideParameter(other, self)

    def __pow__(self, other: "custom_types.CombinableParameterType"):
        return PowerParameter(self, other)

    def __rpow__(self, other: "custom_types.CombinableParameterType"):
        return PowerParameter(other, self)

    def __neg__(self):
        return NegateParameter(self)


class TransformedParameter(
    abstract_model_component.AbstractModelComponent, TransformableParameter
):
    """Base class for components computed deterministically from their parents.

    Subclasses implement :py:meth:`operation`, which receives the evaluated
    values of the parents as keyword arguments (keyed by argument name) and
    returns the value of the transformed parameter.
    """

    @abstractmethod
    def operation(self, **parent_values):
        """Compute the value of the transformation from parent values."""

    def __call__(self, **parent_values) -> npt.NDArray:
        """Apply the transformation to explicit parent values."""
        with np.errstate(all="ignore"):
            return np.asarray(self.operation(**parent_values), dtype=float)


class BinaryTransformedParameter(TransformedParameter):
    """Base class for transformations combining two components.

    :param dist1: Left operand
    :type dist1: custom_types.CombinableParameterType
    :param dist2: Right operand
    :type dist2: custom_types.CombinableParameterType
    """

    def __init__(
        self,
        dist1: "custom_types.CombinableParameterType",
        dist2: "custom_types.CombinableParameterType",
        **kwargs,
    ):
        super().__init__(dist1=dist1, dist2=dist2, **kwargs)


class UnaryTransformedParameter(TransformedParameter):
    """Base class for transformations of a single component.

    :param dist1: Operand
    :type dist1: custom_types.CombinableParameterType
    """

    def __init__(self, dist1: "custom_types.CombinableParameterType", **kwargs):
        super().__init__(dist1=dist1, **kwargs)


class AddParameter(BinaryTransformedParameter):
    """Elementwise addition, ``dist1 + dist2``."""

    def operation(self, dist1, dist2):
        return dist1 + dist2


class SubtractParameter(BinaryTransformedParameter):
    """Elementwise subtraction, ``dist1 - dist2``."""

    def operation(self, dist1, dist2):
        return dist1 - dist2


class MultiplyParameter(BinaryTransformedParameter):
    """Elementwise multiplication, ``dist1 * dist2``."""

    def operation(self, dist1, dist2):
        return dist1 * dist2


class DivideParameter(BinaryTransformedParameter):
    """Elementwise division, ``dist1 / dist2``."""

    def operation(self, dist1, dist2):
        return dist1 / dist2


class PowerParameter(BinaryTransformedParameter):
    """Elementwise exponentiation, ``dist1 ** dist2``."""

    def operation(self, dist1, dist2):
        return dist1**dist2


class NegateParameter(UnaryTransformedParameter):
    """Elementwise negation, ``-dist1``."""

    def operation(self, dist1):
        return -dist1


class AbsParameter(UnaryTransformedParameter):
    """Elementwise absolute value."""

    def operation(self, dist1):
        return np.abs(dist1)


class LogParameter(UnaryTransformedParameter):
    """Elementwise natural logarithm."""

    def operation(self, dist1):
        return np.log(dist1)


class ExpParameter(UnaryTransformedParameter):
    """Elementwise exponential."""

    def operation(self, dist1):
        return np.exp(dist1)


class SigmoidParameter(UnaryTransformedParameter):
    """Elementwise logistic sigmoid, ``1 / (1 + exp(-dist1))``."""

    def operation(self, dist1):
        return special.expit(dist1)


class SumParameter(UnaryTransformedParameter):
    """Sum over all elements of a component.

    The result is a scalar. The shape of the operand must be known when the
    model is defined or the sum is computed at evaluation time regardless.
    """

    def _resolve_shape(self, shape):
        return ()

    def operation(self, dist1):
        return np.sum(dist1)


class IndexParameter(TransformedParameter):
    """Array indexing transformation with NumPy-compatible semantics.

    :param dist: Component to index
    :type dist: custom_types.CombinableParameterType
    :param indices: Indexing specifications (integers, slices, integer arrays,
        ``None``, ``Ellipsis``, or integer-valued constants and dataset fields)
    :type indices: Union[int, slice, npt.NDArray, None, Ellipsis, AbstractModelComponent]

    :raises IndexError: If a static integer index is out of range
    :raises TypeError: If an index component is not a constant or dataset field

    Indexing follows NumPy rules with 0-based positions. The typical use is
    selecting a per-group parameter for every observation:

    Example:
        .. code-block:: python

            mu = Normal(mu=0, sigma=10, shape=3)
            mu_per_obs = mu[ms.DataField("group")]
    """

    def __init__(
        self,
        dist: "custom_types.CombinableParameterType",
        *indices,
    ):
        # Separate the component indices, which become parents, from the static
        # indices, which are stored as-is
        self._python_indices: list = []
        index_parents: dict[str, abstract_model_component.AbstractModelComponent] = {}
        for position, index in enumerate(indices):
            if isinstance(index, abstract_model_component.AbstractModelComponent):
                if not isinstance(
                    index, (constants.Constant, transformed_data.DataField)
                ):
                    raise TypeError(
                        "Only constants and dataset fields can be used as indices; "
                        f"got {index.__class__.__name__}."
                    )
                index_parents[f"index_{position}"] = index
                self._python_indices.append(None)
            elif isinstance(index, np.ndarray):
                if not np.issubdtype(index.dtype, np.integer):
                    raise TypeError("Array indices must be integers.")
                index_parents[f"index_{position}"] = constants.Constant(index)
                self._python_indices.append(None)
            else:
                self._python_indices.append(index)
        self._index_positions = [
            int(name.removeprefix("index_")) for name in index_parents
        ]
        self._n_indices = len(indices)

        # Initialize. The shape is resolved from the parents.
        super().__init__(dist=dist, **index_parents)

    def _build_indices(self, index_values: dict) -> tuple:
        """Assemble the full index tuple from static and component indices."""
        indices = list(self._python_indices)
        for position in self._index_positions:
            indices[position] = np.asarray(
                index_values[f"index_{position}"]
            ).astype(np.int64)
        return tuple(indices)

    def _resolve_shape(self, shape) -> Optional[tuple[int, ...]]:
        # Shape follows from indexing a placeholder of the indexed shape
        if any(parent.shape is None for parent in self._parents.values()):
            return None
        placeholder = np.zeros(self._parents["dist"].shape)
        index_values = {
            name: np.zeros(parent.shape, dtype=np.int64)
            if not isinstance(parent, constants.Constant)
            else parent.value
            for name, parent in self._parents.items()
            if name != "dist"
        }
        try:
            return tuple(
                int(dim) for dim in placeholder[self._build_indices(index_values)].shape
            )
        except IndexError as error:
            raise IndexError(
                f"Invalid index for component of shape {placeholder.shape}: {error}"
            ) from error

    def operation(self, dist, **index_values):
        return np.asarray(dist)[self._build_indices(index_values)]
