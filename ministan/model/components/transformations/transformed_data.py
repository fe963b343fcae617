# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""References to dataset fields within MiniStan models.

A :py:class:`DataField` stands in for a column of the dataset that is bound to
a model at sampling time. It lets the likelihood refer to observed covariates
such as the group code of each observation without fixing their values when
the model is defined:

.. code-block:: python

    class TwoGroups(ms.Model):
        def __init__(self):
            super().__init__()
            self.mu = ms.parameters.Normal(mu=0.0, sigma=10.0, shape=2)
            self.y = ms.parameters.Normal(
                mu=self.mu[ms.DataField("group")], sigma=1.0, field="value"
            )
"""

from __future__ import annotations

from typing import Optional, TYPE_CHECKING

from ministan.model.components import abstract_model_component
from ministan.model.components.transformations import transformed_parameters

if TYPE_CHECKING:
    from ministan import custom_types


class DataField(
    abstract_model_component.AbstractModelComponent,
    transformed_parameters.TransformableParameter,
):
    """Placeholder for a field of the bound dataset.

    :param field: Name of the dataset field (for example "group")
    :type field: str
    :param shape: Shape of the field, if known ahead of binding. Defaults to
        None (known only once data is bound).
    :type shape: Optional[tuple[custom_types.Integer, ...]]

    :raises ValueError: If ``field`` is empty
    """

    def __init__(
        self,
        field: str,
        shape: Optional["tuple[custom_types.Integer, ...]"] = None,
    ):
        if not field:
            raise ValueError("A dataset field name is required.")
        self.field = field
        self._declared_shape = shape
        super().__init__()

    def _resolve_shape(self, shape):
        # The shape of a data field is unknown until binding unless declared
        if self._declared_shape is None:
            return None
        return tuple(int(dim) for dim in self._declared_shape)

    def __str__(self) -> str:
        return f"{self.model_varname or '<unnamed>'} = data['{self.field}']"
