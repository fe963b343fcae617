# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Constant value components for MiniStan models.

This module provides the Constant class for representing fixed values in
MiniStan models. Constants serve as the foundational building blocks for model
hierarchies, providing fixed hyperparameters, known measurement errors, and
other numerical components that don't change during inference.

**Basic Usage:**

.. code-block:: python

    import ministan as ms
    import numpy as np

    # Scalar constants
    prior_scale = ms.Constant(10.0)

    # Array constants
    known_errors = ms.Constant(np.array([15.0, 10.0, 16.0, 11.0]))

    # Constants with bounds
    probability = ms.Constant(0.5, lower_bound=0.0, upper_bound=1.0)

Raw Python numbers and arrays passed as distribution arguments are wrapped in
constants automatically, so explicit construction is only needed when bounds
should be checked.
"""

from __future__ import annotations

from typing import Optional, TYPE_CHECKING

import numpy as np
import numpy.typing as npt

from ministan.model.components import abstract_model_component

if TYPE_CHECKING:
    from ministan import custom_types


class Constant(abstract_model_component.AbstractModelComponent):
    """Represents a constant value component in MiniStan models.

    :param value: The constant value to wrap
    :type value: Union[custom_types.Integer, custom_types.Float, npt.NDArray]
    :param lower_bound: Optional lower bound for value validation. Defaults to None.
    :type lower_bound: Optional[custom_types.Float]
    :param upper_bound: Optional upper bound for value validation. Defaults to None.
    :type upper_bound: Optional[custom_types.Float]

    :ivar value: The stored constant value as a read-only NumPy array

    :raises ValueError: If value violates specified bounds or is not finite
    """

    def __init__(
        self,
        value: "custom_types.SampleType | npt.ArrayLike",
        *,
        lower_bound: Optional["custom_types.Float"] = None,
        upper_bound: Optional["custom_types.Float"] = None,
    ):
        # Store the value as a read-only array
        value = np.array(value)
        if not np.issubdtype(value.dtype, np.number):
            raise ValueError(f"Constants must be numeric; got dtype {value.dtype}.")
        if not np.all(np.isfinite(value)):
            raise ValueError("Constants must be finite.")
        value.setflags(write=False)
        self.value: npt.NDArray = value

        # Check the bounds
        if lower_bound is not None and np.any(value < lower_bound):
            raise ValueError(
                f"Value {value} is below the lower bound {lower_bound}."
            )
        if upper_bound is not None and np.any(value > upper_bound):
            raise ValueError(
                f"Value {value} is above the upper bound {upper_bound}."
            )
        self.LOWER_BOUND = lower_bound  # pylint: disable=invalid-name
        self.UPPER_BOUND = upper_bound  # pylint: disable=invalid-name

        # Constants have no parents; the shape is the shape of the value
        super().__init__(shape=value.shape)

    def __str__(self) -> str:
        return f"{self.model_varname or '<unnamed>'} = {self.value.tolist()}"

    @property
    def is_integer(self) -> bool:
        """Whether the constant holds integer values."""
        return bool(np.issubdtype(self.value.dtype, np.integer))
