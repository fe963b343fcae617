# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Custom type definitions for MiniStan models.

This module provides type aliases and unions for various components used throughout
the MiniStan package, including parameter types and utility types for type
checking and documentation purposes.

All imports are conditional on TYPE_CHECKING to avoid circular imports while
maintaining proper type hints for development and documentation tools.
"""

from typing import Callable, TYPE_CHECKING, Union

# Everything in this file is only imported if TYPE_CHECKING is True.
if TYPE_CHECKING:

    import numpy as np
    import numpy.typing as npt

    from ministan.model.components import abstract_model_component

# Scalar types
Integer = Union[int, "np.integer"]
"""Type alias for integer values.

Accepts both Python's built-in int and NumPy integer types.

:type: Union[int, np.integer]
"""

Float = Union[float, "np.floating"]
"""Type alias for floating-point values.

Accepts both Python's built-in float and NumPy floating-point types.

:type: Union[float, np.floating]
"""

# Parameter types
SampleType = Union[int, float, "npt.NDArray"]
"""Type alias for sample values that can be returned from distributions.

:type: Union[int, float, npt.NDArray]
"""

CombinableParameterType = Union[
    "abstract_model_component.AbstractModelComponent",
    int,
    float,
    "npt.NDArray",
]
"""Type alias for anything that can be passed as a distribution argument or
combined with a parameter in an arithmetic expression.

:type: Union[AbstractModelComponent, int, float, npt.NDArray]
"""

# Data types
DataDict = dict[str, "npt.NDArray"]
"""Mapping from dataset field names to arrays.

:type: dict[str, npt.NDArray]
"""

DerivedQuantity = Union[str, Callable[[dict[str, "npt.NDArray"]], "npt.NDArray"]]
"""A quantity computed post hoc from posterior draws: either an expression
string over parameter names or a callable taking a mapping of named draws.

:type: Union[str, Callable[[dict[str, npt.NDArray]], npt.NDArray]]
"""
