# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Utility functions for the MiniStan package.

This module provides various utility functions that support the core
functionality of MiniStan, including:

    - Lazy importing mechanisms for performance optimization
    - Helpers for naming the scalar elements of array-valued parameters
    - Freezing arrays so that results cannot be modified after a run

Users will not typically need to interact with this module directly--it is designed
to be used internally by MiniStan.
"""

from __future__ import annotations

import importlib.util
import itertools
import sys

from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt

if TYPE_CHECKING:
    from ministan import custom_types


def lazy_import(name: str):
    """Import a module only when it is first needed.

    This function implements lazy module importing to improve package import
    performance by deferring module loading until actual use.

    :param name: The fully qualified module name to import
    :type name: str

    :returns: The imported module
    :rtype: module

    :raises ImportError: If the specified module cannot be found

    .. note::
        If the module is already imported, returns the cached version
        from sys.modules for efficiency.
    """
    # Check if the module is already imported
    if name in sys.modules:
        return sys.modules[name]

    # If not, import it lazily (modified from here:
    # https://docs.python.org/3/library/importlib.html#implementing-lazy-imports)
    spec = importlib.util.find_spec(name)
    if spec is None:
        raise ImportError(f"Module '{name}' not found.")

    # Create the module with a lazy loader
    spec.loader = importlib.util.LazyLoader(spec.loader)
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    spec.loader.exec_module(module)
    return module


def element_names(name: str, shape: tuple[int, ...]) -> list[str]:
    """Name every scalar element of an array-valued quantity.

    :param name: Name of the quantity
    :type name: str
    :param shape: Shape of the quantity
    :type shape: tuple[int, ...]

    :returns: ``[name]`` for scalars, otherwise names like ``mu[0]`` or
        ``tau[1,2]`` in C order
    :rtype: list[str]

    Example:
        >>> element_names("mu", (2,))
        ['mu[0]', 'mu[1]']
    """
    if len(shape) == 0:
        return [name]
    return [
        f"{name}[{','.join(str(i) for i in index)}]"
        for index in itertools.product(*(range(dim) for dim in shape))
    ]


def freeze(array: npt.ArrayLike) -> npt.NDArray:
    """Return a read-only copy of an array.

    :param array: Array to freeze
    :type array: npt.ArrayLike

    :returns: Copy of the array with the writeable flag cleared
    :rtype: npt.NDArray
    """
    frozen = np.array(array, copy=True)
    frozen.setflags(write=False)
    return frozen


def broadcast_shapes(*shapes: tuple[int, ...] | None) -> tuple[int, ...] | None:
    """Broadcast shapes following NumPy rules, propagating unknown shapes.

    A shape of ``None`` marks a quantity whose shape is only known once data is
    bound (for example anything computed from a dataset field). Broadcasting
    with an unknown shape gives an unknown shape.

    :param shapes: Shapes to broadcast
    :type shapes: tuple[int, ...] | None

    :returns: Broadcast shape, or ``None`` if any input shape is unknown
    :rtype: tuple[int, ...] | None

    :raises ValueError: If the known shapes cannot be broadcast together
    """
    if any(shape is None for shape in shapes):
        return None
    return tuple(np.broadcast_shapes(*shapes))


def n_elements(shape: tuple["custom_types.Integer", ...]) -> int:
    """Number of scalar elements in an array of the given shape."""
    return int(np.prod(shape, dtype=int))
