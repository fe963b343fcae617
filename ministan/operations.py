# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Mathematical operations for use in MiniStan models.

Operations are built from
:py:class:`~ministan.model.components.transformations.transformed_parameters.TransformedParameter`
classes. They handle both immediate computation on NumPy data and deferred
computation within model graphs, and are also the functions available to the
expression strings of :py:func:`ministan.declare`. This module should be the
access point to all operations available in MiniStan.
"""

from __future__ import annotations

import numpy as np

from ministan.model.components import abstract_model_component
from ministan.model.components.transformations import transformed_parameters


class MetaOperation(type):
    """Metaclass for creating operation classes from transformations.

    Validates that a ``DISTCLASS`` attribute is provided and is a subclass of
    :py:class:`~ministan.model.components.transformations.transformed_parameters.TransformedParameter`.

    :raises ValueError: If ``DISTCLASS`` is not provided in class attributes
    :raises TypeError: If ``DISTCLASS`` is not a TransformedParameter subclass
    """

    def __new__(mcs, name, bases, attrs):

        # There must be a DISTCLASS in the class_attrs
        if "DISTCLASS" not in attrs:
            raise ValueError("DISTCLASS must be provided in class_attrs")

        # The DISTCLASS must be a subclass of TransformedParameter
        if not issubclass(
            attrs["DISTCLASS"], transformed_parameters.TransformedParameter
        ):
            raise TypeError("DISTCLASS must be a subclass of TransformedParameter")

        return super().__new__(mcs, name, bases, attrs)


class Operation:
    """Base class for MiniStan mathematical operations.

    Never instantiated directly; use :py:func:`build_operation`.

    :cvar DISTCLASS: The transformation class this operation wraps.
    :type DISTCLASS: type[transformed_parameters.TransformedParameter]
    """

    DISTCLASS: type[transformed_parameters.TransformedParameter]

    def __call__(self, *args):
        """Apply the operation.

        With model components as input, returns a new transformed parameter
        whose value is computed when the model is evaluated. With plain
        numerical data, computes and returns the result immediately.
        """
        if any(
            isinstance(arg, abstract_model_component.AbstractModelComponent)
            for arg in args
        ):
            return self.__class__.DISTCLASS(*args)

        # Otherwise, run the operation as a static method
        with np.errstate(all="ignore"):
            return self.__class__.DISTCLASS.operation(
                None, *(np.asarray(arg, dtype=float) for arg in args)
            )

    def __repr__(self) -> str:
        return f"<operation {self.__class__.__name__}>"


def build_operation(
    distclass: type[transformed_parameters.TransformedParameter],
) -> Operation:
    """Build an operation instance from a TransformedParameter class.

    :param distclass: The transformation class to build the operation from.
    :type distclass: type[transformed_parameters.TransformedParameter]

    :returns: A new operation instance wrapping ``distclass``
    :rtype: Operation

    Example:

    .. code-block:: python

       from ministan.operations import build_operation
       from ministan.model.components.transformations.transformed_parameters import (
           UnaryTransformedParameter,
       )

       class Square(UnaryTransformedParameter):
           def operation(self, dist1):
               return dist1**2

       square = build_operation(Square)
       param = ms.parameters.Normal(mu=0.0, sigma=1.0)
       squared = square(param)
    """
    return MetaOperation(
        distclass.__name__.lower(),
        (Operation,),
        {"DISTCLASS": distclass, "__doc__": distclass.__doc__},
    )()


# Define our operations
abs_ = build_operation(transformed_parameters.AbsParameter)
"""Absolute value operation.

.. code-block:: python

   magnitude = ms.operations.abs_(ms.parameters.Normal(mu=0.0, sigma=1.0))
"""

exp = build_operation(transformed_parameters.ExpParameter)
"""Exponential operation.

.. code-block:: python

   log_tau = ms.parameters.Normal(mu=0.0, sigma=1.0)
   tau = ms.operations.exp(log_tau)
"""

log = build_operation(transformed_parameters.LogParameter)
"""Natural logarithm operation."""

sigmoid = build_operation(transformed_parameters.SigmoidParameter)
"""Logistic sigmoid operation, mapping real values onto (0, 1).

.. code-block:: python

   logit_p = ms.parameters.Normal(mu=0.0, sigma=1.5)
   p = ms.operations.sigmoid(logit_p)
"""

sum_ = build_operation(transformed_parameters.SumParameter)
"""Summation over every element of a parameter or array."""

OPERATIONS: dict[str, Operation] = {
    "abs": abs_,
    "exp": exp,
    "log": log,
    "sigmoid": sigmoid,
    "sum": sum_,
}
"""Operations by the name used in expression strings."""
