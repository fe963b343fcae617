# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Abstract base classes for MiniStan model components.

This module defines the foundational abstract class that forms the core
architecture of MiniStan model components, including parameters, constants,
dataset fields, and transformations. Users typically do not interact with this
module directly; instead, they use the concrete implementations provided in the
:py:mod:`ministan.model.components.constants`,
:py:mod:`ministan.model.components.parameters`, and
:py:mod:`ministan.model.components.transformations` submodules.

Core Abstractions:

    - **Component Hierarchy**: Parent-child relationships between model elements
    - **Shape Broadcasting**: Automatic handling of multi-dimensional parameters
    - **Dependency Management**: Tracking and validation of component relationships

Together, the components form a tagged-variant expression tree. A model's log
density is obtained by evaluating that tree in dependency order (see
:py:mod:`ministan.model.log_density`).
"""

from __future__ import annotations

from abc import ABC
from typing import Iterator, Optional, TYPE_CHECKING

import numpy as np

from ministan import utils

if TYPE_CHECKING:
    from ministan import custom_types

constants = utils.lazy_import("ministan.model.components.constants")
transformed_parameters = utils.lazy_import(
    "ministan.model.components.transformations.transformed_parameters"
)


class AbstractModelComponent(ABC):
    """Base class for all components of a MiniStan model.

    :param shape: Explicit shape of the component. Broadcast against the shapes
        of the parents. Defaults to ().
    :type shape: tuple[custom_types.Integer, ...] | custom_types.Integer
    :param model_params: Parent components keyed by the argument name they fill.
        Plain numbers and arrays are wrapped in
        :py:class:`~ministan.model.components.constants.Constant` instances.

    :ivar _parents: Parent components keyed by argument name
    :ivar _children: Components that use this component as an argument
    :ivar _model_varname: Name assigned on registration with a model

    A shape of ``None`` means that the shape of the component depends on
    bound data (for instance anything computed from a dataset field) and is
    only known at evaluation time.
    """

    def __init__(  # pylint: disable=unused-argument
        self,
        *,
        shape: "tuple[custom_types.Integer, ...] | custom_types.Integer" = (),
        **model_params: "custom_types.CombinableParameterType",
    ):
        # Initialize variables
        self._model_varname: str = ""
        self._parents: dict[str, AbstractModelComponent] = {}
        self._children: list[AbstractModelComponent] = []

        # Set the parents and record this component as their child
        self._set_parents(model_params)

        # Resolve the shape
        self._shape = self._resolve_shape(shape)

    def _set_parents(
        self, model_params: dict[str, "custom_types.CombinableParameterType"]
    ) -> None:
        """Wrap raw values as constants and link parents to this component."""
        for paramname, param in model_params.items():
            if not isinstance(param, AbstractModelComponent):
                param = constants.Constant(param)
            self._parents[paramname] = param
            param._record_child(self)  # pylint: disable=protected-access

    def _record_child(self, child: "AbstractModelComponent") -> None:
        """Record a component that depends on this one."""
        if child not in self._children:
            self._children.append(child)

    def _resolve_shape(
        self, shape: "tuple[custom_types.Integer, ...] | custom_types.Integer"
    ) -> Optional[tuple[int, ...]]:
        """Broadcast the explicit shape against the parent shapes.

        :raises ValueError: If the shapes are incompatible
        """
        if isinstance(shape, (int, np.integer)):
            shape = (shape,)
        shape = tuple(int(dim) for dim in shape)
        try:
            return utils.broadcast_shapes(
                shape, *(parent.shape for parent in self._parents.values())
            )
        except ValueError as error:
            raise ValueError(
                f"Incompatible shapes for {self.__class__.__name__}: "
                f"{shape} and parents "
                f"{ {name: p.shape for name, p in self._parents.items()} }."
            ) from error

    def walk_tree(self) -> Iterator["AbstractModelComponent"]:
        """Yield every ancestor of this component, then the component itself.

        Ancestors are yielded in dependency order: a component is always yielded
        after all of its own parents. Each component is yielded once.
        """
        seen: set[int] = set()

        def visit(component: AbstractModelComponent):
            if id(component) in seen:
                return
            seen.add(id(component))
            for parent in component.parents.values():
                yield from visit(parent)
            yield component

        yield from visit(self)

    def __getitem__(self, key):
        """Index the component with NumPy semantics.

        Indices may be integers, slices, integer arrays, or other components
        (for instance a :py:class:`~ministan.model.components.transformations.
        transformed_data.DataField` holding group codes).
        """
        if not isinstance(key, tuple):
            key = (key,)
        return transformed_parameters.IndexParameter(self, *key)

    def __str__(self) -> str:
        name = self.model_varname or "<unnamed>"
        return f"{name} = {self.__class__.__name__}"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.model_varname or 'unnamed'}>"

    @property
    def parents(self) -> dict[str, "AbstractModelComponent"]:
        """Parent components keyed by the argument name they fill."""
        return self._parents

    @property
    def children(self) -> list["AbstractModelComponent"]:
        """Components that take this component as an argument."""
        return self._children

    @property
    def shape(self) -> Optional[tuple[int, ...]]:
        """Shape of the component, or ``None`` when it depends on bound data."""
        return self._shape

    @property
    def ndim(self) -> Optional[int]:
        """Number of dimensions of the component, if known."""
        return None if self._shape is None else len(self._shape)

    @property
    def is_named(self) -> bool:
        """Whether the component was explicitly named by a model."""
        return self._model_varname != ""

    @property
    def model_varname(self) -> str:
        """Name of the component within its model.

        Named components take the attribute name they were assigned to. Unnamed
        components used as an argument of another component inherit a dotted
        name from it (``y.mu`` for the ``mu`` argument of ``y``). Anonymous
        components with no children have an empty name.
        """
        if self._model_varname:
            return self._model_varname
        for child in self._children:
            for paramname, parent in child.parents.items():
                if parent is self and child.model_varname:
                    return f"{child.model_varname}.{paramname}"
        return ""

    @model_varname.setter
    def model_varname(self, name: str) -> None:
        """Assign a name to the component.

        :raises ValueError: If the component already has a different name
        """
        if self._model_varname and self._model_varname != name:
            raise ValueError(
                f"Component already named '{self._model_varname}'; cannot rename "
                f"to '{name}'."
            )
        self._model_varname = name
