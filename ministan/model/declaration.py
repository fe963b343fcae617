# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Declarative construction of MiniStan models from plain mappings.

:py:func:`declare` builds the same component tree as a
:py:class:`~ministan.model.model.Model` subclass, but from a structured
declaration such as one loaded from a JSON or YAML file:

.. code-block:: python

    import ministan as ms

    model = ms.declare(
        {
            "fields": ["value", "group"],
            "parameters": {
                "mu_a": {"distribution": "normal", "args": {"mu": 0, "sigma": 10}},
                "delta": {"distribution": "normal", "args": {"mu": 0, "sigma": 10}},
            },
            "transformed": {"mu_b": "mu_a + delta"},
            "likelihood": {
                "distribution": "normal",
                "args": {"mu": "mu_a + delta * group", "sigma": 1.0},
                "field": "value",
            },
        }
    )

Argument values are numbers, lists of numbers, or expression strings. Expressions
are parsed with :py:mod:`ast` and may use the declared parameters, the declared
transformed parameters, the declared dataset fields, the arithmetic operators
``+ - * / **``, unary minus, indexing (``mu[group]``), and the functions of
:py:mod:`ministan.operations` (``exp``, ``log``, ``abs``, ``sigmoid``, ``sum``).
"""

from __future__ import annotations

import ast
import operator

from typing import Any, Mapping, Optional, TYPE_CHECKING, Union

import numpy as np

from ministan import operations
from ministan.dataset import Dataset
from ministan.exceptions import DefinitionError
from ministan.model.components import abstract_model_component, parameters
from ministan.model.components.transformations import transformed_data
from ministan.model.model import Model

if TYPE_CHECKING:
    import numpy.typing as npt

DEFAULT_FIELDS: tuple[str, ...] = ("value", "group")
"""Fields available to declarations that do not list their own."""

DEFAULT_OBSERVABLE_NAME: str = "y"
"""Name given to the likelihood's observable unless the declaration names it."""

DISTRIBUTIONS: dict[str, type[parameters.Parameter]] = {
    cls.__name__.lower(): cls
    for cls in (
        parameters.Normal,
        parameters.HalfNormal,
        parameters.LogNormal,
        parameters.Cauchy,
        parameters.HalfCauchy,
        parameters.StudentT,
        parameters.Exponential,
        parameters.Gamma,
        parameters.InverseGamma,
        parameters.Beta,
        parameters.Uniform,
        parameters.Poisson,
        parameters.Binomial,
        parameters.Bernoulli,
    )
}
"""Distribution classes by lower-case name. Underscores in declared names are
ignored, so "half_normal" and "HalfNormal" both resolve to HalfNormal."""

_ARG_ALIASES = {"lambda": "lambda_"}
_PARAMETER_KEYS = {"distribution", "args", "shape", "noncentered"}
_LIKELIHOOD_KEYS = {"distribution", "args", "field", "name"}
_BINARY_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Pow: operator.pow,
}


def _referenced_names(value: Any) -> set[str]:
    """Names used by an argument value (empty for numbers)."""
    if not isinstance(value, str):
        return set()
    try:
        tree = ast.parse(value, mode="eval")
    except SyntaxError:
        return set()
    called = {
        node.func.id
        for node in ast.walk(tree)
        if isinstance(node, ast.Call) and isinstance(node.func, ast.Name)
    }
    return {
        node.id
        for node in ast.walk(tree)
        if isinstance(node, ast.Name) and node.id not in called
    }


class _ExpressionBuilder:
    """Turns expression strings into components, one declared name at a time."""

    def __init__(
        self,
        scope: dict[str, Any],
        fields: tuple[str, ...],
    ):
        self.scope = scope
        self.fields = fields
        self._field_components: dict[str, transformed_data.DataField] = {}

    def build(self, owner: str, value: Any):
        """Convert an argument value into a number, an array, or a component."""
        if isinstance(value, bool):
            raise DefinitionError(owner, f"invalid argument value {value!r}.")
        if isinstance(value, (int, float, np.number)):
            return value
        if isinstance(value, (list, tuple, np.ndarray)):
            return np.asarray(value)
        if not isinstance(value, str):
            raise DefinitionError(owner, f"invalid argument value {value!r}.")
        try:
            tree = ast.parse(value, mode="eval")
        except SyntaxError as error:
            raise DefinitionError(
                owner, f"cannot parse expression {value!r}: {error.msg}."
            ) from error
        return self._visit(owner, tree.body)

    def _field(self, name: str) -> transformed_data.DataField:
        """One dataset field component per field, shared by every expression."""
        if name not in self._field_components:
            self._field_components[name] = transformed_data.DataField(name)
        return self._field_components[name]

    def _visit(self, owner: str, node: ast.AST):
        if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
            if isinstance(node.value, bool):
                raise DefinitionError(owner, "boolean literals are not supported.")
            return node.value
        if isinstance(node, ast.Name):
            if node.id in self.scope:
                return self.scope[node.id]
            if node.id in self.fields:
                return self._field(node.id)
            raise DefinitionError(
                owner, f"reference to undeclared parameter or field '{node.id}'."
            )
        if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPERATORS:
            return _BINARY_OPERATORS[type(node.op)](
                self._visit(owner, node.left), self._visit(owner, node.right)
            )
        if isinstance(node, ast.UnaryOp) and isinstance(node.op, (ast.USub, ast.UAdd)):
            operand = self._visit(owner, node.operand)
            return -operand if isinstance(node.op, ast.USub) else operand
        if isinstance(node, ast.Call):
            if (
                not isinstance(node.func, ast.Name)
                or node.func.id not in operations.OPERATIONS
            ):
                raise DefinitionError(
                    owner,
                    f"unknown function {ast.unparse(node.func)!r}; available "
                    f"functions are {sorted(operations.OPERATIONS)}.",
                )
            if len(node.args) != 1 or node.keywords:
                raise DefinitionError(
                    owner, f"'{node.func.id}' takes exactly one positional argument."
                )
            return operations.OPERATIONS[node.func.id](self._visit(owner, node.args[0]))
        if isinstance(node, ast.Subscript):
            target = self._visit(owner, node.value)
            index = self._visit(owner, node.slice)
            if not isinstance(target, abstract_model_component.AbstractModelComponent):
                raise DefinitionError(owner, "only parameters can be indexed.")
            try:
                return target[index]
            except (TypeError, IndexError) as error:
                raise DefinitionError(owner, str(error)) from error
        raise DefinitionError(
            owner, f"unsupported expression {ast.unparse(node)!r}."
        )


def _order(dependencies: dict[str, set[str]]) -> list[str]:
    """Order declared names so that every name follows its dependencies.

    :raises DefinitionError: If the dependencies contain a cycle
    """
    ordered: list[str] = []
    state: dict[str, str] = {}

    def visit(name: str, path: list[str]):
        if state.get(name) == "done":
            return
        if state.get(name) == "active":
            cycle = path[path.index(name) :] + [name]
            raise DefinitionError(
                name, f"cyclic dependency {' -> '.join(cycle)}."
            )
        state[name] = "active"
        for dependency in sorted(dependencies[name]):
            visit(dependency, path + [name])
        state[name] = "done"
        ordered.append(name)

    for name in dependencies:
        visit(name, [])
    return ordered


def _check_name(name: Any) -> None:
    if not isinstance(name, str) or not name.isidentifier():
        raise DefinitionError(str(name), "names must be valid identifiers.")
    if name.startswith("_") or "__" in name:
        raise DefinitionError(
            name, "names cannot start with an underscore or contain '__'."
        )


def _distribution(owner: str, name: Any) -> type[parameters.Parameter]:
    key = str(name).replace("_", "").lower()
    if key not in DISTRIBUTIONS:
        raise DefinitionError(
            owner,
            f"unknown distribution {name!r}; available distributions are "
            f"{sorted(DISTRIBUTIONS)}.",
        )
    return DISTRIBUTIONS[key]


def _build_parameter(
    owner: str,
    spec: Mapping[str, Any],
    builder: _ExpressionBuilder,
    allowed_keys: set[str],
    **extra,
) -> parameters.Parameter:
    """Instantiate one distribution from its declaration."""
    if unknown := set(spec) - allowed_keys:
        raise DefinitionError(owner, f"unknown declaration key(s) {sorted(unknown)}.")
    if not isinstance(spec.get("args", {}), Mapping):
        raise DefinitionError(owner, "'args' must be a mapping.")
    if "distribution" not in spec:
        raise DefinitionError(owner, "a 'distribution' is required.")
    distclass = _distribution(owner, spec["distribution"])
    args = {
        _ARG_ALIASES.get(argname, argname): builder.build(owner, value)
        for argname, value in spec.get("args", {}).items()
    }
    if "shape" in spec:
        extra["shape"] = spec["shape"]
    if "noncentered" in spec:
        extra["noncentered"] = bool(spec["noncentered"])
    try:
        return distclass(**args, **extra)
    except (TypeError, ValueError) as error:
        raise DefinitionError(owner, str(error)) from error


class DeclaredModel(Model):
    """A model built from a declaration by :py:func:`declare`.

    :param components: Named components, in dependency order
    :type components: dict[str, AbstractModelComponent]
    :param declaration: The declaration the model was built from
    :type declaration: Mapping[str, Any]
    """

    def __init__(
        self,
        components: dict[str, abstract_model_component.AbstractModelComponent],
        declaration: Mapping[str, Any],
        default_data: Optional[Union[Dataset, Mapping[str, "npt.ArrayLike"]]] = None,
    ):
        super().__init__(default_data=default_data)
        self.declaration = declaration
        for name, component in components.items():
            setattr(self, name, component)


def declare(
    declaration: Mapping[str, Any],
    default_data: Optional[Union[Dataset, Mapping[str, "npt.ArrayLike"]]] = None,
) -> DeclaredModel:
    """Build a model from a structured declaration.

    :param declaration: Mapping with the keys ``parameters`` (name to
        ``{"distribution", "args", "shape", "noncentered"}``), optional
        ``transformed`` (name to expression), ``likelihood`` (``{"distribution",
        "args", "field", "name"}``), and optional ``fields`` (dataset fields
        that expressions may reference; defaults to "value" and "group").
    :type declaration: Mapping[str, Any]
    :param default_data: Default data for the model. Defaults to None.
    :type default_data: Optional[Union[Dataset, Mapping[str, npt.ArrayLike]]]

    :returns: The validated model
    :rtype: DeclaredModel

    :raises DefinitionError: If the declaration is malformed. The error names
        the offending parameter.
    """
    if unknown := set(declaration) - {"parameters", "transformed", "likelihood", "fields"}:
        raise DefinitionError(
            "<declaration>", f"unknown declaration section(s) {sorted(unknown)}."
        )
    parameter_specs: Mapping[str, Any] = declaration.get("parameters", {})
    transformed_specs: Mapping[str, Any] = declaration.get("transformed", {})
    fields = tuple(declaration.get("fields", DEFAULT_FIELDS))
    if "likelihood" not in declaration:
        raise DefinitionError("<declaration>", "a 'likelihood' is required.")
    likelihood: Mapping[str, Any] = declaration["likelihood"]
    if not isinstance(likelihood, Mapping):
        raise DefinitionError("<declaration>", "the 'likelihood' must be a mapping.")

    # Check the names
    for name in [*parameter_specs, *transformed_specs]:
        _check_name(name)
        if name in fields:
            raise DefinitionError(name, "a parameter cannot share its name with a field.")
    if clash := set(parameter_specs) & set(transformed_specs):
        name = sorted(clash)[0]
        raise DefinitionError(name, "declared both as a parameter and as transformed.")

    # Order the declared names by their dependencies
    declared = set(parameter_specs) | set(transformed_specs)
    dependencies: dict[str, set[str]] = {}
    for name, spec in parameter_specs.items():
        if not isinstance(spec, Mapping):
            raise DefinitionError(name, "parameter declarations must be mappings.")
        dependencies[name] = set().union(
            *(_referenced_names(value) for value in spec.get("args", {}).values())
        ) & declared
    for name, expression in transformed_specs.items():
        dependencies[name] = _referenced_names(expression) & declared

    # Build every component in order
    scope: dict[str, Any] = {}
    builder = _ExpressionBuilder(scope, fields)
    for name in _order(dependencies):
        if name in parameter_specs:
            scope[name] = _build_parameter(
                name, parameter_specs[name], builder, _PARAMETER_KEYS
            ).as_latent()
        else:
            component = builder.build(name, transformed_specs[name])
            if not isinstance(component, abstract_model_component.AbstractModelComponent):
                raise DefinitionError(
                    name, "transformed parameters must depend on a parameter."
                )
            scope[name] = component

    # Build the likelihood
    observable_name = likelihood.get("name", DEFAULT_OBSERVABLE_NAME)
    _check_name(observable_name)
    if observable_name in scope:
        raise DefinitionError(observable_name, "the observable name is already used.")
    scope[observable_name] = _build_parameter(
        observable_name,
        {key: value for key, value in likelihood.items() if key not in ("field", "name")},
        builder,
        _LIKELIHOOD_KEYS,
        field=likelihood.get("field", "value"),
    )

    return DeclaredModel(scope, declaration, default_data=default_data)
