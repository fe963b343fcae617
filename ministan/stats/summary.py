# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Posterior summaries and post hoc derived quantities.

:py:func:`summarize` reduces named draws to one row per scalar element, with the
pooled mean, standard deviation, quantiles, and the convergence diagnostics of
:py:mod:`ministan.stats.convergence`. :py:func:`derive` computes new quantities
from existing draws without re-sampling, either from a callable or from an
expression string such as ``"mu_b - mu_a"`` or ``"tau ** 2"``.
"""

from __future__ import annotations

import ast

from typing import Literal, Mapping, Optional, Sequence, TYPE_CHECKING

import numpy as np
import numpy.typing as npt
import pandas as pd

from ministan import utils
from ministan.defaults import DEFAULT_QUANTILES
from ministan.stats import convergence

if TYPE_CHECKING:
    from ministan import custom_types

_EXPRESSION_FUNCTIONS = {
    "abs": np.abs,
    "exp": np.exp,
    "log": np.log,
    "sqrt": np.sqrt,
    "sigmoid": lambda x: 1 / (1 + np.exp(-x)),
}

_EXPRESSION_OPERATORS = {
    ast.Add: np.add,
    ast.Sub: np.subtract,
    ast.Mult: np.multiply,
    ast.Div: np.divide,
    ast.Pow: np.power,
}


def _evaluate(node: ast.AST, draws: Mapping[str, npt.NDArray]):
    """Evaluate one node of a derived quantity expression."""
    if isinstance(node, ast.Expression):
        return _evaluate(node.body, draws)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
        return node.value
    if isinstance(node, ast.Name):
        if node.id not in draws:
            raise KeyError(f"Unknown quantity '{node.id}' in expression.")
        return draws[node.id]
    if isinstance(node, ast.BinOp) and type(node.op) in _EXPRESSION_OPERATORS:
        return _EXPRESSION_OPERATORS[type(node.op)](
            _evaluate(node.left, draws), _evaluate(node.right, draws)
        )
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, (ast.USub, ast.UAdd)):
        operand = _evaluate(node.operand, draws)
        return -operand if isinstance(node.op, ast.USub) else operand
    if (
        isinstance(node, ast.Call)
        and isinstance(node.func, ast.Name)
        and node.func.id in _EXPRESSION_FUNCTIONS
        and len(node.args) == 1
        and not node.keywords
    ):
        return _EXPRESSION_FUNCTIONS[node.func.id](_evaluate(node.args[0], draws))

    # Indexing applies to the element axes, never to the chain and draw axes
    if isinstance(node, ast.Subscript):
        value = _evaluate(node.value, draws)
        index = _evaluate(node.slice, draws)
        index = index if isinstance(index, tuple) else (index,)
        return np.asarray(value)[(slice(None), slice(None)) + index]
    if isinstance(node, ast.Tuple):
        return tuple(_evaluate(element, draws) for element in node.elts)
    raise ValueError(f"Unsupported syntax in expression: {ast.unparse(node)}")


def derive(
    quantity: "custom_types.DerivedQuantity",
    draws: Mapping[str, npt.NDArray],
) -> npt.NDArray:
    """Compute a derived quantity from existing draws.

    :param quantity: An expression string over the names in ``draws`` or a
        callable taking ``draws`` and returning an array. Expressions support
        arithmetic (``+ - * / **``), negation, integer indexing of element
        axes, and the functions abs, exp, log, sqrt, and sigmoid.
    :type quantity: custom_types.DerivedQuantity
    :param draws: Draws of shape (chains, draws, ...) for every named quantity
    :type draws: Mapping[str, npt.NDArray]

    :returns: The derived draws, of shape (chains, draws, ...)
    :rtype: npt.NDArray

    :raises ValueError: If the expression cannot be parsed or evaluated, or the
        result does not have one value per draw

    Example:
        >>> derive("mu_b - mu_a", fit.draws())
        >>> derive(lambda d: d["mu"][..., 1] / d["mu"][..., 0], fit.draws())
    """
    n_chains, n_draws = next(iter(draws.values())).shape[:2]
    if isinstance(quantity, str):
        try:
            tree = ast.parse(quantity, mode="eval")
            with np.errstate(all="ignore"):
                result = _evaluate(tree, draws)
        except (SyntaxError, KeyError, IndexError, TypeError) as error:
            raise ValueError(
                f"Could not evaluate expression {quantity!r}: {error}"
            ) from error
    else:
        result = quantity(dict(draws))

    result = np.asarray(result, dtype=float)
    if result.shape[:2] != (n_chains, n_draws):
        raise ValueError(
            f"A derived quantity must have one value per draw; got shape "
            f"{result.shape} for {n_chains} chain(s) of {n_draws} draws."
        )
    return result


def quantile_label(quantile: "custom_types.Float") -> str:
    """Column label of a quantile, e.g. '2.5%'."""
    return f"{100 * quantile:g}%"


def summarize(
    draws: Mapping[str, npt.NDArray],
    parameters: Optional[Sequence[str]] = None,
    quantiles: Sequence["custom_types.Float"] = DEFAULT_QUANTILES,
    kind: Literal["all", "stats", "diagnostics"] = "all",
) -> pd.DataFrame:
    """Summarize draws with one row per scalar element.

    :param draws: Draws of shape (chains, draws, ...) by name
    :type draws: Mapping[str, npt.NDArray]
    :param parameters: Names to summarize, in order. Defaults to all.
    :type parameters: Optional[Sequence[str]]
    :param quantiles: Quantiles to report, in non-decreasing order and within
        [0, 1]. Defaults to 2.5%, 50%, and 97.5%.
    :type quantiles: Sequence[custom_types.Float]
    :param kind: Which columns to compute. "stats" gives the mean, standard
        deviation, and quantiles of the pooled draws; "diagnostics" gives the
        Monte Carlo standard error of the mean, the basic and bulk effective
        sample sizes, and R-hat; "all" gives both. Defaults to "all".
    :type kind: Literal["all", "stats", "diagnostics"]

    :returns: Summary table indexed by element name (e.g. ``mu[0]``)
    :rtype: pd.DataFrame

    :raises ValueError: If the quantiles are invalid or a name is unknown
    :raises InsufficientChainsError: If diagnostics are requested for fewer than
        2 chains
    """
    # Check the query
    quantiles = [float(q) for q in quantiles]
    if any(not 0 <= q <= 1 for q in quantiles):
        raise ValueError(f"Quantiles must be within [0, 1]; got {quantiles}.")
    if any(a > b for a, b in zip(quantiles, quantiles[1:])):
        raise ValueError(f"Quantiles must be in non-decreasing order; got {quantiles}.")
    if kind not in ("all", "stats", "diagnostics"):
        raise ValueError(f"Unknown summary kind {kind!r}.")
    parameters = list(draws) if parameters is None else list(parameters)
    if unknown := [name for name in parameters if name not in draws]:
        raise ValueError(
            f"Unknown parameter(s) {unknown}; options are {sorted(draws)}."
        )

    rows = {}
    for name in parameters:
        values = np.asarray(draws[name], dtype=float)
        shape = values.shape[2:]
        flat = values.reshape(values.shape[0], values.shape[1], -1)
        pooled = flat.reshape(-1, flat.shape[-1])

        columns = {}
        if kind in ("all", "stats"):
            columns["mean"] = pooled.mean(axis=0)
            columns["sd"] = pooled.std(axis=0, ddof=1)
            for q, value in zip(quantiles, np.quantile(pooled, quantiles, axis=0)):
                columns[quantile_label(q)] = value
        if kind in ("all", "diagnostics"):
            columns["mcse_mean"] = np.atleast_1d(convergence.mcse_mean(flat))
            columns["ess"] = np.atleast_1d(convergence.ess(flat))
            columns["ess_bulk"] = np.atleast_1d(convergence.ess(flat, method="bulk"))
            columns["r_hat"] = np.atleast_1d(convergence.rhat(flat))

        for i, element in enumerate(utils.element_names(name, shape)):
            rows[element] = {
                column: column_values[i] for column, column_values in columns.items()
            }

    return pd.DataFrame.from_dict(rows, orient="index")
