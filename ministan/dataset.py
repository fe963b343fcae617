# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Grouped observation datasets for MiniStan models.

A :py:class:`Dataset` is an ordered, immutable sequence of ``(value,
group_label)`` observations. Group labels are drawn from a small fixed set of
levels; models never see the labels themselves, only integer codes into the
sorted level set. Two fields are exposed to models:

    - ``value``: the observed values as floats
    - ``group``: the integer code of each observation's group

Example:
    >>> import ministan as ms
    >>> data = ms.Dataset.from_records([(9.1, "control"), (19.7, "treated")])
    >>> data.group_levels
    ('control', 'treated')
    >>> data.to_dict()["group"]
    array([0, 1])
"""

from __future__ import annotations

from typing import Any, Iterable, Iterator, Optional, Sequence, TYPE_CHECKING

import numpy as np
import numpy.typing as npt
import pandas as pd

from ministan import utils

if TYPE_CHECKING:
    from ministan import custom_types


class Dataset:
    """Ordered, immutable collection of grouped scalar observations.

    :param values: Observed values, one per observation
    :type values: npt.ArrayLike
    :param groups: Group label of each observation
    :type groups: Sequence[Any]
    :param levels: The fixed set of allowed group labels. Defaults to the sorted
        unique labels found in ``groups``.
    :type levels: Optional[Sequence[Any]]

    :raises ValueError: If the inputs are empty, of different lengths, contain
        non-finite values, or use a label outside of ``levels``
    """

    def __init__(
        self,
        values: npt.ArrayLike,
        groups: Sequence[Any] | npt.NDArray,
        levels: Optional[Sequence[Any]] = None,
    ):
        values = np.asarray(values, dtype=float)
        labels = np.asarray(groups, dtype=object)

        # Check the inputs
        if values.ndim != 1:
            raise ValueError("Dataset values must be one-dimensional.")
        if len(values) == 0:
            raise ValueError("A dataset needs at least one observation.")
        if len(values) != len(labels):
            raise ValueError(
                f"Got {len(values)} values but {len(labels)} group labels."
            )
        if not np.all(np.isfinite(values)):
            raise ValueError("Dataset values must be finite.")

        # Resolve the levels and make sure every label belongs to them
        if levels is None:
            levels = sorted(set(labels.tolist()), key=str)
        levels = tuple(levels)
        if len(set(levels)) != len(levels):
            raise ValueError(f"Group levels must be unique; got {levels}.")
        code_map = {level: code for code, level in enumerate(levels)}
        if unknown := set(labels.tolist()) - set(code_map):
            raise ValueError(f"Unknown group label(s) {unknown}; levels are {levels}.")

        # Store everything read-only
        self._values = utils.freeze(values)
        self._labels = utils.freeze(labels)
        self._codes = utils.freeze(
            np.array([code_map[label] for label in labels.tolist()], dtype=np.int64)
        )
        self._levels = levels

    @classmethod
    def from_records(
        cls,
        records: Iterable[tuple[Any, Any]],
        levels: Optional[Sequence[Any]] = None,
    ) -> "Dataset":
        """Build a dataset from ``(value, group_label)`` pairs.

        :param records: Observations in order
        :type records: Iterable[tuple[Any, Any]]
        :param levels: Allowed group labels. Defaults to the labels present.
        :type levels: Optional[Sequence[Any]]

        :returns: The dataset
        :rtype: Dataset
        """
        records = list(records)
        return cls(
            values=[value for value, _ in records],
            groups=[label for _, label in records],
            levels=levels,
        )

    @classmethod
    def from_dataframe(
        cls,
        frame: pd.DataFrame,
        value_column: str = "value",
        group_column: str = "group",
        levels: Optional[Sequence[Any]] = None,
    ) -> "Dataset":
        """Build a dataset from two columns of a data frame.

        :param frame: Data frame holding the observations
        :type frame: pd.DataFrame
        :param value_column: Column with the observed values. Defaults to "value".
        :type value_column: str
        :param group_column: Column with the group labels. Defaults to "group".
        :type group_column: str
        :param levels: Allowed group labels. Defaults to the labels present.
        :type levels: Optional[Sequence[Any]]

        :returns: The dataset
        :rtype: Dataset
        """
        return cls(
            values=frame[value_column].to_numpy(),
            groups=frame[group_column].to_numpy(),
            levels=levels,
        )

    def reorder(self, order: Sequence["custom_types.Integer"] | npt.NDArray) -> "Dataset":
        """Return a new dataset with the observations in a different order.

        :param order: A permutation of ``range(len(self))``
        :type order: Sequence[custom_types.Integer] | npt.NDArray

        :returns: The reordered dataset, with the same group levels
        :rtype: Dataset

        :raises ValueError: If ``order`` is not a permutation
        """
        order = np.asarray(order, dtype=np.int64)
        if sorted(order.tolist()) != list(range(len(self))):
            raise ValueError("`order` must be a permutation of the observation indices.")
        return Dataset(self._values[order], self._labels[order], levels=self._levels)

    def to_dict(self) -> dict[str, npt.NDArray]:
        """Fields made available to models.

        :returns: ``{"value": values, "group": group codes}``
        :rtype: dict[str, npt.NDArray]
        """
        return {"value": self._values, "group": self._codes}

    def to_dataframe(self) -> pd.DataFrame:
        """Observations as a data frame with ``value``, ``group``, and ``label`` columns.

        :rtype: pd.DataFrame
        """
        return pd.DataFrame(
            {
                "value": self._values,
                "group": self._codes,
                "label": self._labels,
            }
        ).rename_axis("observation")

    @property
    def values(self) -> npt.NDArray[np.floating]:
        """Observed values (read-only)."""
        return self._values

    @property
    def labels(self) -> npt.NDArray:
        """Group label of each observation (read-only)."""
        return self._labels

    @property
    def group_codes(self) -> npt.NDArray[np.integer]:
        """Integer code of each observation's group (read-only)."""
        return self._codes

    @property
    def group_levels(self) -> tuple[Any, ...]:
        """The fixed, ordered set of group labels."""
        return self._levels

    @property
    def n_groups(self) -> int:
        """Number of group levels."""
        return len(self._levels)

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[tuple[float, Any]]:
        for value, label in zip(self._values.tolist(), self._labels.tolist()):
            yield value, label

    def __eq__(self, other):
        if not isinstance(other, Dataset):
            return NotImplemented
        return (
            self._levels == other._levels
            and np.array_equal(self._values, other._values)
            and np.array_equal(self._codes, other._codes)
        )

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"Dataset(n_observations={len(self)}, group_levels={self._levels!r})"
        )
