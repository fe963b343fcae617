"""Tests for the grouped observation container."""

import numpy as np
import pandas as pd
import pytest

from ministan import Dataset


class TestConstruction:
    """Building datasets from values and labels."""

    def test_levels_default_to_sorted_labels(self):
        data = Dataset([1.0, 2.0, 3.0], ["b", "a", "b"])
        assert data.group_levels == ("a", "b")
        assert data.group_codes.tolist() == [1, 0, 1]
        assert data.n_groups == 2
        assert len(data) == 3

    def test_explicit_levels_fix_the_codes(self):
        data = Dataset([1.0, 2.0], ["a", "a"], levels=["b", "a"])
        assert data.group_levels == ("b", "a")
        assert data.group_codes.tolist() == [1, 1]
        assert data.n_groups == 2

    def test_from_records(self):
        data = Dataset.from_records([(9.5, "ctrl"), (20.1, "trt"), (10.5, "ctrl")])
        assert data.values.tolist() == [9.5, 20.1, 10.5]
        assert data.labels.tolist() == ["ctrl", "trt", "ctrl"]
        assert list(data) == [(9.5, "ctrl"), (20.1, "trt"), (10.5, "ctrl")]

    def test_from_dataframe(self):
        frame = pd.DataFrame({"y": [1.0, 2.0, 3.0], "g": [0, 1, 1]})
        data = Dataset.from_dataframe(frame, value_column="y", group_column="g")
        assert data.values.tolist() == [1.0, 2.0, 3.0]
        assert data.group_levels == (0, 1)

    @pytest.mark.parametrize(
        "values,groups,levels",
        [
            ([], [], None),  # empty
            ([1.0, 2.0], ["a"], None),  # length mismatch
            ([1.0, np.nan], ["a", "b"], None),  # non-finite value
            ([1.0, 2.0], ["a", "c"], ["a", "b"]),  # label outside of levels
            ([1.0], ["a"], ["a", "a"]),  # duplicate levels
            ([[1.0, 2.0]], ["a"], None),  # not one-dimensional
        ],
    )
    def test_invalid_inputs(self, values, groups, levels):
        with pytest.raises(ValueError):
            Dataset(values, groups, levels=levels)


class TestImmutabilityAndOrder:
    """Datasets are read-only and can be reordered into new datasets."""

    def test_arrays_are_read_only(self):
        data = Dataset([1.0, 2.0], ["a", "b"])
        with pytest.raises(ValueError):
            data.values[0] = 5.0
        with pytest.raises(ValueError):
            data.group_codes[0] = 1

    def test_input_is_copied(self):
        values = np.array([1.0, 2.0])
        data = Dataset(values, ["a", "b"])
        values[0] = 100.0
        assert data.values[0] == 1.0

    def test_reorder(self):
        data = Dataset([1.0, 2.0, 3.0], ["a", "b", "c"])
        reordered = data.reorder([2, 0, 1])
        assert reordered.values.tolist() == [3.0, 1.0, 2.0]
        assert reordered.labels.tolist() == ["c", "a", "b"]
        assert reordered.group_levels == data.group_levels
        assert reordered != data
        assert data.values.tolist() == [1.0, 2.0, 3.0]

    def test_reorder_requires_permutation(self):
        data = Dataset([1.0, 2.0, 3.0], ["a", "b", "c"])
        with pytest.raises(ValueError):
            data.reorder([0, 0, 1])

    def test_equality(self):
        assert Dataset([1.0, 2.0], ["a", "b"]) == Dataset([1.0, 2.0], ["a", "b"])
        assert Dataset([1.0, 2.0], ["a", "b"]) != Dataset([1.0, 2.5], ["a", "b"])


class TestExport:
    def test_to_dict(self, two_group_data):
        fields = two_group_data.to_dict()
        assert set(fields) == {"value", "group"}
        assert fields["group"].tolist() == [0] * 5 + [1] * 5
        assert fields["value"][:5].mean() == pytest.approx(10.0)
        assert fields["value"][5:].mean() == pytest.approx(20.0)

    def test_to_dataframe(self, two_group_data):
        frame = two_group_data.to_dataframe()
        assert list(frame.columns) == ["value", "group", "label"]
        assert frame.index.name == "observation"
        assert frame.groupby("label")["value"].mean().to_dict() == pytest.approx(
            {"a": 10.0, "b": 20.0}
        )
