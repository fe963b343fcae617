# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Deterministic transformations of model components.

This submodule holds the two kinds of components whose values are not drawn
from a distribution:

    - :py:mod:`~ministan.model.components.transformations.transformed_data`,
      references to fields of the bound dataset
    - :py:mod:`~ministan.model.components.transformations.transformed_parameters`,
      arithmetic, elementwise functions, reductions, and indexing applied to
      other components
"""
