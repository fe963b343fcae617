# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Building blocks of MiniStan models: constants, dataset fields, parameters,
and transformed parameters."""
