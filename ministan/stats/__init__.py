# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Statistical routines used to analyze MiniStan fits.

The functions in this subpackage operate on plain NumPy arrays and know nothing
about models or fits, so they can also be applied to draws produced elsewhere:

    - :py:mod:`ministan.stats.convergence`: effective sample size, R-hat, and
      Monte Carlo standard errors, computed with ArviZ
    - :py:mod:`ministan.stats.summary`: posterior summary tables and derived
      quantities
"""
