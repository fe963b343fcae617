# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Results of MiniStan sampling runs.

This submodule provides the classes returned by
:py:func:`ministan.sample` and :py:meth:`ministan.Model.mcmc`, along with the
tools used to analyze them:

   1. :py:class:`ministan.model.results.mcmc.FitResult`, which holds every
      completed :py:class:`~ministan.model.results.mcmc.Chain` of a run and
      provides posterior summaries, convergence diagnostics, and conversion to
      xarray, ArviZ, and NetCDF.
   2. :py:class:`ministan.model.results.loo.LooResult`, which holds a PSIS
      leave-one-out cross-validation estimate. Fits are compared with
      :py:func:`ministan.model.results.loo.compare`.

Users will not typically instantiate result classes directly:

    >>> import ministan as ms
    >>>
    >>> fit = model.mcmc(data=data, chains=4)
    >>> report = fit.diagnose()
    >>> fit.summary(derived={"difference": "mu_b - mu_a"})
    >>> ms.compare({"model_a": fit, "model_b": other_fit})
"""

from ministan.model.results.mcmc import Chain, DiagnosticReport, FitResult
from ministan.model.results.loo import LooResult
