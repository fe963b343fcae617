# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Native Markov chain Monte Carlo sampling for MiniStan models.

The submodule is organized in three layers:

   1. :py:mod:`ministan.model.mcmc.kernels`, the transition kernels (random-walk
      Metropolis and Hamiltonian Monte Carlo) that move a chain one step.
   2. :py:mod:`ministan.model.mcmc.adaptation`, warm-up tuning of the step size
      by dual averaging and of a diagonal metric in expanding windows.
   3. :py:mod:`ministan.model.mcmc.sampler`, which runs independently seeded
      chains in a thread pool and gathers them into a
      :py:class:`~ministan.model.results.mcmc.FitResult`.
"""
