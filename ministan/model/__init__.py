# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Model construction, sampling, and results for MiniStan.

This module provides the core infrastructure for building Bayesian models and
drawing posterior samples from them. The primary interface is the
:py:class:`~ministan.model.model.Model` class, which orchestrates model
definition, validation, prior sampling, and posterior sampling.

Models are constructed from building blocks called components, which fall under
four main categories:

    - :py:class:`Constants <ministan.model.components.constants.Constant>`,
      which represent fixed values and hyperparameters.
    - :py:class:`Dataset fields <ministan.model.components.transformations.transformed_data.DataField>`,
      which stand in for columns of the data the model is bound to.
    - :py:class:`Parameters <ministan.model.components.parameters.Parameter>`,
      which represent random variables. These are either inferred (i.e., latent
      parameters) or directly modeled (i.e., observed variables).
    - :py:class:`Transformed Parameters <ministan.model.components.transformations.transformed_parameters.TransformedParameter>`,
      which are the result of deterministic transformations of other components.

Models can also be declared from plain mappings with
:py:func:`~ministan.model.declaration.declare`. Sampling is implemented in
:py:mod:`ministan.model.mcmc` and returns the results classes of
:py:mod:`ministan.model.results`.
"""
