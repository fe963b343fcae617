# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Ready-made MiniStan models.

These models cover the classic introductory examples of Bayesian workflows and
double as templates for writing new models:

    - :py:class:`TwoGroupNormal`: comparison of the means of two groups of
      normally distributed observations
    - :py:class:`EightSchools`: the hierarchical measurement model of Rubin
      (1981), with a non-centered school effect
    - :py:class:`NealsFunnel`: Neal's funnel, a standard stress test for
      samplers, without any data

Example:
    >>> import ministan as ms
    >>> data = ms.Dataset.from_records([(9.6, "a"), (10.4, "a"), (19.8, "b")])
    >>> fit = ms.builtin_models.TwoGroupNormal().mcmc(data=data, seed=1)
    >>> fit.summary(parameters=["delta"])
"""

from __future__ import annotations

from typing import Mapping, Optional, TYPE_CHECKING, Union

import numpy as np

from ministan import operations
from ministan.model.components import parameters
from ministan.model.components.transformations.transformed_data import DataField
from ministan.model.log_density import BoundModel
from ministan.model.model import Model

if TYPE_CHECKING:
    import numpy.typing as npt

    from ministan import custom_types
    from ministan.dataset import Dataset

EIGHT_SCHOOLS_DATA: dict[str, np.ndarray] = {
    "y": np.array([28.0, 8.0, -3.0, 7.0, -1.0, 1.0, 18.0, 12.0]),
    "sigma": np.array([15.0, 10.0, 16.0, 11.0, 9.0, 11.0, 10.0, 18.0]),
}
"""Estimated coaching effects and their standard errors in the eight schools."""


class TwoGroupNormal(Model):
    """Normal observations from two groups with different means.

    .. math::
        \\begin{align*}
        \\mu_a &\\sim \\text{Normal}(0, s) \\\\
        \\delta &\\sim \\text{Normal}(0, s) \\\\
        y_i &\\sim \\text{Normal}(\\mu_a + \\delta g_i, \\sigma)
        \\end{align*}

    where :math:`g_i` is the group code (0 or 1) of observation :math:`i`. The
    mean of the second group, ``mu_b``, is recorded as a transformed parameter.

    Reads the dataset fields ``value`` and ``group``, as provided by
    :py:class:`~ministan.dataset.Dataset`.

    :param sigma: Known observation noise. When None, the noise is inferred
        with a half-normal prior. Defaults to 1.
    :type sigma: Optional[custom_types.Float]
    :param prior_scale: Scale ``s`` of the priors on ``mu_a`` and ``delta``.
        Defaults to 100.
    :type prior_scale: custom_types.Float
    :param default_data: Data used when none is passed to a method
    :type default_data: Union[Dataset, Mapping[str, npt.ArrayLike], None]
    """

    def __init__(
        self,
        sigma: Optional["custom_types.Float"] = 1.0,
        prior_scale: "custom_types.Float" = 100.0,
        default_data: Union["Dataset", Mapping[str, "npt.ArrayLike"], None] = None,
    ):
        super().__init__(default_data=default_data)
        self.mu_a = parameters.Normal(mu=0.0, sigma=prior_scale)
        self.delta = parameters.Normal(mu=0.0, sigma=prior_scale)
        self.mu_b = self.mu_a + self.delta
        if sigma is None:
            self.sigma = parameters.HalfNormal(sigma=prior_scale / 10)
            sigma = self.sigma
        self.y = parameters.Normal(
            mu=self.mu_a + self.delta * DataField("group"),
            sigma=sigma,
            field="value",
        )

    def bind(
        self, data: Optional[Union["Dataset", Mapping[str, "npt.ArrayLike"]]] = None
    ) -> BoundModel:
        """Bind the model to data, checking that it holds at most two groups.

        :raises ValueError: If a group code other than 0 or 1 is present
        """
        bound = super().bind(data)
        codes = np.unique(bound.data.get("group", ()))
        if codes.size and not np.isin(codes, (0, 1)).all():
            raise ValueError(
                "TwoGroupNormal compares exactly two groups; got group codes "
                f"{codes.tolist()}. Use a model with one mean per group instead."
            )
        return bound


class EightSchools(Model):
    """Hierarchical model of the effect of coaching in eight schools.

    .. math::
        \\begin{align*}
        \\mu &\\sim \\text{Normal}(0, 5) \\\\
        \\tau &\\sim \\text{HalfCauchy}(5) \\\\
        \\theta_j &\\sim \\text{Normal}(\\mu, \\tau) \\\\
        y_j &\\sim \\text{Normal}(\\theta_j, \\sigma_j)
        \\end{align*}

    The school effects :math:`\\theta` use the non-centered parametrization.
    Reads the dataset fields ``y`` and ``sigma``; the published data are used by
    default.

    :param default_data: Data used when none is passed to a method. Defaults to
        :py:data:`EIGHT_SCHOOLS_DATA`.
    :type default_data: Union[Dataset, Mapping[str, npt.ArrayLike], None]
    """

    def __init__(
        self,
        default_data: Union["Dataset", Mapping[str, "npt.ArrayLike"], None] = None,
    ):
        super().__init__(
            default_data=EIGHT_SCHOOLS_DATA if default_data is None else default_data
        )
        self.mu = parameters.Normal(mu=0.0, sigma=5.0)
        self.tau = parameters.HalfCauchy(sigma=5.0)
        self.theta = parameters.Normal(mu=self.mu, sigma=self.tau, shape=8)
        self.y = parameters.Normal(mu=self.theta, sigma=DataField("sigma"), field="y")


class NealsFunnel(Model):
    """Neal's funnel in ``n`` + 1 dimensions.

    .. math::
        \\begin{align*}
        y &\\sim \\text{Normal}(0, 3) \\\\
        x_i &\\sim \\text{Normal}(0, e^{y / 2})
        \\end{align*}

    The model has no data. Sampling it directly (``noncentered=False``)
    exercises the sampler's handling of strongly varying curvature and
    typically produces divergences; the non-centered form is well behaved.

    :param n: Number of ``x`` variables. Defaults to 9.
    :type n: custom_types.Integer
    :param noncentered: Whether ``x`` uses the non-centered parametrization.
        Defaults to True.
    :type noncentered: bool
    """

    def __init__(self, n: "custom_types.Integer" = 9, noncentered: bool = True):
        super().__init__()
        self.y = parameters.Normal(mu=0.0, sigma=3.0)
        self.x = parameters.Normal(
            mu=0.0,
            sigma=operations.exp(self.y / 2),
            shape=(int(n),),
            noncentered=noncentered,
        ).as_latent()
