"""Tests for model components, model registration, and the bound log density."""

import numpy as np
import pytest

from scipy import stats

import ministan as ms
from ministan.model.components import constants, parameters
from ministan.model.components.transformations import transformed_parameters
from ministan.model.log_density import BoundModel


class TestComponents:
    """Distributions, constants, and transformations."""

    def test_constant_wraps_numbers(self):
        param = parameters.Normal(mu=1.5, sigma=2.0)
        assert isinstance(param.parents["mu"], constants.Constant)
        assert param.parents["mu"].value == 1.5
        assert param.is_hyperparameter

    def test_missing_and_unexpected_arguments(self):
        with pytest.raises(TypeError):
            parameters.Normal(mu=0.0)
        with pytest.raises(TypeError):
            parameters.Normal(mu=0.0, sigma=1.0, nu=3.0)

    def test_shape_broadcasting(self):
        mu = parameters.Normal(mu=0.0, sigma=1.0, shape=(3,))
        child = parameters.Normal(mu=mu, sigma=np.ones((2, 1)))
        assert child.shape == (2, 3)
        with pytest.raises(ValueError):
            parameters.Normal(mu=mu, sigma=np.ones(4))

    def test_arithmetic_builds_transformations(self):
        a = parameters.Normal(mu=0.0, sigma=1.0)
        b = parameters.HalfNormal(sigma=1.0)
        assert isinstance(a + b, transformed_parameters.AddParameter)
        assert isinstance(a - b, transformed_parameters.SubtractParameter)
        assert isinstance(2 * a, transformed_parameters.MultiplyParameter)
        assert isinstance(a / b, transformed_parameters.DivideParameter)
        assert isinstance(a**2, transformed_parameters.PowerParameter)
        assert isinstance(-a, transformed_parameters.NegateParameter)

    def test_transformation_values(self):
        a = parameters.Normal(mu=0.0, sigma=1.0)
        b = parameters.Normal(mu=0.0, sigma=1.0)
        total = a + b * 2
        assert total(dist1=np.array(1.0), dist2=np.array(6.0)) == 7.0

    def test_operations_on_components_and_numbers(self):
        a = parameters.Normal(mu=0.0, sigma=1.0)
        assert isinstance(ms.operations.exp(a), transformed_parameters.ExpParameter)
        assert isinstance(ms.operations.sigmoid(a), transformed_parameters.SigmoidParameter)
        assert ms.operations.exp(0.0) == pytest.approx(1.0)
        assert ms.operations.log(np.e) == pytest.approx(1.0)
        assert ms.operations.sigmoid(0.0) == pytest.approx(0.5)
        assert ms.operations.sum_(np.arange(4)) == pytest.approx(6.0)
        assert ms.operations.abs_(-2.0) == pytest.approx(2.0)

    def test_sum_reduces_to_scalar(self):
        a = parameters.Normal(mu=0.0, sigma=1.0, shape=(4,))
        assert ms.operations.sum_(a).shape == ()

    def test_indexing_by_data_field(self):
        mu = parameters.Normal(mu=0.0, sigma=1.0, shape=(2,))
        indexed = mu[ms.DataField("group")]
        assert isinstance(indexed, transformed_parameters.IndexParameter)
        assert indexed.shape is None

    @pytest.mark.parametrize(
        "param,value",
        [
            (parameters.Normal(mu=1.0, sigma=2.0), 0.3),
            (parameters.HalfNormal(sigma=2.0), 0.3),
            (parameters.LogNormal(mu=0.0, sigma=1.0), 1.7),
            (parameters.Gamma(alpha=2.0, beta=3.0), 0.7),
            (parameters.Beta(alpha=2.0, beta=3.0), 0.2),
            (parameters.Exponential(beta=2.0), 0.4),
        ],
    )
    def test_constrain_inverts_unconstrain(self, param, value):
        parent_values = {
            name: parent.value for name, parent in param.parents.items()
        }
        raw = param.unconstrain(value, **parent_values)
        constrained, _ = param.constrain(np.asarray(raw), **parent_values)
        assert float(constrained) == pytest.approx(value)

    def test_log_prob_matches_scipy(self):
        param = parameters.Normal(mu=1.0, sigma=2.0)
        assert param.log_prob(0.5, mu=1.0, sigma=2.0) == pytest.approx(
            stats.norm(1.0, 2.0).logpdf(0.5)
        )

        # Rates are converted to SciPy scales
        param = parameters.Exponential(beta=2.0)
        assert param.log_prob(0.5, beta=2.0) == pytest.approx(
            stats.expon(scale=0.5).logpdf(0.5)
        )

    def test_log_prob_outside_support(self):
        param = parameters.HalfNormal(sigma=1.0)
        assert param.log_prob(-1.0, sigma=1.0) == -np.inf
        assert param.log_prob(1.0, sigma=-1.0) == -np.inf

    def test_observable_and_latent_roles(self):
        a = parameters.Normal(mu=0.0, sigma=1.0)
        assert a.observable  # No children yet
        b = parameters.Normal(mu=a, sigma=1.0, field="value")
        assert not a.observable
        assert b.observable and b.field == "value"
        c = parameters.Normal(mu=0.0, sigma=1.0).as_latent()
        assert not c.observable
        with pytest.raises(ValueError):
            b.as_latent()


class TwoMeans(ms.Model):
    def __init__(self, default_data=None):
        super().__init__(default_data=default_data)
        self.mu = parameters.Normal(mu=0.0, sigma=10.0, shape=(2,))
        self.sigma = parameters.HalfNormal(sigma=5.0)
        self.diff = self.mu[1] - self.mu[0]
        self.y = parameters.Normal(
            mu=self.mu[ms.DataField("group")], sigma=self.sigma, field="value"
        )


class TestModel:
    """Model registration and prior draws."""

    def test_registration(self):
        model = TwoMeans()
        assert [p.model_varname for p in model.parameters] == ["mu", "sigma"]
        assert [p.model_varname for p in model.observables] == ["y"]
        assert list(model.transformed_parameter_dict) == ["diff"]
        assert set(model.data_fields) == {"group", "value"}
        assert "mu" in model
        assert model["sigma"] is model.sigma

    def test_components_are_frozen_after_init(self):
        model = TwoMeans()
        with pytest.raises(AttributeError):
            model.mu = parameters.Normal(mu=0.0, sigma=1.0)

    def test_private_component_names_are_rejected(self):
        class Private(ms.Model):
            def __init__(self):
                super().__init__()
                self._mu = parameters.Normal(mu=0.0, sigma=1.0)

        with pytest.raises(ValueError):
            Private()

    def test_str_lists_components(self):
        text = str(TwoMeans())
        assert "mu" in text and "sigma" in text and "y" in text

    def test_draw(self, two_group_data):
        draws = TwoMeans().draw(50, seed=0, data=two_group_data)
        assert draws["mu"].shape == (50, 2)
        assert draws["sigma"].shape == (50,)
        assert np.all(draws["sigma"] > 0)
        assert draws["y"].shape == (50, len(two_group_data))
        np.testing.assert_allclose(
            draws["diff"], draws["mu"][:, 1] - draws["mu"][:, 0]
        )

    def test_draw_is_reproducible(self, two_group_data):
        first = TwoMeans().draw(5, seed=3, data=two_group_data)
        second = TwoMeans().draw(5, seed=3, data=two_group_data)
        np.testing.assert_array_equal(first["mu"], second["mu"])

    def test_draw_requires_fields(self):
        with pytest.raises(ValueError):
            TwoMeans().draw(5, seed=0)

    def test_default_data(self, two_group_data):
        model = TwoMeans(default_data=two_group_data)
        assert model.bind().n_observations == len(two_group_data)


class TestDefinitionErrors:
    """Invalid models are rejected when they are defined."""

    def test_negative_scale(self):
        class Negative(ms.Model):
            def __init__(self):
                super().__init__()
                self.mu = parameters.Normal(mu=0.0, sigma=-1.0)
                self.y = parameters.Normal(mu=self.mu, sigma=1.0)

        with pytest.raises(ms.DefinitionError) as excinfo:
            Negative()
        assert excinfo.value.parameter == "mu"

    def test_invalid_prior_support(self):
        class RealScale(ms.Model):
            def __init__(self):
                super().__init__()
                self.mu = parameters.Normal(mu=0.0, sigma=1.0)
                self.s = parameters.Normal(mu=0.0, sigma=1.0)
                self.y = parameters.Normal(mu=self.mu, sigma=self.s)

        with pytest.raises(ms.DefinitionError, match="support"):
            RealScale()

    def test_uniform_bounds(self):
        class Backwards(ms.Model):
            def __init__(self):
                super().__init__()
                self.u = parameters.Uniform(lower=2.0, upper=1.0)
                self.y = parameters.Normal(mu=self.u, sigma=1.0)

        with pytest.raises(ms.DefinitionError):
            Backwards()

    def test_discrete_latent(self):
        class DiscreteLatent(ms.Model):
            def __init__(self):
                super().__init__()
                self.k = parameters.Poisson(lambda_=3.0)
                self.y = parameters.Normal(mu=self.k, sigma=1.0)

        with pytest.raises(ms.DefinitionError, match="discrete"):
            DiscreteLatent()

    def test_unnamed_latent(self):
        class Unnamed(ms.Model):
            def __init__(self):
                super().__init__()
                self.y = parameters.Normal(
                    mu=parameters.Normal(mu=0.0, sigma=1.0), sigma=1.0
                )

        with pytest.raises(ms.DefinitionError):
            Unnamed()

    def test_data_dependent_latent_shape(self):
        class DataShaped(ms.Model):
            def __init__(self):
                super().__init__()
                self.mu = parameters.Normal(mu=ms.DataField("value"), sigma=1.0)
                self.y = parameters.Normal(mu=self.mu, sigma=1.0, field="value")

        with pytest.raises(ms.DefinitionError):
            DataShaped()


class TestBoundModel:
    """The log density on the unconstrained scale."""

    @pytest.fixture
    def bound(self, two_group_data):
        return TwoMeans().bind(two_group_data)

    def test_layout(self, bound):
        assert isinstance(bound, BoundModel)
        assert bound.dim == 3
        assert bound.parameter_names == ("mu", "sigma")
        assert bound.flat_names() == ["mu[0]", "mu[1]", "sigma"]
        assert bound.n_observations == 10

    def test_missing_field(self):
        with pytest.raises(ValueError, match="Missing data field"):
            TwoMeans().bind({"value": np.ones(3)})

    def test_unconstrain_round_trip(self, bound):
        values = {"mu": np.array([9.0, 21.0]), "sigma": 1.5}
        theta = bound.unconstrain(values)
        assert theta[2] == pytest.approx(np.log(1.5))
        constrained = bound.constrain(theta)
        np.testing.assert_allclose(constrained["mu"], values["mu"])
        assert constrained["sigma"] == pytest.approx(1.5)

    def test_evaluate_includes_transformed(self, bound):
        theta = bound.unconstrain({"mu": np.array([9.0, 21.0]), "sigma": 1.0})
        assert bound.evaluate(theta)["diff"] == pytest.approx(12.0)

    def test_log_density_matches_manual(self, bound, two_group_data):
        mu, sigma = np.array([9.0, 21.0]), 1.5
        theta = bound.unconstrain({"mu": mu, "sigma": sigma})
        expected = (
            stats.norm(0, 10).logpdf(mu).sum()
            + stats.halfnorm(scale=5).logpdf(sigma)
            + np.log(sigma)  # Jacobian of the log transform
            + stats.norm(mu[two_group_data.group_codes], sigma)
            .logpdf(two_group_data.values)
            .sum()
        )
        assert bound.log_density(theta) == pytest.approx(expected)
        assert bound.pointwise_log_likelihood(theta).shape == (10,)
        assert bound.pointwise_log_likelihood(theta).sum() == pytest.approx(
            expected - bound.log_prior(theta)
        )

    def test_log_density_outside_support(self, bound):
        theta = bound.unconstrain({"mu": np.zeros(2), "sigma": 1.0})
        theta[2] = np.nan
        assert bound.log_density(theta) == -np.inf

    def test_sample_prior(self, bound):
        theta = bound.sample_prior(np.random.default_rng(0))
        assert theta.shape == (3,)
        assert np.isfinite(bound.log_density(theta))
