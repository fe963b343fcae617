"""Tests for building models from structured declarations."""

import copy

import numpy as np
import pytest

import ministan as ms
from ministan.model.components import parameters
from ministan.model.declaration import DeclaredModel


TWO_GROUP_DECLARATION = {
    "parameters": {
        "mu_a": {"distribution": "normal", "args": {"mu": 0, "sigma": 100}},
        "delta": {"distribution": "normal", "args": {"mu": 0, "sigma": 100}},
    },
    "transformed": {"mu_b": "mu_a + delta"},
    "likelihood": {
        "distribution": "normal",
        "args": {"mu": "mu_a + delta * group", "sigma": 1.0},
        "field": "value",
    },
}


def declaration_with(**changes):
    """Copy of the two-group declaration with some sections replaced."""
    declaration = copy.deepcopy(TWO_GROUP_DECLARATION)
    declaration.update(changes)
    return declaration


class TestDeclare:
    """Valid declarations."""

    def test_two_group_declaration(self, two_group_data):
        model = ms.declare(TWO_GROUP_DECLARATION)
        assert isinstance(model, DeclaredModel)
        assert [p.model_varname for p in model.parameters] == ["mu_a", "delta"]
        assert [p.model_varname for p in model.observables] == ["y"]
        assert list(model.transformed_parameter_dict) == ["mu_b"]
        assert set(model.data_fields) == {"group", "value"}

        bound = model.bind(two_group_data)
        theta = bound.unconstrain({"mu_a": 10.0, "delta": 10.0})
        assert bound.evaluate(theta)["mu_b"] == pytest.approx(20.0)
        assert np.isfinite(bound.log_density(theta))

    def test_matches_class_based_model(self, two_group_data):
        declared = ms.declare(TWO_GROUP_DECLARATION).bind(two_group_data)
        builtin = ms.builtin_models.TwoGroupNormal().bind(two_group_data)
        values = {"mu_a": 9.5, "delta": 10.5}
        assert declared.log_density(declared.unconstrain(values)) == pytest.approx(
            builtin.log_density(builtin.unconstrain(values))
        )

    def test_order_of_declaration_does_not_matter(self):
        declaration = declaration_with(
            parameters={
                "theta": {
                    "distribution": "normal",
                    "args": {"mu": "mu", "sigma": "tau"},
                    "shape": [3],
                },
                "tau": {"distribution": "half_cauchy", "args": {"sigma": 5}},
                "mu": {"distribution": "normal", "args": {"mu": 0, "sigma": 5}},
            },
            transformed={},
            likelihood={
                "distribution": "normal",
                "args": {"mu": "theta[group]", "sigma": 1.0},
            },
        )
        model = ms.declare(declaration)
        names = [p.model_varname for p in model.parameters]
        assert names.index("mu") < names.index("theta")
        assert names.index("tau") < names.index("theta")
        assert model.theta.shape == (3,)
        assert isinstance(model.tau, parameters.HalfCauchy)
        assert model.theta.is_noncentered

    def test_functions_and_custom_names(self, two_group_data):
        declaration = declaration_with(
            parameters={
                "mu": {"distribution": "normal", "args": {"mu": 0, "sigma": 10}},
                "log_sigma": {"distribution": "normal", "args": {"mu": 0, "sigma": 1}},
            },
            transformed={"sigma": "exp(log_sigma)"},
            likelihood={
                "distribution": "normal",
                "args": {"mu": "mu", "sigma": "sigma"},
                "field": "value",
                "name": "obs",
            },
        )
        model = ms.declare(declaration, default_data=two_group_data)
        assert [p.model_varname for p in model.observables] == ["obs"]
        bound = model.bind()
        theta = bound.unconstrain({"mu": 15.0, "log_sigma": 0.0})
        assert bound.evaluate(theta)["sigma"] == pytest.approx(1.0)

    def test_declared_fields(self):
        declaration = declaration_with(
            fields=["value", "sigma_obs"],
            parameters={"mu": {"distribution": "normal", "args": {"mu": 0, "sigma": 10}}},
            transformed={},
            likelihood={
                "distribution": "normal",
                "args": {"mu": "mu", "sigma": "sigma_obs"},
            },
        )
        model = ms.declare(declaration)
        assert set(model.data_fields) == {"sigma_obs", "value"}
        bound = model.bind({"value": np.array([1.0, 2.0]), "sigma_obs": np.ones(2)})
        assert bound.n_observations == 2

    def test_unreferenced_parameter_is_latent(self, two_group_data):
        parameter_specs = copy.deepcopy(TWO_GROUP_DECLARATION["parameters"])
        parameter_specs["extra"] = {"distribution": "normal", "args": {"mu": 0, "sigma": 1}}
        model = ms.declare(declaration_with(parameters=parameter_specs))
        assert {p.model_varname for p in model.parameters} == {"mu_a", "delta", "extra"}
        assert [p.model_varname for p in model.observables] == ["y"]

        bound = model.bind(two_group_data)
        assert "extra" in bound.parameter_names
        values = {"mu_a": 10.0, "delta": 10.0, "extra": 0.5}
        assert bound.evaluate(bound.unconstrain(values))["extra"] == pytest.approx(0.5)


class TestDeclarationErrors:
    """Malformed declarations raise DefinitionError naming the parameter."""

    def test_undeclared_reference(self):
        declaration = declaration_with(transformed={"mu_b": "mu_a + delta + gamma"})
        with pytest.raises(ms.DefinitionError, match="undeclared") as excinfo:
            ms.declare(declaration)
        assert excinfo.value.parameter == "mu_b"

    def test_negative_scale(self):
        declaration = declaration_with(
            parameters={
                "mu_a": {"distribution": "normal", "args": {"mu": 0, "sigma": -1}},
                "delta": {"distribution": "normal", "args": {"mu": 0, "sigma": 1}},
            }
        )
        with pytest.raises(ms.DefinitionError, match="positive") as excinfo:
            ms.declare(declaration)
        assert excinfo.value.parameter == "mu_a"

    def test_cycle(self):
        declaration = declaration_with(
            parameters={
                "a": {"distribution": "normal", "args": {"mu": "b", "sigma": 1}},
                "b": {"distribution": "normal", "args": {"mu": "a", "sigma": 1}},
            },
            transformed={},
            likelihood={"distribution": "normal", "args": {"mu": "a", "sigma": 1}},
        )
        with pytest.raises(ms.DefinitionError, match="cyclic"):
            ms.declare(declaration)

    def test_discrete_latent(self):
        declaration = declaration_with(
            parameters={"k": {"distribution": "poisson", "args": {"lambda": 3}}},
            transformed={},
            likelihood={"distribution": "normal", "args": {"mu": "k", "sigma": 1}},
        )
        with pytest.raises(ms.DefinitionError, match="discrete") as excinfo:
            ms.declare(declaration)
        assert excinfo.value.parameter == "k"

    def test_invalid_prior_support(self):
        declaration = declaration_with(
            parameters={
                "mu": {"distribution": "normal", "args": {"mu": 0, "sigma": 1}},
                "s": {"distribution": "normal", "args": {"mu": 0, "sigma": 1}},
            },
            transformed={},
            likelihood={"distribution": "normal", "args": {"mu": "mu", "sigma": "s"}},
        )
        with pytest.raises(ms.DefinitionError, match="support"):
            ms.declare(declaration)

    def test_uniform_bounds(self):
        declaration = declaration_with(
            parameters={
                "u": {"distribution": "uniform", "args": {"lower": 1, "upper": 1}},
            },
            transformed={},
            likelihood={"distribution": "normal", "args": {"mu": "u", "sigma": 1}},
        )
        with pytest.raises(ms.DefinitionError) as excinfo:
            ms.declare(declaration)
        assert excinfo.value.parameter == "u"

    @pytest.mark.parametrize(
        "declaration",
        [
            declaration_with(likelihood=None),  # Likelihood is not a mapping
            {"parameters": {}},  # No likelihood
            declaration_with(extra={}),  # Unknown section
            declaration_with(transformed={"_hidden": "mu_a"}),  # Private name
            declaration_with(transformed={"value": "mu_a"}),  # Shadows a field
            declaration_with(transformed={"mu_a": "delta"}),  # Declared twice
            declaration_with(  # Unknown distribution
                parameters={"mu_a": {"distribution": "wald", "args": {}}}
            ),
            declaration_with(  # Unknown key
                parameters={
                    "mu_a": {"distribution": "normal", "args": {"mu": 0, "sigma": 1}, "lower": 0}
                }
            ),
            declaration_with(  # Missing argument
                parameters={"mu_a": {"distribution": "normal", "args": {"mu": 0}}}
            ),
            declaration_with(transformed={"mu_b": "mu_a +"}),  # Syntax error
            declaration_with(transformed={"mu_b": "max(mu_a)"}),  # Unknown function
            declaration_with(transformed={"mu_b": 2.0}),  # Not a parameter
        ],
    )
    def test_malformed(self, declaration):
        with pytest.raises(ms.DefinitionError):
            ms.declare(declaration)
