def test_top_level_api_imports():
    import ministan as ms

    for name in [
        "Dataset",
        "Model",
        "Constant",
        "DataField",
        "declare",
        "SamplerConfig",
        "sample",
        "loo",
        "compare",
        "manual_seed",
        "parameters",
        "operations",
        "builtin_models",
        "DefinitionError",
        "NonFiniteInitError",
        "InsufficientChainsError",
        "ConvergenceWarning",
        "PartialFailureWarning",
        "ImportanceSamplingWarning",
    ]:
        assert hasattr(ms, name)


def test_exception_hierarchy():
    import ministan as ms

    assert issubclass(ms.DefinitionError, ms.MiniStanError)
    assert issubclass(ms.DefinitionError, ValueError)
    assert issubclass(ms.NonFiniteInitError, ms.MiniStanError)
    assert issubclass(ms.InsufficientChainsError, ms.MiniStanError)
    for warning in (
        ms.ConvergenceWarning,
        ms.PartialFailureWarning,
        ms.ImportanceSamplingWarning,
    ):
        assert issubclass(warning, ms.MiniStanWarning)
        assert issubclass(warning, UserWarning)


def test_definition_error_names_parameter():
    import ministan as ms

    error = ms.DefinitionError("sigma", "argument 'sigma' must be positive.")
    assert error.parameter == "sigma"
    assert "sigma" in str(error)
