"""
Installs MiniStan
"""

import re

from setuptools import find_packages, setup


# Get package information
def get_package_info():
    """
    Gets version information for the installation.
    """
    # Set up variables
    package_version = None

    # Open the file containing version info
    with open("ministan/__init__.py", "r", encoding="utf-8") as file:
        for line in file:
            # Check version
            if match_obj := re.match(r"__version__.+([0-9]+\.[0-9]+\.[0-9]+)", line):
                package_version = match_obj.group(1)

    # Checks on variables
    if package_version is None:
        raise IOError("Could not find information on version.")

    return package_version


# Run setup
setup(
    name="ministan",
    version=get_package_info(),
    description="Bayesian modeling with a native multi-chain MCMC sampler, "
    "convergence diagnostics, and PSIS-LOO cross-validation.",
    license="MIT",
    python_requires=">=3.10",
    packages=find_packages(include=["ministan", "ministan.*"]),
    install_requires=[
        "arviz>=0.17,<1",
        "h5netcdf",
        "numpy",
        "pandas",
        "scipy",
        "tqdm",
        "typeguard>=4",
        "xarray",
    ],
    extras_require={"test": ["pytest"]},
)
