[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "simreports"
version = "0.1.0"
description = "CSV reports, population tabulation, a local JSON web API and a command-line runner for simulations"
requires-python = ">=3.10"
dependencies = []
keywords = ["simulation", "reports", "csv", "tabulation", "agent-based"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
simreports = "simreports.runner:main"

[tool.hatch.build.targets.wheel]
packages = ["simreports"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
