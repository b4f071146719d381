[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "metasketch"
version = "0.1.0"
description = "k-mer sketching, read quality control and strain abundance estimation for metagenomic samples"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = [
    "metagenomics",
    "minhash",
    "sketching",
    "k-mer",
    "fastq",
    "strain",
    "deconvolution",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Bio-Informatics",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["metasketch"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
