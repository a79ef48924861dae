[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fusec"
version = "0.1.0"
description = "Back end of a compiler for the Fuse language: C11 and x86-64 code generation, diagnostics rendering and documentation extraction"
requires-python = ">=3.10"
dependencies = []
keywords = ["compiler", "codegen", "c11", "x86-64", "diagnostics", "mangling", "fuse"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Compilers",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["fusec"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
