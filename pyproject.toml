[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "polysubml"
version = "0.1.0"
description = "Compiler core for PolySubML: source spans, syntax tree, type-flow graph and JavaScript code generation"
requires-python = ">=3.10"
dependencies = []
keywords = ["compiler", "ml", "type inference", "subtyping", "javascript", "codegen"]
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
packages = ["polysubml"]

[tool.pytest.ini_options]
addopts = "-ra"
