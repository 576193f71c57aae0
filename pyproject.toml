[build-system]
requires = ["setuptools>=64"]
build-backend = "setuptools.build_meta"

[project]
name = "rowquery"
version = "1.0.0"
description = "Pull-based query execution operators over in-memory rows of string values"
requires-python = ">=3.10"
dependencies = []
keywords = ["sql", "query", "executor", "join", "aggregation", "predicate"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Database :: Database Engines/Servers",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.setuptools.packages.find]
include = ["rowquery*"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
