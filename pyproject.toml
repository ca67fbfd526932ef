[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "corelog"
version = "0.1.0"
description = "Structured, leveled logging core: levels, fields, entries, cores, hooks, sampling and JSON encoding."
requires-python = ">=3.11"
dependencies = []
keywords = ["logging", "structured-logging", "json", "sampling", "levels"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Logging",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest", "pyyaml"]

[tool.hatch.build.targets.wheel]
packages = ["corelog"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
