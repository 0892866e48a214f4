[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "profkit"
version = "0.1.0"
description = "Helpers for fetching, locating and presenting performance profiles: ELF inspection, mapping sources, flame graphs and interactive completion"
requires-python = ">=3.10"
dependencies = []
keywords = ["profiling", "profiler", "elf", "build-id", "flamegraph", "symbolization"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Debuggers",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["profkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
