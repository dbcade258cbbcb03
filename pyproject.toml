[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lsmkit"
version = "0.1.0"
description = "Building blocks of an LSM-tree storage engine: write-ahead log, arenas, skiplists and memtables"
requires-python = ">=3.10"
dependencies = []
keywords = ["lsm", "storage", "skiplist", "memtable", "write-ahead-log", "database"]
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
    "Topic :: Database :: Database Engines/Servers",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["lsmkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
