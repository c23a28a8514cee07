[build-system]
requires = ["setuptools>=61"]
build-backend = "setuptools.build_meta"

[project]
name = "vapordb"
version = "0.1.0"
description = "A small key-value store with strings, hashes, lists and sets, TTLs, a write-ahead log, SSTables and a JSON-over-HTTP server"
requires-python = ">=3.10"
dependencies = []
keywords = ["database", "key-value", "wal", "sstable", "ttl", "memtable"]
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
    "Topic :: Database :: Database Engines/Servers",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
vapordb = "vapordb.cli:main"
vapordb-server = "vapordb.server:main"

[tool.setuptools.packages.find]
include = ["vapordb*"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
