[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "linx_indexer"
version = "0.1.0"
description = "Indexer storage, points calculation and HTTP API for swaps, transfers and lending activity"
requires-python = ">=3.10"
keywords = ["indexer", "lending", "swaps", "points", "leaderboard", "sqlite", "asgi"]
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
    "Topic :: Office/Business :: Financial",
    "Topic :: Database",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]
dependencies = [
    "httpx>=0.24",
    "starlette>=0.27",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "httpx>=0.24",
]

[tool.hatch.build.targets.wheel]
packages = ["linx_indexer"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
