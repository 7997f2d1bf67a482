[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "webywallet"
version = "0.3.19"
description = "Storage backends and server client for a Webcash HD wallet"
requires-python = ">=3.10"
keywords = ["webcash", "wallet", "payments", "bearer-cash", "sqlite", "json"]
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
    "Topic :: Office/Business :: Financial",
    "Topic :: Database",
    "Typing :: Typed",
]
dependencies = [
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[tool.hatch.build.targets.wheel]
packages = ["webywallet"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
