[build-system]
requires = ["setuptools>=64"]
build-backend = "setuptools.build_meta"

[project]
name = "minikv"
version = "0.1.0"
description = "A small asyncio key-value server and client speaking the RESP frame protocol, with an echo server and a toy task executor"
requires-python = ">=3.10"
dependencies = []
keywords = ["redis", "resp", "asyncio", "key-value", "executor"]
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
    "Framework :: AsyncIO",
    "Topic :: Database :: Database Engines/Servers",
]

[project.optional-dependencies]
test = ["pytest", "pytest-asyncio"]

[project.scripts]
minikv-server = "minikv.server:main"
minikv-client = "minikv.client:main"
minikv-echo = "minikv.echo:main"
minikv-executor = "minikv.executor:main"

[tool.setuptools.packages.find]
include = ["minikv*"]

[tool.pytest.ini_options]
addopts = "-ra"
