[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rpcconnect"
version = "0.1.0"
description = "Building blocks for Connect-style RPC: error codes, errors, headers, codecs, compression, message envelopes and stream wrappers"
requires-python = ">=3.10"
dependencies = [
    "protobuf",
]
keywords = ["rpc", "connect", "grpc", "protobuf", "envelope", "streaming"]
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
    "Topic :: Software Development :: Libraries :: Application Frameworks",
]

[project.optional-dependencies]
test = [
    "pytest",
    "hypothesis",
]

[tool.hatch.build.targets.wheel]
packages = ["rpcconnect"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
