[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lambdaext"
version = "0.1.0"
description = "Parse Lambda extension events, logs and telemetry, and build Extensions API requests"
requires-python = ">=3.11"
dependencies = []
keywords = ["lambda", "extension", "serverless", "telemetry", "logs"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries :: Application Frameworks",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["lambdaext"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"
