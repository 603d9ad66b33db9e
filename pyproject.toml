[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lure"
version = "0.1.0"
description = "Core library of a Linux user repository: configuration, package database, override resolution, source downloading and script review prompts"
requires-python = ">=3.11"
keywords = ["packaging", "linux", "repository", "downloader", "overrides", "sqlite"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Software Distribution",
]
dependencies = [
    "tomli-w",
    "msgpack",
    "requests",
    "tqdm",
    "pygments",
    "prompt-toolkit",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["lure"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
