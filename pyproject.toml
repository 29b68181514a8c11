[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rita"
version = "0.1.0"
description = "Configuration, MongoDB metadatabase management, rolling-import settings and report output for network traffic analysis of Zeek logs"
requires-python = ">=3.10"
keywords = [
    "network",
    "security",
    "zeek",
    "beaconing",
    "threat-hunting",
    "mongodb",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Information Technology",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security",
    "Topic :: System :: Networking :: Monitoring",
]
dependencies = [
    "pyyaml>=6.0",
    "pymongo>=4.0",
    "semver>=3.0",
    "tabulate>=0.9",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[project.scripts]
rita = "rita.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["rita"]

[tool.hatch.build.targets.sdist]
include = [
    "rita",
    "tests",
    "pyproject.toml",
]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
warn_unused_ignores = true
