[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ferrview"
version = "0.5.0"
description = "A lightweight system monitoring tool with node agents and a metrics collector"
requires-python = ">=3.11"
dependencies = [
    "psutil",
]
keywords = ["monitoring", "metrics", "sysinfo", "collector", "svg", "sqlite"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Environment :: No Input/Output (Daemon)",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
ferrview-node = "ferrview.node:main"
ferrview-collector = "ferrview.collector:main"

[tool.hatch.build.targets.wheel]
packages = ["ferrview"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
ignore_missing_imports = true
