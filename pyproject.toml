[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "geras"
version = "0.1.0"
description = "Service quota utilization monitoring: a job worker pool, network address usage calculation, quota jobs and configuration validation."
requires-python = ">=3.10"
dependencies = []
keywords = ["monitoring", "quotas", "cloudwatch", "metrics", "network-address-usage", "jobs"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["geras"]

[tool.pytest.ini_options]
addopts = "-ra"
