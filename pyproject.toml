[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "clusterwebhooks"
version = "0.1.0"
description = "Validation rules for Kubernetes admission requests: namespaces, ingress config, ingress controllers, image mirrors, hosted control planes and manifest works"
requires-python = ">=3.10"
dependencies = []
keywords = ["kubernetes", "admission", "webhook", "validation", "openshift"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["clusterwebhooks"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
