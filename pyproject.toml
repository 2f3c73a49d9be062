[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "runcclient"
version = "0.1.0"
description = "A client library for driving the runc container runtime command line"
requires-python = ">=3.10"
dependencies = []
keywords = ["runc", "containers", "oci", "runtime", "checkpoint", "criu"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Operating System Kernels :: Linux",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["runcclient"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
