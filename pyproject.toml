[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lvmlocal"
version = "0.1.0"
description = "Manage node-local LVM logical volumes and snapshots, parse LVM reports, check mount requests and compute IO limits"
requires-python = ">=3.10"
dependencies = []
keywords = ["lvm", "storage", "volume", "snapshot", "thin-provisioning", "local-pv"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["lvmlocal"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
