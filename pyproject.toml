[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "limakit"
version = "0.1.0"
description = "Host and guest agent building blocks for Linux virtual machines: TCP table parsing, a guest agent API over a UNIX socket, port forwarding over SSH, host agent events and a download cache"
requires-python = ">=3.10"
keywords = [
    "virtual-machine",
    "qemu",
    "guest-agent",
    "port-forwarding",
    "ssh",
    "cloud-init",
    "download-cache",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Operating System :: POSIX :: Linux",
    "Operating System :: MacOS",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
    "Topic :: System :: Networking",
]
dependencies = []

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["limakit"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
