[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "hothlink"
version = "0.1.0"
description = "Host-command transports and message layouts for Hoth root-of-trust chips"
requires-python = ">=3.10"
dependencies = []
keywords = ["hoth", "root-of-trust", "spi", "mtd", "usb", "dbus", "host-command", "mailbox"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Hardware",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["hothlink"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
