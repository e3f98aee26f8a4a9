[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "itshare"
version = "0.1.0"
description = "Chat and file sharing between clients of a small relay server"
requires-python = ">=3.10"
keywords = ["file-sharing", "chat", "tcp", "transfer", "relay"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: File Sharing",
    "Topic :: Communications :: Chat",
]
dependencies = [
    "termcolor",
    "tqdm",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
itshare-client = "itshare.client_cli:main"
itshare-server = "itshare.server_cli:main"

[tool.hatch.build.targets.wheel]
packages = ["itshare"]

[tool.pytest.ini_options]
addopts = "-ra"
