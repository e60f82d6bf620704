[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "relystore"
version = "0.1.0"
description = "A Nostr relay that keeps ephemeral events in an in-memory ring buffer and stores the rest in SQLite"
requires-python = ">=3.10"
keywords = ["nostr", "relay", "websocket", "ring-buffer", "sqlite", "ephemeral"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet",
    "Topic :: Communications",
]
dependencies = [
    "websockets",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
relystore = "relystore.relay:main"

[tool.hatch.build.targets.wheel]
packages = ["relystore"]

[tool.pytest.ini_options]
addopts = "-ra"
