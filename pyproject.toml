[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "srtlive"
version = "0.1.0"
description = "Building blocks of a live stream relay server: logging, locks, ring buffers, an HTTP status client, publisher and relay maps, and polling worker groups."
requires-python = ">=3.10"
dependencies = []
keywords = ["srt", "live", "streaming", "relay", "ring-buffer", "http-client"]
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
    "Topic :: Multimedia :: Video",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["srtlive"]

[tool.pytest.ini_options]
addopts = "-ra"
