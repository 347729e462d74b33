[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sfucore"
version = "0.1.0"
description = "Building blocks for a WebRTC selective forwarding unit: NACK sequencing, transport-wide congestion feedback, audio level observation and session data channel fan-out."
requires-python = ">=3.10"
dependencies = []
keywords = ["webrtc", "sfu", "rtp", "rtcp", "twcc", "nack", "conferencing"]
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
    "Topic :: Communications :: Conferencing",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["sfucore"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
strict = true
