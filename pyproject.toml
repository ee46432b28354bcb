[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mrcdemo"
version = "0.1.0"
description = "Simulated medical robot control stack: sensor pipeline, binary IPC, heartbeat supervision and an algorithm worker"
requires-python = ">=3.10"
dependencies = []
keywords = ["robotics", "control-loop", "simulation", "ipc", "heartbeat", "telemetry"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Medical Science Apps.",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
mrcdemo-algo-worker = "mrcdemo.algo_worker:main"
mrcdemo-stress-test = "mrcdemo.stress:main"

[tool.hatch.build.targets.wheel]
packages = ["mrcdemo"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
