[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cuadriga"
version = "0.1.0"
description = "Motor-controller protocol, GPS waypoint following, joystick input and lifecycle nodes on an in-process bus for a skid-steer rover"
requires-python = ">=3.10"
keywords = [
    "robotics",
    "rover",
    "joystick",
    "navigation",
    "follow-the-carrot",
    "motor-controller",
    "lifecycle",
]
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
    "Topic :: Scientific/Engineering :: Interface Engine/Protocol Translator",
]
dependencies = [
    "pygame",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
cuadriga-rover = "cuadriga.rover_node:main"
cuadriga-joy-enumerate = "cuadriga.joy_enumerate:main"

[tool.hatch.build.targets.wheel]
packages = ["cuadriga"]

[tool.hatch.build.targets.sdist]
include = [
    "cuadriga",
    "tests",
    "pyproject.toml",
]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
ignore_missing_imports = true
