[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "novelscript"
version = "0.1.0"
description = "Compiler and player for a small scripting language that describes visual novels"
requires-python = ">=3.10"
dependencies = [
    "pygame",
]
keywords = ["visual novel", "compiler", "scripting language", "interactive fiction", "game"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Compilers",
    "Topic :: Games/Entertainment",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
novelscript = "novelscript.cli:main"
novelscript-play = "novelscript.player:main"

[tool.hatch.build.targets.wheel]
packages = ["novelscript"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
