[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "osdemos"
version = "0.1.0"
description = "Small executable models of operating-system ideas: a RISC-V RV32IMA emulator, Tower of Hanoi as a state machine, Kconfig expressions and dialog layout helpers."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "risc-v",
    "emulator",
    "state-machine",
    "hanoi",
    "kconfig",
    "operating-systems",
    "education",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
    "Topic :: Education",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
osdemos-rv32 = "osdemos.rv32_cli:main"
osdemos-hanoi = "osdemos.hanoi:main"

[tool.hatch.build.targets.wheel]
packages = ["osdemos"]

[tool.hatch.build.targets.sdist]
include = ["osdemos", "tests", "README.md", "pyproject.toml"]

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
