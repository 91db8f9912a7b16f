[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pageasm"
version = "0.1.0"
description = "Resolution, page checking, encoding and diagnostics for a paged 16-bit instruction set assembler"
requires-python = ">=3.10"
keywords = ["assembler", "isa", "encoder", "diagnostics", "16-bit"]
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
    "Topic :: Software Development :: Assemblers",
]
dependencies = []

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["pageasm"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
