[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "syslabs"
version = "0.1.0"
description = "Simulated-heap memory allocators with a trace-driven grader, and a tiny job-control shell."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "malloc",
    "allocator",
    "heap",
    "free list",
    "shell",
    "job control",
    "systems programming",
    "teaching",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Education",
    "Topic :: System :: Shells",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
mdriver = "syslabs.driver:main"
tsh = "syslabs.shell:main"
myint = "syslabs.testprogs:myint"
myspin = "syslabs.testprogs:myspin"
mysplit = "syslabs.testprogs:mysplit"
mystop = "syslabs.testprogs:mystop"

[tool.hatch.build.targets.wheel]
packages = ["syslabs"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
