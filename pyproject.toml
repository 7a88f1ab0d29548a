[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tcpgraph"
version = "0.1.0"
description = "A terminal-based network bandwidth monitor"
requires-python = ">=3.10"
dependencies = [
    "psutil",
]
keywords = ["network", "bandwidth", "monitor", "packet", "capture", "terminal", "curses"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Environment :: Console :: Curses",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking :: Monitoring",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
tcpgraph = "tcpgraph.main:main"

[tool.hatch.build.targets.wheel]
packages = ["tcpgraph"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
