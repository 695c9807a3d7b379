[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "webserv"
version = "0.1.0"
description = "A small event-driven HTTP/1.1 server configured with nginx-style server and location blocks"
requires-python = ">=3.10"
dependencies = []
keywords = ["http", "server", "webserver", "nginx", "config", "static-files", "upload"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Environment :: No Input/Output (Daemon)",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
webserv = "webserv.main:main"

[tool.hatch.build.targets.wheel]
packages = ["webserv"]

[tool.hatch.build.targets.sdist]
include = ["webserv", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
