[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nyla"
version = "0.1.0"
description = "Privacy-friendly, single-site web analytics collector and dashboard backed by SQLite"
requires-python = ">=3.10"
keywords = ["analytics", "web-analytics", "privacy", "sqlite", "htmx", "wsgi"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Web Environment",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Log Analysis",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
]
dependencies = [
    "werkzeug",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
nyla-core = "nyla.cli:main"
nyla-seed = "nyla.seed:main"

[tool.hatch.build.targets.wheel]
packages = ["nyla"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
