[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "plugview"
version = "0.1.0"
description = "A small Redis key browser over HTTP, plus helpers for reading MySQL schema metadata, tracking running queries and checking ad-hoc SQL."
requires-python = ">=3.10"
keywords = ["redis", "mysql", "viewer", "key-browser", "schema", "metadata", "sql"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Web Environment",
    "Framework :: Flask",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database :: Front-Ends",
]
dependencies = [
    "redis>=4.2",
    "flask>=2.2",
]

[project.optional-dependencies]
test = [
    "pytest>=7",
]

[project.scripts]
plugview-redis = "plugview.redisview.app:main"

[tool.hatch.build.targets.wheel]
packages = ["plugview"]

[tool.pytest.ini_options]
addopts = "-ra"
