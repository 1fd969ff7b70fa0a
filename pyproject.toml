[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gherkit"
version = "0.1.0"
description = "Command-line tooling that builds and runs Go test runners for Gherkin feature suites"
requires-python = ">=3.10"
dependencies = []
keywords = ["bdd", "gherkin", "cucumber", "testing", "features", "go"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Testing :: BDD",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
gherkit = "gherkit.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["gherkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
