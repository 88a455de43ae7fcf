[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ruleverify"
version = "0.1.0"
description = "Run rule test suites: check valid and invalid code samples against text-matching rules and keep match snapshots up to date."
requires-python = ">=3.10"
keywords = ["linting", "rules", "testing", "snapshots", "code-search"]
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
    "Topic :: Software Development :: Testing",
    "Topic :: Software Development :: Quality Assurance",
]
dependencies = [
    "pyyaml>=6.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[project.scripts]
ruleverify = "ruleverify.verify:main"

[tool.hatch.build.targets.wheel]
packages = ["ruleverify"]

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
