[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "callcenter"
version = "25.2.0"
description = "Contact-centre data models, an AMQP event-bus client and queue attempt state for telephony services"
requires-python = ">=3.10"
dependencies = []
keywords = ["call-center", "telephony", "queue", "amqp", "sip", "contact-center"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Telecommunications Industry",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Telephony",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["callcenter"]

[tool.hatch.build.targets.sdist]
include = ["callcenter", "tests", "pyproject.toml", "README.md"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
