[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nerdover"
version = "0.1.0"
description = "HTTP API for managing lesson categories, lessons, images and content exports"
requires-python = ">=3.10"
keywords = ["cms", "lessons", "rest", "api", "flask", "jwt"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Web Environment",
    "Framework :: Flask",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: Dynamic Content :: Content Management System",
]
dependencies = [
    "flask",
    "pyjwt",
    "requests",
    "python-dotenv",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
nerdover = "nerdover.app:main"

[tool.hatch.build.targets.wheel]
packages = ["nerdover"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]
