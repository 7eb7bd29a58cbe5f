[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "codenexus"
version = "0.1.3"
description = "Code base relationship manager: tag, comment on and relate the files of a project"
requires-python = ">=3.10"
dependencies = []
keywords = ["tags", "code navigation", "file relations", "mcp", "json-rpc"]
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
    "Topic :: Software Development",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
codenexus = "codenexus.protocol:main"

[tool.hatch.build.targets.wheel]
packages = ["codenexus"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
