[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mcpservers"
version = "0.1.0"
description = "Small Model Context Protocol style servers: a knowledge-graph memory, sequential thinking, a greeter and rate-limiting middleware"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "mcp",
    "model-context-protocol",
    "json-rpc",
    "knowledge-graph",
    "rate-limiting",
    "tools",
]
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
    "Topic :: Software Development :: Libraries :: Application Frameworks",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
mcp-memory = "mcpservers.memory_tools:main"
mcp-thinking = "mcpservers.thinking:main"

[tool.hatch.build.targets.wheel]
packages = ["mcpservers"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
