[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mtinet"
version = "0.1.0"
description = "IPv4 address intelligence: allocation state, RIR, ASN and country lookups, scanning workers and a service registry client"
requires-python = ">=3.11"
keywords = [
    "ipv4",
    "cidr",
    "rir",
    "asn",
    "iana",
    "network-scanning",
    "geolocation",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Environment :: Web Environment",
    "Framework :: AsyncIO",
    "Framework :: aiohttp",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet",
    "Topic :: System :: Networking",
]
dependencies = [
    "aiohttp",
    "httpx",
    "websockets",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
    "respx",
]

[project.scripts]
mtinet-healthcheck = "mtinet.healthcheck:main"

[tool.hatch.build.targets.wheel]
packages = ["mtinet"]

[tool.hatch.build.targets.sdist]
include = ["mtinet", "tests", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
warn_redundant_casts = true
