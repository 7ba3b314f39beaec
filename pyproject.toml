[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "notarytool"
version = "0.7.1a1"
description = "Manage signing keys, verification certificates and cached signatures of container images in OCI registries"
requires-python = ">=3.10"
dependencies = [
    "requests",
    "cryptography",
]
keywords = ["notary", "signature", "oci", "registry", "docker", "container", "manifest"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security :: Cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[project.scripts]
notarytool = "notarytool.cli:main"
docker-generate = "notarytool.docker_generate:main"

[tool.hatch.build.targets.wheel]
packages = ["notarytool"]

[tool.pytest.ini_options]
addopts = "-ra"
