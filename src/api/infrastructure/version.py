"""Application version, reported in the OpenAPI document.

Installed distributions answer from their metadata. A source checkout
without an installed distribution reads the root pyproject.toml.
"""

import tomllib
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

DISTRIBUTION_NAME = "tenant-provisioning-engine"

# src/api/infrastructure/version.py -> repository root
PYPROJECT_PATH = Path(__file__).resolve().parents[3] / "pyproject.toml"


def read_pyproject_version(path: Path | None = None) -> str:
    with open(path or PYPROJECT_PATH, "rb") as f:
        return tomllib.load(f)["project"]["version"]


def get_version() -> str:
    try:
        return version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        return read_pyproject_version()


__version__ = get_version()
