"""Project version lookup shared by the metadata endpoint and scripts."""

from __future__ import annotations

import tomllib
from functools import lru_cache
from importlib import metadata
from pathlib import Path
from typing import Final

PACKAGE_NAME: Final = "plancalc"
PYPROJECT_PATH: Final = Path(__file__).resolve().parents[3] / "pyproject.toml"


@lru_cache(maxsize=1)
def get_project_version() -> str:
    """Return the installed distribution version.

    Running from a source checkout without installing leaves no package
    metadata behind, in which case ``pyproject.toml`` is consulted instead.
    """

    try:
        return metadata.version(PACKAGE_NAME)
    except metadata.PackageNotFoundError:
        return read_pyproject_version(PYPROJECT_PATH)


def read_pyproject_version(path: Path) -> str:
    if not path.exists():
        raise RuntimeError(f"Unable to locate project metadata at {path}")
    with path.open("rb") as handle:
        document = tomllib.load(handle)
    version = document.get("project", {}).get("version")
    if not isinstance(version, str) or not version:
        raise RuntimeError(f"No [project] version declared in {path}")
    return version


__all__ = ["PACKAGE_NAME", "PYPROJECT_PATH", "get_project_version", "read_pyproject_version"]
