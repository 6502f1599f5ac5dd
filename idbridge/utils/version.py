"""Version Utilities Module."""

from pathlib import Path

import tomlkit

_PYPROJECT_PATH = Path(__file__).resolve().parent.parent.parent / "pyproject.toml"


def get_pyproject_version(pyproject_path: Path = _PYPROJECT_PATH) -> str:
    """Get IdBridge's version from the pyproject.toml file.

    Args:
        pyproject_path (Path): Location of the pyproject.toml to read.

    Returns:
        str: IdBridge's version, or "unknown" when it cannot be determined
    """
    if not pyproject_path.is_file():
        return "unknown"

    toml_data = tomlkit.parse(pyproject_path.read_text(encoding="utf-8"))
    project = toml_data.get("project")
    if project is not None and "version" in project:
        return str(project["version"])

    return "unknown"
