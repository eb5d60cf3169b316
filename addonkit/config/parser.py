"""Configuration file parsing utilities."""

import json
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from addonkit.config.schemas import AddonsFile, LockFile

ADDONS_FILE_NAMES = ("addons.json", "addons.jsonc")
LOCK_FILE_NAME = "addons.lock"

# Strings are matched first so comment markers inside them (https://) survive
_JSONC_TOKENS = re.compile(
    r'("(?:\\.|[^"\\])*")|(//[^\n]*)|(/\*.*?\*/)',
    flags=re.DOTALL,
)
_TRAILING_COMMA = re.compile(r'("(?:\\.|[^"\\])*")|,(\s*[}\]])')


class ConfigError(Exception):
    """Error loading or parsing configuration."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


def strip_jsonc(content: str) -> str:
    """Strip comments and trailing commas from JSONC content.

    Removes ``// ...`` and ``/* ... */`` comments and commas directly before a
    closing bracket or brace, leaving string literals untouched.

    Args:
        content: JSONC string content

    Returns:
        Plain JSON string
    """
    content = _JSONC_TOKENS.sub(lambda m: m.group(1) or "", content)
    return _TRAILING_COMMA.sub(lambda m: m.group(1) or m.group(2), content)


def load_json(path: Path) -> dict[str, Any]:
    """Load and parse a JSON file, tolerating comments and trailing commas.

    Args:
        path: Path to the JSON file

    Returns:
        Parsed JSON as a dictionary

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    if not path.exists():
        raise ConfigError(f"File not found: {path}", path)

    try:
        content = path.read_text(encoding="utf-8")
        result = json.loads(strip_jsonc(content))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}", path) from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}", path) from e

    if not isinstance(result, dict):
        raise ConfigError(f"JSON file must contain an object: {path}", path)
    return result


def load_yaml(path: Path) -> dict[str, Any]:
    """Load and parse a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Parsed YAML as a dictionary

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    if not path.exists():
        raise ConfigError(f"File not found: {path}", path)

    try:
        with open(path, encoding="utf-8") as f:
            result = yaml.safe_load(f)
            if result is None:
                return {}
            if not isinstance(result, dict):
                raise ConfigError(f"YAML file must contain a mapping: {path}", path)
            return result
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}", path) from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}", path) from e


def save_yaml(path: Path, data: dict[str, Any]) -> None:
    """Save data to a YAML file.

    Args:
        path: Path to write to
        data: Data to serialize
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)


def find_addons_file(directory: Path, filename: str | None = None) -> Path | None:
    """Find the addons manifest in a directory.

    Args:
        directory: Directory to search
        filename: Explicit manifest filename, overriding the defaults

    Returns:
        Path to the first existing manifest, or None
    """
    candidates = (filename,) if filename else ADDONS_FILE_NAMES
    for name in candidates:
        path = directory / name
        if path.is_file():
            return path
    return None


def load_addons_file(directory: Path, filename: str | None = None) -> tuple[AddonsFile, Path]:
    """Load the addons manifest from a directory.

    A missing manifest yields an empty one.

    Args:
        directory: Directory containing the manifest
        filename: Explicit manifest filename, overriding the defaults

    Returns:
        Tuple of (manifest, manifest path). When no manifest exists the path
        is where the first candidate would live.

    Raises:
        ConfigError: If the manifest exists but is invalid
    """
    path = find_addons_file(directory, filename)
    if path is None:
        return AddonsFile(), directory / (filename or ADDONS_FILE_NAMES[0])

    data = load_json(path)
    try:
        return AddonsFile.model_validate(data), path
    except ValidationError as e:
        raise ConfigError(f"Invalid addons file: {e}", path) from e


def load_lockfile(project_root: Path) -> LockFile | None:
    """Load lock file from addons.lock if it exists.

    Args:
        project_root: Path to the project root directory

    Returns:
        Parsed LockFile or None if it doesn't exist

    Raises:
        ConfigError: If the file exists but is invalid
    """
    lock_path = project_root / LOCK_FILE_NAME
    if not lock_path.exists():
        return None

    data = load_yaml(lock_path)

    try:
        return LockFile.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid lock file: {e}", lock_path) from e


def save_lockfile(project_root: Path, lockfile: LockFile) -> None:
    """Save lock file to addons.lock.

    Args:
        project_root: Path to the project root directory
        lockfile: LockFile to save
    """
    save_yaml(project_root / LOCK_FILE_NAME, lockfile.model_dump())
