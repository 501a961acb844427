#  Copyright (c) 2025 Tom Villani, Ph.D.

"""Configuration file discovery and loading for the storysearch CLI.

A configuration file supplies defaults for the shared command-line flags:
``data_dir``, ``index_path`` and any ``SearchOptions`` field. Files are
looked up in this order, first match wins:

1. ``--config PATH``
2. the ``STORYSEARCH_CONFIG`` environment variable
3. ``.storysearch.toml``, ``.storysearch.yaml``, ``.storysearch.yml``,
   ``.storysearch.json`` or a ``pyproject.toml`` with a ``[tool.storysearch]``
   table, searched from the working directory up to the filesystem root
4. the same dedicated file names in the home directory
"""

import argparse
import json
import sys
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore[import-not-found,unused-ignore]
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

import yaml

CONFIG_ENV_VAR = "STORYSEARCH_CONFIG"
DEDICATED_CONFIG_FILENAMES = [".storysearch.toml", ".storysearch.yaml", ".storysearch.yml", ".storysearch.json"]
CONFIG_FILENAMES = DEDICATED_CONFIG_FILENAMES + ["pyproject.toml"]
PYPROJECT_TOOL_KEY = "storysearch"


def _read_mapping(config_path: Path, loader: Callable[[Path], Any], kind: str) -> Dict[str, Any]:
    """Decode ``config_path`` with ``loader`` and require a mapping at the root.

    Raises
    ------
    argparse.ArgumentTypeError
        If the file cannot be read or decoded, or its root is not a mapping

    """
    try:
        config = loader(config_path)
    except (tomllib.TOMLDecodeError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise argparse.ArgumentTypeError(f"Invalid {kind} in config file {config_path}: {e}") from e
    except OSError as e:
        raise argparse.ArgumentTypeError(f"Error reading {kind} config {config_path}: {e}") from e

    if not isinstance(config, dict):
        raise argparse.ArgumentTypeError(
            f"{kind} config file {config_path} must contain a mapping at root level, got {type(config).__name__}"
        )
    return config


def _toml_loader(path: Path) -> Any:
    with open(path, "rb") as f:
        return tomllib.load(f)


def _json_loader(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _yaml_loader(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def _load_pyproject_section(pyproject_path: Path) -> Dict[str, Any]:
    """Return the ``[tool.storysearch]`` table of a pyproject.toml, or an empty dict.

    Raises
    ------
    argparse.ArgumentTypeError
        If the file cannot be parsed or the section is not a table

    """
    data = _read_mapping(pyproject_path, _toml_loader, "TOML")
    section = data.get("tool", {}).get(PYPROJECT_TOOL_KEY, {}) if isinstance(data.get("tool"), dict) else {}
    if not isinstance(section, dict):
        raise argparse.ArgumentTypeError(
            f"[tool.{PYPROJECT_TOOL_KEY}] section in {pyproject_path} must be a table, got {type(section).__name__}"
        )
    return section


def _candidates(directory: Path) -> Iterator[Path]:
    for filename in DEDICATED_CONFIG_FILENAMES:
        yield directory / filename


def find_config_in_parents(start_dir: Optional[Path] = None) -> Optional[Path]:
    """Find the closest configuration file from ``start_dir`` up to the filesystem root.

    In each directory the dedicated file names are checked first, then a
    ``pyproject.toml`` that carries a non-empty ``[tool.storysearch]`` table.
    An unreadable pyproject.toml is skipped.

    Parameters
    ----------
    start_dir : Path, optional
        Starting directory, defaults to the current working directory

    Returns
    -------
    Path or None
        First config file found

    """
    start = (start_dir or Path.cwd()).resolve()
    for directory in (start, *start.parents):
        found = next((candidate for candidate in _candidates(directory) if candidate.is_file()), None)
        if found is not None:
            return found

        pyproject = directory / "pyproject.toml"
        if not pyproject.is_file():
            continue
        try:
            has_section = bool(_load_pyproject_section(pyproject))
        except argparse.ArgumentTypeError:
            has_section = False
        if has_section:
            return pyproject
    return None


def discover_config_file(start_dir: Optional[Path] = None) -> Optional[Path]:
    """Discover a configuration file in the working tree, then in the home directory."""
    found = find_config_in_parents(start_dir)
    if found is None:
        found = next((candidate for candidate in _candidates(Path.home()) if candidate.is_file()), None)
    return found


_LOADERS: Dict[str, Tuple[Callable[[Path], Any], str]] = {
    ".toml": (_toml_loader, "TOML"),
    ".yaml": (_yaml_loader, "YAML"),
    ".yml": (_yaml_loader, "YAML"),
    ".json": (_json_loader, "JSON"),
}


def load_config_file(config_path: Path | str) -> Dict[str, Any]:
    """Load configuration from a TOML, YAML, JSON or pyproject.toml file.

    Parameters
    ----------
    config_path : Path or str
        Location of the configuration file

    Returns
    -------
    dict
        Configuration dictionary

    Raises
    ------
    argparse.ArgumentTypeError
        If the file is missing, has an unsupported extension, or cannot be parsed

    Examples
    --------
    >>> config = load_config_file(".storysearch.toml")
    >>> config.get("data_dir")
    '/data/arknights'

    """
    path = Path(config_path)
    if not path.exists():
        raise argparse.ArgumentTypeError(f"Configuration file does not exist: {path}")
    if not path.is_file():
        raise argparse.ArgumentTypeError(f"Configuration path is not a file: {path}")

    if path.name.lower() == "pyproject.toml":
        return _load_pyproject_section(path)

    suffix = path.suffix.lower()
    if suffix not in _LOADERS:
        raise argparse.ArgumentTypeError(f"Unsupported config file format: {suffix}. Use .json, .toml, or .yaml")
    loader, kind = _LOADERS[suffix]
    return _read_mapping(path, loader, kind)


def merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge two configuration dictionaries, recursing into nested tables.

    Examples
    --------
    >>> merge_configs({"search": {"result_limit": 100}}, {"search": {"context_window": 20}})
    {'search': {'result_limit': 100, 'context_window': 20}}

    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        merged[key] = merge_configs(current, value) if isinstance(current, dict) and isinstance(value, dict) else value
    return merged


def load_config_with_priority(
    explicit_path: Optional[str] = None, env_var_path: Optional[str] = None
) -> Dict[str, Any]:
    """Load configuration from the highest-priority source available.

    Parameters
    ----------
    explicit_path : str, optional
        Value of the ``--config`` flag
    env_var_path : str, optional
        Value of the ``STORYSEARCH_CONFIG`` environment variable

    Returns
    -------
    dict
        Loaded configuration, empty when nothing was found

    Raises
    ------
    argparse.ArgumentTypeError
        If a named config file cannot be loaded

    """
    source = explicit_path or env_var_path or discover_config_file()
    return load_config_file(source) if source else {}


__all__ = [
    "CONFIG_ENV_VAR",
    "CONFIG_FILENAMES",
    "discover_config_file",
    "find_config_in_parents",
    "load_config_file",
    "load_config_with_priority",
    "merge_configs",
]
