#  Copyright (c) 2025 Tom Villani, Ph.D.

# src/storysearch/cli/builder.py
"""Shared argument definitions, settings resolution and exit codes for the CLI."""

import argparse
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from storysearch.catalog import StoryCatalog
from storysearch.cli.config import CONFIG_ENV_VAR, load_config_with_priority, merge_configs
from storysearch.constants import INDEX_BACKENDS
from storysearch.exceptions import (
    DependencyError,
    FileError,
    NotInstalledError,
    ValidationError,
)
from storysearch.logging_utils import configure_logging
from storysearch.options.search import SearchOptions
from storysearch.search.service import StorySearchService

EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_DEPENDENCY_ERROR = 2
EXIT_VALIDATION_ERROR = 3
EXIT_FILE_ERROR = 4
EXIT_NOT_INSTALLED = 5


def get_exit_code_for_exception(exception: Exception) -> int:
    """Map an exception to an appropriate CLI exit code.

    Parameters
    ----------
    exception : Exception
        The exception to map to an exit code

    Returns
    -------
    int
        The appropriate exit code for the exception type

    """
    if isinstance(exception, NotInstalledError):
        return EXIT_NOT_INSTALLED

    if isinstance(exception, (DependencyError, ImportError)):
        return EXIT_DEPENDENCY_ERROR

    if isinstance(exception, (ValidationError, argparse.ArgumentTypeError)):
        return EXIT_VALIDATION_ERROR

    if isinstance(exception, FileError):
        return EXIT_FILE_ERROR

    return EXIT_ERROR


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """Add the flags shared by every subcommand."""
    parser.add_argument("--data-dir", metavar="PATH", help="Directory holding the installed story content")
    parser.add_argument(
        "--index-path",
        metavar="PATH",
        help="Location of the story index (defaults to a path inside --data-dir)",
    )
    parser.add_argument(
        "--backend",
        dest="index_backend",
        choices=list(INDEX_BACKENDS),
        help="Index backend (defaults to the configured backend, fts5 otherwise)",
    )
    parser.add_argument("--config", metavar="PATH", help="Configuration file overriding discovered settings")
    add_logging_arguments(parser)


def add_logging_arguments(parser: argparse.ArgumentParser) -> None:
    """Add the logging and verbosity flags."""
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output with detailed logging (equivalent to --log-level DEBUG)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Set logging level. Overrides --verbose if both are specified.",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        metavar="PATH",
        help="Write log messages to specified file in addition to console output",
    )
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Enable trace mode with very verbose logging and timing information",
    )


def setup_logging_level(parsed_args: argparse.Namespace) -> None:
    """Configure logging from ``--trace``, ``--verbose`` and ``--log-level``.

    ``--trace`` takes precedence, then ``--verbose`` when ``--log-level`` is left at its default.
    """
    if parsed_args.trace:
        log_level = logging.DEBUG
    elif parsed_args.verbose and parsed_args.log_level == "WARNING":
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, parsed_args.log_level.upper())

    configure_logging(log_level, log_file=parsed_args.log_file, trace_mode=parsed_args.trace)


@dataclass
class CommandSettings:
    """Settings resolved from flags and configuration for one command run."""

    data_dir: Path
    index_path: Optional[Path]
    options: SearchOptions

    def catalog(self) -> StoryCatalog:
        """Return a catalog over ``data_dir``."""
        return StoryCatalog(self.data_dir)

    def service(self) -> StorySearchService:
        """Return a search service over ``data_dir`` using the resolved index location."""
        return StorySearchService(self.catalog(), options=self.options, index_path=self.index_path)


def _options_from_config(config: Mapping[str, Any]) -> Dict[str, Any]:
    """Collect ``SearchOptions`` fields from the root and the ``[search]`` table of a config."""
    known = SearchOptions.field_names()
    root = {key: value for key, value in config.items() if key in known}
    section = config.get("search")
    if isinstance(section, dict):
        return merge_configs(root, {key: value for key, value in section.items() if key in known})
    return root


def resolve_command_settings(
    parsed_args: argparse.Namespace, overrides: Optional[Mapping[str, Any]] = None
) -> CommandSettings:
    """Combine configuration file values with command-line flags.

    Flags win over configuration values. ``overrides`` holds command-specific
    ``SearchOptions`` values taken from flags.

    Raises
    ------
    argparse.ArgumentTypeError
        If a configuration file cannot be loaded
    ValidationError
        If no data directory is known or an option value is invalid

    """
    config = load_config_with_priority(
        explicit_path=getattr(parsed_args, "config", None), env_var_path=os.environ.get(CONFIG_ENV_VAR)
    )

    data_dir = getattr(parsed_args, "data_dir", None) or config.get("data_dir")
    if not data_dir:
        raise ValidationError(
            "A data directory is required: pass --data-dir or set data_dir in a configuration file",
            parameter_name="data_dir",
        )
    index_path = getattr(parsed_args, "index_path", None) or config.get("index_path")

    option_values = _options_from_config(config)
    if getattr(parsed_args, "index_backend", None):
        option_values["index_backend"] = parsed_args.index_backend
    for key, value in (overrides or {}).items():
        if value is not None:
            option_values[key] = value

    try:
        options = SearchOptions(**option_values)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid search options: {exc}", original_error=exc) from exc

    return CommandSettings(
        data_dir=Path(str(data_dir)).expanduser(),
        index_path=Path(str(index_path)).expanduser() if index_path else None,
        options=options,
    )


__all__ = [
    "EXIT_SUCCESS",
    "EXIT_ERROR",
    "EXIT_DEPENDENCY_ERROR",
    "EXIT_VALIDATION_ERROR",
    "EXIT_FILE_ERROR",
    "EXIT_NOT_INSTALLED",
    "CommandSettings",
    "add_common_arguments",
    "add_logging_arguments",
    "get_exit_code_for_exception",
    "resolve_command_settings",
    "setup_logging_level",
]
