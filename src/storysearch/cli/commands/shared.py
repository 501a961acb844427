#  Copyright (c) 2025 Tom Villani, Ph.D.

# src/storysearch/cli/commands/shared.py
"""Helpers shared by the CLI subcommands."""

import argparse
import sys
from typing import Any, Callable, Mapping, Optional

from storysearch.cli.builder import (
    CommandSettings,
    add_common_arguments,
    get_exit_code_for_exception,
    resolve_command_settings,
    setup_logging_level,
)
from storysearch.exceptions import StorySearchError


def create_command_parser(command: str, description: str) -> argparse.ArgumentParser:
    """Return a parser for ``storysearch <command>`` with the shared flags added."""
    parser = argparse.ArgumentParser(
        prog=f"storysearch {command}",
        description=description,
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    add_common_arguments(parser)
    return parser


def parse_command_args(parser: argparse.ArgumentParser, args: list[str]) -> argparse.Namespace | int:
    """Parse ``args``, returning the exit code instead of raising when argparse exits."""
    try:
        return parser.parse_args(args)
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 0


def run_with_settings(
    parsed: argparse.Namespace,
    action: Callable[[CommandSettings], int],
    overrides: Optional[Mapping[str, Any]] = None,
) -> int:
    """Configure logging, resolve settings and run ``action``, mapping failures to exit codes."""
    setup_logging_level(parsed)
    try:
        settings = resolve_command_settings(parsed, overrides)
        return action(settings)
    except argparse.ArgumentTypeError as exc:
        print(f"Error loading configuration: {exc}", file=sys.stderr)
        return get_exit_code_for_exception(exc)
    except StorySearchError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return get_exit_code_for_exception(exc)


def load_rich_console(requested: bool) -> Any:
    """Return a ``rich`` console when requested and installed, else None."""
    if not requested:
        return None
    try:
        from rich.console import Console
    except ImportError:
        print("Rich output requested but `rich` is not installed. Falling back to plain output.")
        return None
    return Console()


__all__ = ["create_command_parser", "load_rich_console", "parse_command_args", "run_with_settings"]
