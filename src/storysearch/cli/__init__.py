"""Command-line interface for the storysearch library.

Subcommands
-----------
search
    Search stories with the index and a linear scan
index
    Rebuild the story index
status
    Show whether the story index is ready
parse
    Parse a story script and print its segments
list
    List stories grouped by category

Settings for ``--data-dir``, ``--index-path`` and search options can come
from a configuration file; see ``storysearch.cli.config``.

Examples
--------
Build the index once, then search::

    $ storysearch index --data-dir ~/arknights
    $ storysearch search "凯尔希" --data-dir ~/arknights

Search with the trace of every decision::

    $ storysearch search "苦艾 or 阿米娅" --debug --data-dir ~/arknights

Use a configuration file::

    $ export STORYSEARCH_CONFIG=~/.storysearch.toml
    $ storysearch status

"""

import logging
import sys

from storysearch.cli.builder import EXIT_SUCCESS, EXIT_VALIDATION_ERROR
from storysearch.cli.commands import COMMANDS, dispatch_command

logger = logging.getLogger(__name__)

__all__ = ["main"]


def _usage() -> str:
    lines = ["usage: storysearch <command> [options]", "", "commands:"]
    width = max(len(name) for name in COMMANDS)
    for name, summary in COMMANDS.items():
        lines.append(f"  {name:<{width}}  {summary}")
    lines.extend(["", "Run 'storysearch <command> --help' for command options."])
    return "\n".join(lines)


def _get_version() -> str:
    from importlib.metadata import PackageNotFoundError, version

    try:
        return version("storysearch")
    except PackageNotFoundError:
        from storysearch import __version__

        return __version__


def main(args: list[str] | None = None) -> int:
    """Execute the CLI entry point."""
    if args is None:
        args = sys.argv[1:]

    if not args or args[0] in ("-h", "--help", "help"):
        print(_usage())
        return EXIT_SUCCESS

    if args[0] in ("-V", "--version"):
        print(f"storysearch {_get_version()}")
        return EXIT_SUCCESS

    result = dispatch_command(args)
    if result is not None:
        return result

    print(f"Error: unknown command '{args[0]}'", file=sys.stderr)
    print(_usage(), file=sys.stderr)
    return EXIT_VALIDATION_ERROR
