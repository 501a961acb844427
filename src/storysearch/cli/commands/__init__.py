#  Copyright (c) 2025 Tom Villani, Ph.D.

# src/storysearch/cli/commands/__init__.py
"""Subcommand dispatch for the storysearch CLI.

Handlers are imported lazily so ``--help`` stays fast.
"""

import logging
import sys

logger = logging.getLogger(__name__)

COMMANDS = {
    "search": "Search stories for a query",
    "index": "Rebuild the story index",
    "status": "Show whether the story index is ready",
    "parse": "Parse a story script and print its segments",
    "list": "List stories grouped by category",
}


def dispatch_command(args: list[str] | None = None) -> int | None:
    """Run the subcommand named by ``args[0]``.

    Parameters
    ----------
    args : list[str], optional
        Command line arguments, defaults to ``sys.argv[1:]``

    Returns
    -------
    int or None
        Exit code if a subcommand was handled, None otherwise

    """
    if args is None:
        args = sys.argv[1:]

    if not args:
        return None

    command, rest = args[0], args[1:]

    if command == "search":
        from storysearch.cli.commands.search import handle_search_command

        return handle_search_command(rest)

    if command == "index":
        from storysearch.cli.commands.index import handle_index_command

        return handle_index_command(rest)

    if command == "status":
        from storysearch.cli.commands.index import handle_status_command

        return handle_status_command(rest)

    if command == "parse":
        from storysearch.cli.commands.parse import handle_parse_command

        return handle_parse_command(rest)

    if command == "list":
        from storysearch.cli.commands.listing import handle_list_command

        return handle_list_command(rest)

    return None


__all__ = ["COMMANDS", "dispatch_command"]
