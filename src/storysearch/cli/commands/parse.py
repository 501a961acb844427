#  Copyright (c) 2025 Tom Villani, Ph.D.

# src/storysearch/cli/commands/parse.py
"""Parse a story script file and print its segments."""

import argparse
import json
import sys
from pathlib import Path

from storysearch.cli.builder import EXIT_FILE_ERROR, EXIT_SUCCESS, add_logging_arguments, setup_logging_level
from storysearch.cli.commands.shared import parse_command_args
from storysearch.constants import DEFAULT_NICKNAME_LABEL
from storysearch.parsers.markup import MarkupParser


def handle_parse_command(args: list[str] | None = None) -> int:
    """Handle ``storysearch parse FILE``.

    Prints the flattened text by default, or the segment list with ``--json``.
    Reads standard input when FILE is ``-``.
    """
    parser = argparse.ArgumentParser(
        prog="storysearch parse",
        description="Parse a story script and print its segments.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("file", help="Story script to parse ('-' for stdin)")
    parser.add_argument("--json", action="store_true", help="Emit the parsed segments as JSON")
    parser.add_argument("--nickname", default=DEFAULT_NICKNAME_LABEL, help="Text substituted for the player nickname")
    add_logging_arguments(parser)

    parsed = parse_command_args(parser, args or [])
    if isinstance(parsed, int):
        return parsed
    setup_logging_level(parsed)

    if parsed.file == "-":
        content = sys.stdin.read()
    else:
        path = Path(parsed.file)
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            print(f"Error: failed to read {path}: {exc}", file=sys.stderr)
            return EXIT_FILE_ERROR

    parsed_content = MarkupParser(nickname_label=parsed.nickname).parse(content)
    if parsed.json:
        print(json.dumps(parsed_content.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(parsed_content.flatten())
    return EXIT_SUCCESS


__all__ = ["handle_parse_command"]
