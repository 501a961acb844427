#  Copyright (c) 2025 Tom Villani, Ph.D.

# src/storysearch/cli/commands/search.py
"""Story search command for the storysearch CLI.

Runs the hybrid index plus scan search and prints results as plain text,
``rich`` output or JSON. ``--debug`` also prints the trace lines recorded at
each decision point.
"""
import json
import sys
import textwrap
from typing import Any, List

from storysearch.cli.builder import EXIT_SUCCESS, EXIT_VALIDATION_ERROR, CommandSettings
from storysearch.cli.commands.shared import (
    create_command_parser,
    load_rich_console,
    parse_command_args,
    run_with_settings,
)
from storysearch.progress import ProgressCallback, ProgressEvent
from storysearch.search.types import SearchResult


def _make_search_progress_callback(enabled: bool) -> ProgressCallback | None:
    if not enabled:
        return None

    def callback(event: ProgressEvent) -> None:
        if event.event_type == "error":
            print(f"[ERROR] {event.message}", file=sys.stderr)
            return
        if event.event_type == "item_done" and event.metadata.get("phase") == "scan":
            if event.total and event.current != event.total and event.current % 100:
                return
        print(str(event), file=sys.stderr)

    return callback


def _format_plain_snippet(snippet: str, width: int = 100, indent: str = "      ") -> list[str]:
    formatted: list[str] = []
    for raw_line in snippet.splitlines():
        wrapped = textwrap.wrap(
            raw_line,
            width=width,
            initial_indent=indent,
            subsequent_indent=indent,
            break_long_words=True,
            break_on_hyphens=False,
        )
        formatted.extend(wrapped or [indent])
    return formatted


def _rich_snippet(snippet: str) -> Any:
    """Return ``snippet`` as rich text with its ellipses dimmed."""
    from rich.text import Text

    text = Text()
    parts = snippet.split("...")
    for i, part in enumerate(parts):
        if part:
            text.append(part)
        if i < len(parts) - 1:
            text.append("...", style="dim")
    return text


def _render_search_results(results: List[SearchResult], *, use_rich: bool) -> None:
    if not results:
        print("No results found.")
        return

    console = load_rich_console(use_rich)
    for rank, result in enumerate(results, start=1):
        if console is not None:
            from rich.text import Text

            header = Text(f"{rank:>3}. ", style="bold cyan")
            header.append(result.story_name, style="bold")
            header.append(f" [{result.category}]", style="green")
            header.append(f" {result.story_id}", style="dim")
            console.print(header)
            if result.matched_text:
                console.print(_rich_snippet(result.matched_text), style=None)
            console.print()
            continue

        print(f"{rank:>3}. {result.story_name} [{result.category}] {result.story_id}")
        if result.matched_text:
            for line in _format_plain_snippet(result.matched_text):
                print(line)


def handle_search_command(args: list[str] | None = None) -> int:
    """Handle ``storysearch search``."""
    parser = create_command_parser("search", "Search stories using the index and a linear scan.")
    parser.add_argument("query", help="Search query text")
    parser.add_argument("--limit", dest="result_limit", type=int, help="Maximum number of results to return")
    parser.add_argument(
        "--context", dest="context_window", type=int, help="Characters of context around each match"
    )
    parser.add_argument("--json", action="store_true", help="Emit search results as JSON")
    parser.add_argument("--rich", action="store_true", help="Enable rich-style output formatting when printing")
    parser.add_argument("--debug", action="store_true", help="Print the search trace after the results")
    parser.add_argument("--progress", action="store_true", help="Print progress updates during the scan")

    parsed = parse_command_args(parser, args or [])
    if isinstance(parsed, int):
        return parsed

    if parsed.result_limit is not None and parsed.result_limit <= 0:
        print("Error: --limit must be a positive integer", file=sys.stderr)
        return EXIT_VALIDATION_ERROR

    def run(settings: CommandSettings) -> int:
        service = settings.service()
        logs: list[str] = []
        if parsed.debug:
            response = service.search_with_debug(parsed.query)
            results, logs = response.results, response.logs
        elif parsed.progress:
            results = service.search_with_progress(parsed.query, _make_search_progress_callback(True))
        else:
            results = service.search(parsed.query)

        if parsed.json:
            payload: Any = [result.to_dict() for result in results]
            if parsed.debug:
                payload = {"results": payload, "logs": logs}
            print(json.dumps(payload, indent=2, ensure_ascii=False))
            return EXIT_SUCCESS

        _render_search_results(results, use_rich=parsed.rich)
        if parsed.debug:
            print()
            for line in logs:
                print(f"[DEBUG] {line}")
        return EXIT_SUCCESS

    overrides = {"result_limit": parsed.result_limit, "context_window": parsed.context_window}
    return run_with_settings(parsed, run, overrides)

