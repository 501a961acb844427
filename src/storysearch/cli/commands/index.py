#  Copyright (c) 2025 Tom Villani, Ph.D.

# src/storysearch/cli/commands/index.py
"""Index maintenance commands for the storysearch CLI."""

import json
import sys
from datetime import datetime, timezone

from storysearch.cli.builder import EXIT_SUCCESS, CommandSettings
from storysearch.cli.commands.shared import create_command_parser, parse_command_args, run_with_settings
from storysearch.progress import ProgressCallback, ProgressEvent


def _make_index_progress_callback(enabled: bool) -> ProgressCallback | None:
    if not enabled:
        return None

    def callback(event: ProgressEvent) -> None:
        if event.event_type == "error":
            print(f"[ERROR] {event.message}: {event.metadata.get('error', '')}", file=sys.stderr)
            return
        if event.event_type == "item_done" and event.metadata.get("item_type") == "story":
            if event.total and event.current != event.total and event.current % 200:
                return
        print(str(event), file=sys.stderr)

    return callback


def _format_timestamp(value: int | None) -> str:
    if value is None:
        return "never"
    return datetime.fromtimestamp(value, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def handle_index_command(args: list[str] | None = None) -> int:
    """Handle ``storysearch index``: rebuild the story index from installed content."""
    parser = create_command_parser("index", "Rebuild the story index from the installed story content.")
    parser.add_argument("--clear", action="store_true", help="Delete the existing index before rebuilding")
    parser.add_argument("--progress", action="store_true", help="Print progress updates while indexing")

    parsed = parse_command_args(parser, args or [])
    if isinstance(parsed, int):
        return parsed

    def run(settings: CommandSettings) -> int:
        service = settings.service()
        if parsed.clear:
            service.invalidate_index()
        written = service.rebuild_index(progress_callback=_make_index_progress_callback(parsed.progress))
        print(f"Indexed {written} stories into {service.index.path} ({service.index.backend_name})")
        return EXIT_SUCCESS

    return run_with_settings(parsed, run)


def handle_status_command(args: list[str] | None = None) -> int:
    """Handle ``storysearch status``: report whether the story index is ready."""
    parser = create_command_parser("status", "Show whether the story index is built and ready.")
    parser.add_argument("--json", action="store_true", help="Emit the status as JSON")

    parsed = parse_command_args(parser, args or [])
    if isinstance(parsed, int):
        return parsed

    def run(settings: CommandSettings) -> int:
        service = settings.service()
        status = service.index_status()
        if parsed.json:
            print(json.dumps(status.to_dict(), indent=2))
            return EXIT_SUCCESS

        print(f"Index:      {service.index.path} ({service.index.backend_name})")
        print(f"Ready:      {'yes' if status.ready else 'no'}")
        print(f"Stories:    {status.total}")
        print(f"Last built: {_format_timestamp(status.last_built_at)}")
        return EXIT_SUCCESS

    return run_with_settings(parsed, run)


__all__ = ["handle_index_command", "handle_status_command"]
