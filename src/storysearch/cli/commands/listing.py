#  Copyright (c) 2025 Tom Villani, Ph.D.

# src/storysearch/cli/commands/listing.py
"""Grouped story listings for the storysearch CLI."""

import json
from typing import Any

from storysearch.catalog import StoryCatalog, StoryGroup
from storysearch.cli.builder import EXIT_SUCCESS, CommandSettings
from storysearch.cli.commands.shared import create_command_parser, parse_command_args, run_with_settings
from storysearch.models import StoryEntry

LISTINGS = ("main", "activity", "sidestory", "memory")


def _collect_groups(catalog: StoryCatalog, kind: str) -> list[StoryGroup]:
    if kind == "main":
        return catalog.get_main_stories_grouped()
    if kind == "activity":
        return catalog.get_activity_stories_grouped()
    if kind == "sidestory":
        return catalog.get_sidestory_stories_grouped()
    return [("", catalog.get_memory_stories())]


def _entry_line(entry: StoryEntry) -> str:
    code = f"{entry.story_code} " if entry.story_code else ""
    tag = f" ({entry.avg_tag})" if entry.avg_tag else ""
    return f"    {code}{entry.story_name}{tag}  [{entry.story_id}]"


def handle_list_command(args: list[str] | None = None) -> int:
    """Handle ``storysearch list {main,activity,sidestory,memory}``."""
    parser = create_command_parser("list", "List installed stories grouped by category.")
    parser.add_argument("kind", choices=list(LISTINGS), help="Which stories to list")
    parser.add_argument("--json", action="store_true", help="Emit the listing as JSON")

    parsed = parse_command_args(parser, args or [])
    if isinstance(parsed, int):
        return parsed

    def run(settings: CommandSettings) -> int:
        groups = _collect_groups(settings.catalog(), parsed.kind)
        if parsed.json:
            payload: Any
            if parsed.kind == "memory":
                payload = [entry.to_json() for entry in groups[0][1]]
            else:
                payload = [
                    {"name": name, "stories": [entry.to_json() for entry in entries]} for name, entries in groups
                ]
            print(json.dumps(payload, indent=2, ensure_ascii=False))
            return EXIT_SUCCESS

        for name, entries in groups:
            if name:
                print(name)
            for entry in entries:
                print(_entry_line(entry))
        return EXIT_SUCCESS

    return run_with_settings(parsed, run)


__all__ = ["handle_list_command"]
