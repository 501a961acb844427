"""Parsers for upstream story content."""

from storysearch.parsers.markup import MarkupParser, parse_story_text

__all__ = ["MarkupParser", "parse_story_text"]
