"""Turn catalog stories into index rows."""

from __future__ import annotations

import logging
from typing import Iterator, Optional, Sequence

from storysearch.catalog import StorySource, format_category_label
from storysearch.constants import DEFAULT_NICKNAME_LABEL
from storysearch.exceptions import StoryReadError
from storysearch.models import IndexedStory
from storysearch.parsers.markup import MarkupParser
from storysearch.progress import ProgressCallback, emit_progress
from storysearch.search.index import BaseStoryIndex
from storysearch.search.tokenizer import build_tokenized_content
from storysearch.search.types import IndexRow
from storysearch.utils.decorators import debug_timer
from storysearch.utils.text import normalize_text

logger = logging.getLogger(__name__)


def build_index_row(indexed: IndexedStory, raw_text: str, parser: MarkupParser | None = None) -> Optional[IndexRow]:
    """Build the index row for one story.

    The searchable text is the story name followed by the flattened parsed
    body. Stories whose text yields no tokens are not indexed.

    Parameters
    ----------
    indexed : IndexedStory
        Story with its category
    raw_text : str
        Raw markup read from the catalog
    parser : MarkupParser, optional
        Parser to use; a default one is created when omitted

    Returns
    -------
    IndexRow or None
        None when the story has nothing to index

    """
    parser = parser or MarkupParser()
    story = indexed.story
    flattened = parser.parse(raw_text).flatten()
    combined_raw = story.story_name if not flattened.strip() else f"{story.story_name}\n{flattened}"

    tokenized = build_tokenized_content(combined_raw)
    if not tokenized:
        return None

    return IndexRow(
        story_id=story.story_id,
        story_name=story.story_name,
        category=format_category_label(indexed.entry_type, indexed.category_name),
        tokenized_content=tokenized,
        story_code=normalize_text(story.story_code) if story.story_code else "",
        raw_content=combined_raw,
    )


class IndexBuilder:
    """Produce index rows from a story source and write them to a backend.

    Parameters
    ----------
    source : StorySource
        Content source, usually a ``StoryCatalog``
    nickname_label : str, default "博士"
        Text substituted for the player nickname placeholder

    """

    def __init__(self, source: StorySource, *, nickname_label: str = DEFAULT_NICKNAME_LABEL) -> None:
        """Bind the builder to its content source."""
        self.source = source
        self.parser = MarkupParser(nickname_label=nickname_label)

    def iter_rows(
        self, stories: Sequence[IndexedStory], progress_callback: ProgressCallback | None = None
    ) -> Iterator[IndexRow]:
        """Yield a row per indexable story, skipping stories that cannot be read."""
        total = len(stories)
        skipped = 0
        for idx, indexed in enumerate(stories, start=1):
            story = indexed.story
            try:
                raw_text = self.source.read_story_text(story.story_txt)
            except StoryReadError as exc:
                skipped += 1
                logger.warning("Skipping story %s while indexing: %s", story.story_id, exc)
                emit_progress(
                    progress_callback,
                    "error",
                    f"Skipped {story.story_id}",
                    idx,
                    total,
                    story_id=story.story_id,
                    error=str(exc),
                )
                continue

            row = build_index_row(indexed, raw_text, self.parser)
            if row is None:
                logger.debug("Story %s has no indexable text", story.story_id)
            else:
                yield row
            emit_progress(
                progress_callback,
                "item_done",
                f"Indexed {story.story_id}",
                idx,
                total,
                item_type="story",
                story_id=story.story_id,
            )

        if skipped:
            logger.info("Skipped %d of %d stories while indexing", skipped, total)

    def rebuild(self, index: BaseStoryIndex, progress_callback: ProgressCallback | None = None) -> int:
        """Replace the content of ``index`` with every story of the source.

        Returns
        -------
        int
            Number of rows written

        Raises
        ------
        NotInstalledError
            If the source holds no content
        SearchIndexError
            If the backend fails; the previous index content is kept

        """
        stories = self.source.collect_stories_for_index()
        emit_progress(progress_callback, "started", "Rebuilding story index", 0, len(stories), item_type="index")

        with debug_timer(logger, "Story index rebuild"):
            written = index.rebuild(self.iter_rows(stories, progress_callback), progress_callback=progress_callback)

        logger.info("Story index rebuilt with %d rows (%s backend)", written, index.backend_name)
        emit_progress(
            progress_callback, "finished", "Story index rebuilt", len(stories), len(stories), rows=written
        )
        return written


__all__ = ["IndexBuilder", "build_index_row"]
