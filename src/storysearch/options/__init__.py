#  Copyright (c) 2025 Tom Villani, Ph.D.
"""Configuration options for storysearch.

Options are frozen dataclasses; use ``create_updated`` to derive a modified
copy.
"""

from storysearch.options.base import CloneFrozenMixin
from storysearch.options.search import SearchOptions

__all__ = ["CloneFrozenMixin", "SearchOptions"]
