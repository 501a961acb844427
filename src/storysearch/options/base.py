"""Base classes for storysearch options."""

from __future__ import annotations

import sys
from dataclasses import dataclass, fields, replace
from typing import Any

if sys.version_info >= (3, 11):
    from typing import Self
else:
    from typing_extensions import Self


@dataclass(frozen=True)
class CloneFrozenMixin:
    """Copy-with-changes support for frozen option dataclasses."""

    def create_updated(self, **kwargs: Any) -> Self:
        """Return a copy with the given fields replaced; field validation runs again on the copy."""
        return replace(self, **kwargs)

    @classmethod
    def field_names(cls) -> frozenset[str]:
        """Return the names of the dataclass fields."""
        return frozenset(field.name for field in fields(cls))  # type: ignore[arg-type]
