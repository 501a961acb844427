#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/storysearch/progress.py
"""Progress callback system for long-running story operations.

Index rebuilds and fallback scans walk the whole story corpus, which can take
a while. Embedders pass a callback to receive incremental ``ProgressEvent``
notifications and update a UI.

Delivery is fire-and-forget: ``emit_progress`` swallows and logs anything a
callback raises so a broken progress handler can never fail the operation
it is observing.

Examples
--------
    >>> from storysearch.progress import ProgressEvent
    >>>
    >>> def handler(event: ProgressEvent) -> None:
    ...     print(f"{event.metadata.get('phase')}: {event.current}/{event.total}")
    >>>
    >>> service.search_with_progress("凯尔希", handler)

"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Literal

logger = logging.getLogger(__name__)

EventType = Literal["started", "item_done", "detected", "finished", "error"]


@dataclass
class ProgressEvent:
    """Progress event for indexing and search operations.

    Parameters
    ----------
    event_type : EventType
        Type of progress event:

        - "started": the operation has begun; ``total`` is set when known
        - "item_done": one story has been processed; ``metadata["item_type"]``
          names the unit
        - "detected": a match was found during a scan
        - "finished": the operation completed; ``current == total``
        - "error": a story was skipped; details in ``metadata["error"]``

    message : str
        Human-readable description of the event
    current : int, default 0
        Current progress position
    total : int, default 0
        Total items to process. 0 if unknown.
    metadata : dict, default empty
        Additional event-specific information. Search scans always set
        ``metadata["phase"]``.

    """

    event_type: EventType
    message: str
    current: int = 0
    total: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Return human-readable string representation."""
        progress = f"({self.current}/{self.total})" if self.total > 0 else ""
        return f"[{self.event_type.upper()}] {self.message} {progress}".strip()


ProgressCallback = Callable[[ProgressEvent], None]
"""Type alias for progress callback functions.

A progress callback is any callable that accepts a ProgressEvent and returns None.
"""


def emit_progress(
    callback: ProgressCallback | None,
    event_type: EventType,
    message: str,
    current: int = 0,
    total: int = 0,
    **metadata: Any,
) -> None:
    """Deliver a progress event, ignoring failures raised by the callback.

    Parameters
    ----------
    callback : ProgressCallback or None
        Receiver of the event. Nothing happens when None.
    event_type : EventType
        Event type
    message : str
        Event message
    current : int, default 0
        Current position
    total : int, default 0
        Total items
    **metadata
        Stored in ``ProgressEvent.metadata``

    """
    if callback is None:
        return
    event = ProgressEvent(event_type=event_type, message=message, current=current, total=total, metadata=metadata)
    try:
        callback(event)
    except Exception as exc:
        logger.warning("Progress callback failed for %s: %s", event, exc)
