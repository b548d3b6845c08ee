"""Domain events emitted when the bookmark store changes.

The ingest coordinator reacts to these; publishers are store adapters or
whatever bridges the real browser store's change notifications.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    occurred_at: datetime
    aggregate_id: str | None = None

    def __post_init__(self) -> None:
        """Validate event data after initialization."""
        if not isinstance(self.occurred_at, datetime):
            raise TypeError("occurred_at must be a datetime")


@dataclass(frozen=True)
class BookmarkCreated(DomainEvent):
    """A node was created; ``url`` is ``None`` for folders."""

    bookmark_id: str = ""
    parent_id: str | None = None
    title: str = ""
    url: str | None = None

    def __post_init__(self) -> None:
        super().__post_init__()
        if not self.bookmark_id:
            raise ValueError("bookmark_id is required")


@dataclass(frozen=True)
class BookmarkMoved(DomainEvent):
    bookmark_id: str = ""
    parent_id: str | None = None
    old_parent_id: str | None = None

    def __post_init__(self) -> None:
        super().__post_init__()
        if not self.bookmark_id:
            raise ValueError("bookmark_id is required")


@dataclass(frozen=True)
class BookmarkRemoved(DomainEvent):
    bookmark_id: str = ""
    parent_id: str | None = None

    def __post_init__(self) -> None:
        super().__post_init__()
        if not self.bookmark_id:
            raise ValueError("bookmark_id is required")
