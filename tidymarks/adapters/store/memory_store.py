"""In-memory bookmark store with browser-like semantics.

Used by the CLI (loaded from a Chrome ``Bookmarks`` file) and by tests. Like
the browser API it refuses to remove a non-empty folder and protects the root
containers (the absolute root and its direct children).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from tidymarks.domain.events.bookmark_events import (
    BookmarkCreated,
    BookmarkMoved,
    BookmarkRemoved,
)
from tidymarks.domain.exceptions.domain_exceptions import StoreOperationError
from tidymarks.domain.models.entry import BookmarkNode

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tidymarks.domain.events.bookmark_events import DomainEvent
    from tidymarks.infrastructure.messaging.event_bus import EventBus

logger = logging.getLogger(__name__)

ABSOLUTE_ROOT_ID = "0"
DEFAULT_ROOT_CONTAINERS: tuple[tuple[str, str], ...] = (
    ("1", "Bookmarks bar"),
    ("2", "Other bookmarks"),
    ("3", "Mobile bookmarks"),
)


@dataclass(slots=True)
class _StoredNode:
    id: str
    title: str
    url: str | None
    parent_id: str | None
    children: list[str] = field(default_factory=list)
    date_added: datetime | None = None

    @property
    def is_folder(self) -> bool:
        return self.url is None


class InMemoryBookmarkStore:
    """Dict-backed implementation of ``BookmarkStoreProtocol``."""

    def __init__(self, *, event_bus: EventBus | None = None) -> None:
        self._nodes: dict[str, _StoredNode] = {}
        self._root_id: str | None = None
        self._next_id = 1
        self._event_bus = event_bus

    @classmethod
    def with_default_roots(cls, *, event_bus: EventBus | None = None) -> InMemoryBookmarkStore:
        root = BookmarkNode(
            id=ABSOLUTE_ROOT_ID,
            title="",
            children=[
                BookmarkNode(id=node_id, title=title, parent_id=ABSOLUTE_ROOT_ID, children=[])
                for node_id, title in DEFAULT_ROOT_CONTAINERS
            ],
        )
        return cls.from_tree([root], event_bus=event_bus)

    @classmethod
    def from_tree(
        cls, roots: Sequence[BookmarkNode], *, event_bus: EventBus | None = None
    ) -> InMemoryBookmarkStore:
        """Load a snapshot whose single top node is the absolute root."""
        if len(roots) != 1:
            msg = "Tree snapshot must have exactly one absolute root"
            raise ValueError(msg)
        store = cls(event_bus=event_bus)
        store._root_id = roots[0].id
        store._load(roots[0], parent_id=None)
        return store

    def _load(self, node: BookmarkNode, *, parent_id: str | None) -> None:
        if node.id in self._nodes:
            msg = f"Duplicate node id in snapshot: {node.id}"
            raise ValueError(msg)
        stored = _StoredNode(id=node.id, title=node.title, url=node.url, parent_id=parent_id)
        self._nodes[node.id] = stored
        if parent_id is not None:
            self._nodes[parent_id].children.append(node.id)
        if node.id.isdigit():
            self._next_id = max(self._next_id, int(node.id) + 1)
        for child in node.children or []:
            self._load(child, parent_id=node.id)

    @property
    def root_id(self) -> str:
        if self._root_id is None:
            msg = "Store has no root"
            raise RuntimeError(msg)
        return self._root_id

    def protected_ids(self) -> set[str]:
        root = self._nodes[self.root_id]
        return {root.id, *root.children}

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    # ------------------------------------------------------------------ reads

    async def get_tree(self) -> list[BookmarkNode]:
        return [self._snapshot(self.root_id)]

    async def get_subtree(self, node_id: str) -> list[BookmarkNode]:
        self._require(node_id, operation="get_subtree")
        return [self._snapshot(node_id)]

    async def get_children(self, node_id: str) -> list[BookmarkNode]:
        node = self._require_folder(node_id, operation="get_children")
        return [self._to_node(self._nodes[child_id]) for child_id in node.children]

    # ----------------------------------------------------------------- writes

    async def create(self, *, parent_id: str, title: str, url: str | None = None) -> BookmarkNode:
        parent = self._require_folder(parent_id, operation="create")
        node_id = str(self._next_id)
        self._next_id += 1
        stored = _StoredNode(
            id=node_id,
            title=title,
            url=url,
            parent_id=parent.id,
            date_added=datetime.now(UTC),
        )
        self._nodes[node_id] = stored
        parent.children.append(node_id)
        logger.debug(
            "store_node_created",
            extra={"bookmark_id": node_id, "parent_id": parent.id, "is_folder": url is None},
        )
        await self._publish(
            BookmarkCreated(
                occurred_at=datetime.now(UTC),
                aggregate_id=node_id,
                bookmark_id=node_id,
                parent_id=parent.id,
                title=title,
                url=url,
            )
        )
        return self._to_node(stored)

    async def move(self, node_id: str, *, parent_id: str) -> None:
        node = self._require(node_id, operation="move")
        if node_id in self.protected_ids():
            raise StoreOperationError(
                "Cannot move a root container", operation="move", bookmark_id=node_id
            )
        parent = self._require_folder(parent_id, operation="move")
        if self._is_descendant(parent.id, of=node_id):
            raise StoreOperationError(
                "Cannot move a folder into itself", operation="move", bookmark_id=node_id
            )

        old_parent_id = node.parent_id
        if old_parent_id == parent.id:
            return
        if old_parent_id is not None:
            self._nodes[old_parent_id].children.remove(node_id)
        parent.children.append(node_id)
        node.parent_id = parent.id
        await self._publish(
            BookmarkMoved(
                occurred_at=datetime.now(UTC),
                aggregate_id=node_id,
                bookmark_id=node_id,
                parent_id=parent.id,
                old_parent_id=old_parent_id,
            )
        )

    async def rename(self, node_id: str, *, title: str) -> None:
        node = self._require(node_id, operation="rename")
        if node_id == self.root_id:
            raise StoreOperationError(
                "Cannot rename the root", operation="rename", bookmark_id=node_id
            )
        node.title = title

    async def remove(self, node_id: str) -> None:
        node = self._require(node_id, operation="remove")
        if node_id in self.protected_ids():
            raise StoreOperationError(
                "Cannot remove a root container", operation="remove", bookmark_id=node_id
            )
        if node.children:
            raise StoreOperationError(
                "Cannot remove a non-empty folder", operation="remove", bookmark_id=node_id
            )
        parent_id = node.parent_id
        if parent_id is not None:
            self._nodes[parent_id].children.remove(node_id)
        del self._nodes[node_id]
        await self._publish(
            BookmarkRemoved(
                occurred_at=datetime.now(UTC),
                aggregate_id=node_id,
                bookmark_id=node_id,
                parent_id=parent_id,
            )
        )

    # ---------------------------------------------------------------- helpers

    def _require(self, node_id: str, *, operation: str) -> _StoredNode:
        node = self._nodes.get(node_id)
        if node is None:
            raise StoreOperationError(
                f"Bookmark {node_id} not found", operation=operation, bookmark_id=node_id
            )
        return node

    def _require_folder(self, node_id: str, *, operation: str) -> _StoredNode:
        node = self._require(node_id, operation=operation)
        if not node.is_folder:
            raise StoreOperationError(
                f"Bookmark {node_id} is not a folder", operation=operation, bookmark_id=node_id
            )
        return node

    def _is_descendant(self, node_id: str, *, of: str) -> bool:
        current: str | None = node_id
        while current is not None:
            if current == of:
                return True
            current = self._nodes[current].parent_id
        return False

    def _to_node(self, stored: _StoredNode) -> BookmarkNode:
        return BookmarkNode(
            id=stored.id,
            title=stored.title,
            url=stored.url,
            parent_id=stored.parent_id,
        )

    def _snapshot(self, node_id: str) -> BookmarkNode:
        stored = self._nodes[node_id]
        node = self._to_node(stored)
        if stored.is_folder:
            node.children = [self._snapshot(child_id) for child_id in stored.children]
        return node

    async def _publish(self, event: DomainEvent) -> None:
        if self._event_bus is not None:
            await self._event_bus.publish(event)
