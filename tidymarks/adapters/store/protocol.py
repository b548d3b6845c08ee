"""Protocol (port) for the hierarchical bookmark store.

The engine never owns the store; it consumes this asynchronous capability.
Every call may fail independently with ``StoreOperationError``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from tidymarks.domain.models.entry import BookmarkNode


@runtime_checkable
class BookmarkStoreProtocol(Protocol):
    async def get_tree(self) -> list[BookmarkNode]:
        """Whole tree, starting at the invisible absolute root."""
        ...

    async def get_subtree(self, node_id: str) -> list[BookmarkNode]: ...

    async def get_children(self, node_id: str) -> list[BookmarkNode]:
        """Immediate children of a folder, without their own children."""
        ...

    async def create(
        self, *, parent_id: str, title: str, url: str | None = None
    ) -> BookmarkNode: ...

    async def move(self, node_id: str, *, parent_id: str) -> None: ...

    async def rename(self, node_id: str, *, title: str) -> None: ...

    async def remove(self, node_id: str) -> None: ...
