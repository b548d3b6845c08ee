"""Bookmark tree nodes and flattened entries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from collections.abc import Iterator


class BookmarkNode(BaseModel):
    """One node of a store tree snapshot.

    ``url is None`` marks a folder. ``children`` is only populated on
    snapshots returned by ``get_tree``/``get_subtree``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    title: str = ""
    url: str | None = None
    parent_id: str | None = Field(default=None, alias="parentId")
    children: list[BookmarkNode] | None = None

    @field_validator("id", "parent_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: object) -> object:
        if isinstance(value, int):
            return str(value)
        return value

    @property
    def is_folder(self) -> bool:
        return self.url is None

    def iter_subtree(self) -> Iterator[BookmarkNode]:
        """Yield this node and all descendants, depth first, pre-order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            if node.children:
                stack.extend(reversed(node.children))


@dataclass(frozen=True, slots=True)
class Entry:
    """A flattened node with its human-readable location."""

    id: str
    title: str
    url: str | None
    parent_id: str | None
    path: str

    @property
    def is_folder(self) -> bool:
        return self.url is None

    def for_classifier(self) -> dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "path": self.path,
            "is_folder": self.is_folder,
        }
