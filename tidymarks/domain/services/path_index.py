"""Flatten a bookmark tree snapshot into an id-keyed lookup of entries."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tidymarks.domain.models.entry import Entry

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Sequence

    from tidymarks.domain.models.entry import BookmarkNode

PATH_SEPARATOR = "/"
DEFAULT_FOLDER_SUMMARY_LIMIT = 100


def join_path(parent_path: str, title: str) -> str:
    if not title:
        return parent_path
    return f"{parent_path}{PATH_SEPARATOR}{title}" if parent_path else title


class PathIndex:
    """Entries of a tree snapshot, in depth-first pre-order.

    ``path`` is the chain of ancestor titles down to and including the node,
    starting below the invisible absolute root (the node without a parent).
    Paths are not unique when sibling titles repeat; lookups go by id.
    """

    def __init__(self, entries: Iterable[Entry]) -> None:
        self._entries: dict[str, Entry] = {}
        for entry in entries:
            self._entries.setdefault(entry.id, entry)

    @classmethod
    def from_tree(cls, nodes: Sequence[BookmarkNode]) -> PathIndex:
        return cls(_flatten(nodes, ""))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._entries

    def __iter__(self) -> Iterator[Entry]:
        return iter(self._entries.values())

    def get(self, entry_id: str) -> Entry | None:
        return self._entries.get(entry_id)

    def as_mapping(self) -> dict[str, Entry]:
        return dict(self._entries)

    def bookmarks(self) -> list[Entry]:
        return [entry for entry in self._entries.values() if not entry.is_folder]

    def folders(self) -> list[Entry]:
        return [entry for entry in self._entries.values() if entry.is_folder]

    def folder_paths(self) -> list[str]:
        seen: dict[str, None] = {}
        for entry in self.folders():
            if entry.path:
                seen.setdefault(entry.path, None)
        return list(seen)

    def folder_summary(self, limit: int = DEFAULT_FOLDER_SUMMARY_LIMIT) -> str:
        """Comma separated list of existing folder paths handed to the classifier."""
        return ", ".join(self.folder_paths()[:limit])


def _flatten(nodes: Sequence[BookmarkNode], parent_path: str) -> Iterator[Entry]:
    for node in nodes:
        if node.parent_id is None:
            # Absolute root: invisible, contributes neither an entry nor a path segment.
            if node.children:
                yield from _flatten(node.children, parent_path)
            continue

        path = join_path(parent_path, node.title)
        yield Entry(
            id=node.id,
            title=node.title,
            url=node.url,
            parent_id=node.parent_id,
            path=path,
        )
        if node.children:
            yield from _flatten(node.children, path)
