"""Read and write a Chrome profile ``Bookmarks`` JSON file.

The file's root containers (``bookmark_bar``, ``other``, ``synced``) become the
children of an absolute root ``0`` so the tree looks like the one the
browser's bookmark API returns. Node ids are preserved. When saving, the
original per-node attributes (``guid``, ``date_added``, ``meta_info``...) are
carried over by id; nodes created since loading get a fresh guid and
timestamp.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from tidymarks.adapters.store.memory_store import ABSOLUTE_ROOT_ID, InMemoryBookmarkStore
from tidymarks.domain.models.entry import BookmarkNode

if TYPE_CHECKING:
    from tidymarks.infrastructure.messaging.event_bus import EventBus

logger = logging.getLogger(__name__)

ROOT_KEYS: tuple[str, ...] = ("bookmark_bar", "other", "synced")
# Microseconds between 1601-01-01 (Chrome epoch) and 1970-01-01.
_CHROME_EPOCH_OFFSET_US = 11644473600 * 1_000_000


def chrome_timestamp(moment: datetime | None = None) -> str:
    moment = moment or datetime.now(UTC)
    return str(int(moment.timestamp() * 1_000_000) + _CHROME_EPOCH_OFFSET_US)


def _to_node(raw: dict[str, Any], parent_id: str) -> BookmarkNode:
    node_id = str(raw.get("id", ""))
    if not node_id:
        msg = "Bookmark node without id"
        raise ValueError(msg)
    if raw.get("type") == "url":
        return BookmarkNode(
            id=node_id, title=raw.get("name", ""), url=raw.get("url", ""), parent_id=parent_id
        )
    return BookmarkNode(
        id=node_id,
        title=raw.get("name", ""),
        parent_id=parent_id,
        children=[_to_node(child, node_id) for child in raw.get("children", [])],
    )


def _index_raw(raw: dict[str, Any], into: dict[str, dict[str, Any]]) -> None:
    into[str(raw.get("id", ""))] = raw
    for child in raw.get("children", []):
        _index_raw(child, into)


class ChromeBookmarksFile:
    """A loaded ``Bookmarks`` document and the store built from it."""

    def __init__(self, document: dict[str, Any], *, event_bus: EventBus | None = None) -> None:
        roots = document.get("roots")
        if not isinstance(roots, dict) or "bookmark_bar" not in roots:
            msg = "Not a Chrome bookmarks document: missing roots.bookmark_bar"
            raise ValueError(msg)

        self._document = document
        self._originals: dict[str, dict[str, Any]] = {}
        self._root_keys: dict[str, str] = {}
        containers = []
        for key in ROOT_KEYS:
            raw = roots.get(key)
            if not isinstance(raw, dict):
                continue
            _index_raw(raw, self._originals)
            node = _to_node(raw, ABSOLUTE_ROOT_ID)
            self._root_keys[node.id] = key
            containers.append(node)

        root = BookmarkNode(id=ABSOLUTE_ROOT_ID, title="", children=containers)
        self.store = InMemoryBookmarkStore.from_tree([root], event_bus=event_bus)

    @classmethod
    def load(cls, path: str | Path, *, event_bus: EventBus | None = None) -> ChromeBookmarksFile:
        source = Path(path)
        with source.open(encoding="utf-8") as fh:
            document = json.load(fh)
        loaded = cls(document, event_bus=event_bus)
        logger.info(
            "chrome_bookmarks_loaded",
            extra={"path": str(source), "nodes": len(loaded.store)},
        )
        return loaded

    async def to_document(self) -> dict[str, Any]:
        tree = await self.store.get_tree()
        roots: dict[str, Any] = {}
        for container in tree[0].children or []:
            key = self._root_keys.get(container.id)
            if key is None:
                continue
            roots[key] = self._to_raw(container)

        document = {k: v for k, v in self._document.items() if k not in ("roots", "checksum")}
        document["roots"] = roots
        document.setdefault("version", 1)
        return document

    async def save(self, path: str | Path) -> None:
        document = await self.to_document()
        target = Path(path)
        tmp = target.with_name(f"{target.name}.tmp")
        with tmp.open("w", encoding="utf-8") as fh:
            json.dump(document, fh, ensure_ascii=False, indent=3)
        tmp.replace(target)
        logger.info("chrome_bookmarks_saved", extra={"path": str(target)})

    def _to_raw(self, node: BookmarkNode) -> dict[str, Any]:
        original = self._originals.get(node.id, {})
        raw = {k: v for k, v in original.items() if k != "children"}
        if not original:
            raw["guid"] = str(uuid.uuid4())
            raw["date_added"] = chrome_timestamp()
        raw["id"] = node.id
        raw["name"] = node.title
        if node.is_folder:
            raw["type"] = "folder"
            raw.setdefault("date_modified", chrome_timestamp())
            raw["children"] = [self._to_raw(child) for child in node.children or []]
        else:
            raw["type"] = "url"
            raw["url"] = node.url
        return raw
