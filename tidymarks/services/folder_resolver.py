"""Resolve ``/``-separated folder paths to store folder ids, creating as needed."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tidymarks.domain.services.path_index import PATH_SEPARATOR

if TYPE_CHECKING:
    from tidymarks.adapters.store.protocol import BookmarkStoreProtocol
    from tidymarks.domain.models.entry import BookmarkNode

logger = logging.getLogger(__name__)


def split_path(path: str) -> list[str]:
    return [segment.strip() for segment in path.split(PATH_SEPARATOR) if segment.strip()]


def _match_child(children: list[BookmarkNode], title: str) -> BookmarkNode | None:
    folders = [child for child in children if child.is_folder]
    for child in folders:
        if child.title == title:
            return child
    lowered = title.casefold()
    for child in folders:
        if child.title.casefold() == lowered:
            return child
    return None


class FolderResolver:
    """Idempotent ``ensure_folder`` over a bookmark store.

    Paths are walked from ``root_folder_id``. A path whose first segment names
    one of the root containers ("Bookmarks bar", "Other bookmarks", ...) is
    walked from that container instead, so full paths taken from a
    :class:`~tidymarks.domain.services.path_index.PathIndex` resolve to the
    folders they came from.
    """

    def __init__(self, store: BookmarkStoreProtocol, *, root_folder_id: str = "1") -> None:
        self._store = store
        self._root_folder_id = root_folder_id
        self._containers: dict[str, str] | None = None
        self.created = 0

    @property
    def root_folder_id(self) -> str:
        return self._root_folder_id

    async def _root_containers(self) -> dict[str, str]:
        if self._containers is None:
            tree = await self._store.get_tree()
            containers: dict[str, str] = {}
            for root in tree:
                for child in root.children or []:
                    if child.is_folder and child.title:
                        containers.setdefault(child.title.casefold(), child.id)
            self._containers = containers
        return self._containers

    async def ensure_folder(self, path: str) -> str:
        """Return the id of the folder at ``path``, creating missing segments.

        An existing folder whose title matches a segment exactly is reused; a
        case-insensitive match is the fallback. Calling twice with the same
        path creates nothing the second time.
        """
        segments = split_path(path)
        parent_id = self._root_folder_id

        if segments:
            containers = await self._root_containers()
            container_id = containers.get(segments[0].casefold())
            if container_id is not None:
                parent_id = container_id
                segments = segments[1:]

        for segment in segments:
            children = await self._store.get_children(parent_id)
            existing = _match_child(children, segment)
            if existing is not None:
                parent_id = existing.id
                continue
            created = await self._store.create(parent_id=parent_id, title=segment)
            self.created += 1
            logger.debug(
                "folder_created",
                extra={"parent_id": parent_id, "folder_id": created.id, "title": segment},
            )
            parent_id = created.id
        return parent_id
