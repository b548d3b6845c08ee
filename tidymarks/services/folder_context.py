"""Cached summary of existing folder paths, handed to the classifier."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tidymarks.core.ttl_cache import FOLDER_CONTEXT_TTL_SECONDS, TTLValue
from tidymarks.domain.services.path_index import DEFAULT_FOLDER_SUMMARY_LIMIT, PathIndex

if TYPE_CHECKING:
    from tidymarks.adapters.store.protocol import BookmarkStoreProtocol

logger = logging.getLogger(__name__)


class FolderContext:
    """Folder-path summary with a time-based expiry.

    Store writes do not invalidate it; call :meth:`invalidate` when fresh
    state is required right after a mutation.
    """

    def __init__(
        self,
        store: BookmarkStoreProtocol,
        *,
        ttl_seconds: float = FOLDER_CONTEXT_TTL_SECONDS,
        limit: int = DEFAULT_FOLDER_SUMMARY_LIMIT,
        cache: TTLValue[str] | None = None,
    ) -> None:
        self._store = store
        self._limit = limit
        self._cache: TTLValue[str] = cache if cache is not None else TTLValue(ttl_seconds)

    async def summary(self) -> str:
        return await self._cache.get_or_load(self._load)

    def invalidate(self) -> None:
        self._cache.invalidate()

    async def _load(self) -> str:
        index = PathIndex.from_tree(await self._store.get_tree())
        summary = index.folder_summary(self._limit)
        logger.debug(
            "folder_context_loaded",
            extra={"folders": len(index.folders()), "chars": len(summary)},
        )
        return summary
