"""Apply a reviewed plan to the bookmark store.

Phases run in a fixed order: create folders, rename folders, move bookmarks,
archive, remove dead links, remove duplicates. Items are applied one at a
time; a failing item is logged and counted and the run goes on. Afterwards
every folder left without a bookmark anywhere below it is removed.
Nothing is rolled back.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from tidymarks.core.async_utils import raise_if_cancelled
from tidymarks.domain.exceptions.domain_exceptions import (
    DomainException,
    OperationCancelledError,
)
from tidymarks.domain.models.plan import (
    ArchiveBookmark,
    CreateFolder,
    MoveBookmark,
    Plan,
    RemoveDeadLink,
    RemoveDuplicate,
    RenameFolder,
)
from tidymarks.services.folder_resolver import FolderResolver
from tidymarks.services.reporting import LogLevel

if TYPE_CHECKING:
    from collections.abc import Callable

    from tidymarks.adapters.store.protocol import BookmarkStoreProtocol
    from tidymarks.core.async_utils import CancellationToken
    from tidymarks.domain.models.entry import BookmarkNode
    from tidymarks.domain.models.plan import PlanOperation

logger = logging.getLogger(__name__)

DEFAULT_ARCHIVE_TITLE = "Archive"
PHASES: tuple[str, ...] = Plan.LIST_FIELDS


class PhaseResult(BaseModel):
    succeeded: int = 0
    failed: int = 0


class ExecutionReport(BaseModel):
    """Outcome of one :meth:`PlanExecutor.execute` run."""

    phases: dict[str, PhaseResult] = Field(
        default_factory=lambda: {name: PhaseResult() for name in PHASES}
    )
    errors: list[str] = Field(default_factory=list)
    folders_removed: int = 0
    folders_created: int = 0

    @property
    def succeeded(self) -> int:
        return sum(result.succeeded for result in self.phases.values())

    @property
    def failed(self) -> int:
        return sum(result.failed for result in self.phases.values())


class PlanExecutor:
    def __init__(
        self,
        store: BookmarkStoreProtocol,
        *,
        root_folder_id: str = "1",
        archive_title: str = DEFAULT_ARCHIVE_TITLE,
        on_progress: Callable[[int, str], None] | None = None,
        on_log: Callable[[str, LogLevel], None] | None = None,
    ) -> None:
        self._store = store
        self._folders = FolderResolver(store, root_folder_id=root_folder_id)
        self._archive_title = archive_title
        self._on_progress = on_progress
        self._on_log = on_log

    async def ensure_folder(self, path: str) -> str:
        return await self._folders.ensure_folder(path)

    async def execute(
        self, plan: Plan, *, token: CancellationToken | None = None
    ) -> ExecutionReport:
        """Apply every non-ignored item of ``plan``, then sweep empty folders.

        Raises:
            OperationCancelledError: When ``token`` is cancelled. The partial
                report is attached as ``details["report"]``.
        """
        active = plan.active()
        report = ExecutionReport()
        total = active.total_items()
        completed = 0
        archive_folder_id: str | None = None
        archive_error: str | None = None

        logger.info("plan_execution_started", extra={"items": total, **active.counts()})

        try:
            for phase in PHASES:
                items = active.items(phase)
                if not items:
                    continue
                self._log(f"[{phase}] {len(items)} item(s)")

                if phase == "archive":
                    try:
                        archive_folder_id = await self._folders.ensure_folder(self._archive_title)
                    except Exception as exc:
                        raise_if_cancelled(exc)
                        archive_error = f"Archive folder unavailable: {exc}"
                        logger.warning("archive_folder_failed", extra={"error": str(exc)})

                for item in items:
                    self._check_cancelled(token, report)
                    try:
                        if isinstance(item, ArchiveBookmark) and archive_error is not None:
                            raise RuntimeError(archive_error)
                        message = await self._apply(item, archive_folder_id)
                    except Exception as exc:
                        raise_if_cancelled(exc)
                        report.phases[phase].failed += 1
                        error = self._describe_failure(item, exc)
                        report.errors.append(error)
                        logger.warning(
                            "plan_item_failed",
                            extra={
                                "phase": phase,
                                "kind": item.kind,
                                "target": self._target_of(item),
                                "error": str(exc),
                            },
                        )
                        self._log(error, LogLevel.ERROR)
                        message = error
                    else:
                        report.phases[phase].succeeded += 1
                        self._log(f"  {message}")

                    completed += 1
                    self._progress(math.floor(completed / total * 100), message)

            self._check_cancelled(token, report)
            report.folders_removed = await self.remove_empty_folders(token=token)
            self._check_cancelled(token, report)
        finally:
            report.folders_created = self._folders.created

        logger.info(
            "plan_execution_finished",
            extra={
                "succeeded": report.succeeded,
                "failed": report.failed,
                "folders_removed": report.folders_removed,
                "folders_created": report.folders_created,
            },
        )
        return report

    async def _apply(self, item: PlanOperation, archive_folder_id: str | None) -> str:
        if isinstance(item, CreateFolder):
            folder_id = await self._folders.ensure_folder(item.path)
            return f"+ folder {item.path} ({folder_id})"
        if isinstance(item, RenameFolder):
            await self._store.rename(item.bookmark_id, title=item.new_title)
            return f"> rename {item.bookmark_id} -> {item.new_title}"
        if isinstance(item, MoveBookmark):
            target_id = await self._folders.ensure_folder(item.target_folder_path)
            await self._store.move(item.bookmark_id, parent_id=target_id)
            return f"> move {item.bookmark_id} -> {item.target_folder_path}"
        if isinstance(item, ArchiveBookmark):
            if archive_folder_id is None:
                msg = "Archive folder was not resolved"
                raise RuntimeError(msg)
            await self._store.move(item.bookmark_id, parent_id=archive_folder_id)
            return f"x archive {item.title or item.bookmark_id}"
        if isinstance(item, RemoveDeadLink):
            await self._store.remove(item.bookmark_id)
            return f"x dead link {item.url or item.bookmark_id} ({item.reason.value})"
        if isinstance(item, RemoveDuplicate):
            await self._store.remove(item.bookmark_id)
            return f"x duplicate {item.title or item.bookmark_id} (kept {item.keep_title or item.keep_id})"
        msg = f"Unsupported plan item: {type(item).__name__}"
        raise TypeError(msg)

    async def remove_empty_folders(self, *, token: CancellationToken | None = None) -> int:
        """Remove, bottom-up, every folder whose subtree holds no bookmark.

        The absolute root and its direct children are never removed. A folder
        whose removal fails counts as content, so its ancestors are kept.
        """
        tree = await self._store.get_tree()
        removed = 0

        async def _visit(node: BookmarkNode, depth: int) -> bool:
            """Return True if ``node`` was removed."""
            nonlocal removed
            if token is not None and token.cancelled:
                return False
            if not node.is_folder:
                return False

            remaining = 0
            for child in node.children or []:
                if not await _visit(child, depth + 1):
                    remaining += 1

            # depth 0 is the absolute root, depth 1 the root containers
            if depth <= 1 or remaining > 0:
                return False
            if token is not None and token.cancelled:
                return False
            try:
                await self._store.remove(node.id)
            except Exception as exc:
                raise_if_cancelled(exc)
                logger.warning(
                    "empty_folder_remove_failed",
                    extra={"folder_id": node.id, "title": node.title, "error": str(exc)},
                )
                return False
            removed += 1
            logger.debug("empty_folder_removed", extra={"folder_id": node.id, "title": node.title})
            return True

        for root in tree:
            await _visit(root, 0)

        if removed:
            self._log(f"[cleanup] removed {removed} empty folder(s)")
        logger.info("empty_folder_sweep_finished", extra={"removed": removed})
        return removed

    # ------------------------------------------------------------------

    def _check_cancelled(self, token: CancellationToken | None, report: ExecutionReport) -> None:
        if token is None or not token.cancelled:
            return
        report.folders_created = self._folders.created
        logger.info(
            "plan_execution_cancelled",
            extra={"succeeded": report.succeeded, "failed": report.failed},
        )
        raise OperationCancelledError(
            token.reason or "Operation cancelled",
            details={"report": report.model_dump()},
        )

    @staticmethod
    def _target_of(item: PlanOperation) -> str:
        if isinstance(item, CreateFolder):
            return item.path
        return item.bookmark_id

    @classmethod
    def _describe_failure(cls, item: PlanOperation, exc: Exception) -> str:
        reason = exc.message if isinstance(exc, DomainException) else str(exc)
        return f"{item.kind} {cls._target_of(item)} failed: {reason}"

    def _progress(self, percentage: int, message: str) -> None:
        if self._on_progress is not None:
            self._on_progress(percentage, message)

    def _log(self, message: str, level: LogLevel = LogLevel.INFO) -> None:
        if self._on_log is not None:
            self._on_log(message, level)
