"""Coordinating service for whole-collection analysis and plan execution."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tidymarks.adapters.llm.classifier import LLMClassifier
from tidymarks.adapters.probe.http_prober import HttpLinkProber
from tidymarks.core.async_utils import CancellationToken
from tidymarks.core.logging_utils import generate_correlation_id
from tidymarks.domain.exceptions.domain_exceptions import (
    ConfigurationError,
    OperationCancelledError,
)
from tidymarks.domain.models.plan import Plan, hydrate_plan
from tidymarks.domain.services.path_index import PathIndex
from tidymarks.services.classification_batcher import ClassificationBatcher
from tidymarks.services.dead_link_checker import DeadLinkChecker
from tidymarks.services.duplicate_detector import DuplicateDetector, DuplicateReport
from tidymarks.services.folder_context import FolderContext
from tidymarks.services.plan_executor import ExecutionReport, PlanExecutor
from tidymarks.services.reporting import OperationReporter, OperationStatus

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tidymarks.adapters.llm.protocol import ClassifierProtocol
    from tidymarks.adapters.probe.http_prober import LinkProber
    from tidymarks.adapters.store.protocol import BookmarkStoreProtocol
    from tidymarks.config.settings import AppConfig
    from tidymarks.domain.models.entry import Entry
    from tidymarks.services.duplicate_detector import DuplicateGroup

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisOptions:
    check_dead_links: bool = False
    check_duplicates: bool = False
    skip_classification: bool = False


@dataclass(frozen=True)
class FolderChoice:
    """A folder offered for selective analysis."""

    id: str
    title: str
    path: str
    parent_id: str | None = None
    is_root_container: bool = False


@dataclass
class AnalysisResult:
    plan: Plan
    duplicates: DuplicateReport
    entries: int
    correlation_id: str

    def swap_survivor(self, bookmark_id: str) -> DuplicateGroup:
        """Keep ``bookmark_id`` and regenerate the plan's duplicate deletions.

        Items already marked ignored stay ignored.
        """
        ignored = {item.bookmark_id for item in self.plan.duplicates if item.ignored}
        group = self.duplicates.swap_survivor(bookmark_id)
        items = self.duplicates.items
        for item in items:
            item.ignored = item.bookmark_id in ignored
        self.plan.duplicates = items
        return group


class BookmarkOrganizer:
    """Runs analyzers over the store and executes reviewed plans.

    Collaborators default to the shipped adapters built from ``config``;
    tests inject fakes.
    """

    def __init__(
        self,
        store: BookmarkStoreProtocol,
        config: AppConfig,
        *,
        reporter: OperationReporter | None = None,
        classifier: ClassifierProtocol | None = None,
        prober: LinkProber | None = None,
        folder_context: FolderContext | None = None,
    ) -> None:
        self._store = store
        self._config = config
        self.reporter = reporter or OperationReporter()
        self._classifier = classifier
        self._prober = prober
        self.folder_context = folder_context or FolderContext(
            store,
            ttl_seconds=config.execution.folder_cache_ttl_sec,
            limit=config.execution.folder_summary_limit,
        )
        self._token: CancellationToken | None = None

    # ------------------------------------------------------------------

    def cancel(self, reason: str = "cancelled by user") -> None:
        if self._token is not None:
            self._token.cancel(reason)
        self.reporter.warning("Operation cancelled")
        self.reporter.set_status(OperationStatus.CANCELLED)

    async def top_level_folders(self) -> list[FolderChoice]:
        """Root containers plus their direct sub-folders."""
        tree = await self._store.get_tree()
        if not tree:
            return []
        choices: list[FolderChoice] = []
        for container in tree[0].children or []:
            if container.children is None:
                continue
            choices.append(
                FolderChoice(
                    id=container.id,
                    title=container.title,
                    path=container.title,
                    is_root_container=True,
                )
            )
            for child in container.children:
                if child.is_folder:
                    choices.append(
                        FolderChoice(
                            id=child.id,
                            title=child.title,
                            path=f"{container.title}/{child.title}",
                            parent_id=container.id,
                        )
                    )
        return choices

    async def analyze(
        self,
        folder_ids: Sequence[str] | None = None,
        options: AnalysisOptions | None = None,
        *,
        token: CancellationToken | None = None,
    ) -> AnalysisResult:
        """Build the master plan for the whole tree or selected folders.

        Raises:
            ConfigurationError: Classification requested without an API key.
            OperationCancelledError: ``token`` was cancelled.
        """
        options = options or AnalysisOptions()
        token = token or CancellationToken()
        self._token = token
        cid = generate_correlation_id()
        self.reporter.correlation_id = cid
        reporter = self.reporter

        if not options.skip_classification and self._classifier is None:
            if not self._config.classifier.has_credentials:
                msg = "API key is not configured"
                raise ConfigurationError(msg)

        try:
            reporter.set_status(OperationStatus.SCANNING)
            reporter.progress(5, "Reading bookmarks")

            index = PathIndex.from_tree(await self._store.get_tree())
            entries = await self._select_entries(index, folder_ids, token)
            reporter.info(f"Scan complete: {len(entries)} bookmark(s)")
            reporter.progress(10, "Scan complete")
            token.raise_if_cancelled()

            plan = Plan()
            duplicates = DuplicateReport()

            if options.check_dead_links:
                reporter.set_status(OperationStatus.CHECKING)
                reporter.info("Checking links")
                plan.dead_links = await self._check_dead_links(entries, token)
                reporter.info(f"Found {len(plan.dead_links)} dead link(s)")
                token.raise_if_cancelled()

            if options.check_duplicates:
                reporter.set_status(OperationStatus.CHECKING)
                reporter.info("Checking duplicates")
                duplicates = DuplicateDetector().detect(entries)
                plan.duplicates = duplicates.items
                reporter.info(f"Found {len(plan.duplicates)} duplicate(s)")
                token.raise_if_cancelled()

            if not options.skip_classification:
                reporter.set_status(OperationStatus.ANALYZING)
                classified = await self._classify(entries, index, token)
                plan.extend(classified)
            else:
                reporter.info("Classification skipped")

            hydrate_plan(plan, index.as_mapping())
            reporter.progress(100, "Analysis complete, review the plan")
            reporter.set_status(OperationStatus.REVIEW)
        except OperationCancelledError:
            reporter.set_status(OperationStatus.CANCELLED)
            raise
        finally:
            self._token = None

        logger.info(
            "analysis_finished",
            extra={"cid": cid, "entries": len(entries), **plan.counts()},
        )
        return AnalysisResult(
            plan=plan, duplicates=duplicates, entries=len(entries), correlation_id=cid
        )

    async def execute(
        self, plan: Plan, *, token: CancellationToken | None = None
    ) -> ExecutionReport:
        """Apply the non-ignored items of a reviewed plan.

        Raises:
            OperationCancelledError: ``token`` was cancelled.
        """
        token = token or CancellationToken()
        self._token = token
        cid = generate_correlation_id()
        reporter = self.reporter
        reporter.correlation_id = cid

        reporter.set_status(OperationStatus.ORGANIZING)
        reporter.progress(0, "Starting")
        executor = PlanExecutor(
            self._store,
            root_folder_id=self._config.execution.root_folder_id,
            archive_title=self._config.execution.archive_folder_title,
            on_progress=reporter.progress,
            on_log=reporter.log,
        )
        try:
            report = await executor.execute(plan, token=token)
        except OperationCancelledError:
            reporter.set_status(OperationStatus.CANCELLED)
            raise
        finally:
            self._token = None
            self.folder_context.invalidate()

        reporter.progress(100, "Done")
        reporter.set_status(OperationStatus.IDLE)
        logger.info(
            "execution_finished",
            extra={"cid": cid, "succeeded": report.succeeded, "failed": report.failed},
        )
        return report

    # ------------------------------------------------------------------

    async def _select_entries(
        self,
        index: PathIndex,
        folder_ids: Sequence[str] | None,
        token: CancellationToken,
    ) -> list[Entry]:
        if not folder_ids:
            return index.bookmarks()

        self.reporter.info(f"Only processing {len(folder_ids)} selected folder(s)")
        selected: dict[str, Entry] = {}
        for folder_id in folder_ids:
            token.raise_if_cancelled()
            for root in await self._store.get_subtree(folder_id):
                for node in root.iter_subtree():
                    entry = index.get(node.id)
                    if entry is not None and not entry.is_folder:
                        selected.setdefault(entry.id, entry)
        return list(selected.values())

    async def _check_dead_links(
        self, entries: list[Entry], token: CancellationToken
    ) -> list:
        cfg = self._config.dead_links
        reporter = self.reporter

        def _on_progress(processed: int, total: int) -> None:
            if processed % cfg.concurrency == 0 or processed == total:
                reporter.progress(
                    processed * 100 // total if total else 100,
                    f"Checked {processed}/{total} links",
                )

        if self._prober is not None:
            checker = DeadLinkChecker(
                self._prober, concurrency=cfg.concurrency, timeout=cfg.probe_timeout_sec
            )
            return await checker.check(entries, token=token, on_progress=_on_progress)

        async with HttpLinkProber(user_agent=cfg.user_agent, verify=cfg.verify_tls) as prober:
            checker = DeadLinkChecker(
                prober, concurrency=cfg.concurrency, timeout=cfg.probe_timeout_sec
            )
            return await checker.check(entries, token=token, on_progress=_on_progress)

    async def _classify(
        self, entries: list[Entry], index: PathIndex, token: CancellationToken
    ) -> Plan:
        cfg = self._config.classifier
        reporter = self.reporter
        summary = await self.folder_context.summary()

        batcher_kwargs = {
            "entries_by_id": index.as_mapping(),
            "token": token,
            "on_progress": reporter.progress,
            "on_batch_failed": lambda number, total, error: reporter.error(
                f"[Batch {number}/{total}] failed: {error}"
            ),
        }

        if self._classifier is not None:
            batcher = ClassificationBatcher(self._classifier, batch_size=cfg.batch_size)
            return await batcher.generate_plan(entries, summary, **batcher_kwargs)

        async with LLMClassifier.from_config(cfg) as classifier:
            batcher = ClassificationBatcher(classifier, batch_size=cfg.batch_size)
            return await batcher.generate_plan(entries, summary, **batcher_kwargs)
