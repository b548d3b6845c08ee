"""Auto-organize of newly created bookmarks.

A single consumer task drains one ``asyncio.Queue`` of events: store
notifications (created, moved, removed) and internal timer events. All state
(guard, pending entries, timers) is touched only from that task, so no locks
are needed. Timers post events back into the queue; a generation counter
makes a stale timer harmless.

Per entry the sub-state is Idle (not in ``_pending``) or Pending (waiting for
its quiet period). Globally the guard is NORMAL or IMPORTING.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from tidymarks.adapters.llm.classifier import LLMClassifier
from tidymarks.core.async_utils import raise_if_cancelled
from tidymarks.domain.events.bookmark_events import (
    BookmarkCreated,
    BookmarkMoved,
    BookmarkRemoved,
)
from tidymarks.domain.exceptions.domain_exceptions import (
    ClassificationError,
    ExternalConcurrentChangeError,
    StoreOperationError,
)
from tidymarks.domain.models.entry import BookmarkNode, Entry
from tidymarks.services.folder_resolver import FolderResolver
from tidymarks.services.import_guard import GuardState, ImportGuard
from tidymarks.services.review import (
    LoggingReviewPresenter,
    PendingReview,
    ReviewAction,
    ReviewDecision,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from tidymarks.adapters.llm.protocol import ClassifierProtocol
    from tidymarks.adapters.store.protocol import BookmarkStoreProtocol
    from tidymarks.config.classifier import ClassifierConfig
    from tidymarks.config.settings import AppConfig
    from tidymarks.infrastructure.messaging.event_bus import EventBus
    from tidymarks.services.folder_context import FolderContext
    from tidymarks.services.review import ReviewPresenter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _TimerFired:
    bookmark_id: str
    generation: int


@dataclass(frozen=True)
class _GuardExpired:
    generation: int


@dataclass
class _PendingItem:
    bookmark_id: str
    scheduled_at: float
    generation: int
    handle: asyncio.TimerHandle


class IngestCoordinator:
    def __init__(
        self,
        store: BookmarkStoreProtocol,
        folder_context: FolderContext,
        settings: Callable[[], AppConfig],
        *,
        presenter: ReviewPresenter | None = None,
        classifier_factory: Callable[[ClassifierConfig], ClassifierProtocol] | None = None,
        guard: ImportGuard | None = None,
    ) -> None:
        self._store = store
        self._folder_context = folder_context
        self._settings = settings
        self._presenter = presenter or LoggingReviewPresenter()
        self._classifier_factory = classifier_factory or LLMClassifier.from_config

        initial = settings().ingest
        self.quiet_period = initial.quiet_period_sec
        self.review_timeout = initial.review_timeout_sec
        self.guard = guard or ImportGuard(
            window=initial.flood_window_sec,
            threshold=initial.flood_threshold,
            pause=initial.import_pause_sec,
        )

        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._pending: dict[str, _PendingItem] = {}
        self._generation = 0
        self._guard_handle: asyncio.TimerHandle | None = None
        self._guard_generation = 0
        self._consumer: asyncio.Task[None] | None = None
        self._workers: set[asyncio.Task[None]] = set()
        self._loop: asyncio.AbstractEventLoop | None = None

    # ------------------------------------------------------------------
    # Lifecycle

    def start(self) -> None:
        if self._consumer is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._consumer = asyncio.create_task(self._run(), name="ingest-coordinator")
        logger.info("ingest_coordinator_started", extra={"quiet_period_sec": self.quiet_period})

    async def stop(self) -> None:
        for item in self._pending.values():
            item.handle.cancel()
        self._pending.clear()
        if self._guard_handle is not None:
            self._guard_handle.cancel()
            self._guard_handle = None

        tasks = [t for t in (self._consumer, *self._workers) if t is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._consumer = None
        self._workers.clear()
        logger.info("ingest_coordinator_stopped")

    async def wait_idle(self) -> None:
        """Wait until queued events and running classifications are done."""
        await self._queue.join()
        while self._workers:
            await asyncio.gather(*list(self._workers), return_exceptions=True)

    def attach(self, event_bus: EventBus) -> None:
        event_bus.subscribe(BookmarkCreated, self._on_bus_event)
        event_bus.subscribe(BookmarkMoved, self._on_bus_event)
        event_bus.subscribe(BookmarkRemoved, self._on_bus_event)

    def detach(self, event_bus: EventBus) -> None:
        event_bus.unsubscribe(BookmarkCreated, self._on_bus_event)
        event_bus.unsubscribe(BookmarkMoved, self._on_bus_event)
        event_bus.unsubscribe(BookmarkRemoved, self._on_bus_event)

    async def _on_bus_event(self, event: BookmarkCreated | BookmarkMoved | BookmarkRemoved) -> None:
        self._queue.put_nowait(event)

    # ------------------------------------------------------------------
    # Inspection

    @property
    def state(self) -> GuardState:
        return self.guard.state

    def pending_ids(self) -> list[str]:
        return list(self._pending)

    # ------------------------------------------------------------------
    # Event loop

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                self._handle(event)
            except Exception:
                logger.exception("ingest_event_failed", extra={"event": type(event).__name__})
            finally:
                self._queue.task_done()

    def _handle(self, event: Any) -> None:
        if isinstance(event, BookmarkCreated):
            self._on_created(event)
        elif isinstance(event, BookmarkMoved):
            self._on_moved(event)
        elif isinstance(event, BookmarkRemoved):
            self._on_removed(event)
        elif isinstance(event, _TimerFired):
            self._on_timer_fired(event)
        elif isinstance(event, _GuardExpired):
            self._on_guard_expired(event)
        else:
            msg = f"Unknown ingest event: {type(event).__name__}"
            raise TypeError(msg)

    def _now(self) -> float:
        assert self._loop is not None
        return self._loop.time()

    def _on_created(self, event: BookmarkCreated) -> None:
        now = self._now()
        engaged = self.guard.record_creation(now)

        if engaged:
            dropped = len(self._pending)
            for item in self._pending.values():
                item.handle.cancel()
            self._pending.clear()
            logger.info("ingest_import_detected", extra={"pending_dropped": dropped})
            self._spawn(self._presenter.notify_paused(self.guard.pause))

        if self.guard.importing:
            self._schedule_guard_expiry()
            return

        if event.url is None:
            return
        self._schedule(event.bookmark_id)

    def _on_moved(self, event: BookmarkMoved) -> None:
        if event.bookmark_id in self._pending:
            logger.debug("ingest_debounce_reset", extra={"bookmark_id": event.bookmark_id})
            self._schedule(event.bookmark_id)

    def _on_removed(self, event: BookmarkRemoved) -> None:
        item = self._pending.pop(event.bookmark_id, None)
        if item is not None:
            item.handle.cancel()
            logger.debug("ingest_pending_discarded", extra={"bookmark_id": event.bookmark_id})

    def _on_timer_fired(self, event: _TimerFired) -> None:
        item = self._pending.get(event.bookmark_id)
        if item is None or item.generation != event.generation:
            return
        del self._pending[event.bookmark_id]
        self._spawn(self._process(event.bookmark_id))

    def _on_guard_expired(self, event: _GuardExpired) -> None:
        if event.generation != self._guard_generation:
            return
        self._guard_handle = None
        if not self.guard.expire(self._now()):
            # Pause was extended after this timer was armed.
            self._schedule_guard_expiry()

    def _schedule(self, bookmark_id: str) -> None:
        assert self._loop is not None
        previous = self._pending.get(bookmark_id)
        if previous is not None:
            previous.handle.cancel()
        self._generation += 1
        fired = _TimerFired(bookmark_id, self._generation)
        handle = self._loop.call_later(self.quiet_period, self._queue.put_nowait, fired)
        self._pending[bookmark_id] = _PendingItem(
            bookmark_id=bookmark_id,
            scheduled_at=self._now() + self.quiet_period,
            generation=self._generation,
            handle=handle,
        )

    def _schedule_guard_expiry(self) -> None:
        assert self._loop is not None
        if self._guard_handle is not None:
            self._guard_handle.cancel()
        resume_at = self.guard.resume_at if self.guard.resume_at is not None else self._now()
        delay = max(0.0, resume_at - self._now())
        self._guard_generation += 1
        self._guard_handle = self._loop.call_later(
            delay, self._queue.put_nowait, _GuardExpired(self._guard_generation)
        )

    def _spawn(self, coro: Any) -> None:
        task = asyncio.create_task(coro)
        self._workers.add(task)
        task.add_done_callback(self._workers.discard)

    # ------------------------------------------------------------------
    # Single-entry processing

    async def _process(self, bookmark_id: str) -> None:
        try:
            await self._classify_and_move(bookmark_id)
        except ExternalConcurrentChangeError as exc:
            logger.warning("auto_organize_aborted_external_move", extra=exc.details)
        except StoreOperationError as exc:
            logger.warning(
                "auto_organize_store_failed",
                extra={
                    "bookmark_id": bookmark_id,
                    "operation": exc.operation,
                    "error": exc.message,
                },
            )
        except Exception as exc:
            raise_if_cancelled(exc)
            logger.exception("auto_organize_crashed", extra={"bookmark_id": bookmark_id})

    async def _classify_and_move(self, bookmark_id: str) -> None:
        config = self._settings()
        if not config.ingest.auto_categorize or not config.classifier.has_credentials:
            logger.info(
                "auto_organize_skipped_disabled",
                extra={
                    "bookmark_id": bookmark_id,
                    "enabled": config.ingest.auto_categorize,
                    "has_credentials": config.classifier.has_credentials,
                },
            )
            return

        node = await self._read_node(bookmark_id)
        if node is None or node.is_folder:
            return
        original_parent_id = node.parent_id
        entry = Entry(
            id=node.id,
            title=node.title,
            url=node.url,
            parent_id=node.parent_id,
            path="",
        )

        summary = await self._folder_context.summary()
        classifier = self._classifier_factory(config.classifier)
        try:
            verdict = await classifier.classify_single(entry, summary)
        except ClassificationError as exc:
            logger.warning(
                "auto_organize_classification_failed",
                extra={"bookmark_id": bookmark_id, "error": exc.message, "kind": exc.kind},
            )
            await self._presenter.notify_failed(entry, exc.message)
            return
        finally:
            await classifier.aclose()

        if verdict is None:
            return

        resolver = FolderResolver(self._store, root_folder_id=config.execution.root_folder_id)
        target_id = await self._move_to(entry, verdict.path, resolver, original_parent_id)
        if resolver.created:
            self._folder_context.invalidate()

        logger.info(
            "auto_organize_moved",
            extra={"bookmark_id": bookmark_id, "target_path": verdict.path, "target_id": target_id},
        )

        review = PendingReview(
            entry=entry,
            original_parent_id=original_parent_id,
            target_folder_id=target_id,
            target_path=verdict.path,
            suggested_title=verdict.suggested_title,
            reason=verdict.reason,
        )
        try:
            decision = await asyncio.wait_for(
                self._presenter.present(review), timeout=self.review_timeout
            )
        except TimeoutError:
            logger.info("auto_organize_review_timeout", extra={"bookmark_id": bookmark_id})
            decision = ReviewDecision.keep()

        await self._apply_decision(review, decision, resolver)

    async def _move_to(
        self,
        entry: Entry,
        path: str,
        resolver: FolderResolver,
        expected_parent_id: str | None,
    ) -> str:
        target_id = await resolver.ensure_folder(path)
        current = await self._read_node(entry.id)
        if current is None:
            raise StoreOperationError(
                "Bookmark disappeared during classification",
                operation="move",
                bookmark_id=entry.id,
            )
        if current.parent_id not in (expected_parent_id, target_id):
            raise ExternalConcurrentChangeError(
                entry.id,
                expected_parent_id=expected_parent_id,
                actual_parent_id=current.parent_id,
            )
        if current.parent_id != target_id:
            await self._store.move(entry.id, parent_id=target_id)
        return target_id

    async def _apply_decision(
        self, review: PendingReview, decision: ReviewDecision, resolver: FolderResolver
    ) -> None:
        bookmark_id = review.entry.id
        if decision.action is ReviewAction.REVERT:
            if review.original_parent_id is not None:
                await self._store.move(bookmark_id, parent_id=review.original_parent_id)
            logger.info("auto_organize_reverted", extra={"bookmark_id": bookmark_id})
        elif decision.action is ReviewAction.RETARGET and decision.target_path:
            await self._move_to(review.entry, decision.target_path, resolver, review.target_folder_id)
            if resolver.created:
                self._folder_context.invalidate()
            logger.info(
                "auto_organize_retargeted",
                extra={"bookmark_id": bookmark_id, "target_path": decision.target_path},
            )

        if decision.title and decision.title != review.entry.title:
            await self._store.rename(bookmark_id, title=decision.title)
            logger.info("auto_organize_renamed", extra={"bookmark_id": bookmark_id})

    async def _read_node(self, bookmark_id: str) -> BookmarkNode | None:
        try:
            nodes = await self._store.get_subtree(bookmark_id)
        except StoreOperationError:
            logger.info("auto_organize_entry_gone", extra={"bookmark_id": bookmark_id})
            return None
        return nodes[0] if nodes else None
