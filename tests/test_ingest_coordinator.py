"""Auto-organize of newly created bookmarks, driven through a real event loop.

Durations are shrunk to tens of milliseconds; each test sleeps past the
relevant deadline and then waits for the coordinator to drain.
"""

from __future__ import annotations

import asyncio

import pytest

from tests.conftest import FakeClassifier, make_test_app_config
from tidymarks.adapters.llm.protocol import SingleClassification
from tidymarks.adapters.store.memory_store import InMemoryBookmarkStore
from tidymarks.domain.exceptions.domain_exceptions import ClassificationError
from tidymarks.domain.services.path_index import PathIndex
from tidymarks.infrastructure.messaging.event_bus import EventBus
from tidymarks.services.folder_context import FolderContext
from tidymarks.services.import_guard import GuardState
from tidymarks.services.ingest_coordinator import IngestCoordinator
from tidymarks.services.review import ReviewDecision

QUIET = 0.05


class RecordingPresenter:
    def __init__(self, decision: ReviewDecision | None = None, *, hang: bool = False) -> None:
        self.decision = decision or ReviewDecision.keep()
        self.hang = hang
        self.reviews = []
        self.paused: list[float] = []
        self.failures: list[tuple[str, str]] = []

    async def present(self, review):
        self.reviews.append(review)
        if self.hang:
            await asyncio.sleep(3600)
        return self.decision

    async def notify_paused(self, resume_in: float) -> None:
        self.paused.append(resume_in)

    async def notify_failed(self, entry, message: str) -> None:
        self.failures.append((entry.id, message))


class Harness:
    def __init__(
        self,
        classifier: FakeClassifier,
        presenter: RecordingPresenter | None = None,
        **ingest,
    ) -> None:
        settings = {
            "auto_categorize": True,
            "quiet_period_sec": QUIET,
            "review_timeout_sec": 0.05,
            "flood_window_sec": 2.0,
            "flood_threshold": 5,
            "import_pause_sec": 0.2,
        }
        settings.update(ingest)
        self.config = make_test_app_config(ingest=settings)
        self.bus = EventBus()
        self.store = InMemoryBookmarkStore.with_default_roots(event_bus=self.bus)
        self.classifier = classifier
        self.presenter = presenter or RecordingPresenter()
        self.coordinator = IngestCoordinator(
            self.store,
            FolderContext(self.store),
            lambda: self.config,
            presenter=self.presenter,
            classifier_factory=lambda _cfg: self.classifier,
        )

    async def __aenter__(self) -> Harness:
        self.coordinator.attach(self.bus)
        self.coordinator.start()
        return self

    async def __aexit__(self, *exc) -> None:
        self.coordinator.detach(self.bus)
        await self.coordinator.stop()

    async def settle(self, delay: float = QUIET * 3) -> None:
        await asyncio.sleep(delay)
        await self.coordinator.wait_idle()

    async def path_of(self, node_id: str) -> str | None:
        entry = PathIndex.from_tree(await self.store.get_tree()).get(node_id)
        return entry.path if entry else None


def _verdict(path: str = "Dev/Python", **kwargs) -> FakeClassifier:
    return FakeClassifier(verdict=SingleClassification(path=path, **kwargs))


@pytest.mark.asyncio
async def test_new_bookmark_is_moved_after_quiet_period() -> None:
    async with Harness(_verdict(reason="language docs")) as h:
        node = await h.store.create(parent_id="1", title="Docs", url="https://docs.python.org/")
        await h.coordinator._queue.join()
        assert h.coordinator.pending_ids() == [node.id]

        await h.settle()

        assert await h.path_of(node.id) == "Bookmarks bar/Dev/Python/Docs"
        assert h.classifier.single_calls == [node.id]
        assert h.classifier.closed == 1
        (review,) = h.presenter.reviews
        assert review.original_parent_id == "1"
        assert review.target_path == "Dev/Python"
        assert review.reason == "language docs"


@pytest.mark.asyncio
async def test_folders_are_not_classified() -> None:
    async with Harness(_verdict()) as h:
        await h.store.create(parent_id="1", title="New folder")
        await h.settle()

        assert h.classifier.single_calls == []


@pytest.mark.slow
@pytest.mark.asyncio
async def test_move_during_quiet_period_resets_timer() -> None:
    quiet = 0.3
    async with Harness(_verdict(), quiet_period_sec=quiet) as h:
        node = await h.store.create(parent_id="1", title="Docs", url="https://docs.python.org/")
        await asyncio.sleep(0.15)
        await h.store.move(node.id, parent_id="2")

        await asyncio.sleep(0.2)
        assert h.classifier.single_calls == []
        assert h.coordinator.pending_ids() == [node.id]

        await h.settle(0.25)
        assert h.classifier.single_calls == [node.id]


@pytest.mark.asyncio
async def test_removed_bookmark_is_never_classified() -> None:
    async with Harness(_verdict()) as h:
        node = await h.store.create(parent_id="1", title="Oops", url="https://oops.example/")
        await h.store.remove(node.id)
        await h.settle()

        assert h.classifier.single_calls == []
        assert h.coordinator.pending_ids() == []


@pytest.mark.asyncio
async def test_bulk_import_pauses_auto_organize() -> None:
    async with Harness(_verdict()) as h:
        for i in range(6):
            await h.store.create(parent_id="1", title=f"Imported {i}", url=f"https://i{i}.example/")
        await h.coordinator._queue.join()

        assert h.coordinator.state is GuardState.IMPORTING
        assert h.coordinator.pending_ids() == []

        await h.settle(0.3)

        assert h.classifier.single_calls == []
        assert h.presenter.paused == [0.2]
        assert h.coordinator.state is GuardState.NORMAL


@pytest.mark.slow
@pytest.mark.asyncio
async def test_auto_organize_resumes_after_import() -> None:
    async with Harness(_verdict()) as h:
        for i in range(6):
            await h.store.create(parent_id="1", title=f"Imported {i}", url=f"https://i{i}.example/")
        await h.settle(0.3)
        assert h.coordinator.state is GuardState.NORMAL

        node = await h.store.create(parent_id="1", title="Fresh", url="https://fresh.example/")
        await h.settle()

        assert h.classifier.single_calls == [node.id]


@pytest.mark.asyncio
async def test_disabled_setting_is_rechecked_when_timer_fires() -> None:
    async with Harness(_verdict()) as h:
        node = await h.store.create(parent_id="1", title="Docs", url="https://docs.python.org/")
        h.config = make_test_app_config(ingest={"auto_categorize": False})
        await h.settle()

        assert h.classifier.single_calls == []
        assert await h.path_of(node.id) == "Bookmarks bar/Docs"


@pytest.mark.asyncio
async def test_missing_api_key_skips_classification() -> None:
    async with Harness(_verdict()) as h:
        h.config = make_test_app_config(
            classifier={"api_key": ""},
            ingest={"auto_categorize": True, "quiet_period_sec": QUIET},
        )
        await h.store.create(parent_id="1", title="Docs", url="https://docs.python.org/")
        await h.settle()

        assert h.classifier.single_calls == []


class MovingClassifier(FakeClassifier):
    """Simulates the user moving the bookmark while the model is thinking."""

    def __init__(self, store: InMemoryBookmarkStore, **kwargs) -> None:
        super().__init__(**kwargs)
        self.store = store

    async def classify_single(self, entry, folder_summary):
        await self.store.move(entry.id, parent_id="2")
        return await super().classify_single(entry, folder_summary)


@pytest.mark.asyncio
async def test_external_move_during_classification_wins() -> None:
    async with Harness(_verdict()) as h:
        h.classifier = MovingClassifier(
            h.store, verdict=SingleClassification(path="Dev/Python")
        )
        node = await h.store.create(parent_id="1", title="Docs", url="https://docs.python.org/")
        await h.settle()

        assert h.classifier.single_calls == [node.id]
        assert await h.path_of(node.id) == "Other bookmarks/Docs"
        assert h.presenter.reviews == []


@pytest.mark.asyncio
async def test_classification_failure_is_reported() -> None:
    failing = FakeClassifier(verdict=ClassificationError("401 - authentication failed", kind="auth"))
    async with Harness(failing) as h:
        node = await h.store.create(parent_id="1", title="Docs", url="https://docs.python.org/")
        await h.settle()

        assert h.presenter.failures == [(node.id, "401 - authentication failed")]
        assert await h.path_of(node.id) == "Bookmarks bar/Docs"
        assert failing.closed == 1


@pytest.mark.asyncio
async def test_unanswered_review_keeps_the_move() -> None:
    async with Harness(_verdict(), RecordingPresenter(hang=True)) as h:
        node = await h.store.create(parent_id="1", title="Docs", url="https://docs.python.org/")
        await h.settle()

        assert await h.path_of(node.id) == "Bookmarks bar/Dev/Python/Docs"
        assert len(h.presenter.reviews) == 1


@pytest.mark.asyncio
async def test_review_revert_restores_original_folder() -> None:
    async with Harness(_verdict(), RecordingPresenter(ReviewDecision.revert())) as h:
        node = await h.store.create(parent_id="2", title="Docs", url="https://docs.python.org/")
        await h.settle()

        assert await h.path_of(node.id) == "Other bookmarks/Docs"


@pytest.mark.asyncio
async def test_review_retarget_and_rename() -> None:
    decision = ReviewDecision.retarget("Reading/Later", title="Python documentation")
    async with Harness(_verdict(suggested_title="Python docs"), RecordingPresenter(decision)) as h:
        node = await h.store.create(parent_id="1", title="Docs", url="https://docs.python.org/")
        await h.settle()

        assert await h.path_of(node.id) == "Bookmarks bar/Reading/Later/Python documentation"
        assert h.presenter.reviews[0].suggested_title == "Python docs"


@pytest.mark.asyncio
async def test_empty_verdict_leaves_bookmark_in_place() -> None:
    async with Harness(FakeClassifier(verdict=None)) as h:
        node = await h.store.create(parent_id="1", title="Docs", url="https://docs.python.org/")
        await h.settle()

        assert await h.path_of(node.id) == "Bookmarks bar/Docs"
        assert h.presenter.reviews == []
