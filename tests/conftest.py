"""Pytest configuration and shared fixtures.

Helpers defined here are also imported directly by test modules
(``from tests.conftest import make_entry``).
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import pytest

from tidymarks.adapters.llm.protocol import SingleClassification
from tidymarks.adapters.store.memory_store import ABSOLUTE_ROOT_ID, InMemoryBookmarkStore
from tidymarks.config import (
    AppConfig,
    ClassifierConfig,
    DeadLinkConfig,
    ExecutionConfig,
    IngestConfig,
    RuntimeConfig,
)
from tidymarks.domain.models.entry import BookmarkNode, Entry
from tidymarks.domain.models.plan import Plan


def make_entry(
    entry_id: str,
    url: str | None = None,
    *,
    title: str | None = None,
    parent_id: str | None = "1",
    path: str | None = None,
) -> Entry:
    title = title if title is not None else f"Bookmark {entry_id}"
    return Entry(
        id=entry_id,
        title=title,
        url=url,
        parent_id=parent_id,
        path=path if path is not None else f"Bookmarks bar/{title}",
    )


def make_test_app_config(**sections: dict[str, Any]) -> AppConfig:
    """Build an ``AppConfig`` without reading the environment.

    Keyword arguments update individual sections, e.g.
    ``make_test_app_config(ingest={"auto_categorize": True})``.
    """
    classifier = {"provider": "openai", "api_key": "sk-test"}
    classifier.update(sections.get("classifier", {}))
    return AppConfig(
        classifier=ClassifierConfig(**classifier),
        dead_links=DeadLinkConfig(**sections.get("dead_links", {})),
        execution=ExecutionConfig(**sections.get("execution", {})),
        ingest=IngestConfig(**sections.get("ingest", {})),
        runtime=RuntimeConfig(**sections.get("runtime", {})),
    )


def folder(node_id: str, title: str, *children: BookmarkNode) -> BookmarkNode:
    return BookmarkNode(id=node_id, title=title, children=list(children))


def link(node_id: str, title: str, url: str) -> BookmarkNode:
    return BookmarkNode(id=node_id, title=title, url=url)


def build_store(*containers: BookmarkNode, event_bus: Any = None) -> InMemoryBookmarkStore:
    """Store whose absolute root holds ``containers`` (defaults to the three browser roots)."""
    if not containers:
        containers = (
            folder("1", "Bookmarks bar"),
            folder("2", "Other bookmarks"),
            folder("3", "Mobile bookmarks"),
        )
    root = BookmarkNode(id=ABSOLUTE_ROOT_ID, title="", children=list(containers))
    return InMemoryBookmarkStore.from_tree([root], event_bus=event_bus)


class FakeClassifier:
    """In-process ``ClassifierProtocol`` double.

    ``plans`` are returned for successive ``classify`` calls; an exception in
    the list is raised instead. ``verdict`` answers ``classify_single``.
    """

    def __init__(
        self,
        plans: Sequence[Plan | Exception] = (),
        *,
        verdict: SingleClassification | Exception | None = None,
    ) -> None:
        self._plans = list(plans)
        self.verdict = verdict
        self.batches: list[list[str]] = []
        self.summaries: list[str] = []
        self.single_calls: list[str] = []
        self.closed = 0

    async def classify(self, batch: Sequence[Entry], folder_summary: str) -> Plan:
        self.batches.append([entry.id for entry in batch])
        self.summaries.append(folder_summary)
        if not self._plans:
            return Plan()
        result = self._plans.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    async def classify_single(
        self, entry: Entry, folder_summary: str
    ) -> SingleClassification | None:
        self.single_calls.append(entry.id)
        self.summaries.append(folder_summary)
        if isinstance(self.verdict, Exception):
            raise self.verdict
        return self.verdict

    async def aclose(self) -> None:
        self.closed += 1


@pytest.fixture
def app_config() -> AppConfig:
    return make_test_app_config()


@pytest.fixture
def store() -> InMemoryBookmarkStore:
    return InMemoryBookmarkStore.with_default_roots()


@pytest.fixture
def sample_store() -> InMemoryBookmarkStore:
    """A small realistic tree.

    Bookmarks bar
      Dev
        10 Python docs
        11 Python docs (tracking copy)
      12 Example root
      13 Example article
      Empty
    Other bookmarks
      20 Unsorted news
    """
    return build_store(
        folder(
            "1",
            "Bookmarks bar",
            folder(
                "4",
                "Dev",
                link("10", "Python docs", "https://docs.python.org/3/"),
                link("11", "Python docs", "https://www.docs.python.org/3/?utm_source=x"),
            ),
            link("12", "Example", "https://example.com/"),
            link("13", "Example article", "https://example.com/articles/1"),
            folder("5", "Empty"),
        ),
        folder("2", "Other bookmarks", link("20", "Unsorted news", "https://news.example.org/a")),
        folder("3", "Mobile bookmarks"),
    )
