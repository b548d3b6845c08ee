from __future__ import annotations

import pytest

from tests.conftest import build_store, folder, link
from tidymarks.domain.models.entry import BookmarkNode
from tidymarks.domain.services.path_index import PathIndex, join_path


def test_join_path() -> None:
    assert join_path("", "Bar") == "Bar"
    assert join_path("Bar", "Dev") == "Bar/Dev"
    assert join_path("Bar", "") == "Bar"


async def _index(store) -> PathIndex:
    return PathIndex.from_tree(await store.get_tree())


def test_paths_start_below_absolute_root() -> None:
    tree = [
        BookmarkNode(
            id="0",
            children=[
                BookmarkNode(
                    id="1",
                    title="Bookmarks bar",
                    parent_id="0",
                    children=[
                        BookmarkNode(
                            id="4",
                            title="Dev",
                            parent_id="1",
                            children=[
                                BookmarkNode(
                                    id="10", title="Docs", url="https://d.example", parent_id="4"
                                )
                            ],
                        )
                    ],
                )
            ],
        )
    ]

    index = PathIndex.from_tree(tree)

    assert "0" not in index
    assert index.get("1").path == "Bookmarks bar"
    assert index.get("4").path == "Bookmarks bar/Dev"
    assert index.get("10").path == "Bookmarks bar/Dev/Docs"
    assert [entry.id for entry in index] == ["1", "4", "10"]


@pytest.mark.asyncio
async def test_bookmarks_folders_and_summary(sample_store) -> None:
    index = await _index(sample_store)

    assert {entry.id for entry in index.bookmarks()} == {"10", "11", "12", "13", "20"}
    assert index.folder_paths() == [
        "Bookmarks bar",
        "Bookmarks bar/Dev",
        "Bookmarks bar/Empty",
        "Other bookmarks",
        "Mobile bookmarks",
    ]
    assert index.folder_summary(limit=2) == "Bookmarks bar, Bookmarks bar/Dev"


@pytest.mark.asyncio
async def test_repeated_sibling_titles_keep_distinct_ids() -> None:
    store = build_store(
        folder("1", "Bookmarks bar", folder("4", "Dev"), folder("5", "Dev", link("9", "x", "https://x.io"))),
        folder("2", "Other bookmarks"),
    )

    index = await _index(store)

    assert index.get("4").path == index.get("5").path == "Bookmarks bar/Dev"
    assert index.folder_paths().count("Bookmarks bar/Dev") == 1
    assert index.as_mapping()["9"].parent_id == "5"
