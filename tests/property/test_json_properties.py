"""Property-based tests for JSON extraction from model replies using Hypothesis.

These tests verify that extract_json recovers plan-shaped objects from the
wrappers models put around them, and never crashes on arbitrary text.
"""

from __future__ import annotations

import json

import pytest

hypothesis = pytest.importorskip("hypothesis")
from hypothesis import given, settings, strategies as st

from tidymarks.core.json_utils import extract_json

_safe_text = st.text(alphabet=st.characters(blacklist_characters="`"), max_size=40)

plan_strategy = st.fixed_dictionaries(
    {},
    optional={
        "folders_to_create": st.lists(
            st.fixed_dictionaries({"path": _safe_text}), max_size=5
        ),
        "bookmarks_to_move": st.lists(
            st.fixed_dictionaries(
                {
                    "bookmark_id": st.integers(min_value=1, max_value=10_000).map(str),
                    "target_folder_path": _safe_text,
                }
            ),
            max_size=5,
        ),
        "archive": st.lists(
            st.fixed_dictionaries({"bookmark_id": _safe_text}),
            max_size=5,
        ),
    },
)

wrapper_strategy = st.sampled_from(
    [
        "{}",
        "```json\n{}\n```",
        "```\n{}\n```",
        "Here is the plan:\n{}",
        "{}\nLet me know if you need anything else.",
    ]
)


class TestExtractJsonProperties:
    @given(text=st.text(max_size=500))
    @settings(max_examples=200, deadline=None)
    def test_never_crashes(self, text: str) -> None:
        result = extract_json(text)
        assert result is None or isinstance(result, dict)

    @given(plan=plan_strategy, wrapper=wrapper_strategy)
    @settings(max_examples=200, deadline=None)
    def test_recovers_wrapped_objects(self, plan: dict, wrapper: str) -> None:
        text = wrapper.replace("{}", json.dumps(plan, ensure_ascii=False), 1)
        assert extract_json(text) == plan

    @given(plan=plan_strategy)
    @settings(max_examples=100, deadline=None)
    def test_roundtrip_is_stable(self, plan: dict) -> None:
        first = extract_json(json.dumps(plan))
        assert first is not None
        assert extract_json(json.dumps(first)) == first
