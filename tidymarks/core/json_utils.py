from __future__ import annotations

import json
import re
from typing import Any

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", flags=re.IGNORECASE | re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def _loads_object(raw: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, ValueError):
        return None
    return parsed if isinstance(parsed, dict) else None


def extract_json(text: str) -> dict[str, Any] | None:
    """Pull a JSON object out of a model reply.

    Models asked for "JSON only" still wrap it in Markdown fences, prefix a
    sentence, leave trailing commas, or get cut off mid-object. Each repair is
    tried in turn; ``None`` means nothing usable was found.
    """
    if not isinstance(text, str):
        return None

    candidate = text.strip()
    if not candidate:
        return None

    fence = _FENCE_RE.search(candidate)
    candidate = fence.group(1).strip() if fence else candidate.strip("`")
    candidate = re.sub(r"^json\s*", "", candidate, flags=re.IGNORECASE)

    parsed = _loads_object(candidate)
    if parsed is not None:
        return parsed

    start = candidate.find("{")
    if start == -1:
        return None
    end = candidate.rfind("}")
    snippet = candidate[start:] if end <= start else candidate[start : end + 1]

    for repaired in _repairs(snippet):
        parsed = _loads_object(repaired)
        if parsed is not None:
            return parsed
    return None


def _repairs(snippet: str) -> list[str]:
    no_trailing = _TRAILING_COMMA_RE.sub(r"\1", snippet)
    attempts = [snippet, no_trailing]

    open_brackets = no_trailing.count("[") - no_trailing.count("]")
    open_braces = no_trailing.count("{") - no_trailing.count("}")
    if open_brackets > 0 or open_braces > 0:
        attempts.append(no_trailing + "]" * max(open_brackets, 0) + "}" * max(open_braces, 0))
    return attempts
