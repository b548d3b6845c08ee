"""Prompt templates for bookmark classification.

Two target languages are supported: ``en`` and ``zh-CN``. Any other value
falls back to English.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tidymarks.domain.models.entry import Entry

SYSTEM_PROMPT = "You are a helpful assistant that outputs strict JSON."

CHINESE = "zh-CN"

_LANGUAGE_RULES = {
    "en": "Name every folder in English.",
    CHINESE: (
        "Name folders in Simplified Chinese. Technical terms such as Python, Docker "
        "or React may stay in English, but general categories must be Chinese "
        '(for example "学习资料", "在线工具", "技术社区"). Keep names short and idiomatic.'
    ),
}

_SINGLE_LANGUAGE_RULES = {
    "en": "Use English for all categories.",
    CHINESE: "Use Chinese for general categories and English for technical terms if needed.",
}

_REFERENCE_STRUCTURE = {
    "en": (
        "Development (Frontend, Backend, Mobile)",
        "AI & Data (LLM, ML, Data Science)",
        "DevOps & Cloud",
        "Learning & Docs",
        "Tools & Utilities",
        "Communities",
        "Design & Product",
        "Reading & Articles",
        "Work / Projects",
    ),
    CHINESE: (
        "开发技术 (前端, 后端, 移动端)",
        "人工智能 (LLM, 机器学习, 数据科学)",
        "运维与云 (DevOps, AWS, 阿里云)",
        "学习资料 (文档, 教程, 电子书)",
        "在线工具 (转换器, 绘图, 测试)",
        "技术社区 (GitHub, StackOverflow, 论坛)",
        "产品设计 (UI/UX, 原型)",
        "阅读与资讯 (博客, 新闻)",
        "工作项目",
    ),
}

_PLAN_SCHEMA = """{
  "folders_to_create": [{"path": "Category/Subcategory", "parent_path": "Category"}],
  "folders_to_rename": [{"bookmark_id": "123", "new_title": "New Name"}],
  "bookmarks_to_move": [{"bookmark_id": "456", "target_folder_path": "Category/Subcategory"}],
  "archive": [{"bookmark_id": "789", "reason": "low-value"}]
}"""


def resolve_language(language: str | None) -> str:
    return CHINESE if language == CHINESE else "en"


def build_batch_prompt(batch: Sequence[Entry], folder_summary: str, language: str | None) -> str:
    lang = resolve_language(language)
    data = json.dumps([entry.for_classifier() for entry in batch], ensure_ascii=False)
    structure = "\n".join(f"   - {line}" for line in _REFERENCE_STRUCTURE[lang])
    return f"""You reorganize browser bookmarks for software engineers, DevOps and AI researchers.

EXISTING FOLDERS:
{folder_summary or "(none)"}

INPUT DATA:
{data}

REQUIREMENTS:
1. Output changes only. Leave out every bookmark that already sits in a suitable folder.
2. {_LANGUAGE_RULES[lang]}
3. Reference structure, adapt as needed:
{structure}
4. Reuse an existing folder path when one fits.
5. Output strict JSON matching this schema:
{_PLAN_SCHEMA}

Return only valid JSON, without a Markdown block.
"""


def build_single_prompt(entry: Entry, folder_summary: str, language: str | None) -> str:
    lang = resolve_language(language)
    return f"""You are a bookmark classifier.
Existing folders: "{folder_summary}"
Bookmark: "{entry.title}" ({entry.url})

Rules:
1. Use an existing folder if one is suitable.
2. Otherwise create a concise new category. {_SINGLE_LANGUAGE_RULES[lang]}
3. If the title is noisy (site suffixes, tracking text), suggest a cleaner one.
4. Output JSON only: {{"path": "Folder/Subfolder", "suggested_title": "optional", "reason": "short"}}
"""


CONNECTION_CHECK_PROMPT = 'Connection test. Reply with JSON: {"status": "OK"}.'
