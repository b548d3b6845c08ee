"""Reorganization plan: a closed set of operation kinds grouped in six lists.

List order carries no execution meaning; the executor applies the lists in its
own fixed phase order.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from enum import Enum
from typing import Annotated, Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from tidymarks.domain.models.entry import Entry  # noqa: TC001 - used at runtime

logger = logging.getLogger(__name__)


class DeadLinkReason(str, Enum):
    TIMEOUT = "Timeout"
    NETWORK_ERROR = "NetworkError"


class DuplicateReason(str, Enum):
    DUPLICATE_ROOT = "Duplicate Root"
    DUPLICATE_SUBPAGE = "Duplicate Subpage"
    EXACT = "Exact/Normalized Duplicate"


class PlanItem(BaseModel):
    """Base for every plan item; ``ignored`` is toggled by review."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    ignored: bool = False


class BookmarkPlanItem(PlanItem):
    """Plan item that acts on an existing store node.

    ``title``, ``url`` and ``old_path`` are display-only and filled in by
    :func:`hydrate_plan`.
    """

    bookmark_id: str
    title: str | None = None
    url: str | None = None
    old_path: str | None = None

    @field_validator("bookmark_id", mode="before")
    @classmethod
    def _coerce_bookmark_id(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value


class CreateFolder(PlanItem):
    kind: Literal["create_folder"] = "create_folder"
    path: str
    parent_path: str | None = None

    @field_validator("path", mode="before")
    @classmethod
    def _strip_path(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().strip("/")
            if not value:
                msg = "Folder path cannot be empty"
                raise ValueError(msg)
        return value


class RenameFolder(BookmarkPlanItem):
    kind: Literal["rename_folder"] = "rename_folder"
    new_title: str
    old_title: str | None = None
    path: str | None = None


class MoveBookmark(BookmarkPlanItem):
    kind: Literal["move_bookmark"] = "move_bookmark"
    target_folder_path: str


class ArchiveBookmark(BookmarkPlanItem):
    kind: Literal["archive"] = "archive"
    reason: str | None = None


class RemoveDeadLink(BookmarkPlanItem):
    kind: Literal["remove_dead_link"] = "remove_dead_link"
    reason: DeadLinkReason


class RemoveDuplicate(BookmarkPlanItem):
    kind: Literal["remove_duplicate"] = "remove_duplicate"
    reason: DuplicateReason
    keep_id: str
    keep_title: str | None = None
    keep_url: str | None = None


PlanOperation = Annotated[
    CreateFolder | RenameFolder | MoveBookmark | ArchiveBookmark | RemoveDeadLink | RemoveDuplicate,
    Field(discriminator="kind"),
]


class Plan(BaseModel):
    """The full set of proposed mutations produced by one analysis run."""

    model_config = ConfigDict(extra="ignore")

    folders_to_create: list[CreateFolder] = Field(default_factory=list)
    folders_to_rename: list[RenameFolder] = Field(default_factory=list)
    bookmarks_to_move: list[MoveBookmark] = Field(default_factory=list)
    archive: list[ArchiveBookmark] = Field(default_factory=list)
    dead_links: list[RemoveDeadLink] = Field(default_factory=list)
    duplicates: list[RemoveDuplicate] = Field(default_factory=list)

    LIST_FIELDS: ClassVar[tuple[str, ...]] = (
        "folders_to_create",
        "folders_to_rename",
        "bookmarks_to_move",
        "archive",
        "dead_links",
        "duplicates",
    )
    # Lists the remote classifier is allowed to fill.
    CLASSIFIER_FIELDS: ClassVar[tuple[str, ...]] = (
        "folders_to_create",
        "folders_to_rename",
        "bookmarks_to_move",
        "archive",
    )

    def items(self, list_name: str) -> list[Any]:
        if list_name not in self.LIST_FIELDS:
            msg = f"Unknown plan list: {list_name}"
            raise KeyError(msg)
        return getattr(self, list_name)

    def operations(self) -> Iterator[PlanOperation]:
        for name in self.LIST_FIELDS:
            yield from self.items(name)

    def extend(self, other: Plan) -> None:
        for name in self.LIST_FIELDS:
            self.items(name).extend(other.items(name))

    def active(self) -> Plan:
        """Copy of this plan without the items review marked as ignored."""
        return Plan(
            **{
                name: [item.model_copy() for item in self.items(name) if not item.ignored]
                for name in self.LIST_FIELDS
            }
        )

    def counts(self) -> dict[str, int]:
        return {
            name: sum(1 for item in self.items(name) if not item.ignored)
            for name in self.LIST_FIELDS
        }

    def total_items(self) -> int:
        return sum(len(self.items(name)) for name in self.LIST_FIELDS)

    def is_empty(self) -> bool:
        return self.total_items() == 0

    def set_ignored(self, list_name: str, bookmark_id: str, ignored: bool = True) -> int:
        """Toggle ``ignored`` on every item of ``list_name`` acting on ``bookmark_id``.

        For ``folders_to_create`` the folder path plays the role of the id.
        Returns the number of items changed.
        """
        changed = 0
        for item in self.items(list_name):
            key = item.path if isinstance(item, CreateFolder) else item.bookmark_id
            if key == bookmark_id and item.ignored != ignored:
                item.ignored = ignored
                changed += 1
        return changed

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> Plan:
        """Build a plan from a classifier reply, skipping malformed items.

        Only the lists the classifier may produce are read; anything else in
        the payload is ignored.
        """
        plan = cls()
        if not payload:
            return plan

        for name in cls.CLASSIFIER_FIELDS:
            raw_items = payload.get(name)
            if raw_items is None:
                continue
            if not isinstance(raw_items, list):
                logger.warning(
                    "plan_payload_list_invalid",
                    extra={"list": name, "type": type(raw_items).__name__},
                )
                continue

            model = _ITEM_MODELS[name]
            target = plan.items(name)
            for raw in raw_items:
                if not isinstance(raw, Mapping):
                    logger.warning("plan_payload_item_invalid", extra={"list": name})
                    continue
                data = {k: v for k, v in raw.items() if k not in ("kind", "ignored")}
                try:
                    target.append(model.model_validate(data))
                except ValidationError as exc:
                    logger.warning(
                        "plan_payload_item_skipped",
                        extra={"list": name, "item": str(raw)[:200], "error": str(exc)[:300]},
                    )
        return plan


_ITEM_MODELS: dict[str, type[PlanItem]] = {
    "folders_to_create": CreateFolder,
    "folders_to_rename": RenameFolder,
    "bookmarks_to_move": MoveBookmark,
    "archive": ArchiveBookmark,
    "dead_links": RemoveDeadLink,
    "duplicates": RemoveDuplicate,
}


def hydrate_plan(plan: Plan, entries_by_id: Mapping[str, Entry]) -> Plan:
    """Copy display fields from matching entries onto plan items.

    Only fills fields that are still empty and never touches action fields.
    """
    for name in Plan.LIST_FIELDS:
        for item in plan.items(name):
            if not isinstance(item, BookmarkPlanItem):
                continue
            entry = entries_by_id.get(item.bookmark_id)
            if entry is None:
                continue
            item.title = item.title or entry.title
            item.url = item.url or entry.url
            item.old_path = entry.path
            if isinstance(item, RenameFolder):
                item.old_title = entry.title
                item.path = entry.path
    return plan
