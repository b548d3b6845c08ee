"""Duplicate bookmark detection.

Entries are grouped by normalized host. Inside a host group:

- if any member is a bare site root, the first root survives and every other
  member of the host is a duplicate of it (``Duplicate Root`` for other roots,
  ``Duplicate Subpage`` for deeper pages);
- otherwise members are sub-grouped by their full normalized URL and the first
  of each sub-group of two or more survives (``Exact/Normalized Duplicate``).

Ties are broken by input order. URLs that cannot be parsed or carry no host
are left out of grouping entirely.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Literal

from tidymarks.core.url_utils import try_parse_bookmark_url
from tidymarks.domain.models.plan import DuplicateReason, RemoveDuplicate

if TYPE_CHECKING:
    from collections.abc import Iterable

    from tidymarks.core.url_utils import ParsedBookmarkUrl
    from tidymarks.domain.models.entry import Entry

logger = logging.getLogger(__name__)

GroupMode = Literal["root", "exact"]


@dataclass(frozen=True, slots=True)
class DuplicateMember:
    entry: Entry
    is_root: bool


@dataclass(frozen=True, slots=True)
class DuplicateGroup:
    """One equivalence class: a single survivor and its deletion candidates."""

    key: str
    mode: GroupMode
    survivor_id: str
    members: tuple[DuplicateMember, ...]

    @property
    def survivor(self) -> Entry:
        for member in self.members:
            if member.entry.id == self.survivor_id:
                return member.entry
        msg = f"Survivor {self.survivor_id} is not a member of group {self.key}"
        raise LookupError(msg)

    def member_ids(self) -> list[str]:
        return [member.entry.id for member in self.members]

    def removals(self) -> list[RemoveDuplicate]:
        keeper = self.survivor
        items = []
        for member in self.members:
            if member.entry.id == self.survivor_id:
                continue
            items.append(
                RemoveDuplicate(
                    bookmark_id=member.entry.id,
                    title=member.entry.title,
                    url=member.entry.url,
                    old_path=member.entry.path,
                    reason=self._reason_for(member),
                    keep_id=keeper.id,
                    keep_title=keeper.title,
                    keep_url=keeper.url,
                )
            )
        return items

    def with_survivor(self, bookmark_id: str) -> DuplicateGroup:
        """Same class with ``bookmark_id`` kept and every other member removed."""
        if bookmark_id not in self.member_ids():
            msg = f"Bookmark {bookmark_id} is not a member of group {self.key}"
            raise KeyError(msg)
        return replace(self, survivor_id=bookmark_id)

    def _reason_for(self, member: DuplicateMember) -> DuplicateReason:
        if self.mode == "exact":
            return DuplicateReason.EXACT
        if member.is_root:
            return DuplicateReason.DUPLICATE_ROOT
        return DuplicateReason.DUPLICATE_SUBPAGE


@dataclass
class DuplicateReport:
    groups: list[DuplicateGroup] = field(default_factory=list)

    @property
    def items(self) -> list[RemoveDuplicate]:
        items: list[RemoveDuplicate] = []
        for group in self.groups:
            items.extend(group.removals())
        return items

    def group_of(self, bookmark_id: str) -> DuplicateGroup | None:
        for group in self.groups:
            if bookmark_id in group.member_ids():
                return group
        return None

    def swap_survivor(self, bookmark_id: str) -> DuplicateGroup:
        """Keep ``bookmark_id`` instead of its group's current survivor.

        The whole equivalence class is rebuilt at once: the previous survivor
        becomes a deletion candidate and every other candidate now points to the
        new survivor.
        """
        for index, group in enumerate(self.groups):
            if bookmark_id in group.member_ids():
                swapped = group.with_survivor(bookmark_id)
                self.groups[index] = swapped
                logger.info(
                    "duplicate_survivor_swapped",
                    extra={
                        "group": group.key,
                        "old_survivor": group.survivor_id,
                        "new_survivor": bookmark_id,
                    },
                )
                return swapped
        msg = f"Bookmark {bookmark_id} is not part of any duplicate group"
        raise KeyError(msg)


class DuplicateDetector:
    """Stateless detector; safe to reuse across runs."""

    def detect(self, entries: Iterable[Entry]) -> DuplicateReport:
        by_host: dict[str, list[tuple[Entry, ParsedBookmarkUrl]]] = {}
        skipped = 0
        for entry in entries:
            if entry.is_folder:
                continue
            parsed = try_parse_bookmark_url(entry.url)
            if parsed is None:
                skipped += 1
                continue
            by_host.setdefault(parsed.host, []).append((entry, parsed))

        report = DuplicateReport()
        for host, members in by_host.items():
            if len(members) < 2:
                continue
            report.groups.extend(self._groups_for_host(host, members))

        logger.info(
            "duplicate_detection_complete",
            extra={
                "hosts": len(by_host),
                "groups": len(report.groups),
                "skipped_malformed": skipped,
            },
        )
        return report

    def find_duplicates(self, entries: Iterable[Entry]) -> list[RemoveDuplicate]:
        return self.detect(entries).items

    @staticmethod
    def _groups_for_host(
        host: str, members: list[tuple[Entry, ParsedBookmarkUrl]]
    ) -> list[DuplicateGroup]:
        wrapped = tuple(DuplicateMember(entry=e, is_root=p.is_root) for e, p in members)
        roots = [member for member in wrapped if member.is_root]
        if roots:
            return [
                DuplicateGroup(
                    key=host,
                    mode="root",
                    survivor_id=roots[0].entry.id,
                    members=wrapped,
                )
            ]

        by_key: dict[str, list[DuplicateMember]] = {}
        for member, (_, parsed) in zip(wrapped, members, strict=True):
            by_key.setdefault(parsed.normalized, []).append(member)

        return [
            DuplicateGroup(
                key=key,
                mode="exact",
                survivor_id=exacts[0].entry.id,
                members=tuple(exacts),
            )
            for key, exacts in by_key.items()
            if len(exacts) > 1
        ]
