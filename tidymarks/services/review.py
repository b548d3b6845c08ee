"""Review affordance for single-entry auto-organize results."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from tidymarks.domain.models.entry import Entry

logger = logging.getLogger(__name__)


class ReviewAction(str, Enum):
    KEEP = "keep"
    REVERT = "revert"
    RETARGET = "retarget"


@dataclass(frozen=True)
class PendingReview:
    """A move that was just applied and can still be undone or redirected."""

    entry: Entry
    original_parent_id: str | None
    target_folder_id: str
    target_path: str
    suggested_title: str | None = None
    reason: str | None = None


@dataclass(frozen=True)
class ReviewDecision:
    action: ReviewAction = ReviewAction.KEEP
    target_path: str | None = None
    title: str | None = None

    @classmethod
    def keep(cls, title: str | None = None) -> ReviewDecision:
        return cls(ReviewAction.KEEP, title=title)

    @classmethod
    def revert(cls) -> ReviewDecision:
        return cls(ReviewAction.REVERT)

    @classmethod
    def retarget(cls, path: str, title: str | None = None) -> ReviewDecision:
        return cls(ReviewAction.RETARGET, target_path=path, title=title)


@runtime_checkable
class ReviewPresenter(Protocol):
    async def present(self, review: PendingReview) -> ReviewDecision:
        """Show the applied move and wait for the user's decision.

        The caller enforces the display timeout; an unanswered review keeps
        the move.
        """
        ...

    async def notify_paused(self, resume_in: float) -> None:
        """Tell the user auto-organize is paused while a bulk import runs."""
        ...

    async def notify_failed(self, entry: Entry, message: str) -> None: ...


class LoggingReviewPresenter:
    """Headless presenter: records every event in the log and keeps all moves."""

    async def present(self, review: PendingReview) -> ReviewDecision:
        logger.info(
            "auto_organize_review",
            extra={
                "bookmark_id": review.entry.id,
                "target_path": review.target_path,
                "suggested_title": review.suggested_title,
            },
        )
        return ReviewDecision.keep()

    async def notify_paused(self, resume_in: float) -> None:
        logger.info("auto_organize_paused", extra={"resume_in_sec": resume_in})

    async def notify_failed(self, entry: Entry, message: str) -> None:
        logger.warning(
            "auto_organize_failed_notice",
            extra={"bookmark_id": entry.id, "error": message},
        )
