"""Batched classification plan generation.

Entries are split into contiguous batches that keep input order. Batches are
sent one at a time; a batch that fails is logged and skipped so that the
others still contribute to the merged plan.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from tidymarks.core.async_utils import raise_if_cancelled
from tidymarks.domain.exceptions.domain_exceptions import ClassificationError
from tidymarks.domain.models.plan import Plan, hydrate_plan

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from tidymarks.adapters.llm.protocol import ClassifierProtocol
    from tidymarks.core.async_utils import CancellationToken
    from tidymarks.domain.models.entry import Entry

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50
DEFAULT_PROGRESS_RANGE = (10, 90)


def split_batches(entries: Sequence[Entry], batch_size: int) -> list[list[Entry]]:
    if batch_size < 1:
        msg = "batch_size must be at least 1"
        raise ValueError(msg)
    return [list(entries[i : i + batch_size]) for i in range(0, len(entries), batch_size)]


class ClassificationBatcher:
    def __init__(
        self,
        classifier: ClassifierProtocol,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        if batch_size < 1:
            msg = "batch_size must be at least 1"
            raise ValueError(msg)
        self._classifier = classifier
        self._batch_size = batch_size

    async def generate_plan(
        self,
        entries: Sequence[Entry],
        folder_summary: str,
        *,
        entries_by_id: Mapping[str, Entry] | None = None,
        token: CancellationToken | None = None,
        on_progress: Callable[[int, str], None] | None = None,
        on_batch_failed: Callable[[int, int, str], None] | None = None,
        progress_range: tuple[int, int] = DEFAULT_PROGRESS_RANGE,
    ) -> Plan:
        """Classify ``entries`` batch by batch and merge the partial plans.

        Args:
            entries: Entries to classify, in the order batches should follow.
            folder_summary: Existing folder paths handed to the classifier.
            entries_by_id: Lookup used to hydrate display fields. Defaults to
                ``entries`` itself.
            token: Checked before each batch.
            on_progress: Called with ``(percentage, message)`` before each batch.
            on_batch_failed: Called with ``(batch_number, batch_count, error)``.
            progress_range: Percentages the batches are spread across.

        Raises:
            OperationCancelledError: If ``token`` is cancelled between batches.
        """
        batches = split_batches(entries, self._batch_size)
        total = len(batches)
        low, high = progress_range
        master = Plan()
        failed = 0

        logger.info(
            "classification_started",
            extra={"entries": len(entries), "batches": total, "batch_size": self._batch_size},
        )

        for index, batch in enumerate(batches):
            if token is not None:
                token.raise_if_cancelled()

            batch_number = index + 1
            if on_progress is not None:
                percentage = low + math.floor(index / total * (high - low))
                on_progress(percentage, f"Analyzing batch {batch_number}/{total}")

            try:
                partial = await self._classifier.classify(batch, folder_summary)
            except ClassificationError as exc:
                failed += 1
                logger.warning(
                    "classification_batch_failed",
                    extra={
                        "batch": batch_number,
                        "batches": total,
                        "error": exc.message,
                        "kind": exc.kind,
                    },
                )
                if on_batch_failed is not None:
                    on_batch_failed(batch_number, total, exc.message)
                continue
            except Exception as exc:
                raise_if_cancelled(exc)
                failed += 1
                logger.exception(
                    "classification_batch_crashed",
                    extra={"batch": batch_number, "batches": total},
                )
                if on_batch_failed is not None:
                    on_batch_failed(batch_number, total, str(exc))
                continue

            master.extend(partial)
            logger.info(
                "classification_batch_merged",
                extra={
                    "batch": batch_number,
                    "batches": total,
                    "moves": len(partial.bookmarks_to_move),
                    "items": partial.total_items(),
                },
            )

        lookup = entries_by_id if entries_by_id is not None else {e.id: e for e in entries}
        hydrate_plan(master, lookup)

        logger.info(
            "classification_finished",
            extra={"batches": total, "failed_batches": failed, "items": master.total_items()},
        )
        return master
