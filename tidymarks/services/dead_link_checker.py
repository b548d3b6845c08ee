"""Bounded-concurrency dead-link detection.

Entries are probed in fixed windows of ``concurrency``; a window finishes
completely before the next starts. Every probe has its own timeout.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from tidymarks.core.async_utils import raise_if_cancelled
from tidymarks.core.url_utils import is_probeable_url
from tidymarks.domain.models.plan import DeadLinkReason, RemoveDeadLink

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from tidymarks.adapters.probe.http_prober import LinkProber
    from tidymarks.core.async_utils import CancellationToken
    from tidymarks.domain.models.entry import Entry

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 5
DEFAULT_PROBE_TIMEOUT_SEC = 8.0


class DeadLinkChecker:
    def __init__(
        self,
        prober: LinkProber,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        timeout: float = DEFAULT_PROBE_TIMEOUT_SEC,
    ) -> None:
        if concurrency < 1:
            msg = "concurrency must be at least 1"
            raise ValueError(msg)
        if timeout <= 0:
            msg = "timeout must be positive"
            raise ValueError(msg)
        self._prober = prober
        self._concurrency = concurrency
        self._timeout = timeout

    async def check(
        self,
        entries: Sequence[Entry],
        *,
        token: CancellationToken | None = None,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> list[RemoveDeadLink]:
        """Probe every URL entry and return the unreachable ones.

        Non-HTTP URLs (``javascript:``, ``file:``, ...) are not probed and never
        flagged. Cancellation stops before the next window; probes that are
        in flight when it happens are not flagged.
        """
        targets = [entry for entry in entries if is_probeable_url(entry.url)]
        total = len(targets)
        dead: list[RemoveDeadLink] = []
        processed = 0

        def _probe_done() -> None:
            nonlocal processed
            processed += 1
            if on_progress is not None:
                on_progress(processed, total)

        async def _check_one(entry: Entry) -> RemoveDeadLink | None:
            if token is not None and token.cancelled:
                return None
            url = entry.url or ""
            try:
                await asyncio.wait_for(self._prober.probe(url, timeout=self._timeout), self._timeout)
                return None
            except TimeoutError:
                reason = DeadLinkReason.TIMEOUT
            except Exception as exc:
                raise_if_cancelled(exc)
                logger.debug(
                    "dead_link_probe_failed",
                    extra={"bookmark_id": entry.id, "error": str(exc)[:200]},
                )
                reason = DeadLinkReason.NETWORK_ERROR
            finally:
                _probe_done()

            if token is not None and token.cancelled:
                return None
            return RemoveDeadLink(
                bookmark_id=entry.id,
                title=entry.title,
                url=entry.url,
                old_path=entry.path,
                reason=reason,
            )

        for start in range(0, total, self._concurrency):
            if token is not None and token.cancelled:
                logger.info(
                    "dead_link_check_cancelled",
                    extra={"processed": processed, "total": total},
                )
                break
            window = targets[start : start + self._concurrency]
            results = await asyncio.gather(*(_check_one(entry) for entry in window))
            dead.extend(item for item in results if item is not None)

        logger.info(
            "dead_link_check_complete",
            extra={"checked": processed, "total": total, "dead": len(dead)},
        )
        return dead
