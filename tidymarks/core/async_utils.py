"""Async helper utilities."""

from __future__ import annotations

import asyncio

from tidymarks.domain.exceptions.domain_exceptions import OperationCancelledError


def raise_if_cancelled(exc: BaseException) -> None:
    """Re-raise ``asyncio.CancelledError`` instances to preserve cancellation semantics."""

    if isinstance(exc, asyncio.CancelledError):  # pragma: no cover - simple guard
        raise exc


class CancellationToken:
    """Cooperative cancellation flag for one long-running operation.

    The flag is advisory: work units check it before starting and stop early,
    already applied mutations stay applied.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled by user") -> None:
        self._cancelled = True
        self._reason = reason

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise OperationCancelledError(self._reason or "Operation cancelled")
