"""Flood detection for bursts of bookmark creations (imports, sync restores)."""

from __future__ import annotations

import logging
from collections import deque
from enum import Enum

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SEC = 2.0
DEFAULT_THRESHOLD = 5
DEFAULT_PAUSE_SEC = 10.0


class GuardState(str, Enum):
    NORMAL = "normal"
    IMPORTING = "importing"


class ImportGuard:
    """Sliding-window creation counter.

    More than ``threshold`` creations inside ``window`` seconds switches the
    guard to ``IMPORTING``. While importing, every further creation pushes the
    end of the pause to ``pause`` seconds after it. Leaving ``IMPORTING``
    clears the history. The guard is clock-agnostic: callers pass timestamps
    in seconds from any monotonic source.
    """

    def __init__(
        self,
        *,
        window: float = DEFAULT_WINDOW_SEC,
        threshold: int = DEFAULT_THRESHOLD,
        pause: float = DEFAULT_PAUSE_SEC,
    ) -> None:
        self.window = window
        self.threshold = threshold
        self.pause = pause
        self.state = GuardState.NORMAL
        self.resume_at: float | None = None
        self._history: deque[float] = deque()

    @property
    def importing(self) -> bool:
        return self.state is GuardState.IMPORTING

    def record_creation(self, now: float) -> bool:
        """Register a creation; return True if it switched the guard to importing."""
        self._history.append(now)
        while self._history and now - self._history[0] > self.window:
            self._history.popleft()

        if self.importing:
            self.resume_at = now + self.pause
            return False

        if len(self._history) > self.threshold:
            self.state = GuardState.IMPORTING
            self.resume_at = now + self.pause
            logger.info(
                "import_guard_engaged",
                extra={"creations": len(self._history), "window_sec": self.window},
            )
            return True
        return False

    def expire(self, now: float) -> bool:
        """Leave importing if the pause has elapsed; return True on exit."""
        if not self.importing or self.resume_at is None or now < self.resume_at:
            return False
        self.state = GuardState.NORMAL
        self.resume_at = None
        self._history.clear()
        logger.info("import_guard_released")
        return True
