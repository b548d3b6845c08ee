"""Classifier protocol: the functional contract of the remote model.

Implementations turn a batch of entries plus a summary of existing folder
paths into a partial :class:`~tidymarks.domain.models.plan.Plan`, and a
single newly created entry into a target folder path.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, field_validator

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tidymarks.domain.models.entry import Entry
    from tidymarks.domain.models.plan import Plan


class SingleClassification(BaseModel):
    """Classifier verdict for one entry."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    path: str
    suggested_title: str | None = None
    reason: str | None = None

    @field_validator("path", mode="before")
    @classmethod
    def _clean_path(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().strip("/")
            if not value:
                msg = "path cannot be empty"
                raise ValueError(msg)
        return value

    @field_validator("suggested_title", "reason", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


@runtime_checkable
class ClassifierProtocol(Protocol):
    async def classify(self, batch: Sequence[Entry], folder_summary: str) -> Plan:
        """Return plan items only for entries that need to change.

        Raises:
            ClassificationError: On network, auth or malformed-reply failures.
        """
        ...

    async def classify_single(
        self, entry: Entry, folder_summary: str
    ) -> SingleClassification | None:
        """Pick the folder path for one entry, or ``None`` if no verdict."""
        ...

    async def aclose(self) -> None: ...
