from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ._validators import _bounded_int, _parse_bool, _positive_float


class DeadLinkConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    concurrency: int = Field(default=5, validation_alias="TIDYMARKS_DEAD_LINK_CONCURRENCY")
    probe_timeout_sec: float = Field(
        default=8.0, validation_alias="TIDYMARKS_DEAD_LINK_TIMEOUT_SEC"
    )
    user_agent: str = Field(
        default="Mozilla/5.0 (compatible; tidymarks link checker)",
        validation_alias="TIDYMARKS_DEAD_LINK_USER_AGENT",
    )
    verify_tls: bool = Field(default=True, validation_alias="TIDYMARKS_DEAD_LINK_VERIFY_TLS")

    @field_validator("concurrency", mode="before")
    @classmethod
    def _validate_concurrency(cls, value: Any) -> int:
        return _bounded_int(value, name="Dead link concurrency", default=5, minimum=1, maximum=100)

    @field_validator("probe_timeout_sec", mode="before")
    @classmethod
    def _validate_timeout(cls, value: Any) -> float:
        return _positive_float(value, name="Probe timeout", default=8.0, maximum=300.0)

    @field_validator("verify_tls", mode="before")
    @classmethod
    def _validate_verify(cls, value: Any) -> bool:
        return _parse_bool(value, default=True)


class ExecutionConfig(BaseModel):
    """Where plans land in the store and how folder context is cached."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    root_folder_id: str = Field(default="1", validation_alias="TIDYMARKS_ROOT_FOLDER_ID")
    archive_folder_title: str = Field(
        default="Archive", validation_alias="TIDYMARKS_ARCHIVE_FOLDER"
    )
    folder_cache_ttl_sec: float = Field(
        default=300.0, validation_alias="TIDYMARKS_FOLDER_CACHE_TTL_SEC"
    )
    folder_summary_limit: int = Field(
        default=100, validation_alias="TIDYMARKS_FOLDER_SUMMARY_LIMIT"
    )

    @field_validator("root_folder_id", "archive_folder_title", mode="before")
    @classmethod
    def _validate_non_empty(cls, value: Any) -> str:
        text = str(value or "").strip()
        if not text:
            msg = "Value cannot be empty"
            raise ValueError(msg)
        return text

    @field_validator("folder_cache_ttl_sec", mode="before")
    @classmethod
    def _validate_ttl(cls, value: Any) -> float:
        return _positive_float(value, name="Folder cache TTL", default=300.0, maximum=86400.0)

    @field_validator("folder_summary_limit", mode="before")
    @classmethod
    def _validate_summary_limit(cls, value: Any) -> int:
        return _bounded_int(value, name="Folder summary limit", default=100, minimum=1, maximum=5000)


class IngestConfig(BaseModel):
    """Auto-organize of newly created bookmarks."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    auto_categorize: bool = Field(default=False, validation_alias="TIDYMARKS_AUTO_CATEGORIZE")
    quiet_period_sec: float = Field(default=4.0, validation_alias="TIDYMARKS_QUIET_PERIOD_SEC")
    flood_window_sec: float = Field(default=2.0, validation_alias="TIDYMARKS_FLOOD_WINDOW_SEC")
    flood_threshold: int = Field(default=5, validation_alias="TIDYMARKS_FLOOD_THRESHOLD")
    import_pause_sec: float = Field(default=10.0, validation_alias="TIDYMARKS_IMPORT_PAUSE_SEC")
    review_timeout_sec: float = Field(
        default=6.0, validation_alias="TIDYMARKS_REVIEW_TIMEOUT_SEC"
    )

    @field_validator("auto_categorize", mode="before")
    @classmethod
    def _validate_toggle(cls, value: Any) -> bool:
        return _parse_bool(value, default=False)

    @field_validator(
        "quiet_period_sec",
        "flood_window_sec",
        "import_pause_sec",
        "review_timeout_sec",
        mode="before",
    )
    @classmethod
    def _validate_seconds(cls, value: Any) -> float:
        if value in (None, ""):
            msg = "Duration cannot be empty"
            raise ValueError(msg)
        return _positive_float(value, name="Duration", default=1.0, maximum=3600.0)

    @field_validator("flood_threshold", mode="before")
    @classmethod
    def _validate_threshold(cls, value: Any) -> int:
        return _bounded_int(value, name="Flood threshold", default=5, minimum=1, maximum=1000)
