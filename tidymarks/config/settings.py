from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from tidymarks.domain.exceptions.domain_exceptions import ConfigurationError

from ._validators import _parse_bool
from .classifier import ClassifierConfig
from .engine import DeadLinkConfig, ExecutionConfig, IngestConfig

logger = logging.getLogger(__name__)


class RuntimeConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    json_logs: bool = Field(default=False, validation_alias="TIDYMARKS_JSON_LOGS")
    log_file: str | None = Field(default=None, validation_alias="TIDYMARKS_LOG_FILE")

    @field_validator("log_level", mode="before")
    @classmethod
    def _validate_log_level(cls, value: Any) -> str:
        log_level = str(value or "INFO").upper()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if log_level not in valid_levels:
            msg = f"Invalid log level: {value}. Must be one of {valid_levels}"
            raise ValueError(msg)
        return log_level

    @field_validator("json_logs", mode="before")
    @classmethod
    def _validate_json_logs(cls, value: Any) -> bool:
        return _parse_bool(value, default=False)

    @field_validator("log_file", mode="before")
    @classmethod
    def _validate_log_file(cls, value: Any) -> str | None:
        if value is None:
            return None
        trimmed = str(value).strip()
        if not trimmed:
            return None
        if "\x00" in trimmed:
            msg = "Log file path contains invalid characters"
            raise ValueError(msg)
        return trimmed


@dataclass(frozen=True)
class AppConfig:
    classifier: ClassifierConfig
    dead_links: DeadLinkConfig
    execution: ExecutionConfig
    ingest: IngestConfig
    runtime: RuntimeConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env``.

    Nested sections are populated by matching ``validation_alias`` on each of
    their fields against the flat environment.
    """

    model_config = SettingsConfigDict(
        extra="ignore",
        populate_by_name=True,
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    dead_links: DeadLinkConfig = Field(default_factory=DeadLinkConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    ingest: IngestConfig = Field(default_factory=IngestConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)

    @model_validator(mode="before")
    @classmethod
    def _build_nested_from_env(cls, data: dict[str, Any]) -> dict[str, Any]:
        """Build nested config objects from flat environment variables.

        Constructor arguments take precedence over the environment.
        """
        if not isinstance(data, dict):
            return data

        result = dict(data)
        merged_source = {**dict(os.environ), **data}

        for field_name, field_info in cls.model_fields.items():
            annotation = field_info.annotation
            if not isinstance(annotation, type) or not issubclass(annotation, BaseModel):
                continue

            nested_data: dict[str, Any] = {}
            for nested_field_name, nested_field in annotation.model_fields.items():
                env_value = cls._resolve_env_value(merged_source, nested_field)
                if env_value is not None:
                    nested_data[nested_field_name] = env_value

            if nested_data:
                if field_name in result and isinstance(result[field_name], dict):
                    result[field_name] = {**nested_data, **result[field_name]}
                else:
                    result[field_name] = nested_data

        return result

    @staticmethod
    def _resolve_env_value(data: dict[str, Any], field: Any) -> Any | None:
        aliases: list[str] = []
        alias = field.validation_alias
        if isinstance(alias, AliasChoices):
            for choice in alias.choices:
                if isinstance(choice, str):
                    aliases.append(choice)
        elif isinstance(alias, str):
            aliases.append(alias)
        if field.alias:
            aliases.append(field.alias)

        for name in aliases:
            if name in data:
                return data[name]
        return None

    def as_app_config(self) -> AppConfig:
        return AppConfig(
            classifier=self.classifier,
            dead_links=self.dead_links,
            execution=self.execution,
            ingest=self.ingest,
            runtime=self.runtime,
        )


def load_config(**overrides: Any) -> AppConfig:
    """Load configuration from the environment and ``.env``.

    Keyword arguments override sections, e.g.
    ``load_config(classifier={"api_key": "..."})``.

    Raises:
        ConfigurationError: If a value fails validation.
    """
    try:
        settings = Settings(**overrides)
    except ValidationError as exc:
        msg = f"Configuration validation failed: {exc}"
        raise ConfigurationError(msg) from exc

    if not settings.classifier.has_credentials:
        logger.debug("classifier_api_key_missing")
    return settings.as_app_config()
