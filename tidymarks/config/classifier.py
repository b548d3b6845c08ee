from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ._validators import _bounded_int, _clean_api_key, _positive_float, validate_model_name

Provider = Literal["openai", "deepseek", "gemini", "custom"]

PROVIDER_DEFAULTS: dict[str, tuple[str, str]] = {
    "openai": ("https://api.openai.com/v1/chat/completions", "gpt-4o"),
    "deepseek": ("https://api.deepseek.com/chat/completions", "deepseek-chat"),
    "gemini": (
        "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent",
        "gemini-pro",
    ),
    "custom": ("", ""),
}

SUPPORTED_LANGUAGES = ("zh-CN", "en")


class ClassifierConfig(BaseModel):
    """Remote classifier credentials and batching."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    provider: Provider = Field(default="openai", validation_alias="TIDYMARKS_API_PROVIDER")
    endpoint: str = Field(default="", validation_alias="TIDYMARKS_API_ENDPOINT")
    api_key: str = Field(default="", validation_alias="TIDYMARKS_API_KEY")
    model: str = Field(default="", validation_alias="TIDYMARKS_MODEL")
    target_language: str = Field(default="zh-CN", validation_alias="TIDYMARKS_TARGET_LANGUAGE")
    batch_size: int = Field(default=50, validation_alias="TIDYMARKS_BATCH_SIZE")
    timeout_sec: float = Field(default=120.0, validation_alias="TIDYMARKS_CLASSIFIER_TIMEOUT_SEC")
    temperature: float = Field(default=0.2, validation_alias="TIDYMARKS_TEMPERATURE")

    @field_validator("provider", mode="before")
    @classmethod
    def _validate_provider(cls, value: Any) -> str:
        provider = str(value or "openai").lower().strip()
        if provider not in PROVIDER_DEFAULTS:
            msg = f"Invalid API provider: {provider}. Must be one of {sorted(PROVIDER_DEFAULTS)}"
            raise ValueError(msg)
        return provider

    @field_validator("endpoint", mode="before")
    @classmethod
    def _validate_endpoint(cls, value: Any) -> str:
        endpoint = str(value or "").strip()
        if endpoint and not endpoint.startswith(("http://", "https://")):
            msg = "API endpoint must be an http(s) URL"
            raise ValueError(msg)
        return endpoint

    @field_validator("api_key", mode="before")
    @classmethod
    def _validate_api_key(cls, value: Any) -> str:
        return _clean_api_key(str(value or ""))

    @field_validator("model", mode="before")
    @classmethod
    def _validate_model(cls, value: Any) -> str:
        return validate_model_name(str(value or "").strip())

    @field_validator("target_language", mode="before")
    @classmethod
    def _validate_language(cls, value: Any) -> str:
        lang = str(value or "zh-CN").strip()
        if lang not in SUPPORTED_LANGUAGES:
            msg = f"Invalid target language: {lang}. Must be one of {SUPPORTED_LANGUAGES}"
            raise ValueError(msg)
        return lang

    @field_validator("batch_size", mode="before")
    @classmethod
    def _validate_batch_size(cls, value: Any) -> int:
        return _bounded_int(value, name="Batch size", default=50, minimum=1, maximum=500)

    @field_validator("timeout_sec", mode="before")
    @classmethod
    def _validate_timeout(cls, value: Any) -> float:
        return _positive_float(value, name="Classifier timeout", default=120.0, maximum=3600.0)

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)

    @property
    def resolved_model(self) -> str:
        return self.model or PROVIDER_DEFAULTS[self.provider][1]

    @property
    def resolved_endpoint(self) -> str:
        if self.endpoint:
            return self.endpoint
        return PROVIDER_DEFAULTS[self.provider][0].format(model=self.resolved_model)
