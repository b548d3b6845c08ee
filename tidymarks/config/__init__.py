from __future__ import annotations

from ._validators import validate_model_name
from .classifier import PROVIDER_DEFAULTS, ClassifierConfig
from .engine import DeadLinkConfig, ExecutionConfig, IngestConfig
from .settings import AppConfig, RuntimeConfig, Settings, load_config

__all__ = [
    "PROVIDER_DEFAULTS",
    "AppConfig",
    "ClassifierConfig",
    "DeadLinkConfig",
    "ExecutionConfig",
    "IngestConfig",
    "RuntimeConfig",
    "Settings",
    "load_config",
    "validate_model_name",
]
