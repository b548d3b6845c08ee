from __future__ import annotations

from typing import Any


def validate_model_name(model: str) -> str:
    """Validate a model identifier; empty means "use the provider default"."""
    if not model:
        return ""
    if len(model) > 100:
        msg = "Model name too long"
        raise ValueError(msg)

    if ".." in model or "<" in model or ">" in model or "\\" in model:
        msg = "Model name contains invalid characters"
        raise ValueError(msg)

    allowed = set("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789-_.:/")
    if any(ch not in allowed for ch in model):
        msg = "Model name contains invalid characters"
        raise ValueError(msg)

    return model


def _clean_api_key(value: str) -> str:
    """Normalize an optional API key; missing keys are reported when used."""
    value = value.strip()
    if not value:
        return ""
    if len(value) > 500:
        msg = "API key appears to be too long"
        raise ValueError(msg)
    if any(char in value for char in [" ", "\n", "\t"]):
        msg = "API key contains invalid characters"
        raise ValueError(msg)
    return value


def _parse_bool(value: Any, *, default: bool) -> bool:
    if value in (None, ""):
        return default
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    msg = f"Invalid boolean value: {value}"
    raise ValueError(msg)


def _positive_float(value: Any, *, name: str, default: float, maximum: float) -> float:
    try:
        parsed = float(str(value if value not in (None, "") else default))
    except ValueError as exc:
        msg = f"{name} must be a number"
        raise ValueError(msg) from exc
    if parsed <= 0:
        msg = f"{name} must be positive"
        raise ValueError(msg)
    if parsed > maximum:
        msg = f"{name} too large (max {maximum:g})"
        raise ValueError(msg)
    return parsed


def _bounded_int(value: Any, *, name: str, default: int, minimum: int, maximum: int) -> int:
    try:
        parsed = int(str(value if value not in (None, "") else default))
    except ValueError as exc:
        msg = f"{name} must be a valid integer"
        raise ValueError(msg) from exc
    if parsed < minimum or parsed > maximum:
        msg = f"{name} must be between {minimum} and {maximum}"
        raise ValueError(msg)
    return parsed
