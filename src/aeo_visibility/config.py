from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from .errors import InvalidInputError

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"


@dataclass(frozen=True)
class EngineSettings:
    """Process-level knobs for invoking completion providers."""

    max_concurrency: int = 4
    call_timeout: float = 30.0
    max_tokens: int = 800
    temperature: float = 0.7
    requests_per_minute: int = 60
    openrouter_base_url: str = DEFAULT_BASE_URL

    def __post_init__(self) -> None:
        if self.max_concurrency < 1:
            raise InvalidInputError("max_concurrency must be at least 1")
        if self.call_timeout <= 0:
            raise InvalidInputError("call_timeout must be positive")
        if self.requests_per_minute < 1:
            raise InvalidInputError("requests_per_minute must be at least 1")

    @classmethod
    def from_env(cls) -> "EngineSettings":
        return cls(
            max_concurrency=_int_env("AEO_MAX_CONCURRENCY", cls.max_concurrency),
            call_timeout=_float_env("AEO_CALL_TIMEOUT", cls.call_timeout),
            requests_per_minute=_int_env(
                "AEO_REQUESTS_PER_MINUTE", cls.requests_per_minute
            ),
            openrouter_base_url=os.getenv("OPENROUTER_BASE_URL") or DEFAULT_BASE_URL,
        )


def _int_env(name: str, default: int) -> int:
    value = _raw_env(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise InvalidInputError(f"{name} must be an integer, got '{value}'") from None


def _float_env(name: str, default: float) -> float:
    value = _raw_env(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise InvalidInputError(f"{name} must be a number, got '{value}'") from None


def _raw_env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()
