from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

import requests

from .config import DEFAULT_BASE_URL
from .errors import CompletionError, RateLimitError
from .registry import Region

OPENROUTER_SECRET = "openrouter"
QUOTA_ALERT_RATIO = 0.8

log = logging.getLogger(__name__)

_BASE_SYSTEM_PROMPT = (
    "You are a helpful assistant. Provide detailed, honest information about "
    "brands and products when asked. Include specific brand names, "
    "recommendations and sources when relevant."
)


def system_prompt_for(region: Region = Region.GLOBAL) -> str:
    if region is Region.GLOBAL:
        return _BASE_SYSTEM_PROMPT
    return (
        f"{_BASE_SYSTEM_PROMPT} The user is located {region.market_context}; "
        f"prioritise brands and stores available to shoppers {region.market_context}."
    )


class CompletionClient(Protocol):
    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model_id: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        ...


@dataclass
class ApiKey:
    value: str
    quota_limit: int = 0
    expires_at: Optional[float] = None
    usage: int = 0
    alerted: bool = False

    @property
    def near_quota(self) -> bool:
        return bool(self.quota_limit) and self.usage >= self.quota_limit * QUOTA_ALERT_RATIO


class SecretsManager:
    """Thread-safe API key registry that raises an alert near quota."""

    def __init__(self) -> None:
        self._keys: Dict[str, ApiKey] = {}
        self._alerts: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    @classmethod
    def from_env(cls) -> "SecretsManager":
        secrets = cls()
        value = os.getenv("OPENROUTER_API_KEY")
        if value:
            secrets.register_key(OPENROUTER_SECRET, value.strip())
        return secrets

    def register_key(
        self,
        name: str,
        api_key: str,
        *,
        quota_limit: int = 0,
        expires_at: Optional[float] = None,
    ) -> None:
        with self._lock:
            self._keys[name] = ApiKey(api_key, quota_limit, expires_at)

    def has_key(self, name: str) -> bool:
        with self._lock:
            return name in self._keys

    def get_key(self, name: str) -> str:
        with self._lock:
            key = self._keys.get(name)
        if key is None:
            raise KeyError(f"Secret '{name}' not found")
        return key.value

    def revoke_key(self, name: str) -> None:
        with self._lock:
            self._keys.pop(name, None)

    def record_usage(self, name: str, used_tokens: int) -> None:
        if used_tokens <= 0:
            return
        alerted = False
        with self._lock:
            key = self._keys.get(name)
            if key is None:
                return
            key.usage += used_tokens
            if key.near_quota and not key.alerted:
                key.alerted = alerted = True
                self._alerts.append(
                    {
                        "name": name,
                        "message": f"{name} key usage passed {QUOTA_ALERT_RATIO:.0%} of quota",
                        "usage": key.usage,
                        "quota_limit": key.quota_limit,
                        "expires_at": key.expires_at,
                    }
                )
        if alerted:
            log.warning("API key %s is close to its quota (%d tokens used)", name, key.usage)

    def consume_alerts(self) -> List[Dict[str, Any]]:
        with self._lock:
            alerts, self._alerts = self._alerts, []
        return alerts


class TokenBucket:
    """Requests-per-minute budget shared by every concurrent call."""

    def __init__(self, *, capacity: int = 60, refill_rate_per_min: int = 60) -> None:
        self.capacity = float(capacity)
        self._tokens = float(capacity)
        self._per_second = refill_rate_per_min / 60.0
        self._stamp = time.monotonic()
        self._lock = threading.Lock()

    def consume(self, tokens: int = 1) -> None:
        with self._lock:
            self._refill()
            if self._tokens < tokens:
                raise RateLimitError(
                    f"Request budget exhausted ({self._tokens:.1f} of {tokens} available)"
                )
            self._tokens -= tokens

    def _refill(self) -> None:
        now = time.monotonic()
        if now > self._stamp:
            self._tokens = min(self.capacity, self._tokens + (now - self._stamp) * self._per_second)
            self._stamp = now


class OpenRouterClient:
    """OpenAI-compatible POST /chat/completions against OpenRouter."""

    def __init__(
        self,
        *,
        secrets: SecretsManager,
        token_bucket: Optional[TokenBucket] = None,
        base_url: str = DEFAULT_BASE_URL,
        secret_name: str = OPENROUTER_SECRET,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
        app_url: str = "https://aeo-visibility.local",
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.secrets = secrets
        self.secret_name = secret_name
        self.token_bucket = token_bucket or TokenBucket()
        self.timeout = timeout
        self.session = session or requests.Session()
        self.app_url = app_url

    def _headers(self) -> Dict[str, str]:
        try:
            api_key = self.secrets.get_key(self.secret_name)
        except KeyError as exc:
            raise CompletionError("OpenRouter API key not configured") from exc
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.app_url,
            "X-Title": "AEO Visibility Engine",
        }

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.token_bucket.consume()
        try:
            response = self.session.post(
                f"{self.base_url}/chat/completions",
                headers=self._headers(),
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.Timeout as exc:
            raise CompletionError(f"Request timed out after {self.timeout}s") from exc
        except (requests.RequestException, ValueError) as exc:
            raise CompletionError(str(exc)) from exc
        usage = data.get("usage") or {}
        self.secrets.record_usage(self.secret_name, int(usage.get("total_tokens", 0)))
        return data

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model_id: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        data = self._post(
            {
                "model": model_id,
                "messages": [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        choices = data.get("choices")
        if not choices:
            raise CompletionError("No choices returned")
        message = choices[0].get("message") or {}
        content = message.get("content") or ""
        if not content.strip():
            raise CompletionError("Empty completion")
        return content
