import pytest
import requests

from aeo_visibility.errors import CompletionError, RateLimitError
from aeo_visibility.llm import (
    OPENROUTER_SECRET,
    OpenRouterClient,
    SecretsManager,
    TokenBucket,
    system_prompt_for,
)
from aeo_visibility.registry import Region

pytestmark = pytest.mark.unit


def fake_response(payload):
    class Response:
        def raise_for_status(self):
            return None

        def json(self):
            return payload

    return Response()


def build_client(**overrides):
    secrets = SecretsManager()
    secrets.register_key(OPENROUTER_SECRET, "fake-openrouter-key", quota_limit=100)
    options = {
        "secrets": secrets,
        "token_bucket": TokenBucket(capacity=5, refill_rate_per_min=60),
        "base_url": "https://router.test/api/v1/",
        "timeout": 12,
    }
    options.update(overrides)
    return OpenRouterClient(**options)


def test_openrouter_client_posts_chat_completion(monkeypatch):
    observed = {}

    def fake_post(self, url, headers=None, json=None, timeout=None):
        observed.update(url=url, headers=headers, payload=json, timeout=timeout)
        return fake_response(
            {
                "choices": [{"message": {"content": "Acme is a great pick."}}],
                "usage": {"total_tokens": 90},
            }
        )

    monkeypatch.setattr(requests.Session, "post", fake_post)
    client = build_client()
    text = client.complete("system", "best tools?", "openai/gpt-4o-mini", 800, 0.7)

    assert text == "Acme is a great pick."
    assert observed["url"] == "https://router.test/api/v1/chat/completions"
    assert observed["headers"]["Authorization"] == "Bearer fake-openrouter-key"
    assert observed["payload"]["model"] == "openai/gpt-4o-mini"
    assert observed["payload"]["messages"][1] == {"role": "user", "content": "best tools?"}
    assert observed["timeout"] == 12
    (alert,) = client.secrets.consume_alerts()
    assert alert["usage"] == 90


def test_empty_choices_raise_completion_error(monkeypatch):
    monkeypatch.setattr(
        requests.Session, "post", lambda self, url, **kwargs: fake_response({"choices": []})
    )
    with pytest.raises(CompletionError):
        build_client().complete("s", "u", "m", 10, 0.1)


def test_transport_timeout_is_wrapped(monkeypatch):
    def fake_post(self, url, **kwargs):
        raise requests.Timeout("slow")

    monkeypatch.setattr(requests.Session, "post", fake_post)
    with pytest.raises(CompletionError, match="timed out"):
        build_client().complete("s", "u", "m", 10, 0.1)


def test_missing_key_is_a_completion_error(monkeypatch):
    monkeypatch.setattr(
        requests.Session,
        "post",
        lambda self, url, **kwargs: pytest.fail("no request expected"),
    )
    client = build_client(secrets=SecretsManager())
    with pytest.raises(CompletionError, match="not configured"):
        client.complete("s", "u", "m", 10, 0.1)


def test_token_bucket_limits_requests():
    bucket = TokenBucket(capacity=1, refill_rate_per_min=1)
    bucket.consume()
    with pytest.raises(RateLimitError):
        bucket.consume()


def test_secrets_manager_reads_environment(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "env-key")
    assert SecretsManager.from_env().get_key(OPENROUTER_SECRET) == "env-key"
    monkeypatch.delenv("OPENROUTER_API_KEY")
    assert not SecretsManager.from_env().has_key(OPENROUTER_SECRET)


def test_system_prompt_is_regionalized():
    assert "located" not in system_prompt_for(Region.GLOBAL)
    assert "in Japan" in system_prompt_for(Region.JP)


def test_revoked_key_is_gone():
    secrets = SecretsManager()
    secrets.register_key(OPENROUTER_SECRET, "k")
    secrets.revoke_key(OPENROUTER_SECRET)
    with pytest.raises(KeyError):
        secrets.get_key(OPENROUTER_SECRET)
