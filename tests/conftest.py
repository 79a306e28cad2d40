import threading

import pytest

from aeo_visibility.models import PlatformResult, Sentiment
from aeo_visibility.registry import JourneyStage, Platform, Region

ACME_ANSWER = (
    "Here are the leading options:\n"
    "1. Acme - excellent quality and highly rated\n"
    "2. Globex - popular with small teams\n"
    "3. Initech\n"
    "Source: acme.com"
)


class FakeCompletionClient:
    """Scripted completions keyed by model id; exceptions are raised."""

    def __init__(self, responses=None, default=ACME_ANSWER):
        self.responses = dict(responses or {})
        self.default = default
        self.calls = []
        self._lock = threading.Lock()

    def complete(self, system_prompt, user_prompt, model_id, max_tokens, temperature):
        with self._lock:
            self.calls.append(
                {
                    "system_prompt": system_prompt,
                    "user_prompt": user_prompt,
                    "model_id": model_id,
                }
            )
        reply = self.responses.get(model_id, self.default)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def fake_client():
    return FakeCompletionClient()


def make_result(
    platform=Platform.CHATGPT,
    *,
    mentioned=True,
    position=None,
    sentiment=Sentiment.NEUTRAL,
    stage=JourneyStage.AWARENESS,
    raw_response="Acme is an option.",
    competitors=(),
    citations=(),
    query="What are the best tools?",
):
    return PlatformResult(
        platform=platform,
        display_name=platform.display_name,
        tier=platform.tier,
        mentioned=mentioned,
        position=position,
        sentiment=sentiment,
        snippet="Acme" if mentioned else "",
        raw_response=raw_response,
        competitors=tuple(competitors),
        citations=tuple(citations),
        journey_stage=stage,
        region=Region.GLOBAL,
        query=query,
    )
