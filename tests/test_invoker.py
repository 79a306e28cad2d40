import threading
import time

import pytest

from aeo_visibility.analytics import AnalyticsTracker, EventName
from aeo_visibility.analyzer import ResponseAnalyzer
from aeo_visibility.config import EngineSettings
from aeo_visibility.invoker import InvocationTask, PlatformInvoker
from aeo_visibility.logger import ProcessLogger
from aeo_visibility.models import Sentiment
from aeo_visibility.registry import JourneyStage, Platform, Region

from conftest import FakeCompletionClient

pytestmark = pytest.mark.unit


def build_tasks(*platforms, stage=JourneyStage.AWARENESS):
    return [
        InvocationTask(platform=platform, stage=stage, query=f"best tools ({platform.value})")
        for platform in platforms
    ]


def test_failed_call_yields_neutral_result():
    client = FakeCompletionClient(
        responses={Platform.CLAUDE.model_id: TimeoutError("provider timed out")}
    )
    tracker = AnalyticsTracker()
    logger = ProcessLogger()
    invoker = PlatformInvoker(client, tracker=tracker, logger=logger)

    outcome = invoker.invoke(build_tasks(Platform.CHATGPT, Platform.CLAUDE), "Acme")

    assert len(outcome.results) == 2
    assert outcome.failures == 1
    assert outcome.cancelled is False
    chatgpt, claude = outcome.results
    assert chatgpt.platform is Platform.CHATGPT
    assert chatgpt.mentioned is True
    assert chatgpt.position == 1
    assert claude.raw_response == ""
    assert claude.mentioned is False
    assert claude.failed is True

    (event,) = [e for e in tracker.events if e.name == "platform_failed"]
    assert event.payload["platform"] == "claude"
    assert event.payload["journey_stage"] == "awareness"
    assert "provider timed out" in event.payload["reason"]
    assert any("[Invoker] Claude check failed for 'Acme'" in line for line in logger.entries)


def test_empty_completion_counts_as_failure():
    client = FakeCompletionClient(default="   ")
    outcome = PlatformInvoker(client).invoke(build_tasks(Platform.CHATGPT), "Acme")
    assert outcome.failures == 1
    assert outcome.results[0].failed


class UnavailableClassifier:
    def classify(self, text):
        raise RuntimeError("classifier backend down")


def test_analysis_failure_yields_neutral_result():
    tracker = AnalyticsTracker()
    invoker = PlatformInvoker(
        FakeCompletionClient(),
        analyzer=ResponseAnalyzer(sentiment_classifier=UnavailableClassifier()),
        tracker=tracker,
    )

    outcome = invoker.invoke(build_tasks(Platform.CHATGPT, Platform.CLAUDE), "Acme")

    assert outcome.failures == 2
    assert [r.platform for r in outcome.results] == [Platform.CHATGPT, Platform.CLAUDE]
    assert all(r.failed and r.sentiment is Sentiment.NEUTRAL for r in outcome.results)
    reasons = [e.payload["reason"] for e in tracker.named(EventName.PLATFORM_FAILED)]
    assert reasons == ["analysis failed: classifier backend down"] * 2


def test_concurrency_is_bounded():
    active = []
    peak = []
    lock = threading.Lock()

    class SlowClient:
        def complete(self, system_prompt, user_prompt, model_id, max_tokens, temperature):
            with lock:
                active.append(1)
                peak.append(len(active))
            time.sleep(0.05)
            with lock:
                active.pop()
            return "Acme"

    settings = EngineSettings(max_concurrency=2, call_timeout=5)
    tasks = build_tasks(*list(Platform)[:8])
    outcome = PlatformInvoker(SlowClient(), settings=settings).invoke(tasks, "Acme")

    assert len(outcome.results) == 8
    assert outcome.failures == 0
    assert max(peak) <= 2


def test_cancellation_returns_neutral_results():
    cancel = threading.Event()
    cancel.set()
    client = FakeCompletionClient()
    outcome = PlatformInvoker(client).invoke(
        build_tasks(Platform.CHATGPT, Platform.GEMINI), "Acme", cancel_event=cancel
    )
    assert outcome.cancelled is True
    assert len(outcome.results) == 2
    assert all(result.failed for result in outcome.results)
    assert client.calls == []


def test_overdue_calls_are_abandoned():
    release = threading.Event()

    class HangingClient:
        def complete(self, system_prompt, user_prompt, model_id, max_tokens, temperature):
            release.wait(2)
            return "Acme"

    settings = EngineSettings(max_concurrency=1, call_timeout=0.2)
    logger = ProcessLogger()
    try:
        outcome = PlatformInvoker(HangingClient(), settings=settings, logger=logger).invoke(
            build_tasks(Platform.CHATGPT), "Acme"
        )
    finally:
        release.set()
    assert outcome.failures == 1
    assert outcome.results[0].failed
    assert any("timed out and was abandoned" in line for line in logger.entries)


def test_region_shapes_system_prompt():
    client = FakeCompletionClient()
    task = InvocationTask(
        platform=Platform.CHATGPT,
        stage=JourneyStage.DECISION,
        query="Is Acme worth it?",
        region=Region.FR,
    )
    outcome = PlatformInvoker(client).invoke([task], "Acme")
    assert "in France" in client.calls[0]["system_prompt"]
    assert client.calls[0]["model_id"] == Platform.CHATGPT.model_id
    assert outcome.results[0].region is Region.FR
