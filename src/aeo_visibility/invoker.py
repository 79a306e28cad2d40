"""Bounded fan-out of (platform, journey stage, prompt) completion calls."""

from __future__ import annotations

import math
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from .analytics import AnalyticsTracker, EventName
from .analyzer import ResponseAnalyzer
from .config import EngineSettings
from .errors import CompletionError
from .llm import CompletionClient, system_prompt_for
from .logger import ProcessLogger
from .models import PlatformResult, Sentiment
from .registry import JourneyStage, Platform, Region


@dataclass(frozen=True)
class InvocationTask:
    platform: Platform
    stage: JourneyStage
    query: str
    region: Region = Region.GLOBAL


@dataclass(frozen=True)
class InvocationOutcome:
    results: List[PlatformResult]
    failures: int
    cancelled: bool


def neutral_result(task: InvocationTask) -> PlatformResult:
    return PlatformResult(
        platform=task.platform,
        display_name=task.platform.display_name,
        tier=task.platform.tier,
        mentioned=False,
        position=None,
        sentiment=Sentiment.NEUTRAL,
        snippet="",
        raw_response="",
        competitors=(),
        citations=(),
        journey_stage=task.stage,
        region=task.region,
        query=task.query,
    )


class PlatformInvoker:
    """Runs one completion per task on a bounded thread pool.

    Failures, timeouts and cancellations never propagate: the affected task
    yields a neutral result and its siblings keep running. Results come back
    in dispatch order. There are no retries within a run.
    """

    def __init__(
        self,
        client: CompletionClient,
        *,
        analyzer: Optional[ResponseAnalyzer] = None,
        settings: Optional[EngineSettings] = None,
        gate: Optional[threading.Semaphore] = None,
        logger: Optional[ProcessLogger] = None,
        tracker: Optional[AnalyticsTracker] = None,
        poll_interval: float = 0.05,
    ) -> None:
        self.client = client
        self.analyzer = analyzer or ResponseAnalyzer()
        self.settings = settings or EngineSettings()
        self.gate = gate or threading.BoundedSemaphore(self.settings.max_concurrency)
        self.logger = logger or ProcessLogger()
        self.tracker = tracker or AnalyticsTracker()
        self.poll_interval = poll_interval

    def invoke(
        self,
        tasks: Iterable[InvocationTask],
        brand: str,
        domain: Optional[str] = None,
        competitors: Sequence[str] = (),
        cancel_event: Optional[threading.Event] = None,
    ) -> InvocationOutcome:
        pending_tasks = list(tasks)
        if not pending_tasks:
            return InvocationOutcome(results=[], failures=0, cancelled=False)
        cancel = cancel_event or threading.Event()
        competitor_names = tuple(competitors)
        results: List[Optional[PlatformResult]] = [None] * len(pending_tasks)
        failures = 0

        executor = ThreadPoolExecutor(
            max_workers=min(self.settings.max_concurrency, len(pending_tasks)),
            thread_name_prefix="aeo-invoker",
        )
        futures: Dict[Future, int] = {
            executor.submit(
                self._call, task, brand, domain, competitor_names, cancel
            ): index
            for index, task in enumerate(pending_tasks)
        }
        deadline = time.monotonic() + self._time_budget(len(pending_tasks))
        outstanding = set(futures)
        try:
            while outstanding and not cancel.is_set():
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                done, outstanding = wait(
                    outstanding,
                    timeout=min(remaining, self.poll_interval),
                    return_when=FIRST_COMPLETED,
                )
                for future in done:
                    result, failed = future.result()
                    results[futures[future]] = result
                    failures += failed
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        reason = "cancelled" if cancel.is_set() else "timed out"
        for future in outstanding:
            index = futures[future]
            if future.done() and not future.cancelled():
                result, failed = future.result()
                results[index] = result
                failures += failed
                continue
            future.cancel()
            task = pending_tasks[index]
            self._record_failure(task, brand, f"call {reason} and was abandoned")
            results[index] = neutral_result(task)
            failures += 1

        return InvocationOutcome(
            results=[result for result in results if result is not None],
            failures=failures,
            cancelled=cancel.is_set(),
        )

    def _time_budget(self, task_count: int) -> float:
        waves = math.ceil(task_count / self.settings.max_concurrency)
        return self.settings.call_timeout * waves

    def _call(
        self,
        task: InvocationTask,
        brand: str,
        domain: Optional[str],
        competitors: Sequence[str],
        cancel: threading.Event,
    ) -> tuple[PlatformResult, int]:
        if cancel.is_set():
            self._record_failure(task, brand, "skipped after cancellation")
            return neutral_result(task), 1
        with self.gate:
            if cancel.is_set():
                self._record_failure(task, brand, "skipped after cancellation")
                return neutral_result(task), 1
            try:
                text = self.client.complete(
                    system_prompt_for(task.region),
                    task.query,
                    task.platform.model_id,
                    self.settings.max_tokens,
                    self.settings.temperature,
                )
                if not text or not text.strip():
                    raise CompletionError("Empty completion")
            # Any provider failure is isolated to this task.
            except Exception as exc:  # noqa: BLE001
                self._record_failure(task, brand, str(exc) or type(exc).__name__)
                return neutral_result(task), 1

        try:
            analysis = self.analyzer.analyze(text, brand, domain, competitors)
        # Analysis failures are isolated to this task as well.
        except Exception as exc:  # noqa: BLE001
            self._record_failure(
                task, brand, f"analysis failed: {str(exc) or type(exc).__name__}"
            )
            return neutral_result(task), 1
        return (
            PlatformResult(
                platform=task.platform,
                display_name=task.platform.display_name,
                tier=task.platform.tier,
                mentioned=analysis.mentioned,
                position=analysis.position,
                sentiment=analysis.sentiment,
                snippet=analysis.snippet,
                raw_response=text,
                competitors=analysis.competitors,
                citations=analysis.citations,
                journey_stage=task.stage,
                region=task.region,
                query=task.query,
            ),
            0,
        )

    def _record_failure(self, task: InvocationTask, brand: str, reason: str) -> None:
        self.logger.warning(
            "Invoker",
            f"{task.platform.display_name} check failed for '{brand}' "
            f"({task.stage.value}, query: {task.query!r}): {reason}",
        )
        self.tracker.track(
            EventName.PLATFORM_FAILED,
            {
                "platform": task.platform.value,
                "brand": brand,
                "journey_stage": task.stage.value,
                "query": task.query,
                "reason": reason,
            },
        )
