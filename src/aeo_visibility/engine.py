from __future__ import annotations

import threading
from typing import List, Optional

from .analytics import AnalyticsTracker, EventName
from .analyzer import ResponseAnalyzer
from .config import EngineSettings
from .invoker import InvocationTask, PlatformInvoker
from .llm import CompletionClient, OpenRouterClient, SecretsManager, TokenBucket
from .logger import ProcessLogger
from .models import AICheckResult, CheckRequest
from .queries import generate_queries
from .scoring import (
    aeo_score,
    build_recommendations,
    competitor_comparison,
    gap_analysis,
    journey_breakdown,
    summarize_citations,
)
from .traffic import TrafficEstimate, TrafficEstimationOptions, estimate_traffic


class VisibilityEngine:
    """Runs visibility checks end to end and projects them into traffic."""

    def __init__(
        self,
        *,
        client: Optional[CompletionClient] = None,
        settings: Optional[EngineSettings] = None,
        analyzer: Optional[ResponseAnalyzer] = None,
        tracker: Optional[AnalyticsTracker] = None,
        secrets: Optional[SecretsManager] = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.tracker = tracker or AnalyticsTracker()
        self.analyzer = analyzer or ResponseAnalyzer()
        self.client = client or OpenRouterClient(
            secrets=secrets or SecretsManager.from_env(),
            token_bucket=TokenBucket(
                capacity=self.settings.requests_per_minute,
                refill_rate_per_min=self.settings.requests_per_minute,
            ),
            base_url=self.settings.openrouter_base_url,
            timeout=self.settings.call_timeout,
        )
        # Shared across concurrent checks on this engine.
        self._gate = threading.BoundedSemaphore(self.settings.max_concurrency)

    def build_tasks(self, request: CheckRequest) -> List[InvocationTask]:
        region = request.resolved_region()
        stages = request.resolved_stages()
        tasks: List[InvocationTask] = []
        for platform in request.resolved_platforms():
            for query in generate_queries(
                request.brand,
                request.industry,
                region,
                stages=stages,
                prompts_per_stage=request.prompts_per_stage,
                platform=platform,
            ):
                tasks.append(
                    InvocationTask(
                        platform=platform,
                        stage=query.stage,
                        query=query.prompt,
                        region=region,
                    )
                )
        return tasks

    def run_check(
        self,
        request: CheckRequest,
        cancel_event: Optional[threading.Event] = None,
    ) -> AICheckResult:
        request.validate()
        brand = request.brand.strip()
        competitors = request.competitor_names()
        log = ProcessLogger()
        tasks = self.build_tasks(request)
        self.tracker.track(
            EventName.CHECK_STARTED,
            {
                "brand": brand,
                "region": request.resolved_region().value,
                "tasks": len(tasks),
            },
        )
        log.log(
            "System",
            f"Checking '{brand}' with {len(tasks)} queries across "
            f"{len({task.platform for task in tasks})} platforms",
        )

        invoker = PlatformInvoker(
            self.client,
            analyzer=self.analyzer,
            settings=self.settings,
            gate=self._gate,
            logger=log,
            tracker=self.tracker,
        )
        outcome = invoker.invoke(
            tasks,
            brand,
            domain=request.domain,
            competitors=competitors,
            cancel_event=cancel_event,
        )
        results = outcome.results
        for result in results:
            if result.failed:
                continue
            state = "mentioned" if result.mentioned else "not mentioned"
            log.log(
                "Analysis",
                f"{result.display_name} [{result.journey_stage.value}]: {state}",
            )
        if outcome.cancelled:
            log.warning("System", "Check cancelled; scoring partial results")

        breakdown = journey_breakdown(results)
        gaps = gap_analysis(results, brand, competitors)
        score = aeo_score(results)
        log.log("Engine", f"AEO score {score}/100, {len(gaps)} gaps found")
        check = AICheckResult(
            brand=brand,
            domain=request.domain,
            region=request.resolved_region(),
            aeo_score=score,
            platforms=tuple(results),
            citations=summarize_citations(results),
            gap_analysis=tuple(gaps),
            journey_breakdown=breakdown,
            competitor_comparison=tuple(competitor_comparison(results, competitors)),
            recommendations=tuple(
                build_recommendations(
                    results,
                    brand,
                    breakdown=breakdown,
                    gaps=gaps,
                    domain=request.domain,
                )
            ),
            partial=outcome.cancelled,
            logs=tuple(log.entries),
        )
        self.tracker.track(
            EventName.CHECK_COMPLETED,
            {
                "brand": brand,
                "aeo_score": score,
                "failures": outcome.failures,
                "partial": outcome.cancelled,
            },
        )
        return check

    def estimate_traffic(
        self,
        result: AICheckResult,
        options: Optional[TrafficEstimationOptions] = None,
    ) -> TrafficEstimate:
        estimate = estimate_traffic(result, options)
        self.tracker.track(
            EventName.TRAFFIC_ESTIMATED,
            {
                "brand": result.brand,
                "visits": estimate.estimated_monthly_ai_visits,
                "confidence": estimate.confidence.level,
            },
        )
        return estimate
