"""FastAPI server exposing visibility checks and traffic estimates."""

from __future__ import annotations

from functools import lru_cache
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from .config import EngineSettings
from .correlation import TrafficAccuracy, correlate_estimate
from .engine import VisibilityEngine
from .errors import InvalidInputError
from .models import AICheckResult, CheckRequest
from .registry import Platform
from .traffic import TrafficEstimate, TrafficEstimationOptions

app = FastAPI(
    title="AEO Visibility API",
    version="1.0.0",
    description="Brand visibility checks across AI answer engines.",
)


@lru_cache(maxsize=1)
def get_engine() -> VisibilityEngine:
    return VisibilityEngine(settings=EngineSettings.from_env())


class CheckPayload(BaseModel):
    brand: str = Field(..., min_length=1)
    domain: Optional[str] = None
    region: str = "global"
    industry: Optional[str] = None
    competitors: List[str] = Field(default_factory=list)
    journey_stages: Optional[List[str]] = None
    tier: str = "core"
    platforms: Optional[List[str]] = None
    prompts_per_stage: int = Field(1, ge=1)


class TrafficPayload(CheckPayload):
    monthly_search_volume: Optional[int] = Field(None, ge=0)
    monthly_traffic: Optional[int] = Field(None, ge=0)


class AccuracyPayload(TrafficPayload):
    actual_visits: Dict[str, int] = Field(default_factory=dict)


class PlatformResponse(BaseModel):
    key: str
    display_name: str
    tier: str
    icon: str
    market_share: float


class CitationResponse(BaseModel):
    url: str
    domain: str
    is_own_site: bool
    context: str


class PlatformResultResponse(BaseModel):
    platform: str
    display_name: str
    tier: str
    mentioned: bool
    position: Optional[int] = None
    sentiment: str
    snippet: str
    competitors: List[str]
    citations: List[CitationResponse]
    journey_stage: str
    region: str
    query: str
    failed: bool


class CompetitorStandingResponse(BaseModel):
    name: str
    mentioned: bool
    position: Optional[int] = None


class BrandStandingResponse(BaseModel):
    mentioned: bool
    position: Optional[int] = None


class GapResponse(BaseModel):
    platform: str
    journey_stage: str
    query: str
    your_brand: BrandStandingResponse
    competitors: List[CompetitorStandingResponse]
    opportunity: str
    recommendation: str


class StageScoreResponse(BaseModel):
    score: int
    platforms: int


class CompetitorComparisonResponse(BaseModel):
    name: str
    mention_rate: int
    avg_position: Optional[float] = None
    sentiment_counts: Dict[str, int]


class CitationSummaryResponse(BaseModel):
    total: int
    own_site: int
    top_cited: List[str]


class CheckResponse(BaseModel):
    brand: str
    domain: Optional[str] = None
    region: str
    aeo_score: int
    mention_rate: int
    platforms: List[PlatformResultResponse]
    citations: CitationSummaryResponse
    gap_analysis: List[GapResponse]
    journey_breakdown: Dict[str, StageScoreResponse]
    competitor_comparison: List[CompetitorComparisonResponse]
    recommendations: List[str]
    checked_at: str
    partial: bool
    logs: List[str]


class PlatformTrafficResponse(BaseModel):
    platform: str
    display_name: str
    estimated_visits: int
    market_share: int
    visibility_score: int


class StageTrafficResponse(BaseModel):
    stage: str
    estimated_visits: int
    mention_rate: float
    conversion_potential: str


class CompetitorTrafficResponse(BaseModel):
    name: str
    estimated_ai_share: int
    visibility_gap: int


class MissedOpportunityResponse(BaseModel):
    estimated_lost_visits: int
    top_missed_platforms: List[str]
    top_missed_journey_stages: List[str]
    recommendations: List[str]


class TrendResponse(BaseModel):
    direction: str
    change_percent: int
    period_days: int


class ConfidenceResponse(BaseModel):
    level: str
    score: int
    factors: List[str]


class TrafficResponse(BaseModel):
    aeo_score: int
    estimated_ai_searches: float
    estimated_monthly_ai_visits: int
    estimated_monthly_ai_referrals: int
    platform_breakdown: List[PlatformTrafficResponse]
    journey_breakdown: List[StageTrafficResponse]
    competitor_comparison: List[CompetitorTrafficResponse]
    missed_opportunity: MissedOpportunityResponse
    trend: Optional[TrendResponse] = None
    confidence: ConfidenceResponse
    methodology: str


class PlatformAccuracyResponse(BaseModel):
    platform: str
    estimated_visits: int
    actual_visits: int
    accuracy: int


class AccuracyResponse(BaseModel):
    overall: int
    by_platform: List[PlatformAccuracyResponse]
    insights: List[str]


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/platforms", response_model=List[PlatformResponse])
def list_platforms() -> List[PlatformResponse]:
    return [
        PlatformResponse(
            key=platform.value,
            display_name=platform.display_name,
            tier=platform.tier.value,
            icon=platform.icon,
            market_share=platform.market_share,
        )
        for platform in Platform
    ]


@app.post("/checks", response_model=CheckResponse)
def create_check(
    payload: CheckPayload, engine: VisibilityEngine = Depends(get_engine)
) -> CheckResponse:
    return _serialize_check(_run_check(engine, payload))


@app.post("/traffic-estimates", response_model=TrafficResponse)
def create_traffic_estimate(
    payload: TrafficPayload, engine: VisibilityEngine = Depends(get_engine)
) -> TrafficResponse:
    result = _run_check(engine, payload)
    estimate = engine.estimate_traffic(result, _estimation_options(payload))
    return _serialize_estimate(result, estimate)


@app.post("/traffic-accuracy", response_model=AccuracyResponse)
def create_traffic_accuracy(
    payload: AccuracyPayload, engine: VisibilityEngine = Depends(get_engine)
) -> AccuracyResponse:
    result = _run_check(engine, payload)
    estimate = engine.estimate_traffic(result, _estimation_options(payload))
    try:
        accuracy = correlate_estimate(estimate, payload.actual_visits)
    except InvalidInputError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return _serialize_accuracy(accuracy)


def _run_check(engine: VisibilityEngine, payload: CheckPayload) -> AICheckResult:
    request = CheckRequest(
        brand=payload.brand,
        domain=payload.domain,
        region=payload.region,
        industry=payload.industry,
        competitors=list(payload.competitors),
        journey_stages=payload.journey_stages,
        tier_ceiling=payload.tier,
        platforms=payload.platforms,
        prompts_per_stage=payload.prompts_per_stage,
    )
    try:
        return engine.run_check(request)
    except InvalidInputError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


def _estimation_options(payload: TrafficPayload) -> TrafficEstimationOptions:
    return TrafficEstimationOptions(
        monthly_search_volume=payload.monthly_search_volume,
        monthly_traffic=payload.monthly_traffic,
        industry=payload.industry,
        competitors=tuple(payload.competitors),
    )


def _serialize_check(result: AICheckResult) -> CheckResponse:
    return CheckResponse(
        brand=result.brand,
        domain=result.domain,
        region=result.region.value,
        aeo_score=result.aeo_score,
        mention_rate=result.mention_rate,
        platforms=[
            PlatformResultResponse(
                platform=item.platform.value,
                display_name=item.display_name,
                tier=item.tier.value,
                mentioned=item.mentioned,
                position=item.position,
                sentiment=item.sentiment.value,
                snippet=item.snippet,
                competitors=list(item.competitors),
                citations=[
                    CitationResponse(
                        url=citation.url,
                        domain=citation.domain,
                        is_own_site=citation.is_own_site,
                        context=citation.context,
                    )
                    for citation in item.citations
                ],
                journey_stage=item.journey_stage.value,
                region=item.region.value,
                query=item.query,
                failed=item.failed,
            )
            for item in result.platforms
        ],
        citations=CitationSummaryResponse(
            total=result.citations.total,
            own_site=result.citations.own_site,
            top_cited=list(result.citations.top_cited),
        ),
        gap_analysis=[
            GapResponse(
                platform=gap.platform.value,
                journey_stage=gap.journey_stage.value,
                query=gap.query,
                your_brand=BrandStandingResponse(
                    mentioned=gap.your_brand.mentioned,
                    position=gap.your_brand.position,
                ),
                competitors=[
                    CompetitorStandingResponse(
                        name=standing.name,
                        mentioned=standing.mentioned,
                        position=standing.position,
                    )
                    for standing in gap.competitors
                ],
                opportunity=gap.opportunity.value,
                recommendation=gap.recommendation,
            )
            for gap in result.gap_analysis
        ],
        journey_breakdown={
            stage.value: StageScoreResponse(score=entry.score, platforms=entry.platforms)
            for stage, entry in result.journey_breakdown.items()
        },
        competitor_comparison=[
            CompetitorComparisonResponse(
                name=entry.name,
                mention_rate=entry.mention_rate,
                avg_position=entry.avg_position,
                sentiment_counts=dict(entry.sentiment_counts),
            )
            for entry in result.competitor_comparison
        ],
        recommendations=list(result.recommendations),
        checked_at=result.checked_at.isoformat(),
        partial=result.partial,
        logs=list(result.logs),
    )


def _serialize_estimate(
    result: AICheckResult, estimate: TrafficEstimate
) -> TrafficResponse:
    missed = estimate.missed_opportunity
    return TrafficResponse(
        aeo_score=result.aeo_score,
        estimated_ai_searches=estimate.estimated_ai_searches,
        estimated_monthly_ai_visits=estimate.estimated_monthly_ai_visits,
        estimated_monthly_ai_referrals=estimate.estimated_monthly_ai_referrals,
        platform_breakdown=[
            PlatformTrafficResponse(
                platform=entry.platform.value,
                display_name=entry.display_name,
                estimated_visits=entry.estimated_visits,
                market_share=entry.market_share,
                visibility_score=entry.visibility_score,
            )
            for entry in estimate.platform_breakdown
        ],
        journey_breakdown=[
            StageTrafficResponse(
                stage=entry.stage.value,
                estimated_visits=entry.estimated_visits,
                mention_rate=entry.mention_rate,
                conversion_potential=entry.conversion_potential,
            )
            for entry in estimate.journey_breakdown
        ],
        competitor_comparison=[
            CompetitorTrafficResponse(
                name=entry.name,
                estimated_ai_share=entry.estimated_ai_share,
                visibility_gap=entry.visibility_gap,
            )
            for entry in estimate.competitor_comparison
        ],
        missed_opportunity=MissedOpportunityResponse(
            estimated_lost_visits=missed.estimated_lost_visits,
            top_missed_platforms=[p.value for p in missed.top_missed_platforms],
            top_missed_journey_stages=[s.value for s in missed.top_missed_journey_stages],
            recommendations=list(missed.recommendations),
        ),
        trend=(
            TrendResponse(
                direction=estimate.trend.direction,
                change_percent=estimate.trend.change_percent,
                period_days=estimate.trend.period_days,
            )
            if estimate.trend
            else None
        ),
        confidence=ConfidenceResponse(
            level=estimate.confidence.level,
            score=estimate.confidence.score,
            factors=list(estimate.confidence.factors),
        ),
        methodology=estimate.methodology,
    )


def _serialize_accuracy(accuracy: TrafficAccuracy) -> AccuracyResponse:
    return AccuracyResponse(
        overall=accuracy.overall,
        by_platform=[
            PlatformAccuracyResponse(
                platform=entry.platform.value,
                estimated_visits=entry.estimated_visits,
                actual_visits=entry.actual_visits,
                accuracy=entry.accuracy,
            )
            for entry in accuracy.by_platform
        ],
        insights=list(accuracy.insights),
    )
