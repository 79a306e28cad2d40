"""Projection of AI visibility into monthly visit estimates.

All figures are deterministic functions of the check result and the
options; no clock reads or randomness happen here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from .models import AICheckResult, PlatformResult, Sentiment, round_half_up
from .registry import ALL_STAGES, JourneyStage, Platform
from .scoring import competitor_comparison

DEFAULT_MONTHLY_SEARCH_VOLUME = 10000
TRACKABLE_REFERRAL_SHARE = 0.65
MISSED_OPPORTUNITY_CTR = 0.15
MISSED_STAGE_THRESHOLD = 0.30
TREND_THRESHOLD = 5

POSITION_CTR_MULTIPLIER: Dict[int, float] = {1: 1.0, 2: 0.65, 3: 0.45, 4: 0.30, 5: 0.20}
BEYOND_TOP_FIVE_MULTIPLIER = 0.10
UNLISTED_MENTION_MULTIPLIER = 0.15

SENTIMENT_MULTIPLIER: Dict[Sentiment, float] = {
    Sentiment.POSITIVE: 1.3,
    Sentiment.NEUTRAL: 1.0,
    Sentiment.NEGATIVE: 0.4,
}

INDUSTRY_AI_TRAFFIC_SHARE: Dict[str, float] = {
    "technology": 0.25,
    "saas": 0.28,
    "ecommerce": 0.18,
    "finance": 0.22,
    "healthcare": 0.20,
    "education": 0.24,
    "travel": 0.16,
    "real-estate": 0.15,
    "legal": 0.19,
    "marketing": 0.26,
    "default": 0.20,
}

_PLATFORM_ADVICE: Dict[Platform, str] = {
    Platform.CHATGPT: "Improve ChatGPT visibility - it represents 35% of AI search traffic.",
    Platform.PERPLEXITY: "Optimize for Perplexity - it's the fastest growing AI search engine.",
    Platform.GOOGLE_AI: "Target Google AI Overviews with structured data and FAQ content.",
    Platform.GEMINI: "Strengthen your Google Business and Knowledge Graph presence to surface in Gemini.",
    Platform.COPILOT: "Make sure Bing indexes your key pages so Microsoft Copilot can cite them.",
    Platform.CLAUDE: "Publish clear, well-sourced explainers about your brand so Claude can describe it accurately.",
    Platform.DEEPSEEK: "Keep product facts consistent across public sources that DeepSeek learns from.",
    Platform.LLAMA: "Earn coverage on open web sources that Llama-based assistants draw on.",
    Platform.MISTRAL: "Provide concise factual pages about your offering for Mistral to reference.",
    Platform.GROK: "Build an active presence on X so Grok sees current discussion of your brand.",
    Platform.META_AI: "Strengthen your Facebook and Instagram presence to surface in Meta AI answers.",
}

_STAGE_ADVICE: Dict[JourneyStage, str] = {
    JourneyStage.AWARENESS: "Create more top-of-funnel content to capture awareness stage searches.",
    JourneyStage.CONSIDERATION: "Develop comparison content to appear in consideration stage queries.",
    JourneyStage.DECISION: "Publish pricing, reviews and buying guides to win decision stage queries.",
    JourneyStage.BRANDED: "Keep brand facts consistent across your site and profiles for branded queries.",
}

METHODOLOGY = (
    "Estimated based on platform market share, visibility scores, "
    "journey-stage CTR benchmarks, and position multipliers."
)


@dataclass(frozen=True)
class TrafficEstimationOptions:
    monthly_search_volume: Optional[int] = None
    # Accepted for ROI work; not used by the visit model itself.
    monthly_traffic: Optional[int] = None
    industry: Optional[str] = None
    historical_results: Tuple[AICheckResult, ...] = ()
    competitors: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PlatformTraffic:
    platform: Platform
    display_name: str
    estimated_visits: int
    market_share: int
    visibility_score: int


@dataclass(frozen=True)
class StageTraffic:
    stage: JourneyStage
    estimated_visits: int
    mention_rate: float
    conversion_potential: str


@dataclass(frozen=True)
class CompetitorTraffic:
    name: str
    estimated_ai_share: int
    visibility_gap: int


@dataclass(frozen=True)
class MissedOpportunity:
    estimated_lost_visits: int
    top_missed_platforms: Tuple[Platform, ...]
    top_missed_journey_stages: Tuple[JourneyStage, ...]
    recommendations: Tuple[str, ...]


@dataclass(frozen=True)
class TrafficTrend:
    direction: str
    change_percent: int
    period_days: int


@dataclass(frozen=True)
class ConfidenceRating:
    level: str
    score: int
    factors: Tuple[str, ...]


@dataclass(frozen=True)
class TrafficEstimate:
    estimated_ai_searches: float
    estimated_monthly_ai_visits: int
    estimated_monthly_ai_referrals: int
    platform_breakdown: Tuple[PlatformTraffic, ...]
    journey_breakdown: Tuple[StageTraffic, ...]
    competitor_comparison: Tuple[CompetitorTraffic, ...]
    missed_opportunity: MissedOpportunity
    trend: Optional[TrafficTrend]
    confidence: ConfidenceRating
    methodology: str = field(default=METHODOLOGY)


def industry_share(industry: Optional[str]) -> float:
    if not industry:
        return INDUSTRY_AI_TRAFFIC_SHARE["default"]
    return INDUSTRY_AI_TRAFFIC_SHARE.get(
        industry.strip().lower(), INDUSTRY_AI_TRAFFIC_SHARE["default"]
    )


def visibility_score(result: PlatformResult) -> int:
    """0-100 per-result visibility used to merge repeated platforms."""
    if not result.mentioned:
        return 0
    score = 50
    if result.position == 1:
        score += 30
    elif result.position == 2:
        score += 20
    elif result.position is not None and result.position <= 5:
        score += 10
    if result.sentiment is Sentiment.POSITIVE:
        score += 20
    elif result.sentiment is Sentiment.NEUTRAL:
        score += 10
    return min(score, 100)


def position_multiplier(result: PlatformResult) -> float:
    if not result.mentioned:
        return 0.0
    if result.position is None:
        return UNLISTED_MENTION_MULTIPLIER
    return POSITION_CTR_MULTIPLIER.get(result.position, BEYOND_TOP_FIVE_MULTIPLIER)


def effective_ctr(result: PlatformResult) -> float:
    return (
        result.journey_stage.base_ctr
        * position_multiplier(result)
        * SENTIMENT_MULTIPLIER[result.sentiment]
    )


def estimate_traffic(
    result: AICheckResult, options: Optional[TrafficEstimationOptions] = None
) -> TrafficEstimate:
    options = options or TrafficEstimationOptions()
    volume = (
        options.monthly_search_volume
        if options.monthly_search_volume is not None
        else DEFAULT_MONTHLY_SEARCH_VOLUME
    )
    ai_searches = volume * industry_share(options.industry)

    platform_breakdown = _platform_breakdown(result.platforms, ai_searches)
    total_visits = sum(entry.estimated_visits for entry in platform_breakdown)
    return TrafficEstimate(
        estimated_ai_searches=ai_searches,
        estimated_monthly_ai_visits=total_visits,
        estimated_monthly_ai_referrals=round_half_up(total_visits * TRACKABLE_REFERRAL_SHARE),
        platform_breakdown=tuple(platform_breakdown),
        journey_breakdown=tuple(_journey_breakdown(result.platforms, ai_searches)),
        competitor_comparison=tuple(_competitor_traffic(result, options.competitors)),
        missed_opportunity=_missed_opportunity(result.platforms, ai_searches),
        trend=calculate_trend(result, options.historical_results),
        confidence=calculate_confidence(result, options),
    )


def _platform_breakdown(
    results: Sequence[PlatformResult], ai_searches: float
) -> List[PlatformTraffic]:
    best: Dict[Platform, PlatformTraffic] = {}
    for result in results:
        score = visibility_score(result)
        existing = best.get(result.platform)
        # Same platform across stages is merged, never summed.
        if existing is not None and existing.visibility_score >= score:
            continue
        share = result.platform.market_share
        best[result.platform] = PlatformTraffic(
            platform=result.platform,
            display_name=result.display_name,
            estimated_visits=round_half_up(ai_searches * share * effective_ctr(result)),
            market_share=round_half_up(share * 100),
            visibility_score=score,
        )
    return sorted(best.values(), key=lambda entry: entry.estimated_visits, reverse=True)


def _stage_mention_rate(results: Sequence[PlatformResult], stage: JourneyStage) -> Optional[float]:
    stage_results = [r for r in results if r.journey_stage is stage]
    if not stage_results:
        return None
    return sum(1 for r in stage_results if r.mentioned) / len(stage_results)


def _journey_breakdown(
    results: Sequence[PlatformResult], ai_searches: float
) -> List[StageTraffic]:
    breakdown: List[StageTraffic] = []
    for stage in ALL_STAGES:
        rate = _stage_mention_rate(results, stage) or 0.0
        visits = ai_searches * stage.funnel_weight * rate * stage.base_ctr
        breakdown.append(
            StageTraffic(
                stage=stage,
                estimated_visits=round_half_up(visits),
                mention_rate=round_half_up(rate * 100, 1),
                conversion_potential=stage.conversion_potential,
            )
        )
    return breakdown


def _competitor_traffic(
    result: AICheckResult, competitors: Sequence[str]
) -> List[CompetitorTraffic]:
    known = {entry.name.lower(): entry for entry in result.competitor_comparison}
    names = list(competitors) or [entry.name for entry in result.competitor_comparison]
    names = names[:5]
    missing = [name for name in names if name.lower() not in known]
    for entry in competitor_comparison(result.platforms, missing):
        known[entry.name.lower()] = entry
    own_rate = result.mention_rate
    return [
        CompetitorTraffic(
            name=name,
            estimated_ai_share=known[name.lower()].mention_rate,
            visibility_gap=known[name.lower()].mention_rate - own_rate,
        )
        for name in names
    ]


def _missed_opportunity(
    results: Sequence[PlatformResult], ai_searches: float
) -> MissedOpportunity:
    order: List[Platform] = []
    for result in results:
        if result.platform not in order:
            order.append(result.platform)
    missed_platforms = [
        platform
        for platform in order
        if not any(r.mentioned for r in results if r.platform is platform)
    ]
    lost = sum(
        ai_searches * platform.market_share * MISSED_OPPORTUNITY_CTR
        for platform in missed_platforms
    )
    missed_stages = []
    for stage in ALL_STAGES:
        rate = _stage_mention_rate(results, stage)
        if rate is not None and rate < MISSED_STAGE_THRESHOLD:
            missed_stages.append(stage)

    advice = [_PLATFORM_ADVICE[platform] for platform in missed_platforms[:3]]
    advice.extend(_STAGE_ADVICE[stage] for stage in missed_stages[:2])
    return MissedOpportunity(
        estimated_lost_visits=round_half_up(lost),
        top_missed_platforms=tuple(missed_platforms[:3]),
        top_missed_journey_stages=tuple(missed_stages[:2]),
        recommendations=tuple(advice[:4]),
    )


def calculate_trend(
    current: AICheckResult, historical: Sequence[AICheckResult]
) -> Optional[TrafficTrend]:
    if not historical:
        return None
    previous = max(historical, key=lambda item: item.checked_at)
    delta = current.aeo_score - previous.aeo_score
    if previous.aeo_score > 0:
        change = round_half_up(delta / previous.aeo_score * 100)
    else:
        change = 100 if current.aeo_score > 0 else 0
    if change > TREND_THRESHOLD:
        direction = "up"
    elif change < -TREND_THRESHOLD:
        direction = "down"
    else:
        direction = "stable"
    days = round_half_up((current.checked_at - previous.checked_at).total_seconds() / 86400)
    return TrafficTrend(direction=direction, change_percent=change, period_days=days)


def calculate_confidence(
    result: AICheckResult, options: TrafficEstimationOptions
) -> ConfidenceRating:
    factors: List[str] = []
    score = 0

    platform_count = len({r.platform for r in result.platforms})
    if platform_count >= 8:
        score += 30
        factors.append("Comprehensive platform coverage")
    elif platform_count >= 4:
        score += 20
        factors.append("Good platform coverage")
    else:
        factors.append("Limited platform data")

    if options.monthly_search_volume is not None:
        score += 25
        factors.append("Actual search volume data")
    else:
        factors.append("Estimated search volume")

    if options.historical_results:
        score += 20
        factors.append("Historical trend data")

    industry = (options.industry or "").strip().lower()
    if industry and industry != "default" and industry in INDUSTRY_AI_TRAFFIC_SHARE:
        score += 15
        factors.append("Industry-specific benchmarks")

    if result.citations.total > 0:
        score += 10
        factors.append("Citation data available")

    if score >= 60:
        level = "high"
    elif score >= 35:
        level = "medium"
    else:
        level = "low"
    return ConfidenceRating(level=level, score=score, factors=tuple(factors))


def industry_benchmarks(industry: Optional[str]) -> Dict[str, object]:
    return {
        "ai_traffic_share": industry_share(industry),
        "avg_growth_rate": 0.15,
        "top_platforms": [
            Platform.CHATGPT,
            Platform.PERPLEXITY,
            Platform.GEMINI,
            Platform.GOOGLE_AI,
        ],
    }


def calculate_aeo_roi(
    estimate: TrafficEstimate,
    projected_score_increase: float,
    avg_order_value: float = 100,
    conversion_rate: float = 0.02,
) -> Dict[str, int]:
    additional_visits = round_half_up(
        estimate.estimated_monthly_ai_visits * projected_score_increase / 100
    )
    revenue = additional_visits * conversion_rate * avg_order_value
    return {
        "additional_visits": additional_visits,
        "additional_revenue": round_half_up(revenue),
        "monthly_impact": round_half_up(revenue),
        "annual_impact": round_half_up(revenue * 12),
    }
