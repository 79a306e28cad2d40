"""Aggregation of per-query results into scores, gaps and recommendations."""

from __future__ import annotations

from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

from .analyzer import detect_mention, extract_position
from .models import (
    BrandStanding,
    CitationSummary,
    CompetitorComparison,
    CompetitorStanding,
    GapAnalysis,
    Opportunity,
    PlatformResult,
    Sentiment,
    StageScore,
    round_half_up,
)
from .registry import ALL_STAGES, JourneyStage, Platform

MAX_RESULT_SCORE = 25
MAX_RECOMMENDATIONS = 8
_MENTION_BASE = 15
_POSITION_BONUS = {1: 5, 2: 3}
_TOP_FIVE_BONUS = 1
_SENTIMENT_BONUS = {Sentiment.POSITIVE: 5, Sentiment.NEUTRAL: 2, Sentiment.NEGATIVE: 0}
_CITATION_POINTS = 2
_CITATION_CAP = 5


def result_score(result: PlatformResult) -> int:
    if not result.mentioned:
        return 0
    score = _MENTION_BASE
    if result.position is not None:
        if result.position in _POSITION_BONUS:
            score += _POSITION_BONUS[result.position]
        elif result.position <= 5:
            score += _TOP_FIVE_BONUS
    score += _SENTIMENT_BONUS[result.sentiment]
    score += min(_CITATION_CAP, _CITATION_POINTS * result.own_site_citations)
    return min(score, MAX_RESULT_SCORE)


def aeo_score(results: Sequence[PlatformResult]) -> int:
    if not results:
        return 0
    total = sum(result_score(result) for result in results)
    if total == 0:
        return 0
    # Any mention scores at least 1.
    percentage = max(1, round_half_up(total / (len(results) * MAX_RESULT_SCORE) * 100))
    return min(100, percentage)


def journey_breakdown(results: Sequence[PlatformResult]) -> Dict[JourneyStage, StageScore]:
    breakdown: Dict[JourneyStage, StageScore] = {}
    for stage in ALL_STAGES:
        stage_results = [r for r in results if r.journey_stage is stage]
        mentioned = sum(1 for r in stage_results if r.mentioned)
        score = round_half_up(mentioned / len(stage_results) * 100) if stage_results else 0
        breakdown[stage] = StageScore(score=score, platforms=mentioned)
    return breakdown


def summarize_citations(results: Sequence[PlatformResult], top: int = 5) -> CitationSummary:
    citations = [citation for result in results for citation in result.citations]
    domains = Counter(citation.domain for citation in citations)
    return CitationSummary(
        total=len(citations),
        own_site=sum(1 for citation in citations if citation.is_own_site),
        top_cited=tuple(domain for domain, _ in domains.most_common(top)),
    )


def gap_analysis(
    results: Sequence[PlatformResult],
    brand: str,
    competitors: Sequence[str] = (),
) -> List[GapAnalysis]:
    """One record per (platform, stage) where rivals show up and the brand does not."""
    groups: Dict[Tuple[Platform, JourneyStage], List[PlatformResult]] = {}
    for result in results:
        if result.journey_stage is JourneyStage.BRANDED:
            continue
        groups.setdefault((result.platform, result.journey_stage), []).append(result)

    gaps: List[GapAnalysis] = []
    for (platform, stage), group in groups.items():
        if any(result.mentioned for result in group):
            continue
        for result in group:
            if not result.competitors:
                continue
            names = list(competitors) or list(result.competitors)
            standings = tuple(
                _competitor_standing(result.raw_response, name) for name in names
            )
            mentioned = [s.name for s in standings if s.mentioned]
            if not mentioned:
                continue
            opportunity = Opportunity.from_competitor_count(len(mentioned))
            gaps.append(
                GapAnalysis(
                    platform=platform,
                    journey_stage=stage,
                    query=result.query,
                    your_brand=BrandStanding(mentioned=False, position=None),
                    competitors=standings,
                    opportunity=opportunity,
                    recommendation=_gap_recommendation(
                        brand, platform, stage, mentioned
                    ),
                )
            )
            break
    gaps.sort(key=lambda gap: gap.opportunity.rank)
    return gaps


def _competitor_standing(raw_response: str, name: str) -> CompetitorStanding:
    mentioned = detect_mention(raw_response, name)
    return CompetitorStanding(
        name=name,
        mentioned=mentioned,
        position=extract_position(raw_response, name) if mentioned else None,
    )


def _gap_recommendation(
    brand: str, platform: Platform, stage: JourneyStage, mentioned: Sequence[str]
) -> str:
    rivals = ", ".join(mentioned)
    return (
        f"{platform.display_name} recommends {rivals} for {stage.value} queries "
        f"but not {brand}. Publish {stage.value}-stage content that positions "
        f"{brand} against {rivals}."
    )


def competitor_comparison(
    results: Sequence[PlatformResult], competitors: Sequence[str]
) -> List[CompetitorComparison]:
    comparisons: List[CompetitorComparison] = []
    total = len(results)
    for name in competitors:
        mentions = 0
        positions: List[int] = []
        for result in results:
            if not detect_mention(result.raw_response, name):
                continue
            mentions += 1
            position = extract_position(result.raw_response, name)
            if position is not None:
                positions.append(position)
        avg_position: Optional[float] = (
            round_half_up(sum(positions) / len(positions), 1) if positions else None
        )
        comparisons.append(
            CompetitorComparison(
                name=name,
                mention_rate=round_half_up(mentions / total * 100) if total else 0,
                avg_position=avg_position,
                # Only presence is tracked for competitors.
                sentiment_counts={
                    Sentiment.POSITIVE.value: 0,
                    Sentiment.NEUTRAL.value: mentions,
                    Sentiment.NEGATIVE.value: 0,
                },
            )
        )
    return comparisons


def build_recommendations(
    results: Sequence[PlatformResult],
    brand: str,
    *,
    breakdown: Optional[Dict[JourneyStage, StageScore]] = None,
    gaps: Sequence[GapAnalysis] = (),
    domain: Optional[str] = None,
) -> List[str]:
    breakdown = breakdown or journey_breakdown(results)
    recommendations: List[str] = []
    total = len(results)

    platform_order: List[Platform] = []
    for result in results:
        if result.platform not in platform_order:
            platform_order.append(result.platform)
    silent = [
        platform
        for platform in platform_order
        if not any(r.mentioned for r in results if r.platform is platform)
    ]
    if silent:
        names = ", ".join(platform.display_name for platform in silent[:3])
        recommendations.append(
            f"Improve visibility on {names} by creating more authoritative content about {brand}."
        )

    not_mentioned = sum(1 for r in results if not r.mentioned)
    if total and not_mentioned >= total / 2:
        recommendations.append(
            "Add an llms.txt file to your website to help AI crawlers understand your brand."
        )
        recommendations.append(
            "Implement JSON-LD structured data (Organization, Product schemas) for better AI indexing."
        )

    uncited = sum(1 for r in results if r.own_site_citations == 0)
    if uncited > total / 2:
        site = domain or "your website"
        recommendations.append(
            f"Build citation-worthy content on {site} (original data, guides, comparisons) "
            "so AI assistants link to you as a source."
        )

    if any(r.sentiment is Sentiment.NEGATIVE for r in results):
        recommendations.append(
            "Address negative sentiment by improving customer reviews and public perception."
        )

    if gaps:
        recommendations.append(gaps[0].recommendation)

    awareness = breakdown[JourneyStage.AWARENESS].score
    consideration = breakdown[JourneyStage.CONSIDERATION].score
    later = breakdown[JourneyStage.DECISION].score + breakdown[JourneyStage.BRANDED].score
    if awareness == 0 and consideration == 0 and later > 0:
        recommendations.append(
            f"{brand} only appears when users already know it. Create category and "
            "comparison content to show up in awareness and consideration queries."
        )

    rivals: List[str] = []
    for result in results:
        for name in result.competitors:
            if name.lower() not in (r.lower() for r in rivals):
                rivals.append(name)
    if rivals:
        recommendations.append(
            f"Competitors mentioned alongside your brand: {', '.join(rivals[:5])}. "
            "Consider competitive positioning."
        )

    if not recommendations:
        recommendations.append(
            "Your brand has good AI visibility! Continue creating quality content to maintain your position."
        )
    return recommendations[:MAX_RECOMMENDATIONS]
