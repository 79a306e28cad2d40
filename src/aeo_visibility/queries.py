"""Buyer-journey prompt generation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from .errors import InvalidInputError
from .registry import ALL_STAGES, JourneyStage, Platform, Region

_STAGE_TEMPLATES: Dict[JourneyStage, Sequence[str]] = {
    JourneyStage.AWARENESS: (
        "What are the best {industry} brands {market}?",
        "Which {industry} companies should I know about {market}?",
        "What are the leading options for {industry} right now {market}?",
    ),
    JourneyStage.CONSIDERATION: (
        "How does {brand} compare to other {industry} providers {market}?",
        "What are the best alternatives to {brand} {market}?",
        "Which {industry} brand offers the best value {market}, and how does {brand} rank?",
    ),
    JourneyStage.DECISION: (
        "Should I buy from {brand}? What are the pros and cons?",
        "Is {brand} worth it for {industry} {market}?",
    ),
    JourneyStage.BRANDED: (
        "What do you know about {brand}?",
        "Is {brand} a good brand? What are they known for?",
        "Can you recommend {brand}? Tell me about their products or services.",
    ),
}

# Overview-style engines summarise search results instead of chatting.
_OVERVIEW_TEMPLATES: Sequence[str] = (
    "Give me an overview of top-rated {industry} brands {market} with sources.",
    "Summarize reviews of {brand} and list the sites that cover it.",
)

_FALLBACK_INDUSTRY = "products and services"


@dataclass(frozen=True)
class StageQuery:
    stage: JourneyStage
    prompt: str


def generate_queries(
    brand: str,
    industry: Optional[str] = None,
    region: "Region | str | None" = Region.GLOBAL,
    *,
    stages: Optional[Iterable["JourneyStage | str"]] = None,
    prompts_per_stage: int = 1,
    platform: "Platform | str | None" = None,
) -> List[StageQuery]:
    brand_name = _require_brand(brand)
    if prompts_per_stage < 1:
        raise InvalidInputError("prompts_per_stage must be at least 1")
    resolved_region = Region.parse(region)
    selected = _resolve_stages(stages)
    values = {
        "brand": brand_name,
        "industry": (industry or "").strip() or _FALLBACK_INDUSTRY,
        "market": resolved_region.market_context,
    }
    queries: List[StageQuery] = []
    for stage in selected:
        for template in _STAGE_TEMPLATES[stage][:prompts_per_stage]:
            queries.append(StageQuery(stage=stage, prompt=template.format(**values)))
    if platform is not None and Platform.parse(platform) is Platform.GOOGLE_AI:
        for template in _OVERVIEW_TEMPLATES:
            queries.append(
                StageQuery(stage=JourneyStage.AWARENESS, prompt=template.format(**values))
            )
    return queries


def templates_for(stage: "JourneyStage | str") -> Sequence[str]:
    return tuple(_STAGE_TEMPLATES[JourneyStage.parse(stage)])


def _require_brand(brand: Optional[str]) -> str:
    if brand is None or not isinstance(brand, str) or not brand.strip():
        raise InvalidInputError("Brand name is required")
    return brand.strip()


def _resolve_stages(
    stages: Optional[Iterable["JourneyStage | str"]],
) -> List[JourneyStage]:
    if stages is None:
        return list(ALL_STAGES)
    resolved: List[JourneyStage] = []
    for stage in stages:
        parsed = JourneyStage.parse(stage)
        if parsed not in resolved:
            resolved.append(parsed)
    if not resolved:
        raise InvalidInputError("At least one journey stage is required")
    return resolved
