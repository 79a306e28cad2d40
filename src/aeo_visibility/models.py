from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .errors import InvalidInputError
from .registry import JourneyStage, Platform, Region, Tier, platforms_for_tier


def round_half_up(value: float, digits: int = 0) -> float:
    """Round ties upward (2.5 -> 3, -2.5 -> -2) instead of to the even neighbour."""
    scale = 10**digits
    rounded = math.floor(value * scale + 0.5)
    return rounded if digits == 0 else rounded / scale


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class Opportunity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {Opportunity.HIGH: 0, Opportunity.MEDIUM: 1, Opportunity.LOW: 2}[self]

    @classmethod
    def from_competitor_count(cls, mentioned: int) -> "Opportunity":
        if mentioned >= 2:
            return cls.HIGH
        if mentioned == 1:
            return cls.MEDIUM
        return cls.LOW


@dataclass(frozen=True)
class Citation:
    url: str
    domain: str
    is_own_site: bool
    context: str


@dataclass(frozen=True)
class PlatformResult:
    """Outcome of one (platform, journey stage, query) invocation."""

    platform: Platform
    display_name: str
    tier: Tier
    mentioned: bool
    position: Optional[int]
    sentiment: Sentiment
    snippet: str
    raw_response: str
    competitors: Tuple[str, ...]
    citations: Tuple[Citation, ...]
    journey_stage: JourneyStage
    region: Region
    query: str

    @property
    def key(self) -> Tuple[Platform, JourneyStage, str]:
        return (self.platform, self.journey_stage, self.query)

    @property
    def failed(self) -> bool:
        return not self.raw_response

    @property
    def own_site_citations(self) -> int:
        return sum(1 for citation in self.citations if citation.is_own_site)


@dataclass(frozen=True)
class BrandStanding:
    mentioned: bool
    position: Optional[int]


@dataclass(frozen=True)
class CompetitorStanding:
    name: str
    mentioned: bool
    position: Optional[int]


@dataclass(frozen=True)
class GapAnalysis:
    platform: Platform
    journey_stage: JourneyStage
    query: str
    your_brand: BrandStanding
    competitors: Tuple[CompetitorStanding, ...]
    opportunity: Opportunity
    recommendation: str

    @property
    def mentioned_competitors(self) -> List[str]:
        return [standing.name for standing in self.competitors if standing.mentioned]


@dataclass(frozen=True)
class StageScore:
    score: int
    platforms: int


@dataclass(frozen=True)
class CompetitorComparison:
    name: str
    mention_rate: int
    avg_position: Optional[float]
    sentiment_counts: Dict[str, int]


@dataclass(frozen=True)
class CitationSummary:
    total: int
    own_site: int
    top_cited: Tuple[str, ...]


@dataclass(frozen=True)
class AICheckResult:
    brand: str
    domain: Optional[str]
    region: Region
    aeo_score: int
    platforms: Tuple[PlatformResult, ...]
    citations: CitationSummary
    gap_analysis: Tuple[GapAnalysis, ...]
    journey_breakdown: Dict[JourneyStage, StageScore]
    competitor_comparison: Tuple[CompetitorComparison, ...]
    recommendations: Tuple[str, ...]
    checked_at: datetime = field(
        default_factory=lambda: datetime.now(tz=timezone.utc)
    )
    partial: bool = False
    logs: Tuple[str, ...] = ()

    @property
    def failed_platforms(self) -> List[PlatformResult]:
        return [result for result in self.platforms if result.failed]

    @property
    def mention_rate(self) -> int:
        if not self.platforms:
            return 0
        mentioned = sum(1 for result in self.platforms if result.mentioned)
        return round_half_up(mentioned / len(self.platforms) * 100)


@dataclass
class CheckRequest:
    brand: str
    domain: Optional[str] = None
    region: "Region | str | None" = Region.GLOBAL
    industry: Optional[str] = None
    competitors: List[str] = field(default_factory=list)
    journey_stages: Optional[List["JourneyStage | str"]] = None
    tier_ceiling: "Tier | str" = Tier.CORE
    platforms: Optional[List["Platform | str"]] = None
    prompts_per_stage: int = 1

    def validate(self) -> None:
        if not isinstance(self.brand, str) or not self.brand.strip():
            raise InvalidInputError("Brand name is required")
        if self.prompts_per_stage < 1:
            raise InvalidInputError("prompts_per_stage must be at least 1")
        self.resolved_region()
        self.resolved_stages()
        self.resolved_platforms()

    def resolved_region(self) -> Region:
        return Region.parse(self.region)

    def resolved_stages(self) -> List[JourneyStage]:
        if self.journey_stages is None:
            return list(JourneyStage)
        stages: List[JourneyStage] = []
        for stage in self.journey_stages:
            parsed = JourneyStage.parse(stage)
            if parsed not in stages:
                stages.append(parsed)
        if not stages:
            raise InvalidInputError("At least one journey stage is required")
        return stages

    def resolved_platforms(self) -> List[Platform]:
        ceiling = Tier.parse(self.tier_ceiling)
        if self.platforms is None:
            return platforms_for_tier(ceiling)
        platforms: List[Platform] = []
        for key in self.platforms:
            platform = Platform.parse(key)
            if platform.tier.rank > ceiling.rank:
                raise InvalidInputError(
                    f"{platform.display_name} requires the {platform.tier.value} tier"
                )
            if platform not in platforms:
                platforms.append(platform)
        if not platforms:
            raise InvalidInputError("At least one platform is required")
        return platforms

    def competitor_names(self) -> List[str]:
        names: List[str] = []
        for name in self.competitors:
            cleaned = (name or "").strip()
            if cleaned and cleaned.lower() not in (n.lower() for n in names):
                names.append(cleaned)
        return names
