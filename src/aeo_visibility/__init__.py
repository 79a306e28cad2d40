"""AI visibility checks across answer engines, with traffic projections."""

from .analytics import AnalyticsTracker, EventName
from .analyzer import ResponseAnalyzer
from .config import EngineSettings
from .engine import VisibilityEngine
from .errors import (
    CompletionError,
    InvalidInputError,
    RateLimitError,
    UnknownPlatformError,
    UnknownRegionError,
)
from .models import AICheckResult, CheckRequest, PlatformResult, Sentiment
from .registry import JourneyStage, Platform, Region, Tier
from .traffic import TrafficEstimate, TrafficEstimationOptions

__all__ = [
    "AnalyticsTracker",
    "EventName",
    "ResponseAnalyzer",
    "EngineSettings",
    "VisibilityEngine",
    "CompletionError",
    "InvalidInputError",
    "RateLimitError",
    "UnknownPlatformError",
    "UnknownRegionError",
    "AICheckResult",
    "CheckRequest",
    "PlatformResult",
    "Sentiment",
    "JourneyStage",
    "Platform",
    "Region",
    "Tier",
    "TrafficEstimate",
    "TrafficEstimationOptions",
]
