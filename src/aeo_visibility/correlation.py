"""Comparison of traffic estimates against measured analytics visits."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Mapping, Tuple

from .models import round_half_up
from .registry import Platform
from .traffic import TrafficEstimate

UNDERPERFORMING_RATIO = 0.5
OUTPERFORMING_RATIO = 1.5
MIN_SIGNIFICANT_VISITS = 100


@dataclass(frozen=True)
class PlatformVisits:
    platform: Platform
    estimated_visits: int
    actual_visits: int


@dataclass(frozen=True)
class PlatformAccuracy:
    platform: Platform
    estimated_visits: int
    actual_visits: int
    accuracy: int


@dataclass(frozen=True)
class TrafficAccuracy:
    overall: int
    by_platform: Tuple[PlatformAccuracy, ...]
    insights: Tuple[str, ...]


def accuracy_percent(estimated: int, actual: int) -> int:
    if estimated <= 0:
        return 100 if actual == 0 else 0
    return max(0, round_half_up((1 - abs(estimated - actual) / estimated) * 100))


def correlate(records: Iterable[PlatformVisits]) -> TrafficAccuracy:
    rows = list(records)
    by_platform = tuple(
        PlatformAccuracy(
            platform=row.platform,
            estimated_visits=row.estimated_visits,
            actual_visits=row.actual_visits,
            accuracy=accuracy_percent(row.estimated_visits, row.actual_visits),
        )
        for row in rows
    )
    estimated_total = sum(row.estimated_visits for row in rows)
    actual_total = sum(row.actual_visits for row in rows)

    insights: List[str] = []
    if estimated_total > 0 and actual_total > estimated_total * 1.2:
        insights.append(
            f"Your AI traffic is {round_half_up((actual_total / estimated_total - 1) * 100)}% "
            "higher than estimated."
        )
    elif estimated_total > 0 and actual_total < estimated_total * 0.8:
        insights.append(
            f"Your AI traffic is {round_half_up((1 - actual_total / estimated_total) * 100)}% "
            "lower than expected."
        )
    under = [
        row.platform.value
        for row in by_platform
        if row.estimated_visits > MIN_SIGNIFICANT_VISITS
        and row.actual_visits < row.estimated_visits * UNDERPERFORMING_RATIO
    ]
    if under:
        insights.append(f"Underperforming platforms: {', '.join(under)}.")
    over = [
        row.platform.value
        for row in by_platform
        if row.actual_visits > MIN_SIGNIFICANT_VISITS
        and row.actual_visits > row.estimated_visits * OUTPERFORMING_RATIO
    ]
    if over:
        insights.append(f"Outperforming platforms: {', '.join(over)}.")

    return TrafficAccuracy(
        overall=accuracy_percent(estimated_total, actual_total),
        by_platform=by_platform,
        insights=tuple(insights),
    )


def correlate_estimate(
    estimate: TrafficEstimate, actual_visits: Mapping["Platform | str", int]
) -> TrafficAccuracy:
    actual = {Platform.parse(key): int(value) for key, value in actual_visits.items()}
    return correlate(
        PlatformVisits(
            platform=entry.platform,
            estimated_visits=entry.estimated_visits,
            actual_visits=actual.get(entry.platform, 0),
        )
        for entry in estimate.platform_breakdown
    )
