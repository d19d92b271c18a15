"""Staleness scoring: how urgently a retailer page needs a refresh.

    score = (base + gap_penalty + seasonal_boost) * priority_multiplier

where ``base = min(days_since_research / 30, 1)``, never-researched retailers
count as 999 days old, the gap penalty is 0.2 when the last run found more
than 5 missing facts, and the seasonal boost is 0.3 when any active event
applies to the retailer (not additive across events).
"""

from datetime import datetime, timezone
from typing import Optional

from schemas.retailer import ActiveEvent, Priority, RetailerState, ScoredRetailer

NEVER_RESEARCHED_DAYS = 999
STALE_AFTER_DAYS = 30
GAP_PENALTY = 0.2
GAP_PENALTY_MIN_GAPS = 5
SEASONAL_BOOST = 0.3

PRIORITY_MULTIPLIERS = {
    Priority.HIGH: 1.5,
    Priority.MEDIUM: 1.0,
    Priority.LOW: 0.5,
}


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def days_since_research(retailer: RetailerState, now: datetime) -> float:
    if retailer.last_researched is None:
        return NEVER_RESEARCHED_DAYS
    delta = _as_utc(now) - _as_utc(retailer.last_researched)
    return max(delta.total_seconds() / 86400, 0.0)


def seasonal_boost(retailer: RetailerState, events: list[ActiveEvent]) -> float:
    boost = 0.0
    for event in events:
        if event.matches(retailer.categories):
            boost = max(boost, SEASONAL_BOOST)
    return boost


def staleness_score(
    retailer: RetailerState,
    events: list[ActiveEvent],
    now: Optional[datetime] = None,
) -> float:
    now = now or datetime.now(timezone.utc)
    base = min(days_since_research(retailer, now) / STALE_AFTER_DAYS, 1.0)
    gap_penalty = GAP_PENALTY if (retailer.last_gap_count or 0) > GAP_PENALTY_MIN_GAPS else 0.0
    multiplier = PRIORITY_MULTIPLIERS[retailer.priority]
    return (base + gap_penalty + seasonal_boost(retailer, events)) * multiplier


def rank_by_staleness(
    retailers: list[RetailerState],
    events: list[ActiveEvent],
    now: Optional[datetime] = None,
) -> list[ScoredRetailer]:
    """Score every retailer and sort descending. Ties keep input order."""
    now = now or datetime.now(timezone.utc)
    scored = [
        ScoredRetailer(state=r, staleness=staleness_score(r, events, now))
        for r in retailers
    ]
    return sorted(scored, key=lambda s: s.staleness, reverse=True)
