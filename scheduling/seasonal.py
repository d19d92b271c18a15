"""Seasonal retail calendar and active-event lookup."""

from datetime import date
from typing import Iterable, Optional

from schemas.retailer import WILDCARD_CATEGORY, ActiveEvent, SeasonalEvent

SEASONAL_CALENDAR = [
    SeasonalEvent(name="valentines", start=(2, 7), peak=(2, 14),
                  categories=["gifts", "jewelry", "flowers"]),
    SeasonalEvent(name="presidents-day", start=(2, 14), peak=(2, 17),
                  categories=["mattresses", "appliances", "furniture"]),
    SeasonalEvent(name="memorial-day", start=(5, 19), peak=(5, 26),
                  categories=["outdoor", "grills", "mattresses"]),
    SeasonalEvent(name="prime-day", start=(7, 8), peak=(7, 16),
                  categories=["electronics", "amazon-competitors"]),
    SeasonalEvent(name="back-to-school", start=(7, 15), peak=(8, 15),
                  categories=["clothing", "electronics", "office"]),
    SeasonalEvent(name="black-friday", start=(11, 15), peak=(11, 28),
                  categories=[WILDCARD_CATEGORY]),
    SeasonalEvent(name="cyber-monday", start=(11, 29), peak=(12, 2),
                  categories=["electronics", "software"]),
    SeasonalEvent(name="christmas", start=(12, 1), peak=(12, 25),
                  categories=[WILDCARD_CATEGORY]),
]


def is_active(event: SeasonalEvent, today: date) -> bool:
    """Month/day window test; no calendar arithmetic across years."""
    month, day = today.month, today.day
    start_month, start_day = event.start
    peak_month, peak_day = event.peak
    return (
        (month == start_month and day >= start_day)
        or (month == peak_month and day <= peak_day)
        or (start_month < month < peak_month)
    )


def days_until_peak(event: SeasonalEvent, today: date) -> int:
    peak_month, peak_day = event.peak
    return (peak_month - today.month) * 30 + (peak_day - today.day)


def active_events(
    today: Optional[date] = None,
    calendar: Iterable[SeasonalEvent] = SEASONAL_CALENDAR,
) -> list[ActiveEvent]:
    today = today or date.today()
    return [
        ActiveEvent(
            name=event.name,
            categories=list(event.categories),
            days_until_peak=days_until_peak(event, today),
        )
        for event in calendar
        if is_active(event, today)
    ]


def describe_events(events: list[ActiveEvent]) -> str:
    """One-line description for prompts."""
    if not events:
        return "No major seasonal events right now."
    parts = [
        f"{e.name} ({e.days_until_peak} days to peak, categories: {','.join(e.categories)})"
        for e in events
    ]
    return "Active seasonal events: " + "; ".join(parts)
