from datetime import datetime, timedelta, timezone

import pytest

from scheduling.staleness import rank_by_staleness, staleness_score
from schemas.retailer import ActiveEvent, Priority, RetailerState

NOW = datetime(2026, 11, 20, 12, 0, tzinfo=timezone.utc)
WILDCARD = ActiveEvent(name="black-friday", categories=["*"], days_until_peak=8)
ELECTRONICS = ActiveEvent(name="cyber-monday", categories=["electronics"], days_until_peak=12)


def _retailer(**kwargs):
    return RetailerState(name=kwargs.pop("name", "Target"), site="coupons.com", **kwargs)


def test_never_researched_high_priority_during_wildcard_event() -> None:
    retailer = _retailer(priority=Priority.HIGH)
    assert staleness_score(retailer, [WILDCARD], NOW) == pytest.approx(1.95)


def test_recent_research_scales_linearly() -> None:
    retailer = _retailer(last_researched=NOW - timedelta(days=15))
    assert staleness_score(retailer, [], NOW) == pytest.approx(0.5)


def test_base_caps_at_one() -> None:
    retailer = _retailer(last_researched=NOW - timedelta(days=90))
    assert staleness_score(retailer, [], NOW) == pytest.approx(1.0)


def test_gap_penalty_only_above_five() -> None:
    researched = NOW - timedelta(days=30)
    assert staleness_score(_retailer(last_researched=researched, last_gap_count=6), [], NOW) == pytest.approx(1.2)
    assert staleness_score(_retailer(last_researched=researched, last_gap_count=5), [], NOW) == pytest.approx(1.0)


def test_low_priority_halves_score() -> None:
    retailer = _retailer(priority=Priority.LOW)
    assert staleness_score(retailer, [], NOW) == pytest.approx(0.5)


def test_seasonal_boost_is_not_additive() -> None:
    retailer = _retailer(categories=["electronics"], last_researched=NOW)
    assert staleness_score(retailer, [WILDCARD, ELECTRONICS], NOW) == pytest.approx(0.3)


def test_seasonal_boost_needs_matching_category() -> None:
    retailer = _retailer(categories=["furniture"], last_researched=NOW)
    assert staleness_score(retailer, [ELECTRONICS], NOW) == 0.0


def test_future_timestamp_is_not_negative() -> None:
    retailer = _retailer(last_researched=NOW + timedelta(days=3))
    assert staleness_score(retailer, [], NOW) == 0.0


def test_naive_timestamp_is_treated_as_utc() -> None:
    retailer = _retailer(last_researched=datetime(2026, 11, 5, 12, 0))
    assert staleness_score(retailer, [], NOW) == pytest.approx(0.5)


def test_rank_sorts_descending() -> None:
    retailers = [
        _retailer(name="Fresh", last_researched=NOW),
        _retailer(name="Never", priority=Priority.HIGH),
        _retailer(name="Half", last_researched=NOW - timedelta(days=15)),
    ]
    ranked = rank_by_staleness(retailers, [], NOW)
    assert [s.state.name for s in ranked] == ["Never", "Half", "Fresh"]
    assert ranked[0].staleness == pytest.approx(1.5)
