from datetime import datetime, timezone

import orjson

from schemas.pipeline_result import GapSummary, MissingFact, PipelineResult
from schemas.retailer import Priority, RetailerState
from scheduling.state import apply_results, load_state, save_state
from schemas.fact import FactType

NOW = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)


def _write(path, records):
    path.write_bytes(orjson.dumps(records))
    return path


def test_load_reads_camel_case_records(tmp_path) -> None:
    path = _write(tmp_path / "state.json", [
        {"name": "Target", "site": "coupons.com", "priority": "high", "categories": ["general"],
         "lastResearched": "2026-01-05T10:00:00Z", "lastGapCount": 7, "lastCost": 0.04},
        {"name": "Nike", "site": "coupons.com"},
    ])
    target, nike = load_state(path)

    assert target.priority == Priority.HIGH
    assert target.last_researched == datetime(2026, 1, 5, 10, 0, tzinfo=timezone.utc)
    assert target.last_gap_count == 7
    assert target.last_cost == 0.04
    assert nike.priority == Priority.MEDIUM
    assert nike.last_researched is None
    assert nike.categories == []


def test_unparseable_timestamp_counts_as_never(tmp_path) -> None:
    path = _write(tmp_path / "state.json", [
        {"name": "IKEA", "site": "coupons.com", "lastResearched": "last tuesday-ish"},
    ])
    (ikea,) = load_state(path)
    assert ikea.last_researched is None


def test_save_keeps_camel_case_keys(tmp_path) -> None:
    path = _write(tmp_path / "state.json", [
        {"name": "Target", "site": "coupons.com", "lastResearched": "2026-01-05T10:00:00Z"},
    ])
    states = load_state(path)
    save_state(states, path)

    saved = orjson.loads(path.read_bytes())
    assert set(saved[0]) >= {"name", "site", "priority", "lastResearched", "lastGapCount", "lastCost"}
    assert load_state(path)[0].last_researched == states[0].last_researched


def _result(name, status="success", missing=0, cost=0.03):
    return PipelineResult(
        retailer=name,
        site="coupons.com",
        status=status,
        total_cost=cost,
        gaps=GapSummary(missing=[
            MissingFact(type=FactType.OTHER, content=f"gap {i}") for i in range(missing)
        ]),
    )


def test_apply_results_updates_only_successful_matches(tmp_path) -> None:
    path = _write(tmp_path / "state.json", [
        {"name": "Target", "site": "coupons.com"},
        {"name": "Nike", "site": "coupons.com", "lastGapCount": 2},
        {"name": "Target", "site": "retailmenot.com"},
    ])
    states = load_state(path)
    updated = apply_results(states, [
        _result("Target", missing=3, cost=0.05),
        _result("Nike", status="failed"),
        _result("Walmart"),
    ], NOW)

    assert updated == 1
    target, nike, other_site = states
    assert target.last_researched == NOW
    assert target.last_gap_count == 3
    assert target.last_cost == 0.05
    assert nike.last_researched is None
    assert nike.last_gap_count == 2
    assert other_site.last_researched is None


def test_apply_results_updates_first_of_duplicate_records() -> None:
    first = RetailerState(name="Target", site="coupons.com")
    second = RetailerState(name="Target", site="coupons.com")
    assert apply_results([first, second], [_result("Target", missing=1)], NOW) == 1
    assert first.last_researched == NOW
    assert second.last_researched is None
