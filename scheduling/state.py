"""Retailer state file: load, update after a run, and save wholesale.

The file is a flat JSON array of retailer records with camelCase keys. It is
read once at the start of a scheduling run and written back once at the end,
so a crash mid-run loses that run's updates.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Union

from dateutil import parser as dateparser

from schemas.pipeline_result import PipelineResult
from schemas.retailer import RetailerState
from sources.utils import load_json, save_json

logger = logging.getLogger(__name__)


def _parse_timestamp(value) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    try:
        return dateparser.parse(str(value))
    except (ValueError, OverflowError):
        logger.warning("Ignoring unparseable lastResearched value: %r", value)
        return None


def parse_state(records: list[dict]) -> list[RetailerState]:
    states = []
    for record in records:
        data = dict(record)
        data["lastResearched"] = _parse_timestamp(
            data.pop("lastResearched", data.pop("last_researched", None))
        )
        states.append(RetailerState.model_validate(data))
    return states


def load_state(path: Union[str, Path]) -> list[RetailerState]:
    """Load retailer state. Raises FileNotFoundError if the file is absent."""
    records = load_json(path)
    if not isinstance(records, list):
        raise ValueError(f"State file must contain a JSON array: {path}")
    states = parse_state(records)
    logger.info("Loaded %d retailers from %s", len(states), path)
    return states


def dump_state(states: Iterable[RetailerState]) -> list[dict]:
    return [s.model_dump(mode="json", by_alias=True) for s in states]


def save_state(states: Iterable[RetailerState], path: Union[str, Path]) -> Path:
    return save_json(dump_state(states), path)


def apply_results(
    states: list[RetailerState],
    results: Iterable[PipelineResult],
    now: Optional[datetime] = None,
) -> int:
    """Record successful runs on matching (name, site) states in place.

    Returns the number of states updated. Failed runs leave state untouched.
    When records share a name and site, the first one is updated.
    """
    now = now or datetime.now(timezone.utc)
    index = {}
    for s in states:
        index.setdefault((s.name, s.site), s)
    updated = 0
    for result in results:
        if not result.succeeded:
            continue
        state = index.get((result.retailer, result.site))
        if state is None:
            continue
        state.last_researched = now
        state.last_gap_count = len(result.gaps.missing)
        state.last_cost = result.total_cost
        updated += 1
    return updated
