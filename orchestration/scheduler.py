"""Scheduling run: pick retailers, refresh them, record the outcome.

State is written back once, in full, after every chosen retailer has run.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from orchestration.batch import run_batch
from scheduling.seasonal import active_events
from scheduling.selector import ScheduleSelector
from scheduling.state import apply_results
from schemas.pipeline_result import PipelineResult
from schemas.retailer import RetailerState, ScheduleDecision

logger = logging.getLogger(__name__)


@dataclass
class SchedulerRun:
    decision: ScheduleDecision
    results: list[PipelineResult] = field(default_factory=list)
    states: list[RetailerState] = field(default_factory=list)
    updated: int = 0
    spent: float = 0.0
    budget: float = 0.0

    @property
    def remaining(self) -> float:
        return self.budget - self.spent

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.succeeded)


def run_scheduler(
    states: list[RetailerState],
    budget: float,
    max_count: int,
    selector: ScheduleSelector,
    run_one: Callable[[str, str], PipelineResult],
    parallel: int = 5,
    now: Optional[datetime] = None,
) -> SchedulerRun:
    """Select, run and update. ``states`` is updated in place and returned."""
    now = now or datetime.now(timezone.utc)
    events = active_events(now.date())
    logger.info(
        "Scheduler: %d retailers | budget $%.2f | max %d | seasonal: %s",
        len(states), budget, max_count, ", ".join(e.name for e in events) or "none",
    )

    decision = selector.select(states, budget, max_count, events, now)
    logger.info(
        "Selected %d retailers%s", len(decision.chosen),
        " (staleness fallback)" if decision.used_fallback else "",
    )
    for pick in decision.chosen:
        logger.info("  • %s (%s): %s", pick.name, pick.site, pick.reason)
    if decision.skipped_reason:
        logger.info("  Skipped: %s", decision.skipped_reason)

    results = run_batch(run_one, [(p.name, p.site) for p in decision.chosen], parallel)
    updated = apply_results(states, results, now)
    spent = sum(r.total_cost for r in results if r.succeeded)

    run = SchedulerRun(
        decision=decision,
        results=results,
        states=states,
        updated=updated,
        spent=spent,
        budget=budget,
    )
    logger.info(
        "Scheduler run complete: %d/%d succeeded | $%.4f spent | budget remaining: $%.2f",
        run.succeeded, len(results), run.spent, run.remaining,
    )
    return run
