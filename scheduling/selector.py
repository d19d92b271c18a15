"""Budget-aware selection of which retailers to refresh.

Retailers are ranked by staleness and the top candidates are shown to the
scheduling model, which picks the final set. Whenever the model's answer is
unusable (call failure, unparseable reply, no known retailer picked), the
selection falls back to the top ``max_count`` retailers by staleness alone.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Optional

from generators.llm_client import extract_json
from generators.prompts import SCHEDULER_SYSTEM, SCHEDULER_USER
from scheduling.seasonal import describe_events
from scheduling.staleness import rank_by_staleness
from schemas.retailer import (
    ActiveEvent,
    RetailerState,
    ScheduleDecision,
    ScheduledRetailer,
    ScoredRetailer,
)

logger = logging.getLogger(__name__)

MAX_CANDIDATES = 100
FALLBACK_REASON = "staleness"


def candidate_count(max_count: int) -> int:
    return min(2 * max_count, MAX_CANDIDATES)


def format_candidate(scored: ScoredRetailer) -> str:
    state = scored.state
    last = state.last_researched.isoformat() if state.last_researched else "never"
    gaps = state.last_gap_count if state.last_gap_count else "?"
    categories = ",".join(state.categories) or "general"
    return (
        f"- {state.name} ({state.site}) | staleness: {scored.staleness:.2f} | last: {last} "
        f"| gaps: {gaps} | priority: {state.priority.value} | categories: {categories}"
    )


def fallback_selection(ranked: list[ScoredRetailer], max_count: int) -> list[ScheduledRetailer]:
    """Top ``max_count`` by staleness, ignoring budget."""
    return [
        ScheduledRetailer(name=s.state.name, site=s.state.site, reason=FALLBACK_REASON)
        for s in ranked[:max_count]
    ]


class ScheduleSelector:
    """Ranks retailers by staleness and lets the scheduling model pick."""

    def __init__(self, llm, per_retailer_cost: float = 0.05):
        self.llm = llm
        self.per_retailer_cost = per_retailer_cost

    def build_prompt(
        self,
        candidates: list[ScoredRetailer],
        budget: float,
        max_count: int,
        events: list[ActiveEvent],
        today: str,
    ) -> str:
        return SCHEDULER_USER.format(
            budget=budget,
            per_retailer=self.per_retailer_cost,
            budget_max=math.floor(budget / self.per_retailer_cost) if self.per_retailer_cost else max_count,
            max_count=max_count,
            today=today,
            seasonal=describe_events(events),
            shown=len(candidates),
            retailer_list="\n".join(format_candidate(c) for c in candidates),
        )

    def select(
        self,
        retailers: list[RetailerState],
        budget: float,
        max_count: int,
        events: list[ActiveEvent],
        now: Optional[datetime] = None,
    ) -> ScheduleDecision:
        now = now or datetime.now(timezone.utc)
        ranked = rank_by_staleness(retailers, events, now)
        candidates = ranked[: candidate_count(max_count)]
        if not candidates or max_count <= 0:
            return ScheduleDecision(skipped_reason="No retailers to schedule")

        prompt = self.build_prompt(candidates, budget, max_count, events, now.date().isoformat())
        cost = 0.0
        try:
            generation = self.llm.generate(SCHEDULER_SYSTEM, prompt, expect_json=True)
            cost = generation.cost
            parsed = extract_json(generation.content)
        except Exception as e:
            logger.error("Scheduling model call failed: %s", e)
            parsed = None

        chosen = self._parse_picks(parsed, candidates, max_count)
        if chosen is None:
            logger.warning("Scheduling reply unusable; falling back to staleness ranking")
            return ScheduleDecision(
                chosen=fallback_selection(ranked, max_count),
                skipped_reason="Scheduler reply could not be used, using staleness ranking",
                used_fallback=True,
                candidates_shown=len(candidates),
                cost=cost,
            )

        skipped = parsed.get("skipped_reason") if isinstance(parsed, dict) else ""
        return ScheduleDecision(
            chosen=chosen,
            skipped_reason=skipped if isinstance(skipped, str) else "",
            candidates_shown=len(candidates),
            cost=cost,
        )

    def _parse_picks(
        self, parsed, candidates: list[ScoredRetailer], max_count: int
    ) -> Optional[list[ScheduledRetailer]]:
        """Known, de-duplicated picks capped at ``max_count``; None if none are usable."""
        if not isinstance(parsed, dict) or not isinstance(parsed.get("retailers"), list):
            return None

        known = {(c.state.name, c.state.site): c.state for c in candidates}
        by_name = {}
        for c in candidates:
            by_name.setdefault(c.state.name, c.state)

        chosen: list[ScheduledRetailer] = []
        seen = set()
        for pick in parsed["retailers"]:
            if not isinstance(pick, dict):
                continue
            name, site = pick.get("name"), pick.get("site")
            state = known.get((name, site)) or by_name.get(name)
            if state is None:
                logger.debug("Discarding unknown scheduler pick: %s (%s)", name, site)
                continue
            key = (state.name, state.site)
            if key in seen:
                continue
            seen.add(key)
            reason = pick.get("reason")
            chosen.append(ScheduledRetailer(
                name=state.name,
                site=state.site,
                reason=reason if isinstance(reason, str) else "",
            ))
            if len(chosen) >= max_count:
                break

        return chosen or None
