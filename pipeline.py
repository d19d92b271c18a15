#!/usr/bin/env python3
"""Promotion gap research pipeline: research retailers, find what our pages miss.

Usage:
  python pipeline.py run "Target" coupons.com                  # Single retailer
  python pipeline.py batch retailers.json                       # Batch from file
  python pipeline.py batch --site coupons.com "Target,Nike"     # Batch from names

  python pipeline.py schedule retailers-state.json --budget 5 --max 50
  python pipeline.py agent "Target" coupons.com                 # Model-directed run
  python pipeline.py status retailers-state.json                # Staleness ranking
"""

import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

PROJECT_ROOT = Path(__file__).parent

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(PROJECT_ROOT / "pipeline.log"),
    ],
)
logger = logging.getLogger(__name__)

DEFAULT_RETAILERS = [
    ("Target", "coupons.com"),
    ("Best Buy", "coupons.com"),
    ("Nike", "coupons.com"),
    ("IKEA", "coupons.com"),
    ("Walmart", "coupons.com"),
]


def require_keys(settings) -> None:
    """Exit with status 1 if a required API key is missing."""
    missing = settings.keys.missing_required(settings.models.provider)
    if missing:
        logger.error("Missing API keys: %s", ", ".join(missing))
        sys.exit(1)


# ---------------------------------------------------------------------------
# RUN
# ---------------------------------------------------------------------------

def print_result(result) -> None:
    print("\n" + "=" * 60)
    print(f"{result.retailer}: {result.status}" + (f" ({result.reason})" if result.reason else ""))
    print(f"  Time: {result.elapsed:.1f}s | Cost: ~${result.total_cost:.4f}")
    print(f"  Facts: {result.facts_extracted} extracted → {result.facts_deduped} unique")
    print(f"  Gaps: {len(result.gaps.missing)} missing, {len(result.gaps.partial)} partial, "
          f"{result.gaps.covered} covered")

    if result.gaps.missing:
        print("\n  MISSING:")
        for m in result.gaps.missing:
            print(f"    [{m.type.value}] {m.content[:80]}")
    if result.gaps.partial:
        print("\n  PARTIAL:")
        for p in result.gaps.partial:
            print(f"    [{p.type.value}] {p.content[:80]} ({round(p.similarity * 100)}%)")
    if result.verification:
        print("\n  VERIFIED:")
        for v in result.verification:
            print(f"    [{v.verdict}] {v.content[:60]}: {(v.explanation or '')[:60]}")
    print("=" * 60)


def cmd_run(args):
    """Run the fixed pipeline for one retailer."""
    from config import load_settings
    from orchestration.retailer_pipeline import RetailerPipeline

    settings = load_settings()
    require_keys(settings)

    result = RetailerPipeline.from_settings(settings).run(args.retailer, args.site)
    print_result(result)
    if not result.succeeded:
        sys.exit(1)


# ---------------------------------------------------------------------------
# BATCH
# ---------------------------------------------------------------------------

def load_retailer_refs(args) -> list[tuple[str, str]]:
    """Retailers from a JSON file, a comma-separated list, or the defaults."""
    from sources.utils import load_json

    if args.source and args.source.endswith(".json"):
        data = load_json(args.source)
        return [(item["name"], item.get("site") or args.site) for item in data]
    if args.source:
        return [(name.strip(), args.site) for name in args.source.split(",") if name.strip()]
    return list(DEFAULT_RETAILERS)


def cmd_batch(args):
    """Run the pipeline for many retailers in parallel waves."""
    from config import load_settings
    from orchestration.batch import run_and_report
    from orchestration.retailer_pipeline import RetailerPipeline

    settings = load_settings()
    require_keys(settings)

    retailers = load_retailer_refs(args)
    pipeline = RetailerPipeline.from_settings(settings)
    parallel = args.parallel or settings.parallel_retailers
    run_and_report(pipeline.run, retailers, parallel, args.output_dir)


# ---------------------------------------------------------------------------
# SCHEDULE
# ---------------------------------------------------------------------------

def cmd_schedule(args):
    """Pick the stalest retailers within budget, refresh them, update state."""
    from config import load_settings
    from generators.llm_client import LLMClient
    from orchestration.retailer_pipeline import RetailerPipeline
    from orchestration.scheduler import run_scheduler
    from scheduling.selector import ScheduleSelector
    from scheduling.state import load_state, save_state

    settings = load_settings()
    require_keys(settings)

    state_path = Path(args.state_file)
    if not state_path.exists():
        logger.error("State file not found: %s", state_path)
        logger.info(
            'Create a JSON array of retailers: [{"name": "Target", "site": "coupons.com", '
            '"priority": "high", "categories": ["general"]}]'
        )
        sys.exit(1)

    states = load_state(state_path)
    selector = ScheduleSelector(
        LLMClient(
            provider=settings.models.provider,
            model=settings.models.scheduler_model,
            timeout=settings.limits.llm_timeout,
            costs=settings.costs,
        ),
        per_retailer_cost=settings.costs.per_retailer_estimate,
    )
    pipeline = RetailerPipeline.from_settings(settings)

    run = run_scheduler(
        states,
        budget=args.budget,
        max_count=args.max,
        selector=selector,
        run_one=pipeline.run,
        parallel=settings.parallel_retailers,
    )
    save_state(run.states, state_path)

    print("\n" + "=" * 60)
    print("SCHEDULER RUN COMPLETE")
    print(f"  {run.succeeded}/{len(run.results)} succeeded | ${run.spent:.4f} spent | "
          f"Budget remaining: ${run.remaining:.2f}")
    print("=" * 60)


# ---------------------------------------------------------------------------
# AGENT
# ---------------------------------------------------------------------------

def cmd_agent(args):
    """Let the model drive the research steps through tool calls."""
    from agent.loop import run_agent
    from config import load_settings

    settings = load_settings()
    require_keys(settings)
    if args.max_turns:
        settings.limits.agent_max_turns = args.max_turns

    result = run_agent(args.retailer, args.site, settings)

    print("\n" + "=" * 70)
    print("ORCHESTRATOR REPORT")
    print("=" * 70)
    print(f"Retailer:     {result.retailer}")
    print(f"Site:         {result.site}")
    print(f"Turns:        {result.turns} ({result.stop_reason})")
    print(f"Time:         {result.elapsed:.1f}s")
    print(f"Est. cost:    ${result.total_cost:.4f}")
    print(f"Tool calls:   {len(result.observations)}")
    for decision in result.decisions:
        print(f"  - {decision[:120]}")
    for warning in result.warnings:
        print(f"  ! {warning[:120]}")
    print("=" * 70)


# ---------------------------------------------------------------------------
# STATUS
# ---------------------------------------------------------------------------

def cmd_status(args):
    """Rank retailers in a state file by staleness."""
    from scheduling.seasonal import active_events
    from scheduling.staleness import rank_by_staleness
    from scheduling.state import load_state

    now = datetime.now(timezone.utc)
    states = load_state(args.state_file)
    events = active_events(now.date())
    ranked = rank_by_staleness(states, events, now)

    print("\n" + "=" * 70)
    print("RETAILER REFRESH STATUS")
    print(f"  Seasonal: {', '.join(e.name for e in events) or 'none'}")
    print("=" * 70)
    for scored in ranked[: args.top]:
        state = scored.state
        last = state.last_researched.date().isoformat() if state.last_researched else "never"
        print(f"  {scored.staleness:5.2f}  {state.name} ({state.site})  "
              f"priority={state.priority.value}  last={last}  gaps={state.last_gap_count or '?'}")
    print("=" * 70)


# ---------------------------------------------------------------------------
# MAIN
# ---------------------------------------------------------------------------

def main():
    parser = argparse.ArgumentParser(
        description="Promotion Gap Research Pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    subparsers = parser.add_subparsers(dest="command", help="Pipeline command")

    # Run
    run_parser = subparsers.add_parser("run", help="Research one retailer")
    run_parser.add_argument("retailer", help="Retailer name, e.g. \"Best Buy\"")
    run_parser.add_argument("site", nargs="?", default="coupons.com", help="Site domain")

    # Batch
    batch_parser = subparsers.add_parser("batch", help="Research many retailers in parallel")
    batch_parser.add_argument(
        "source",
        nargs="?",
        default=None,
        help="JSON file of {name, site} records, or comma-separated retailer names",
    )
    batch_parser.add_argument("--site", default="coupons.com", help="Site for name lists")
    batch_parser.add_argument("--parallel", type=int, default=None, help="Retailers per wave")
    batch_parser.add_argument("--output-dir", default=".", help="Where to save batch results")

    # Schedule
    schedule_parser = subparsers.add_parser("schedule", help="Scheduled refresh within budget")
    schedule_parser.add_argument(
        "state_file", nargs="?", default="retailers-state.json", help="Retailer state JSON"
    )
    schedule_parser.add_argument("--budget", type=float, default=5.0, help="Dollar budget")
    schedule_parser.add_argument("--max", type=int, default=50, help="Max retailers this run")

    # Agent
    agent_parser = subparsers.add_parser("agent", help="Model-directed research run")
    agent_parser.add_argument("retailer", help="Retailer name")
    agent_parser.add_argument("site", nargs="?", default="coupons.com", help="Site domain")
    agent_parser.add_argument("--max-turns", type=int, default=None, help="Turn ceiling")

    # Status
    status_parser = subparsers.add_parser("status", help="Show staleness ranking")
    status_parser.add_argument(
        "state_file", nargs="?", default="retailers-state.json", help="Retailer state JSON"
    )
    status_parser.add_argument("--top", type=int, default=25, help="Rows to show")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "run": cmd_run,
        "batch": cmd_batch,
        "schedule": cmd_schedule,
        "agent": cmd_agent,
        "status": cmd_status,
    }

    try:
        commands[args.command](args)
    except Exception as e:
        logger.exception("Pipeline error: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
