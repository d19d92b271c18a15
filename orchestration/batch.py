"""Parallel retailer runs in fixed-width waves.

A wave of up to ``parallel`` retailers runs concurrently; the next wave
starts only when the current one has finished. A retailer whose pipeline
raises is reported as an ``error`` result and never affects its siblings.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Sequence, Union

from schemas.pipeline_result import PipelineResult
from sources.utils import save_json

logger = logging.getLogger(__name__)

PROJECTED_DAILY_RETAILERS = 200

RetailerRef = tuple[str, str]


@dataclass
class BatchSummary:
    total: int
    succeeded: int
    wall_seconds: float
    average_seconds: float
    total_cost: float
    total_missing: int
    projected_daily_cost: float


def run_batch(
    run_one: Callable[[str, str], PipelineResult],
    retailers: Sequence[RetailerRef],
    parallel: int = 5,
) -> list[PipelineResult]:
    """Run ``run_one(name, site)`` for each retailer, in waves.

    Results come back in input order.
    """
    parallel = max(1, parallel)
    results: list[PipelineResult] = []
    total_waves = (len(retailers) + parallel - 1) // parallel

    for offset in range(0, len(retailers), parallel):
        wave = list(retailers[offset:offset + parallel])
        logger.info(
            "── Wave %d/%d: %s ──",
            offset // parallel + 1, total_waves, ", ".join(name for name, _ in wave),
        )
        wave_results: list = [None] * len(wave)
        with ThreadPoolExecutor(max_workers=len(wave)) as executor:
            futures = {
                executor.submit(run_one, name, site): i
                for i, (name, site) in enumerate(wave)
            }
            for future in as_completed(futures):
                i = futures[future]
                name, site = wave[i]
                try:
                    wave_results[i] = future.result()
                except Exception as e:
                    logger.error("Pipeline for %s (%s) raised: %s", name, site, e)
                    wave_results[i] = PipelineResult(
                        retailer=name, site=site, status="error", error=str(e) or type(e).__name__,
                    )
        results.extend(wave_results)

    return results


def summarize_batch(results: Sequence[PipelineResult], wall_seconds: float) -> BatchSummary:
    succeeded = [r for r in results if r.succeeded]
    total_cost = sum(r.total_cost for r in succeeded)
    return BatchSummary(
        total=len(results),
        succeeded=len(succeeded),
        wall_seconds=wall_seconds,
        average_seconds=(sum(r.elapsed for r in succeeded) / len(succeeded)) if succeeded else 0.0,
        total_cost=total_cost,
        total_missing=sum(len(r.gaps.missing) for r in succeeded),
        projected_daily_cost=(
            total_cost / len(succeeded) * PROJECTED_DAILY_RETAILERS if succeeded else 0.0
        ),
    )


def log_batch_report(results: Sequence[PipelineResult], summary: BatchSummary) -> None:
    logger.info("=" * 60)
    logger.info("BATCH REPORT")
    logger.info("=" * 60)
    for r in results:
        if r.succeeded:
            logger.info(
                "  OK   %s: %d missing, %d partial | %.0fs | $%.4f",
                r.retailer, len(r.gaps.missing), len(r.gaps.partial), r.elapsed, r.total_cost,
            )
        else:
            logger.info("  FAIL %s: %s", r.retailer, r.error or r.reason or "failed")
    logger.info("-" * 60)
    logger.info("  %d/%d succeeded", summary.succeeded, summary.total)
    logger.info(
        "  Total time: %.0fs (wall) | Avg: %.0fs/retailer",
        summary.wall_seconds, summary.average_seconds,
    )
    logger.info("  Total cost: $%.4f", summary.total_cost)
    logger.info("  Total gaps found: %d missing facts", summary.total_missing)
    if summary.succeeded:
        logger.info(
            "  Projected %d/day: $%.2f/day",
            PROJECTED_DAILY_RETAILERS, summary.projected_daily_cost,
        )


def save_batch_results(
    results: Sequence[PipelineResult],
    output_dir: Union[str, Path] = ".",
    now: datetime = None,
) -> Path:
    stamp = (now or datetime.now()).strftime("%Y-%m-%dT%H%M")
    path = Path(output_dir) / f"batch-results-{stamp}.json"
    return save_json([r.model_dump(mode="json") for r in results], path)


def run_and_report(
    run_one: Callable[[str, str], PipelineResult],
    retailers: Sequence[RetailerRef],
    parallel: int = 5,
    output_dir: Union[str, Path] = ".",
) -> tuple[list[PipelineResult], BatchSummary]:
    """Batch entry point used by the CLI: run, log the report, save results."""
    start = time.time()
    logger.info("EDITORIAL RESEARCH BATCH: %d retailers, concurrency %d", len(retailers), parallel)
    results = run_batch(run_one, retailers, parallel)
    summary = summarize_batch(results, time.time() - start)
    log_batch_report(results, summary)
    save_batch_results(results, output_dir)
    return results, summary
