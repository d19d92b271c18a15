"""Fixed-order research pipeline for one retailer on one site.

    fetch existing page -> research -> extract -> dedupe -> compare -> verify

Each step's output is complete before the next step starts. The model is
only used for extraction and verification, never to decide the order.
"""

import logging
import time
from typing import Optional

from config import Settings, load_settings
from generators.fact_extractor import FactExtractor
from generators.llm_client import LLMClient
from processors.deduplicator import FactDeduplicator
from processors.gap_classifier import GapClassifier
from processors.verifier import FactVerifier
from schemas.fact import CoverageStatus
from schemas.pipeline_result import (
    GapSummary,
    MissingFact,
    PartialFact,
    PipelineResult,
    StepLog,
    VerificationOutcome,
)
from sources.research import ResearchClient
from sources.scraper import PageScraper
from vectorstore.embedder import Embedder

logger = logging.getLogger(__name__)


class StepRecorder:
    """Collects step log entries with elapsed seconds since the run began."""

    def __init__(self, label: str):
        self.label = label
        self.start = time.time()
        self.entries: list[StepLog] = []

    @property
    def elapsed(self) -> float:
        return time.time() - self.start

    def __call__(self, step: str, detail: str) -> None:
        elapsed = round(self.elapsed, 1)
        self.entries.append(StepLog(step=step, detail=detail, elapsed=elapsed))
        logger.info("%s [%.1fs] %s: %s", self.label, elapsed, step, detail)


class RetailerPipeline:
    """Runs the gap-research pipeline for a single retailer."""

    def __init__(
        self,
        scraper: PageScraper,
        researcher: ResearchClient,
        extractor: FactExtractor,
        deduplicator: FactDeduplicator,
        classifier: GapClassifier,
        verifier: FactVerifier,
        max_existing_chars: int = 3000,
    ):
        self.scraper = scraper
        self.researcher = researcher
        self.extractor = extractor
        self.deduplicator = deduplicator
        self.classifier = classifier
        self.verifier = verifier
        self.max_existing_chars = max_existing_chars

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RetailerPipeline":
        """Wire the pipeline to the live research, scrape, embedding and model APIs."""
        settings = settings or load_settings()
        limits = settings.limits
        thresholds = settings.thresholds
        costs = settings.costs

        llm = LLMClient(
            provider=settings.models.provider,
            model=settings.models.llm_model,
            timeout=limits.llm_timeout,
            costs=costs,
        )
        embedder = Embedder(
            model=settings.models.embedding_model,
            api_key=settings.keys.openai,
            base_url=settings.models.embedding_base_url,
            max_workers=settings.embedding_workers,
        )
        scraper = PageScraper(
            api_key=settings.keys.firecrawl,
            timeout=limits.scrape_timeout,
            cost_per_call=costs.scrape_call,
        )
        researcher = ResearchClient(
            model=settings.models.research_model,
            api_key=settings.keys.perplexity,
            cost_per_call=costs.research_call,
            timeout=limits.llm_timeout,
        )
        return cls(
            scraper=scraper,
            researcher=researcher,
            extractor=FactExtractor(
                llm,
                max_input_chars=limits.max_research_chars,
                max_facts=limits.max_facts_per_retailer,
            ),
            deduplicator=FactDeduplicator(embedder, threshold=thresholds.dedupe_similarity),
            classifier=GapClassifier(
                embedder,
                covered_threshold=thresholds.covered,
                partial_threshold=thresholds.partial,
                min_chunk_chars=limits.min_chunk_chars,
            ),
            verifier=FactVerifier(
                llm,
                scraper,
                researcher,
                cap=limits.verification_cap,
                cost_per_verification=costs.verification_estimate,
            ),
            max_existing_chars=limits.max_existing_content_chars,
        )

    def run(self, retailer: str, site: str) -> PipelineResult:
        step = StepRecorder(f"{retailer} × {site}")
        total_cost = 0.0

        # 1. Existing page
        existing = self.scraper.fetch_existing_page(retailer, site, self.max_existing_chars)
        step("fetch", f"{len(existing.content)} chars from {existing.url}"
                      + (" (FAILED)" if existing.error else ""))

        # 2. Research
        research = self.researcher.research_retailer(retailer)
        total_cost += research.cost
        step("research", f"{len(research.content)} chars, {len(research.citations)} citations "
                         f"({research.elapsed_ms}ms)" + (f" ERROR: {research.error}" if research.error else ""))

        # 3. Extract
        extracted = self.extractor.extract(research.content, retailer)
        total_cost += extracted.cost
        step("extract", f"{len(extracted.facts)} facts ({extracted.elapsed_ms}ms)"
                        + (f" ERROR: {extracted.error}" if extracted.error else ""))

        if not extracted.facts:
            step("ABORT", "No facts extracted, skipping remaining steps")
            return PipelineResult(
                retailer=retailer,
                site=site,
                status="failed",
                reason="no_facts",
                error=extracted.error or research.error,
                elapsed=step.elapsed,
                total_cost=total_cost,
                existing_url=existing.url,
                existing_content_length=len(existing.content),
                existing_error=existing.error,
                log=step.entries,
            )

        # 4. Dedupe
        deduped = self.deduplicator.deduplicate(extracted.facts)
        step("dedupe", f"{deduped.original} → {deduped.deduped} unique facts ({deduped.elapsed_ms}ms)")

        # 5. Compare
        comparison = self.classifier.classify(deduped.facts, existing.content)
        missing = comparison.by_status(CoverageStatus.MISSING)
        partial = comparison.by_status(CoverageStatus.PARTIAL)
        covered = comparison.by_status(CoverageStatus.COVERED)
        step("compare", f"{len(covered)} covered, {len(partial)} partial, "
                        f"{len(missing)} missing ({comparison.elapsed_ms}ms)")

        # 6. Verify
        verification = self.verifier.verify(retailer, comparison.results)
        total_cost += verification.cost
        if verification.verified:
            step("verify", f"{len(verification.verified)} facts checked: "
                           f"{', '.join(verification.verdicts)} ({verification.elapsed_ms}ms)")
        else:
            step("verify", "No high-risk facts to verify")

        step("done", f"Total: {step.elapsed:.1f}s, ~${total_cost:.4f}")

        return PipelineResult(
            retailer=retailer,
            site=site,
            status="success",
            elapsed=step.elapsed,
            total_cost=total_cost,
            existing_url=existing.url,
            existing_content_length=len(existing.content),
            existing_error=existing.error,
            facts_extracted=len(extracted.facts),
            facts_deduped=deduped.deduped,
            gaps=GapSummary(
                missing=[MissingFact(type=r.type, content=r.content) for r in missing],
                partial=[
                    PartialFact(type=r.type, content=r.content, similarity=r.similarity)
                    for r in partial
                ],
                covered=len(covered),
            ),
            verification=[
                VerificationOutcome(
                    type=r.type,
                    content=r.content,
                    verdict=r.verification.verdict,
                    explanation=r.verification.explanation,
                    corrected=r.verification.corrected_fact,
                )
                for r in verification.verified
                if r.verification
            ],
            log=step.entries,
        )
