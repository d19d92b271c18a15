"""Coverage classification of facts against an existing content page.

The page text is split into chunks on newline runs; chunks of 20 characters
or fewer are discarded. Each fact is matched against every chunk embedding
and classified by its best similarity:

    best > covered  -> COVERED
    best > partial  -> PARTIAL
    otherwise       -> MISSING

Every input fact yields exactly one result. A fact that cannot be embedded,
or a page with no usable chunks, classifies as MISSING with similarity 0.
"""

import logging
import re
import time
from dataclasses import dataclass, field

from schemas.fact import CoverageStatus, Fact, GapResult
from vectorstore.similarity import cosine_similarity

logger = logging.getLogger(__name__)

MATCH_PREVIEW_CHARS = 100


@dataclass
class ContentChunk:
    text: str
    embedding: list[float]


@dataclass
class ComparisonResult:
    results: list[GapResult] = field(default_factory=list)
    chunks: int = 0
    elapsed_ms: int = 0

    def by_status(self, status: CoverageStatus) -> list[GapResult]:
        return [r for r in self.results if r.status == status]


def chunk_text(text: str, min_chars: int = 20) -> list[str]:
    """Split page text on newline runs, keeping chunks longer than min_chars."""
    if not text:
        return []
    return [c.strip() for c in re.split(r"\n+", text) if len(c.strip()) > min_chars]


def coverage_status(
    similarity: float, covered: float = 0.85, partial: float = 0.70
) -> CoverageStatus:
    """Three-way verdict with exclusive thresholds."""
    if similarity > covered:
        return CoverageStatus.COVERED
    if similarity > partial:
        return CoverageStatus.PARTIAL
    return CoverageStatus.MISSING


class GapClassifier:
    """Classifies facts as MISSING, PARTIAL or COVERED on a content page."""

    def __init__(
        self,
        embedder,
        covered_threshold: float = 0.85,
        partial_threshold: float = 0.70,
        min_chunk_chars: int = 20,
    ):
        self.embedder = embedder
        self.covered_threshold = covered_threshold
        self.partial_threshold = partial_threshold
        self.min_chunk_chars = min_chunk_chars

    def classify(self, facts: list[Fact], existing_text: str) -> ComparisonResult:
        start = time.time()
        texts = chunk_text(existing_text, self.min_chunk_chars)
        if not texts:
            logger.info("No existing content chunks; all %d facts are MISSING", len(facts))
            return ComparisonResult(
                results=[_missing(fact) for fact in facts],
                elapsed_ms=int((time.time() - start) * 1000),
            )

        chunks = [
            ContentChunk(text=text, embedding=vector)
            for text, vector in zip(texts, self.embedder.embed_many(texts))
            if vector
        ]
        if not chunks:
            logger.warning("None of %d content chunks could be embedded", len(texts))
            return ComparisonResult(
                results=[_missing(fact) for fact in facts],
                elapsed_ms=int((time.time() - start) * 1000),
            )

        fact_vectors = self.embedder.embed_many([fact.content for fact in facts])
        results = [
            self._classify_one(fact, vector, chunks)
            for fact, vector in zip(facts, fact_vectors)
        ]

        comparison = ComparisonResult(
            results=results,
            chunks=len(chunks),
            elapsed_ms=int((time.time() - start) * 1000),
        )
        logger.info(
            "Gap comparison against %d chunks: %d covered, %d partial, %d missing",
            len(chunks),
            len(comparison.by_status(CoverageStatus.COVERED)),
            len(comparison.by_status(CoverageStatus.PARTIAL)),
            len(comparison.by_status(CoverageStatus.MISSING)),
        )
        return comparison

    def _classify_one(self, fact: Fact, vector, chunks: list[ContentChunk]) -> GapResult:
        if not vector:
            return _missing(fact)

        best_sim = 0.0
        best_match = ""
        for chunk in chunks:
            sim = cosine_similarity(vector, chunk.embedding)
            if sim > best_sim:
                best_sim = sim
                best_match = chunk.text

        best_sim = min(best_sim, 1.0)
        return GapResult(
            type=fact.type,
            content=fact.content,
            status=coverage_status(best_sim, self.covered_threshold, self.partial_threshold),
            similarity=best_sim,
            best_match=best_match[:MATCH_PREVIEW_CHARS],
        )


def _missing(fact: Fact) -> GapResult:
    return GapResult(
        type=fact.type,
        content=fact.content,
        status=CoverageStatus.MISSING,
        similarity=0.0,
    )
