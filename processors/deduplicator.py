"""Embedding-based deduplication of extracted facts.

Facts are embedded (concurrently), then folded greedily in input order:
each fact is compared against the representatives accepted so far and
merged into the first one whose cosine similarity exceeds the threshold.
When two facts merge, the longer content wins and brings its type along.

Facts that cannot be embedded are dropped, not kept un-embedded.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from schemas.fact import Fact
from vectorstore.similarity import cosine_similarity

logger = logging.getLogger(__name__)


@dataclass
class DedupeResult:
    facts: list[Fact] = field(default_factory=list)
    original: int = 0
    deduped: int = 0
    unembedded: int = 0
    elapsed_ms: int = 0


def fold_duplicates(embedded: list[Fact], threshold: float) -> list[Fact]:
    """Greedy order-preserving fold of embedded facts into representatives."""
    representatives: list[Fact] = []
    for fact in embedded:
        for i, rep in enumerate(representatives):
            if cosine_similarity(fact.embedding, rep.embedding) > threshold:
                if len(fact.content) > len(rep.content):
                    representatives[i] = rep.model_copy(
                        update={"content": fact.content, "type": fact.type}
                    )
                break
        else:
            representatives.append(fact)
    return representatives


class FactDeduplicator:
    """Removes near-duplicate facts using embedding similarity."""

    def __init__(self, embedder, threshold: float = 0.90):
        """Initialize the deduplicator.

        Args:
            embedder: Anything with ``embed_many(texts) -> list[Optional[vector]]``.
            threshold: Cosine similarity above which two facts are duplicates.
        """
        self.embedder = embedder
        self.threshold = threshold

    def deduplicate(self, facts: list[Fact]) -> DedupeResult:
        """Deduplicate facts. Output never carries embeddings."""
        start = time.time()
        if not facts:
            return DedupeResult()

        vectors: list[Optional[list[float]]] = self.embedder.embed_many(
            [fact.content for fact in facts]
        )
        embedded = [
            fact.model_copy(update={"embedding": vector})
            for fact, vector in zip(facts, vectors)
            if vector
        ]

        representatives = fold_duplicates(embedded, self.threshold)
        unique = [rep.model_copy(update={"embedding": None}) for rep in representatives]

        result = DedupeResult(
            facts=unique,
            original=len(facts),
            deduped=len(unique),
            unembedded=len(facts) - len(embedded),
            elapsed_ms=int((time.time() - start) * 1000),
        )
        logger.info(
            "Deduplication: %d → %d (merged: -%d, unembedded: -%d)",
            result.original,
            result.deduped,
            len(embedded) - len(unique),
            result.unembedded,
        )
        return result
