"""Fact extraction from raw research text.

The model decides what counts as a fact; this module only asks for typed
records, parses the reply and hands it to the ingestion normalizer.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from generators.llm_client import LLMClient, extract_json
from generators.prompts import EXTRACTION_SYSTEM
from processors.fact_normalizer import normalize_facts
from schemas.fact import Fact

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    facts: list[Fact] = field(default_factory=list)
    elapsed_ms: int = 0
    cost: float = 0.0
    error: Optional[str] = None


class FactExtractor:
    """Turns research text into typed facts using the generation model."""

    def __init__(
        self,
        llm: LLMClient,
        max_input_chars: int = 6000,
        max_facts: int = 60,
    ):
        self.llm = llm
        self.max_input_chars = max_input_chars
        self.max_facts = max_facts

    def extract(self, raw_text: str, retailer: str) -> ExtractionResult:
        """Extract facts. A reply that is not a fact list yields no facts and an error."""
        if not raw_text or not raw_text.strip():
            return ExtractionResult(error="no research text")

        try:
            generation = self.llm.generate(
                EXTRACTION_SYSTEM.format(retailer=retailer),
                raw_text[: self.max_input_chars],
                expect_json=True,
            )
        except Exception as e:
            logger.error("Fact extraction call failed for %s: %s", retailer, e)
            return ExtractionResult(error=str(e))

        parsed = extract_json(generation.content)
        if isinstance(parsed, dict):
            parsed = parsed.get("facts", parsed)

        if not isinstance(parsed, list):
            logger.warning("Extraction reply for %s is not a fact list", retailer)
            return ExtractionResult(
                elapsed_ms=generation.elapsed_ms,
                cost=generation.cost,
                error="unparseable extraction reply",
            )

        facts = normalize_facts(parsed)
        if len(facts) > self.max_facts:
            logger.info(
                "Capping %d extracted facts to %d for %s",
                len(facts), self.max_facts, retailer,
            )
            facts = facts[: self.max_facts]

        return ExtractionResult(
            facts=facts,
            elapsed_ms=generation.elapsed_ms,
            cost=generation.cost,
        )
