"""High-risk fact selection and verification against official sources.

Only gaps (MISSING or PARTIAL) of a high-risk type are verified, first
``cap`` in input order. For each, the retailer's help page is scraped; if
that yields nothing usable, a targeted research query stands in for it.
The model's verdict string is attached as-is and never interpreted here.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Iterable, Optional

from config import HIGH_RISK_TYPES
from generators.llm_client import extract_json
from generators.prompts import VERIFICATION_USER
from schemas.fact import CoverageStatus, FactType, GapResult, Verification
from sources.utils import slugify

logger = logging.getLogger(__name__)

GAP_STATUSES = (CoverageStatus.MISSING, CoverageStatus.PARTIAL)
MIN_SOURCE_CHARS = 200
MAX_SOURCE_CHARS = 2000


def select_for_verification(
    results: list[GapResult],
    risk_types: Iterable[FactType] = HIGH_RISK_TYPES,
    cap: int = 5,
) -> list[GapResult]:
    """Gaps of a high-risk type, in input order, at most ``cap`` of them."""
    risk_types = set(risk_types)
    selected = [r for r in results if r.status in GAP_STATUSES and r.type in risk_types]
    return selected[:cap]


def official_help_url(retailer: str, fact_type: FactType) -> str:
    """Best-guess help page URL, e.g. https://www.target.com/help/return-policy."""
    return f"https://www.{slugify(retailer)}.com/help/{fact_type.value.replace('_', '-')}"


@dataclass
class VerificationRun:
    verified: list[GapResult] = field(default_factory=list)
    cost: float = 0.0
    elapsed_ms: int = 0

    @property
    def verdicts(self) -> list[str]:
        return [r.verification.verdict for r in self.verified if r.verification]


class FactVerifier:
    """Checks high-risk gap facts against the retailer's own pages."""

    def __init__(
        self,
        llm,
        scraper,
        researcher,
        cap: int = 5,
        cost_per_verification: float = 0.015,
        risk_types: Iterable[FactType] = HIGH_RISK_TYPES,
    ):
        self.llm = llm
        self.scraper = scraper
        self.researcher = researcher
        self.cap = cap
        self.cost_per_verification = cost_per_verification
        self.risk_types = set(risk_types)

    def verify(self, retailer: str, results: list[GapResult]) -> VerificationRun:
        start = time.time()
        selected = select_for_verification(results, self.risk_types, self.cap)
        if not selected:
            return VerificationRun()

        verified = []
        for result in selected:
            source = self._source_text(retailer, result.type)
            verification = self.check(result.content, source)
            verified.append(result.model_copy(update={"verification": verification}))

        return VerificationRun(
            verified=verified,
            cost=len(verified) * self.cost_per_verification,
            elapsed_ms=int((time.time() - start) * 1000),
        )

    def check(self, fact: str, source: str) -> Verification:
        """Ask the model whether ``source`` supports ``fact``."""
        prompt = VERIFICATION_USER.format(source=source[:MAX_SOURCE_CHARS], fact=fact)
        try:
            generation = self.llm.generate(None, prompt, expect_json=True, max_tokens=500)
        except Exception as e:
            logger.warning("Verification call failed: %s", e)
            return Verification()

        parsed = extract_json(generation.content)
        if not isinstance(parsed, dict) or not parsed.get("verdict"):
            return Verification()
        return Verification(
            verdict=str(parsed["verdict"]),
            explanation=_optional_str(parsed.get("explanation")),
            corrected_fact=_optional_str(parsed.get("corrected_fact")),
        )

    def _source_text(self, retailer: str, fact_type: FactType) -> str:
        url = official_help_url(retailer, fact_type)
        page = self.scraper.scrape(url)
        if page.ok and len(page.content) > MIN_SOURCE_CHARS and "error page" not in page.content:
            return page.content
        logger.debug("No usable help page at %s; falling back to research", url)
        return self.researcher.verify_query(retailer, fact_type.value).content


def _optional_str(value) -> Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)
