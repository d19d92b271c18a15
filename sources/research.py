"""Perplexity research client.

Broad web research for a retailer topic. Returns synthesized text plus the
citation URLs Perplexity used. Failures come back as empty content with an
error string so downstream steps can degrade instead of aborting.
"""

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Optional

from config import RESEARCH_TEMPLATE
from sources.utils import post_json

logger = logging.getLogger(__name__)

PERPLEXITY_URL = "https://api.perplexity.ai/chat/completions"


@dataclass
class ResearchResult:
    content: str
    citations: list[str] = field(default_factory=list)
    elapsed_ms: int = 0
    cost: float = 0.0
    error: Optional[str] = None


class ResearchClient:
    """Runs research queries against Perplexity."""

    def __init__(
        self,
        model: str = "sonar-pro",
        api_key: Optional[str] = None,
        cost_per_call: float = 0.01,
        timeout: float = 60.0,
        max_tokens: int = 3000,
    ):
        self.model = model
        self.api_key = api_key or os.getenv("PERPLEXITY_API_KEY")
        self.cost_per_call = cost_per_call
        self.timeout = timeout
        self.max_tokens = max_tokens

    def research(self, query: str) -> ResearchResult:
        """Run one research query."""
        start = time.time()
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": query}],
            "max_tokens": self.max_tokens,
            "return_citations": True,
        }
        try:
            data = post_json(PERPLEXITY_URL, payload, self.api_key, timeout=self.timeout)
        except Exception as e:
            logger.error("Research query failed: %s", e)
            return ResearchResult(
                content="",
                elapsed_ms=int((time.time() - start) * 1000),
                cost=self.cost_per_call,
                error=str(e),
            )

        choices = data.get("choices") or [{}]
        content = (choices[0].get("message") or {}).get("content") or ""
        return ResearchResult(
            content=content,
            citations=list(data.get("citations") or []),
            elapsed_ms=int((time.time() - start) * 1000),
            cost=self.cost_per_call,
        )

    def research_retailer(self, retailer: str) -> ResearchResult:
        """Comprehensive savings research for a retailer."""
        return self.research(RESEARCH_TEMPLATE.format(retailer=retailer))

    def verify_query(self, retailer: str, fact_type: str) -> ResearchResult:
        """Targeted policy lookup used when an official page cannot be scraped."""
        topic = fact_type.replace("_", " ")
        return self.research(f"{retailer} {topic} 2025 2026 official policy current")
