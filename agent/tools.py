"""Tool definitions and their handlers for the model-directed run.

Each handler takes the decoded argument dict and returns the observation
text fed back to the model. Handlers read arguments leniently: a missing
argument falls back to the run's context instead of failing.
"""

import json
import logging
from typing import Any, Callable, Optional

from config import RESEARCH_TEMPLATE
from processors.fact_normalizer import normalize_facts, normalize_type

logger = logging.getLogger(__name__)

DECISION_CATEGORIES = ["strategy", "research", "verification", "gap", "output"]

_FACT_ITEM = {
    "type": "object",
    "properties": {
        "type": {"type": "string"},
        "content": {"type": "string"},
        "source": {"type": "string"},
    },
}


def _function(name: str, description: str, properties: dict, required: list[str]) -> dict:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {"type": "object", "properties": properties, "required": required},
        },
    }


TOOL_DEFINITIONS = [
    _function(
        "research",
        "Research a retailer on the web. Returns synthesized text about discounts, loyalty "
        "programs, policies, sales calendar, etc. plus citations. Cost: ~$0.01. Use as the "
        "first broad research pass.",
        {
            "retailer": {"type": "string", "description": "Retailer name, e.g. \"Target\""},
            "query": {"type": "string", "description": "Research query covering all savings categories"},
        },
        ["retailer", "query"],
    ),
    _function(
        "scrape_page",
        "Scrape a URL and return its content as text. Use for official policy pages, help "
        "pages, or retailer landing pages. Cost: ~$0.001.",
        {
            "url": {"type": "string", "description": "URL to scrape"},
            "reason": {"type": "string", "description": "Why this page is being scraped (audit trail)"},
        },
        ["url"],
    ),
    _function(
        "extract_facts",
        "Extract structured facts from raw research text. Returns an array of typed fact objects.",
        {
            "raw_text": {"type": "string", "description": "Raw research text to extract facts from"},
            "retailer": {"type": "string", "description": "Retailer name for context"},
        },
        ["raw_text", "retailer"],
    ),
    _function(
        "embed_and_dedupe",
        "Embed an array of facts and remove near-duplicates (cosine similarity > 0.90). "
        "Returns the deduplicated facts.",
        {"facts": {"type": "array", "items": _FACT_ITEM, "description": "Facts to deduplicate"}},
        ["facts"],
    ),
    _function(
        "compare_with_existing",
        "Compare facts against existing page content to find gaps. Returns MISSING, PARTIAL "
        "or COVERED for each fact.",
        {
            "facts": {"type": "array", "items": _FACT_ITEM, "description": "New researched facts"},
            "existing_content": {"type": "string", "description": "Existing page content"},
        },
        ["facts", "existing_content"],
    ),
    _function(
        "verify_fact",
        "Verify a specific fact against an official source page: confirmed, outdated or "
        "incorrect. Use for HIGH-RISK facts: policies, discount percentages, credit card terms.",
        {
            "fact": {"type": "string", "description": "The fact to verify"},
            "official_url": {"type": "string", "description": "Official retailer URL to check against"},
            "fact_type": {"type": "string", "description": "return_policy, price_match, discount, payment, ..."},
        },
        ["fact", "official_url"],
    ),
    _function(
        "log_decision",
        "Log an orchestrator decision for the audit trail. Use to explain your reasoning at each step.",
        {
            "decision": {"type": "string", "description": "What you decided and why"},
            "category": {"type": "string", "enum": DECISION_CATEGORIES},
        },
        ["decision", "category"],
    ),
]


def _to_json(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False)


def _coerce_fact_list(value: Any) -> list:
    """Models sometimes send the fact array as a JSON string."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return []
    if isinstance(value, dict):
        value = value.get("facts", [value])
    return value if isinstance(value, list) else []


class ToolExecutor:
    """Dispatches tool calls to the pipeline primitives for one retailer run."""

    def __init__(
        self,
        researcher,
        scraper,
        extractor,
        deduplicator,
        classifier,
        verifier,
        retailer: str = "",
        existing_content: str = "",
        max_scrape_chars: int = 4000,
    ):
        self.researcher = researcher
        self.scraper = scraper
        self.extractor = extractor
        self.deduplicator = deduplicator
        self.classifier = classifier
        self.verifier = verifier
        self.retailer = retailer
        self.existing_content = existing_content
        self.max_scrape_chars = max_scrape_chars
        self.decisions: list[str] = []
        self.cost = 0.0

        self._handlers: dict[str, Callable[[dict], str]] = {
            "research": self._research,
            "scrape_page": self._scrape_page,
            "extract_facts": self._extract_facts,
            "embed_and_dedupe": self._embed_and_dedupe,
            "compare_with_existing": self._compare_with_existing,
            "verify_fact": self._verify_fact,
            "log_decision": self._log_decision,
        }

    @property
    def tool_names(self) -> list[str]:
        return list(self._handlers)

    def execute(self, name: str, args: dict) -> str:
        """Run one tool call. Never raises; failures come back as "Error: ..." text."""
        handler = self._handlers.get(name)
        if handler is None:
            return f'Error: unknown tool "{name}"'
        try:
            return handler(args)
        except Exception as e:
            logger.error("Tool %s failed: %s", name, e)
            return f"Error: {e}"

    # ------------------------------------------------------------------

    def _research(self, args: dict) -> str:
        retailer = args.get("retailer") or self.retailer
        query = args.get("query") or RESEARCH_TEMPLATE.format(retailer=retailer)
        result = self.researcher.research(query)
        self.cost += result.cost
        logger.info("research: %d chars, %d citations", len(result.content), len(result.citations))
        payload = {"content": result.content or "No results", "citations": result.citations}
        if result.error:
            payload["error"] = result.error
        return _to_json(payload)

    def _scrape_page(self, args: dict) -> str:
        url = args.get("url")
        if not url:
            return "Error: url is required"
        if args.get("reason"):
            logger.info("scrape %s (%s)", url, args["reason"])
        result = self.scraper.scrape(url)
        self.cost += self.scraper.cost_per_call
        if result.error == "timeout":
            return f"Failed to scrape {url}: timeout"
        if not result.content:
            return f"Failed to scrape {url}: {result.error or 'no content'}"
        return result.content[: self.max_scrape_chars]

    def _extract_facts(self, args: dict) -> str:
        retailer = args.get("retailer") or self.retailer
        extracted = self.extractor.extract(args.get("raw_text") or "", retailer)
        self.cost += extracted.cost
        logger.info("extract: %d facts%s", len(extracted.facts),
                    f" ({extracted.error})" if extracted.error else "")
        return _to_json([f.model_dump(mode="json", exclude_none=True) for f in extracted.facts])

    def _embed_and_dedupe(self, args: dict) -> str:
        facts = normalize_facts(_coerce_fact_list(args.get("facts")))
        result = self.deduplicator.deduplicate(facts)
        return _to_json([f.model_dump(mode="json", exclude_none=True) for f in result.facts])

    def _compare_with_existing(self, args: dict) -> str:
        facts = normalize_facts(_coerce_fact_list(args.get("facts")))
        existing = args.get("existing_content")
        if not isinstance(existing, str):
            existing = self.existing_content
        comparison = self.classifier.classify(facts, existing)
        return _to_json([
            {
                "type": r.type.value,
                "content": r.content,
                "status": r.status.value,
                "similarity": round(r.similarity * 100),
                "best_match": r.best_match,
            }
            for r in comparison.results
        ])

    def _verify_fact(self, args: dict) -> str:
        fact = args.get("fact")
        if not fact:
            return "Error: fact is required"
        fact_type = normalize_type(args.get("fact_type"))
        source = ""
        url = args.get("official_url")
        if url:
            page = self.scraper.scrape(url)
            self.cost += self.scraper.cost_per_call
            if page.ok:
                source = page.content
        if not source and self.retailer:
            research = self.researcher.verify_query(self.retailer, fact_type.value)
            self.cost += research.cost
            source = research.content
        verification = self.verifier.check(fact, source)
        self.cost += self.verifier.cost_per_verification
        return _to_json(verification.model_dump(mode="json"))

    def _log_decision(self, args: dict) -> str:
        category = args.get("category") or "note"
        decision = args.get("decision") or ""
        self.decisions.append(f"{category}: {decision}")
        logger.info("[Decision/%s] %s", category, decision)
        return "Logged."


def decode_arguments(raw: Optional[str]) -> Optional[dict]:
    """Decode a tool call's argument text. None if it is not a JSON object."""
    if raw is None or not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None
