"""Bounded tool-calling loop: the model chooses which pipeline step runs next.

Each turn sends the conversation plus tool definitions to the model. A turn
with no tool calls ends the run. Otherwise every requested call is executed
and its result appended as a ``tool`` message keyed to the call id. The run
stops after ``max_turns`` turns and reports whatever it has so far.
"""

import logging
import time
from datetime import date
from typing import Optional

from agent.prompts import AGENT_SYSTEM, AGENT_USER
from agent.tools import TOOL_DEFINITIONS, ToolExecutor, decode_arguments
from config import CostRates, Settings, load_settings
from orchestration.retailer_pipeline import RetailerPipeline
from scheduling.seasonal import active_events, describe_events
from schemas.pipeline_result import AgentRunResult, Observation
from sources.utils import slugify

logger = logging.getLogger(__name__)

MIN_EXISTING_CHARS = 50


class AgentLoop:
    """Runs the model/tool conversation until the model stops or turns run out."""

    def __init__(
        self,
        llm,
        executor: ToolExecutor,
        max_turns: int = 15,
        costs: Optional[CostRates] = None,
        tools: Optional[list[dict]] = None,
    ):
        self.llm = llm
        self.executor = executor
        self.max_turns = max_turns
        self.costs = costs or CostRates()
        self.tools = tools if tools is not None else TOOL_DEFINITIONS

    def run(self, messages: list[dict], retailer: str = "", site: str = "") -> AgentRunResult:
        start = time.time()
        messages = list(messages)
        observations: list[Observation] = []
        warnings: list[str] = []
        total_cost = 0.0
        turns = 0
        stop_reason = "max_turns"

        while turns < self.max_turns:
            turns += 1
            logger.info("Agent turn %d", turns)
            try:
                turn = self.llm.chat_with_tools(messages, self.tools)
            except Exception as e:
                logger.error("Model call failed on turn %d: %s", turns, e)
                warnings.append(f"turn {turns}: model call failed: {e}")
                stop_reason = "model_error"
                break

            total_cost += self.costs.llm_cost(turn.prompt_tokens, turn.completion_tokens)
            messages.append(turn.as_message())
            if turn.content:
                logger.info("Model: %.300s", turn.content)

            if not turn.tool_calls:
                logger.info("Agent finished: no more tool calls")
                stop_reason = "completed"
                break

            for call in turn.tool_calls:
                args = decode_arguments(call.arguments)
                if args is None:
                    logger.warning("Bad arguments for %s: %.200s", call.name, call.arguments)
                    warnings.append(f"Bad arguments for {call.name}: {call.arguments[:200]}")
                    args = {}

                logger.info("Tool call: %s(%.100s)", call.name, call.arguments)
                content = self.executor.execute(call.name, args)
                messages.append({"role": "tool", "tool_call_id": call.id, "content": content})
                observations.append(
                    Observation(tool_call_id=call.id, name=call.name, content=content)
                )

        if stop_reason == "max_turns":
            logger.warning("Agent stopped at the %d-turn ceiling", self.max_turns)

        return AgentRunResult(
            retailer=retailer,
            site=site,
            turns=turns,
            elapsed=time.time() - start,
            total_cost=total_cost,
            stop_reason=stop_reason,
            observations=observations,
            warnings=warnings,
            decisions=list(self.executor.decisions),
            messages=messages,
        )


def existing_page_context(scraper, retailer: str, site: str, max_chars: int = 3000) -> str:
    """Existing coupon page text for the prompt, or a bracketed marker."""
    url = f"https://www.{site}/coupon-codes/{slugify(retailer)}"
    page = scraper.scrape(url)
    if page.error and not page.content:
        return f"[Failed to fetch existing page from {url}]"
    if len(page.content) < MIN_EXISTING_CHARS:
        return f"[Page returned minimal content from {url}]"
    return page.content[:max_chars]


def build_messages(
    retailer: str, site: str, existing: str, today: Optional[date] = None
) -> list[dict]:
    today = today or date.today()
    return [
        {"role": "system", "content": AGENT_SYSTEM.format(site=site)},
        {
            "role": "user",
            "content": AGENT_USER.format(
                retailer=retailer,
                site=site,
                today=today.isoformat(),
                seasonal=describe_events(active_events(today)),
                existing=existing,
            ),
        },
    ]


def run_agent(
    retailer: str,
    site: str,
    settings: Optional[Settings] = None,
    today: Optional[date] = None,
) -> AgentRunResult:
    """Model-directed run for one retailer against the live APIs.

    Uses the same wired clients as the fixed pipeline; only the step order
    is left to the model.
    """
    settings = settings or load_settings()
    limits = settings.limits
    pipeline = RetailerPipeline.from_settings(settings)
    llm = pipeline.extractor.llm

    logger.info("Agent run: %s × %s (model %s)", retailer, site, llm.model)
    existing = existing_page_context(
        pipeline.scraper, retailer, site, limits.max_existing_content_chars
    )
    logger.info("Existing content: %d chars", len(existing))

    executor = ToolExecutor(
        researcher=pipeline.researcher,
        scraper=pipeline.scraper,
        extractor=pipeline.extractor,
        deduplicator=pipeline.deduplicator,
        classifier=pipeline.classifier,
        verifier=pipeline.verifier,
        retailer=retailer,
        existing_content=existing,
        max_scrape_chars=limits.max_agent_scrape_chars,
    )
    loop = AgentLoop(llm, executor, max_turns=limits.agent_max_turns, costs=settings.costs)
    result = loop.run(build_messages(retailer, site, existing, today), retailer, site)
    result.total_cost += executor.cost + settings.costs.scrape_call
    return result
