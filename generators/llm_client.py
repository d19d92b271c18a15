"""Text-generation client used for extraction, verification, scheduling and the agent loop.

Two providers:
  - openrouter: any OpenRouter model through the OpenAI SDK (default)
  - anthropic:  Claude through the Anthropic SDK

Conversation state for tool calling is kept in OpenAI chat format; the
Anthropic path converts to and from its content-block format per call.
"""

import json
import logging
import os
import re
import time
from dataclasses import dataclass, field
from typing import Any, Optional

import anthropic
import openai
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from config import CostRates

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.RateLimitError,
    anthropic.APIConnectionError,
    anthropic.RateLimitError,
)

_retry_transient = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=20),
    retry=retry_if_exception_type(TRANSIENT_ERRORS),
    reraise=True,
    before_sleep=lambda retry_state: logger.warning(
        "Model API retry %d after error: %s",
        retry_state.attempt_number,
        retry_state.outcome.exception() if retry_state.outcome else "unknown",
    ),
)


@dataclass
class Generation:
    content: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    elapsed_ms: int = 0
    cost: float = 0.0


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: str  # raw JSON text as produced by the model


@dataclass
class ModelTurn:
    """One model response in a tool-calling conversation."""

    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    prompt_tokens: int = 0
    completion_tokens: int = 0

    def as_message(self) -> dict:
        """The assistant message to append to the conversation."""
        message: dict = {"role": "assistant", "content": self.content or ""}
        if self.tool_calls:
            message["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments},
                }
                for call in self.tool_calls
            ]
        return message


def strip_fences(text: str) -> str:
    """Remove a leading ```json fence and a trailing ``` fence."""
    text = re.sub(r"^```(?:json)?\s*\n?", "", text.strip(), flags=re.IGNORECASE)
    text = re.sub(r"\n?```\s*$", "", text)
    return text.strip()


def extract_json(text: str) -> Optional[Any]:
    """Parse JSON from a model reply, tolerating fences and surrounding prose.

    Returns None when nothing parseable is found.
    """
    if not text:
        return None
    candidates = [strip_fences(text)]
    match = re.search(r"```(?:json)?\s*\n([\s\S]*?)\n```", text)
    if match:
        candidates.append(match.group(1))
    # Whichever structure opens first is the outermost one.
    spans = [m for m in (re.search(r"\{[\s\S]*\}", text), re.search(r"\[[\s\S]*\]", text)) if m]
    candidates.extend(m.group(0) for m in sorted(spans, key=lambda m: m.start()))

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    return None


class LLMClient:
    """Unified generation client for OpenRouter (OpenAI SDK) and Anthropic."""

    def __init__(
        self,
        provider: str = "openrouter",
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        costs: Optional[CostRates] = None,
    ):
        self.provider = provider
        self.costs = costs or CostRates()

        if provider == "anthropic":
            self.model = model or "claude-sonnet-4-6"
            self.client = anthropic.Anthropic(
                api_key=api_key or os.getenv("ANTHROPIC_API_KEY"),
                timeout=timeout,
                max_retries=0,
            )
        elif provider == "openrouter":
            self.model = model or "minimax/MiniMax-M2.5"
            self.client = openai.OpenAI(
                api_key=api_key or os.getenv("OPENROUTER_API_KEY"),
                base_url=OPENROUTER_BASE_URL,
                timeout=timeout,
                max_retries=0,
            )
        else:
            raise ValueError(f"Unsupported provider: {provider}")

    # ------------------------------------------------------------------
    # Single-shot generation
    # ------------------------------------------------------------------

    def generate(
        self,
        system: Optional[str],
        user: str,
        expect_json: bool = True,
        max_tokens: int = 3000,
    ) -> Generation:
        """Generate a reply. Markdown fences are stripped from the content."""
        start = time.time()
        if self.provider == "anthropic":
            content, prompt_tokens, completion_tokens = self._generate_anthropic(
                system, user, max_tokens
            )
        else:
            content, prompt_tokens, completion_tokens = self._generate_openai(
                system, user, expect_json, max_tokens
            )

        return Generation(
            content=strip_fences(content),
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            elapsed_ms=int((time.time() - start) * 1000),
            cost=self.costs.llm_cost(prompt_tokens, completion_tokens),
        )

    @_retry_transient
    def _generate_openai(
        self, system: Optional[str], user: str, expect_json: bool, max_tokens: int
    ) -> tuple[str, int, int]:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": user})

        params: dict = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
        }
        if expect_json:
            params["response_format"] = {"type": "json_object"}

        response = self.client.chat.completions.create(**params)
        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""
        usage = response.usage
        return (
            content,
            getattr(usage, "prompt_tokens", 0) or 0,
            getattr(usage, "completion_tokens", 0) or 0,
        )

    @_retry_transient
    def _generate_anthropic(
        self, system: Optional[str], user: str, max_tokens: int
    ) -> tuple[str, int, int]:
        params: dict = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": user}],
        }
        if system:
            params["system"] = system

        response = self.client.messages.create(**params)
        text = "".join(
            block.text for block in response.content
            if getattr(block, "type", None) == "text"
        )
        return text, response.usage.input_tokens, response.usage.output_tokens

    # ------------------------------------------------------------------
    # Tool-calling turn
    # ------------------------------------------------------------------

    def chat_with_tools(
        self,
        messages: list[dict],
        tools: list[dict],
        max_tokens: int = 2000,
    ) -> ModelTurn:
        """Send the conversation plus tool definitions; return the model's turn."""
        if self.provider == "anthropic":
            return self._tools_anthropic(messages, tools, max_tokens)
        return self._tools_openai(messages, tools, max_tokens)

    @_retry_transient
    def _tools_openai(
        self, messages: list[dict], tools: list[dict], max_tokens: int
    ) -> ModelTurn:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            tools=tools,
            max_tokens=max_tokens,
        )
        if not response.choices:
            raise RuntimeError("Model returned no choices")

        message = response.choices[0].message
        calls = [
            ToolCall(
                id=call.id,
                name=call.function.name,
                arguments=call.function.arguments or "",
            )
            for call in (message.tool_calls or [])
        ]
        usage = response.usage
        return ModelTurn(
            content=message.content or "",
            tool_calls=calls,
            prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
        )

    @_retry_transient
    def _tools_anthropic(
        self, messages: list[dict], tools: list[dict], max_tokens: int
    ) -> ModelTurn:
        system, converted = _to_anthropic_messages(messages)
        params: dict = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": converted,
            "tools": [
                {
                    "name": tool["function"]["name"],
                    "description": tool["function"].get("description", ""),
                    "input_schema": tool["function"].get("parameters", {"type": "object"}),
                }
                for tool in tools
            ],
        }
        if system:
            params["system"] = system

        response = self.client.messages.create(**params)
        text_parts = []
        calls = []
        for block in response.content:
            block_type = getattr(block, "type", None)
            if block_type == "text":
                text_parts.append(block.text)
            elif block_type == "tool_use":
                calls.append(ToolCall(
                    id=block.id,
                    name=block.name,
                    arguments=json.dumps(block.input),
                ))
        return ModelTurn(
            content="".join(text_parts),
            tool_calls=calls,
            prompt_tokens=response.usage.input_tokens,
            completion_tokens=response.usage.output_tokens,
        )


def _to_anthropic_messages(messages: list[dict]) -> tuple[str, list[dict]]:
    """Convert OpenAI-format chat messages to Anthropic (system, messages)."""
    system_parts = []
    converted: list[dict] = []

    for msg in messages:
        role = msg.get("role")
        if role == "system":
            system_parts.append(msg.get("content") or "")
            continue

        if role == "tool":
            block = {
                "type": "tool_result",
                "tool_use_id": msg.get("tool_call_id", ""),
                "content": msg.get("content") or "",
            }
            previous = converted[-1] if converted else None
            if (
                previous
                and previous["role"] == "user"
                and isinstance(previous["content"], list)
                and all(b.get("type") == "tool_result" for b in previous["content"])
            ):
                previous["content"].append(block)
            else:
                converted.append({"role": "user", "content": [block]})
            continue

        if role == "assistant" and msg.get("tool_calls"):
            blocks = []
            if msg.get("content"):
                blocks.append({"type": "text", "text": msg["content"]})
            for call in msg["tool_calls"]:
                try:
                    arguments = json.loads(call["function"].get("arguments") or "{}")
                except json.JSONDecodeError:
                    arguments = {}
                blocks.append({
                    "type": "tool_use",
                    "id": call["id"],
                    "name": call["function"]["name"],
                    "input": arguments if isinstance(arguments, dict) else {},
                })
            converted.append({"role": "assistant", "content": blocks})
            continue

        converted.append({"role": role, "content": msg.get("content") or ""})

    return "\n\n".join(system_parts), converted
