"""
Shared fakes for the promotion gap research tests.

Nothing here touches the network: embeddings come from a lookup table,
model replies are scripted, and research/scrape sources return canned text.
"""

from collections import deque
from typing import Optional

import pytest

from generators.llm_client import Generation, ModelTurn
from sources.research import ResearchResult
from sources.scraper import PageScraper, ScrapeResult


class FakeEmbedder:
    """Looks vectors up by exact text. Unknown text embeds as ``default``."""

    def __init__(self, vectors: Optional[dict] = None, default=None):
        self.vectors = dict(vectors or {})
        self.default = default
        self.calls: list[list[str]] = []

    def embed(self, text: str):
        return self.vectors.get(text, self.default)

    def embed_many(self, texts: list[str]):
        self.calls.append(list(texts))
        return [self.embed(t) for t in texts]

    @property
    def embedded_texts(self) -> list[str]:
        return [t for batch in self.calls for t in batch]


class ScriptedLLM:
    """Replays queued replies. An Exception in a queue is raised instead."""

    def __init__(self, generations=None, turns=None, repeat_last_turn: bool = False):
        self.generations = deque(generations or [])
        self.turns = deque(turns or [])
        self.repeat_last_turn = repeat_last_turn
        self.prompts: list[tuple] = []
        self.conversations: list[list[dict]] = []

    def generate(self, system, user, expect_json=True, max_tokens=3000):
        self.prompts.append((system, user))
        reply = self.generations.popleft() if self.generations else Generation(content="")
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, str):
            reply = Generation(content=reply)
        return reply

    def chat_with_tools(self, messages, tools, max_tokens=2000):
        self.conversations.append(list(messages))
        if self.repeat_last_turn and len(self.turns) == 1:
            reply = self.turns[0]
        else:
            reply = self.turns.popleft() if self.turns else ModelTurn()
        if isinstance(reply, Exception):
            raise reply
        return reply


class StubResearch:
    def __init__(self, content: str = "", citations=None, cost: float = 0.01):
        self.content = content
        self.citations = list(citations or [])
        self.cost = cost
        self.queries: list[str] = []
        self.verify_calls: list[tuple[str, str]] = []

    def research(self, query: str) -> ResearchResult:
        self.queries.append(query)
        return ResearchResult(content=self.content, citations=self.citations, cost=self.cost)

    def research_retailer(self, retailer: str) -> ResearchResult:
        return self.research(f"{retailer} savings")

    def verify_query(self, retailer: str, fact_type: str) -> ResearchResult:
        self.verify_calls.append((retailer, fact_type))
        return self.research(f"{retailer} {fact_type} official policy")


class StubScraper(PageScraper):
    """PageScraper whose network fetch is replaced by a URL -> text table."""

    def __init__(self, pages: Optional[dict] = None):
        super().__init__(api_key="", timeout=1, cost_per_call=0.001)
        self.pages = dict(pages or {})
        self.urls: list[str] = []

    def scrape(self, url: str) -> ScrapeResult:
        self.urls.append(url)
        content = self.pages.get(url)
        if content is None:
            return ScrapeResult(content="", ok=False, error="404")
        return ScrapeResult(content=content, ok=len(content) > 50)


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def scripted_llm() -> ScriptedLLM:
    return ScriptedLLM()
