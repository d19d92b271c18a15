"""Runtime settings for the promotion gap research pipeline.

Defaults mirror the values the pipeline has been tuned with. API keys and
model names are read from the environment (a local ``.env`` is loaded by the
CLI before ``load_settings`` is called).
"""

import os
from typing import Optional

from pydantic import BaseModel, Field

from schemas.fact import FactType

HIGH_RISK_TYPES = frozenset({
    FactType.RETURN_POLICY,
    FactType.PRICE_MATCH,
    FactType.DISCOUNT,
    FactType.PAYMENT,
})


class ModelSettings(BaseModel):
    provider: str = "openrouter"
    llm_model: str = "minimax/MiniMax-M2.5"
    scheduler_model: str = "minimax/MiniMax-M2.5"
    embedding_model: str = "text-embedding-3-small"
    embedding_base_url: Optional[str] = None
    research_model: str = "sonar-pro"


class Thresholds(BaseModel):
    dedupe_similarity: float = 0.90
    covered: float = 0.85
    partial: float = 0.70


class Limits(BaseModel):
    max_facts_per_retailer: int = 60
    max_existing_content_chars: int = 3000
    max_research_chars: int = 6000
    max_agent_scrape_chars: int = 4000
    min_chunk_chars: int = 20
    scrape_timeout: float = 15.0
    llm_timeout: float = 60.0
    verification_cap: int = 5
    agent_max_turns: int = 15


class CostRates(BaseModel):
    research_call: float = 0.01
    scrape_call: float = 0.001
    llm_input_per_1k: float = 0.0005
    llm_output_per_1k: float = 0.0015
    embedding_per_1k: float = 0.00001
    verification_estimate: float = 0.015
    per_retailer_estimate: float = 0.05

    def llm_cost(self, prompt_tokens: int, completion_tokens: int) -> float:
        """Dollar cost of one generation call."""
        return (
            prompt_tokens * self.llm_input_per_1k
            + completion_tokens * self.llm_output_per_1k
        ) / 1000


class ApiKeys(BaseModel):
    openrouter: Optional[str] = None
    perplexity: Optional[str] = None
    openai: Optional[str] = None
    firecrawl: Optional[str] = None
    anthropic: Optional[str] = None

    def missing_required(self, provider: str = "openrouter") -> list[str]:
        """Names of the environment variables a full run cannot do without."""
        required = {
            "PERPLEXITY_API_KEY": self.perplexity,
            "OPENAI_API_KEY": self.openai,
        }
        if provider == "anthropic":
            required["ANTHROPIC_API_KEY"] = self.anthropic
        else:
            required["OPENROUTER_API_KEY"] = self.openrouter
        return [name for name, value in required.items() if not value]


class Settings(BaseModel):
    models: ModelSettings = Field(default_factory=ModelSettings)
    thresholds: Thresholds = Field(default_factory=Thresholds)
    limits: Limits = Field(default_factory=Limits)
    costs: CostRates = Field(default_factory=CostRates)
    keys: ApiKeys = Field(default_factory=ApiKeys)
    parallel_retailers: int = 5
    embedding_workers: int = 5


def load_settings() -> Settings:
    """Build settings from defaults plus environment overrides."""
    defaults = ModelSettings()
    models = ModelSettings(
        provider=os.getenv("LLM_PROVIDER", defaults.provider),
        llm_model=os.getenv("LLM_MODEL", defaults.llm_model),
        scheduler_model=os.getenv("SCHEDULER_MODEL", defaults.scheduler_model),
        embedding_model=os.getenv("EMBEDDING_MODEL", defaults.embedding_model),
        embedding_base_url=os.getenv("EMBEDDING_BASE_URL") or None,
        research_model=os.getenv("RESEARCH_MODEL", defaults.research_model),
    )
    keys = ApiKeys(
        openrouter=os.getenv("OPENROUTER_API_KEY"),
        perplexity=os.getenv("PERPLEXITY_API_KEY"),
        openai=os.getenv("OPENAI_API_KEY"),
        firecrawl=os.getenv("FIRECRAWL_API_KEY"),
        anthropic=os.getenv("ANTHROPIC_API_KEY"),
    )
    return Settings(models=models, keys=keys)


RESEARCH_TEMPLATE = """{retailer} ALL savings opportunities comprehensive guide 2026:

DISCOUNTS: student discount, military discount, veterans discount, healthcare worker discount, first responder discount, teacher discount, senior discount, employee discount, birthday discount, referral program, friends and family sale

LOYALTY: loyalty program, rewards program, membership benefits, credit card benefits, points earning rate, bonus points events, member exclusive sales, early access deals, program tiers

CODES AND COUPONS: newsletter signup code, email signup code, app download code, first order discount, welcome offer, seasonal promo codes, sitewide codes, stackable coupons

SHIPPING: free shipping threshold, free delivery, delivery costs, same day delivery, click and collect, free returns

PRICE POLICIES: price match guarantee, price adjustment policy, lower price guarantee

PAYMENT: store credit card, financing options, buy now pay later, interest free credit, gift card promotions

SALES CALENDAR: Black Friday, Cyber Monday, January sale, summer sale, seasonal clearance, flash sales, weekly deals, clearance schedule, mid season sale, end of season sale

PROGRAMS: trade in program, recycling program, product buyback, bulk discount, business accounts

OTHER: outlet stores, outlet section, clearance section, open box deals, ex display items, best time to buy, membership benefits"""
