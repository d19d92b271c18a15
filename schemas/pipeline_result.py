"""Pydantic models for pipeline, batch and agent run outcomes."""

from typing import List, Optional

from pydantic import BaseModel, Field

from schemas.fact import FactType


class StepLog(BaseModel):
    step: str
    detail: str
    elapsed: float = Field(description="Seconds since the run started")


class MissingFact(BaseModel):
    type: FactType
    content: str


class PartialFact(BaseModel):
    type: FactType
    content: str
    similarity: float


class GapSummary(BaseModel):
    missing: List[MissingFact] = Field(default_factory=list)
    partial: List[PartialFact] = Field(default_factory=list)
    covered: int = 0


class VerificationOutcome(BaseModel):
    type: FactType
    content: str
    verdict: str
    explanation: Optional[str] = None
    corrected: Optional[str] = None


class PipelineResult(BaseModel):
    retailer: str
    site: str
    status: str = Field(description="'success' | 'failed' | 'error'")
    reason: Optional[str] = Field(None, description="Why a run did not succeed")
    error: Optional[str] = None
    elapsed: float = 0.0
    total_cost: float = 0.0
    existing_url: Optional[str] = None
    existing_content_length: int = 0
    existing_error: Optional[str] = None
    facts_extracted: int = 0
    facts_deduped: int = 0
    gaps: GapSummary = Field(default_factory=GapSummary)
    verification: List[VerificationOutcome] = Field(default_factory=list)
    log: List[StepLog] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


class Observation(BaseModel):
    tool_call_id: str
    name: str
    content: str


class AgentRunResult(BaseModel):
    retailer: str
    site: str
    turns: int = 0
    elapsed: float = 0.0
    total_cost: float = 0.0
    stop_reason: str = Field(description="'completed' | 'max_turns' | 'model_error'")
    observations: List[Observation] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    decisions: List[str] = Field(default_factory=list)
    messages: List[dict] = Field(default_factory=list)
