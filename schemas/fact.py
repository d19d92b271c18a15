"""Pydantic models for researched facts and their coverage verdicts."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class FactType(str, Enum):
    DISCOUNT = "discount"
    LOYALTY = "loyalty"
    PROMO_CODE = "promo_code"
    SHIPPING = "shipping"
    RETURN_POLICY = "return_policy"
    PRICE_MATCH = "price_match"
    PAYMENT = "payment"
    SALES_CALENDAR = "sales_calendar"
    PROGRAM = "program"
    OTHER = "other"


class CoverageStatus(str, Enum):
    MISSING = "MISSING"
    PARTIAL = "PARTIAL"
    COVERED = "COVERED"


class Fact(BaseModel):
    type: FactType = FactType.OTHER
    content: str = Field(description="Canonical fact text, non-empty")
    source: Optional[str] = Field(None, description="Where the fact came from, if known")
    embedding: Optional[List[float]] = Field(
        None, description="Vector embedding (only while deduplicating)"
    )


class Verification(BaseModel):
    verdict: str = Field(
        default="UNVERIFIED",
        description="VERIFIED | OUTDATED | UNVERIFIED | INCORRECT, passed through as-is",
    )
    explanation: Optional[str] = None
    corrected_fact: Optional[str] = None


class GapResult(BaseModel):
    type: FactType = FactType.OTHER
    content: str
    status: CoverageStatus
    similarity: float = Field(0.0, ge=0.0, le=1.0)
    best_match: str = Field("", description="Closest page chunk, truncated for reporting")
    verification: Optional[Verification] = None
