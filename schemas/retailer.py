"""Pydantic models for retailer scheduling state and the seasonal calendar."""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

WILDCARD_CATEGORY = "*"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RetailerState(BaseModel):
    """Persisted refresh state for one retailer on one site.

    Serialized with the camelCase keys used by existing state files.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str
    site: str
    priority: Priority = Priority.MEDIUM
    categories: List[str] = Field(default_factory=list)
    last_researched: Optional[datetime] = Field(None, alias="lastResearched")
    last_gap_count: Optional[int] = Field(None, alias="lastGapCount")
    last_cost: Optional[float] = Field(None, alias="lastCost")


class SeasonalEvent(BaseModel):
    name: str
    start: Tuple[int, int] = Field(description="(month, day) the event starts")
    peak: Tuple[int, int] = Field(description="(month, day) the event peaks")
    categories: List[str] = Field(default_factory=list)

    @property
    def is_wildcard(self) -> bool:
        return WILDCARD_CATEGORY in self.categories


class ActiveEvent(BaseModel):
    name: str
    categories: List[str] = Field(default_factory=list)
    days_until_peak: int = 0

    def matches(self, categories: List[str]) -> bool:
        """True if the event applies to a retailer with these categories."""
        if WILDCARD_CATEGORY in self.categories:
            return True
        return bool(set(self.categories) & set(categories))


class ScoredRetailer(BaseModel):
    state: RetailerState
    staleness: float


class ScheduledRetailer(BaseModel):
    name: str
    site: str
    reason: str = ""


class ScheduleDecision(BaseModel):
    chosen: List[ScheduledRetailer] = Field(default_factory=list)
    skipped_reason: str = ""
    used_fallback: bool = False
    candidates_shown: int = 0
    cost: float = 0.0
