from schemas.fact import (
    CoverageStatus,
    Fact,
    FactType,
    GapResult,
    Verification,
)
from schemas.retailer import (
    ActiveEvent,
    Priority,
    RetailerState,
    ScheduleDecision,
    ScheduledRetailer,
    ScoredRetailer,
    SeasonalEvent,
)
from schemas.pipeline_result import (
    AgentRunResult,
    GapSummary,
    Observation,
    PipelineResult,
    StepLog,
    VerificationOutcome,
)
