from typing import Optional

from pydantic import BaseModel, Field

from opsbeat import __version__

# =============================================================================
# Base Models
# =============================================================================

class Health(BaseModel):
    status: str = "ok"
    version: str = __version__
    service: str = "opsbeat"


class ErrorResponse(BaseModel):
    error: str

# =============================================================================
# Heartbeat Models
# =============================================================================

class TriggersSummary(BaseModel):
    fired: int = 0


class ReactionsSummary(BaseModel):
    processed: int = 0


class InsightsSummary(BaseModel):
    promoted: int = 0


class StaleSummary(BaseModel):
    recovered: int = 0


class HeartbeatResponse(BaseModel):
    ok: bool = True
    triggers: TriggersSummary = Field(default_factory=TriggersSummary)
    reactions: ReactionsSummary = Field(default_factory=ReactionsSummary)
    insights: InsightsSummary = Field(default_factory=InsightsSummary)
    stale: StaleSummary = Field(default_factory=StaleSummary)
    timestamp: Optional[str] = None
