"""
OpsBeat Models

Domain dataclasses for ops store rows and typed policy models.
"""

from opsbeat.models.domain import (
    AgentEvent,
    AgentReaction,
    Mission,
    MissionStatus,
    MissionStep,
    NEVER_AUTO_APPROVE,
    Proposal,
    ProposalStatus,
    StepKind,
    StepStatus,
    TriggerRule,
)
from opsbeat.models.policy import (
    AutoApprovePolicy,
    ContentPolicy,
    DailyLimitPolicy,
    DeployPolicy,
    EmailPolicy,
    GenerationPolicy,
    TweetQuotaPolicy,
)

__all__ = [
    "AgentEvent",
    "AgentReaction",
    "Mission",
    "MissionStatus",
    "MissionStep",
    "NEVER_AUTO_APPROVE",
    "Proposal",
    "ProposalStatus",
    "StepKind",
    "StepStatus",
    "TriggerRule",
    "AutoApprovePolicy",
    "ContentPolicy",
    "DailyLimitPolicy",
    "DeployPolicy",
    "EmailPolicy",
    "GenerationPolicy",
    "TweetQuotaPolicy",
]
