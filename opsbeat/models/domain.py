"""
OpsBeat Domain Models

Data classes representing the rows OpsBeat reads and writes in the ops store.
These are used for data transfer between storage and services.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


# Status Constants

class ProposalStatus:
    """Mission proposal status values."""
    APPROVED = "approved"
    REJECTED = "rejected"


class MissionStatus:
    """Mission status values."""
    APPROVED = "approved"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class StepStatus:
    """Mission step status values."""
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class StepKind(str, Enum):
    """Step kinds that have a cap gate. Any other kind passes the gate."""
    WRITE_CONTENT = "write_content"
    POST_TWEET = "post_tweet"
    DEPLOY = "deploy"
    DEPLOY_SITE = "deploy_site"
    GENERATE_IMAGE = "generate_image"
    SEND_EMAIL = "send_email"
    AUDIT_SITE = "audit_site"

    @classmethod
    def parse(cls, value: str) -> Optional["StepKind"]:
        try:
            return cls(value)
        except ValueError:
            return None


# Step kinds that never auto-approve without an explicit allow-list entry
NEVER_AUTO_APPROVE = frozenset({StepKind.DEPLOY.value, StepKind.DEPLOY_SITE.value})


# Store rows

@dataclass
class TriggerRule:
    """An automation rule evaluated on every heartbeat."""
    id: str
    name: str
    type: str
    source: Optional[str] = None
    target: Optional[str] = None
    probability: float = 0.0
    enabled: bool = True


@dataclass
class Proposal:
    """A request to run one step kind, approved or rejected by its cap gate."""
    id: str
    source: str
    step_kind: str
    description: str
    status: str
    created_at: str
    reason: Optional[str] = None


@dataclass
class Mission:
    """A unit of automated work created from an approved proposal."""
    id: str
    proposal_id: str
    status: str
    created_at: str
    updated_at: str


@dataclass
class MissionStep:
    """A single unit of execution within a mission."""
    id: str
    mission_id: str
    step_kind: str
    status: str
    created_at: str
    updated_at: str
    payload: Dict[str, Any] = field(default_factory=dict)
    last_error: Optional[str] = None
    completed_at: Optional[str] = None


@dataclass
class AgentReaction:
    """A queued reaction from one agent to another agent's output."""
    id: str
    created_at: str
    payload: Dict[str, Any] = field(default_factory=dict)
    processed_at: Optional[str] = None


@dataclass
class AgentEvent:
    """An event emitted on behalf of an agent."""
    id: str
    agent_id: Optional[str]
    event_type: str
    created_at: str
    payload: Dict[str, Any] = field(default_factory=dict)
