"""
OpsBeat Services

Business logic for the heartbeat stages. Every service takes a ServiceContext
and the ops store it works against.
"""

from opsbeat.services.base import Service, ServiceContext
from opsbeat.services.cap_gates import CapGateService, GateResult
from opsbeat.services.heartbeat import HeartbeatResult, HeartbeatService
from opsbeat.services.policy import PolicyService
from opsbeat.services.proposals import ProposalOutcome, ProposalService, is_auto_approvable
from opsbeat.services.reactions import ReactionQueueService
from opsbeat.services.recovery import RecoveryService, aggregate_mission_status
from opsbeat.services.triggers import TriggerService

__all__ = [
    "Service",
    "ServiceContext",
    "CapGateService",
    "GateResult",
    "HeartbeatResult",
    "HeartbeatService",
    "PolicyService",
    "ProposalOutcome",
    "ProposalService",
    "is_auto_approvable",
    "ReactionQueueService",
    "RecoveryService",
    "aggregate_mission_status",
    "TriggerService",
]
