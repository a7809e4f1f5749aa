"""
OpsBeat Proposal Service

Turns a request for work into a proposal and, when policy allows, into a
mission with its first step.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from opsbeat.clock import ensure_utc
from opsbeat.models.domain import (
    NEVER_AUTO_APPROVE,
    Mission,
    MissionStatus,
    MissionStep,
    Proposal,
    ProposalStatus,
    StepStatus,
)
from opsbeat.models.policy import AUTO_APPROVE_POLICY, AutoApprovePolicy
from opsbeat.services.base import Service, ServiceContext
from opsbeat.services.cap_gates import CapGateService
from opsbeat.services.policy import PolicyService


@dataclass
class ProposalOutcome:
    """Result of creating a proposal."""
    proposal: Proposal
    mission: Optional[Mission] = None
    step: Optional[MissionStep] = None

    @property
    def approved(self) -> bool:
        """True when a mission was created for the proposal."""
        return self.mission is not None


def is_auto_approvable(step_kind: str, policy: AutoApprovePolicy) -> bool:
    """
    Apply the auto-approve policy to a step kind.

    A non-empty allow-list is authoritative. Without one, every kind except
    deploys is approved.
    """
    if not policy.enabled:
        return False
    if policy.allowed_step_kinds:
        return step_kind in policy.allowed_step_kinds
    return step_kind not in NEVER_AUTO_APPROVE


class ProposalService(Service):
    """Creates proposals, gated by cap gates and the auto-approve policy."""

    def __init__(
        self,
        context: ServiceContext,
        store,
        gates: Optional[CapGateService] = None,
        policies: Optional[PolicyService] = None,
    ) -> None:
        super().__init__(context, store)
        self.policies = policies or PolicyService(context, store)
        self.gates = gates or CapGateService(context, store, policies=self.policies)

    def create_proposal_and_maybe_auto_approve(
        self,
        source: str,
        step_kind: str,
        description: str,
        payload: Optional[Dict[str, Any]] = None,
        *,
        now: Optional[datetime] = None,
    ) -> ProposalOutcome:
        now = ensure_utc(now)

        gate = self.gates.check(step_kind, now=now)
        if not gate.ok:
            proposal = self.store.create_proposal(
                source=source,
                step_kind=step_kind,
                description=description,
                status=ProposalStatus.REJECTED,
                reason=gate.reason,
                created_at=now,
            )
            self.logger.info(
                "proposal_rejected",
                extra=self.log_extra(proposal_id=proposal.id, step_kind=step_kind, reason=gate.reason),
            )
            return ProposalOutcome(proposal=proposal)

        proposal = self.store.create_proposal(
            source=source,
            step_kind=step_kind,
            description=description,
            status=ProposalStatus.APPROVED,
            created_at=now,
        )

        policy = self.policies.load(AUTO_APPROVE_POLICY, AutoApprovePolicy)
        if not is_auto_approvable(step_kind, policy):
            self.logger.info(
                "proposal_awaiting_approval",
                extra=self.log_extra(proposal_id=proposal.id, step_kind=step_kind),
            )
            return ProposalOutcome(proposal=proposal)

        mission = self.store.create_mission(proposal.id, MissionStatus.APPROVED, created_at=now)
        step = self.store.create_mission_step(
            mission_id=mission.id,
            step_kind=step_kind,
            status=StepStatus.QUEUED,
            payload=payload or {},
            created_at=now,
        )
        self.logger.info(
            "mission_created",
            extra=self.log_extra(proposal_id=proposal.id, mission_id=mission.id, step_id=step.id, step_kind=step_kind),
        )
        return ProposalOutcome(proposal=proposal, mission=mission, step=step)
