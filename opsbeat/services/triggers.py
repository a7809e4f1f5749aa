"""
OpsBeat Trigger Evaluation

Reads enabled trigger rules and fires the ones whose condition holds.

Conditions are random draws; nothing records when a rule last fired, so a
rule may fire on consecutive heartbeats.
"""

import random
from datetime import datetime
from typing import Dict, Optional

from opsbeat.clock import ensure_utc
from opsbeat.models.domain import TriggerRule
from opsbeat.services.base import Service, ServiceContext
from opsbeat.services.proposals import ProposalService

# Draw that must be exceeded in "threshold" mode
FIXED_THRESHOLD = 0.7

PROPOSAL_CREATED_EVENT = "proposal_created"
TRIGGER_SOURCE = "trigger"


def trigger_description(rule: TriggerRule) -> str:
    if rule.source:
        return f"Triggered by {rule.source}"
    return rule.name or f"Triggered by rule {rule.id}"


class TriggerService(Service):
    """
    Evaluates trigger rules.

    `trigger_condition` selects the condition:
    - probability: fire when a draw falls below the rule's probability
    - threshold: fire when a draw exceeds FIXED_THRESHOLD

    `proposal_mode` selects what firing does:
    - direct: create a proposal (and maybe a mission) right away
    - event: emit a proposal_created agent event for the target agent
    """

    def __init__(
        self,
        context: ServiceContext,
        store,
        proposals: Optional[ProposalService] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__(context, store)
        self.proposals = proposals or ProposalService(context, store)
        self.rng = rng or random.Random()

    def check_condition(self, rule: TriggerRule) -> bool:
        draw = self.rng.random()
        if self.config.trigger_condition == "threshold":
            return draw > FIXED_THRESHOLD
        probability = min(max(rule.probability, 0.0), 1.0)
        return draw < probability

    def fire(self, rule: TriggerRule, *, now: Optional[datetime] = None) -> None:
        description = trigger_description(rule)
        if self.config.proposal_mode == "event":
            self.store.append_agent_event(
                agent_id=rule.target,
                event_type=PROPOSAL_CREATED_EVENT,
                payload={
                    "source": TRIGGER_SOURCE,
                    "rule_id": rule.id,
                    "step_kind": rule.type,
                    "description": description,
                },
                created_at=now,
            )
            return

        self.proposals.create_proposal_and_maybe_auto_approve(
            source=TRIGGER_SOURCE,
            step_kind=rule.type,
            description=description,
            payload={"rule_id": rule.id, "rule_name": rule.name, "target": rule.target},
            now=now,
        )

    def evaluate_triggers(self, *, now: Optional[datetime] = None) -> Dict[str, int]:
        now = ensure_utc(now)
        rules = self.store.list_enabled_trigger_rules()
        if not rules:
            return {"fired": 0}

        fired = 0
        for rule in rules:
            if not self.check_condition(rule):
                continue
            self.fire(rule, now=now)
            fired += 1
            self.logger.info(
                "trigger_fired",
                extra=self.log_extra(rule_id=rule.id, step_kind=rule.type, mode=self.config.proposal_mode),
            )
        return {"fired": fired}
