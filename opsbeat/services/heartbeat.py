"""
OpsBeat Heartbeat

One heartbeat runs every stage in a fixed order:

    triggers -> reaction queue -> insight promotion -> stale step recovery

A failing stage aborts the stages after it; the exception propagates to the
caller. Nothing is retried.
"""

import random
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from opsbeat.clock import ensure_utc, to_iso
from opsbeat.services.base import Service, ServiceContext
from opsbeat.services.reactions import ReactionQueueService
from opsbeat.services.recovery import RecoveryService
from opsbeat.services.triggers import TriggerService


@dataclass
class HeartbeatResult:
    triggers: Dict[str, int]
    reactions: Dict[str, int]
    insights: Dict[str, int]
    stale: Dict[str, int]
    timestamp: str

    def asdict(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "triggers": self.triggers,
            "reactions": self.reactions,
            "insights": self.insights,
            "stale": self.stale,
            "timestamp": self.timestamp,
        }


class HeartbeatService(Service):
    """Runs one heartbeat against the injected store."""

    def __init__(self, context: ServiceContext, store, rng: Optional[random.Random] = None) -> None:
        super().__init__(context, store)
        self.triggers = TriggerService(context, store, rng=rng)
        self.reactions = ReactionQueueService(context, store)
        self.recovery = RecoveryService(context, store)

    def run(self, *, now: Optional[datetime] = None) -> HeartbeatResult:
        now = ensure_utc(now)
        self.logger.info("heartbeat_started", extra=self.log_extra())

        triggers = self.triggers.evaluate_triggers(now=now)
        reactions = self.reactions.process_reaction_queue(now=now)
        insights = self.reactions.promote_insights()
        stale = self.recovery.recover_stale_steps(now=now)

        result = HeartbeatResult(
            triggers=triggers,
            reactions=reactions,
            insights=insights,
            stale=stale,
            timestamp=to_iso(now),
        )
        self.logger.info(
            "heartbeat_finished",
            extra=self.log_extra(
                fired=triggers["fired"],
                processed=reactions["processed"],
                recovered=stale["recovered"],
            ),
        )
        return result
