"""
OpsBeat Stale Step Recovery

Declares abandoned steps failed and settles their missions. Steps are not
re-dispatched.
"""

from datetime import datetime, timedelta
from typing import Dict, Iterable, Optional

from opsbeat.clock import ensure_utc
from opsbeat.models.domain import MissionStatus, StepStatus
from opsbeat.services.base import Service

STALE_AFTER = timedelta(minutes=30)
STALE_ERROR = "Stale: no progress for 30 minutes"


def aggregate_mission_status(statuses: Iterable[str]) -> Optional[str]:
    """
    Mission status implied by its step statuses.

    succeeded when every step succeeded, failed when any step failed, None
    otherwise (including when there are no steps).
    """
    statuses = list(statuses)
    if not statuses:
        return None
    if all(status == StepStatus.SUCCEEDED for status in statuses):
        return MissionStatus.SUCCEEDED
    if any(status == StepStatus.FAILED for status in statuses):
        return MissionStatus.FAILED
    return None


class RecoveryService(Service):
    """Fails steps stuck in running for STALE_AFTER or longer."""

    def recover_stale_steps(self, *, now: Optional[datetime] = None) -> Dict[str, int]:
        now = ensure_utc(now)
        stale = self.store.list_stale_steps(now - STALE_AFTER)
        if not stale:
            return {"recovered": 0}

        for step in stale:
            self.store.update_step_status(
                step.id,
                StepStatus.FAILED,
                last_error=STALE_ERROR,
                updated_at=now,
            )
            self.logger.warning(
                "stale_step_failed",
                extra=self.log_extra(step_id=step.id, mission_id=step.mission_id, last_update=step.updated_at),
            )
            self.finalize_mission_if_done(step.mission_id, now=now)
        return {"recovered": len(stale)}

    def finalize_mission_if_done(self, mission_id: str, *, now: Optional[datetime] = None) -> Optional[str]:
        """Persist the aggregate status of a mission when it is settled; return it."""
        steps = self.store.list_mission_steps(mission_id)
        new_status = aggregate_mission_status(step.status for step in steps)
        if new_status is None:
            return None

        self.store.update_mission_status(mission_id, new_status, ensure_utc(now))
        self.logger.info(
            "mission_finalized",
            extra=self.log_extra(mission_id=mission_id, status=new_status),
        )
        return new_status
