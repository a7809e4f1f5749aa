"""
OpsBeat Reaction Queue

Drains agent reactions in creation order. Reaction payloads are not
interpreted here.
"""

from datetime import datetime
from typing import Dict, Optional

from opsbeat.clock import ensure_utc
from opsbeat.services.base import Service

REACTION_BATCH_SIZE = 10


class ReactionQueueService(Service):
    """Marks pending reactions processed, oldest first, at most ten per heartbeat."""

    def process_reaction_queue(self, *, now: Optional[datetime] = None) -> Dict[str, int]:
        now = ensure_utc(now)
        reactions = self.store.list_pending_reactions(REACTION_BATCH_SIZE)
        if not reactions:
            return {"processed": 0}

        for reaction in reactions:
            self.store.mark_reaction_processed(reaction.id, now)
            self.logger.debug("reaction_processed", extra=self.log_extra(reaction_id=reaction.id))
        return {"processed": len(reactions)}

    def promote_insights(self) -> Dict[str, int]:
        """Insight promotion is not implemented; always reports zero."""
        return {"promoted": 0}
