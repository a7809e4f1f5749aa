"""
OpsBeat Heartbeat Webhook

POST /api/ops/heartbeat runs one heartbeat. Scheduled callers authenticate with
the `x-webhook-secret` header when WEBHOOK_SECRET is configured.
"""

import random

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from opsbeat.api.dependencies import (
    get_ops_store,
    get_rng,
    get_service_context,
    require_post,
    require_webhook_secret,
)
from opsbeat.api.schemas import ErrorResponse, HeartbeatResponse
from opsbeat.db.database import Store
from opsbeat.logging import get_logger, log_context
from opsbeat.services.base import ServiceContext
from opsbeat.services.heartbeat import HeartbeatService

router = APIRouter(prefix="/api/ops", tags=["Heartbeat"])
logger = get_logger(__name__)


@router.api_route(
    "/heartbeat",
    methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    response_model=HeartbeatResponse,
    responses={401: {"model": ErrorResponse}, 405: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    dependencies=[Depends(require_post), Depends(require_webhook_secret)],
)
def heartbeat(
    ctx: ServiceContext = Depends(get_service_context),
    store: Store = Depends(get_ops_store),
    rng: random.Random = Depends(get_rng),
):
    """Run triggers, the reaction queue, insight promotion and stale step recovery."""
    with log_context(request_id=ctx.request_id):
        try:
            result = HeartbeatService(ctx, store, rng=rng).run()
        except Exception as exc:
            logger.exception("heartbeat_failed", extra={"error": str(exc)})
            return JSONResponse(status_code=500, content={"error": str(exc)})
    return result.asdict()
