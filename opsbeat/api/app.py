from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from opsbeat import __version__
from opsbeat.api import schemas
from opsbeat.api.dependencies import WebhookRejected, close_shared_stores
from opsbeat.api.routes import heartbeat
from opsbeat.config import get_config
from opsbeat.errors import OpsBeatError
from opsbeat.logging import get_logger, setup_logging

logger = get_logger(__name__)

app = FastAPI(
    title="OpsBeat API",
    description="Heartbeat webhook for ops triggers, missions and stale work recovery",
    version=__version__,
)


@app.exception_handler(WebhookRejected)
def webhook_rejected_handler(request: Request, exc: WebhookRejected) -> JSONResponse:
    logger.info(
        "heartbeat_rejected",
        extra={"status_code": exc.status_code, "method": request.method, "reason": exc.message},
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(OpsBeatError)
def opsbeat_error_handler(request: Request, exc: OpsBeatError) -> JSONResponse:
    # Raised while building request dependencies (e.g. store configuration).
    logger.error("request_failed", extra={"category": exc.category, "error": str(exc), **exc.metadata})
    return JSONResponse(status_code=500, content={"error": str(exc)})


@app.exception_handler(Exception)
def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("request_failed", exc_info=exc, extra={"error": str(exc)})
    return JSONResponse(status_code=500, content={"error": str(exc)})


app.include_router(heartbeat.router)


@app.on_event("startup")
def configure_logging() -> None:
    config = get_config()
    setup_logging(config.log_level, json_output=config.log_json)


@app.on_event("shutdown")
def close_stores() -> None:
    close_shared_stores()


@app.get("/health", response_model=schemas.Health)
def health_check():
    """Health check endpoint."""
    return schemas.Health()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
