"""FastAPI application factory."""

import logging

from fastapi import FastAPI, Request, Response, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse

from photo_worker.app_logging import configure_logging
from photo_worker.containers import AppContainer
from photo_worker.domain.jobs import DecodeFailure
from photo_worker.services.envelope import DELIVERY_ATTEMPT_HEADER, decode_push_request


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    app = FastAPI()
    app.state.container = container

    @app.get("/health")
    async def health(request: Request) -> JSONResponse:
        """Health check including a round trip to the record store."""
        state_container: AppContainer = request.app.state.container
        try:
            db_ok = await run_in_threadpool(
                state_container.photo_repository.check_health
            )
        except Exception:
            logger.exception("Record store health check failed")
            db_ok = False
        if not db_ok:
            return JSONResponse(
                {"status": "degraded", "db": False},
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            )
        return JSONResponse({"status": "ok", "db": True})

    @app.post("/tasks/process")
    async def process_task(request: Request) -> Response:
        """Handle a Pub/Sub push delivery.

        Only a RETRY outcome answers with a non-2xx status; everything else,
        malformed deliveries included, is acknowledged so Pub/Sub stops
        redelivering it.
        """
        state_container: AppContainer = request.app.state.container
        body = await request.body()
        decoded = decode_push_request(
            body, request.headers.get(DELIVERY_ATTEMPT_HEADER)
        )
        if isinstance(decoded, DecodeFailure):
            logger.warning(
                "Discarding undecodable delivery",
                extra={
                    "context": {
                        "type": f"photo_process_{decoded.reason}",
                        "attempt": decoded.attempt,
                        "delivery_id": decoded.delivery_id,
                        "request_id": decoded.correlation_id,
                        "error": decoded.detail,
                    }
                },
            )
            return Response(status_code=status.HTTP_204_NO_CONTENT)

        result = await run_in_threadpool(
            state_container.processing_service.process, decoded
        )
        if result.outcome.should_redeliver:
            return PlainTextResponse(
                "retry", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
            )
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app
