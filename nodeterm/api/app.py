"""FastAPI application factory for the health endpoint.

``GET /healthz`` answers 200 unless the process is shutting down and the
request is a plain readiness probe (neither ``liveness`` nor ``startup``
in the query string); then it answers 418 so the load balancer stops routing
traffic while in-flight drains finish.  ``GET /metrics`` serves Prometheus
metrics.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from nodeterm.models.status import Status

_log = structlog.get_logger(component="api.app")

_SHUTTING_DOWN_STATUS = 418


def create_app(status: Status, store: Any = None) -> FastAPI:
    """Create the health FastAPI application.

    Args:
        status: Process status read on every probe.
        store:  Optional EventStore, exposed on ``app.state`` for diagnostics.
    """
    from nodeterm import __version__

    app = FastAPI(
        title="nodeterm",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.status = status
    app.state.store = store

    @app.get("/healthz", response_model=None)
    async def healthz(request: Request) -> Response:
        params = request.query_params
        readiness = "liveness" not in params and "startup" not in params
        _log.debug("health_probe", readiness=readiness, shutting_down=status.shutting_down)
        if readiness and status.shutting_down:
            return JSONResponse(
                status_code=_SHUTTING_DOWN_STATUS,
                content={"title": "Shutting Down", "status": _SHUTTING_DOWN_STATUS},
                media_type="application/problem+json",
            )
        return PlainTextResponse("Success")

    @app.get("/metrics", response_model=None)
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app
