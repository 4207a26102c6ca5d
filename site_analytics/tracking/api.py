from __future__ import annotations

import os
import sys
from contextlib import asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, Response
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from site_analytics.api.cors import cors_headers
from site_analytics.api.handlers import ingest_request, preflight_response, report_request
from site_analytics.config import Settings, load_settings
from site_analytics.ingest.service import build_ingestion

logger.remove()
logger.add(
    sys.stderr,
    level="DEBUG" if os.getenv("ANALYTICS_DEBUG", "").strip().lower() == "true" else "INFO",
)

BEACON_PATHS = ("/analytics", "/vitals", "/metrics", "/collect")


def create_app(
    settings: Settings | None = None, *, http_client: httpx.AsyncClient | None = None
) -> FastAPI:
    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        cfg = settings or load_settings()
        client = http_client or httpx.AsyncClient()
        app.state.settings = cfg
        app.state.ingestion = build_ingestion(cfg, client)
        try:
            yield
        finally:
            try:
                await app.state.ingestion.aclose()
            finally:
                if http_client is None:
                    await client.aclose()

    app = FastAPI(title="Site Analytics Beacon API", version="1.0.0", lifespan=_lifespan)

    @app.middleware("http")
    async def _stamp_cors(request: Request, call_next):
        response = await call_next(request)
        cfg: Settings | None = getattr(request.app.state, "settings", None)
        allowed = cfg.cors_origins() if cfg is not None else ["*"]
        response.headers.update(cors_headers(allowed, request.headers.get("origin")))
        return response

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = "Method not allowed" if exc.status_code == 405 else str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": message},
            headers=exc.headers,
        )

    async def _preflight() -> Response:
        return preflight_response()

    for path in BEACON_PATHS:
        app.add_api_route(path, _preflight, methods=["OPTIONS"], include_in_schema=False)

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]:
        ingestion = request.app.state.ingestion
        if not ingestion.enabled:
            return {"status": "disabled"}
        try:
            await ingestion.ping()
            return {"status": "ok"}
        except Exception as exc:
            logger.error("healthcheck failed: {}", exc)
            return {"status": "degraded", "error": str(exc)}

    @app.post("/analytics")
    async def track_page_view(request: Request) -> JSONResponse:
        return await ingest_request(request, "page_view")

    @app.get("/analytics")
    async def page_view_report(
        request: Request,
        days: str | None = Query(default=None),
        report: str | None = Query(default=None, alias="type"),
    ) -> JSONResponse:
        return await report_request(request, days, report)

    @app.post("/vitals")
    async def track_vitals(request: Request) -> JSONResponse:
        return await ingest_request(request, "vitals")

    @app.post("/metrics")
    async def track_metric(request: Request) -> JSONResponse:
        return await ingest_request(request, "metric")

    @app.post("/collect")
    async def collect(request: Request) -> JSONResponse:
        return await ingest_request(request, None)

    return app


app = create_app()
