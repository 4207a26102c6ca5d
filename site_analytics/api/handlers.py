from __future__ import annotations

import json
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse, Response
from loguru import logger

from site_analytics.db import reports
from site_analytics.errors import BeaconRejected, StoreError
from site_analytics.ingest.geo import client_ip
from site_analytics.ingest.service import DisabledIngestion, IngestionService, RequestMeta
from site_analytics.models.beacons import BEACON_KIND

DISABLED_BODY = {"success": True, "message": "Analytics disabled"}


def json_response(content: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=content)


def preflight_response() -> Response:
    return Response(status_code=200, content=b"", media_type="application/json")


def parse_json_body(body: bytes) -> Any:
    if not body or not body.strip():
        return {}
    try:
        return json.loads(body.decode("utf-8"))
    except (ValueError, RecursionError) as exc:
        logger.debug("invalid json: {}", exc)
        raise BeaconRejected("Invalid JSON") from exc


def request_meta(request: Request) -> RequestMeta:
    peer = request.client.host if request.client is not None else None
    return RequestMeta(
        ip=client_ip(request.headers, peer),
        forwarded_host=request.headers.get("x-forwarded-host"),
    )


def _ingestion(request: Request) -> IngestionService | DisabledIngestion:
    return request.app.state.ingestion


async def ingest_request(request: Request, kind: BEACON_KIND | None) -> JSONResponse:
    ingestion = _ingestion(request)
    if not isinstance(ingestion, IngestionService):
        return json_response(DISABLED_BODY)

    try:
        payload = parse_json_body(await request.body())
        beacon = ingestion.validate(kind, payload)
    except BeaconRejected as exc:
        return json_response({"error": exc.message}, status_code=400)

    try:
        result = await ingestion.ingest(beacon, request_meta(request))
    except StoreError as exc:
        logger.error("analytics error: {}", exc)
        return json_response(
            {
                "error": "Failed to track analytics",
                "details": exc.detail or str(exc),
                "status": exc.status,
            },
            status_code=500,
        )
    except Exception as exc:
        logger.exception("analytics error")
        return json_response(
            {"error": "Failed to track analytics", "details": str(exc)},
            status_code=500,
        )

    if result.status == "ignored":
        return json_response({"ignored": True})
    return json_response({"success": True})


async def report_request(request: Request, days: str | None, report: str | None) -> JSONResponse:
    ingestion = _ingestion(request)
    if not isinstance(ingestion, IngestionService):
        return json_response(DISABLED_BODY)

    window = reports.clamp_days(days)
    kind = reports.report_type(report)
    try:
        rows = await ingestion.report(kind, window)
    except Exception as exc:
        logger.error("analytics fetch error: {}", exc)
        return json_response({"error": "Failed to fetch analytics"}, status_code=500)
    return json_response({"data": rows})
