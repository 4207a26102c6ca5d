from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

import httpx
from loguru import logger
from pydantic import ValidationError

from site_analytics.config import Settings
from site_analytics.db import reports
from site_analytics.db.engine import EngineStore
from site_analytics.db.pipeline import PipelineStore
from site_analytics.db.statements import Row, Statement, Store
from site_analytics.errors import BeaconRejected
from site_analytics.ingest.geo import GeoResolver
from site_analytics.ingest.mappings import DEFAULT_MAPPINGS, SchemaMapping, WriteContext
from site_analytics.models.beacons import Beacon, beacon_adapter, is_local_site
from site_analytics.utils.hashing import hash_value


def _rejection_message(exc: ValidationError, kind: Any) -> str:
    error_types = {error["type"] for error in exc.errors()}
    if "union_tag_not_found" in error_types or ("union_tag_invalid" in error_types and not kind):
        return "Missing required fields: kind"
    if "union_tag_invalid" in error_types:
        return f"Unknown beacon kind: {kind}"
    return "Invalid beacon"


@dataclass(frozen=True)
class RequestMeta:
    ip: str | None = None
    forwarded_host: str | None = None


@dataclass(frozen=True)
class IngestResult:
    status: Literal["stored", "ignored"]
    session: str = "none"


class IngestionService:
    enabled = True

    def __init__(
        self,
        store: Store,
        geo: GeoResolver,
        salt: str,
        mappings: dict[str, SchemaMapping] | None = None,
    ) -> None:
        self.store = store
        self.geo = geo
        self._salt = salt
        self.mappings = mappings or DEFAULT_MAPPINGS

    def hash(self, value: str) -> str:
        return hash_value(value, self._salt)

    def validate(self, kind: str | None, payload: Any) -> Beacon:
        """Validate ``payload`` as a beacon; ``kind`` overrides any tag in the body."""
        data = dict(payload) if isinstance(payload, dict) else {}
        if kind is not None:
            data["kind"] = kind
        try:
            beacon = beacon_adapter.validate_python(data)
        except ValidationError as exc:
            raise BeaconRejected(_rejection_message(exc, data.get("kind"))) from exc
        if beacon.kind not in self.mappings:
            raise BeaconRejected(f"Unknown beacon kind: {beacon.kind}")
        missing = beacon.missing_fields()
        if missing:
            raise BeaconRejected("Missing required fields: " + ", ".join(missing))
        return beacon

    async def ingest(self, beacon: Beacon, meta: RequestMeta) -> IngestResult:
        site_url = beacon.resolved_site_url(meta.forwarded_host)
        if is_local_site(site_url):
            logger.debug("ignoring local-dev beacon kind='{}'", beacon.kind)
            return IngestResult(status="ignored")

        mapping = self.mappings[beacon.kind]
        ctx = WriteContext(
            store=self.store,
            geo=self.geo,
            hasher=self.hash,
            site_url=str(site_url),
            ip=meta.ip,
        )
        outcome = await mapping.persist(beacon, ctx)
        logger.info("stored beacon kind='{}' session={}", beacon.kind, outcome)
        return IngestResult(status="stored", session=outcome)

    async def report(self, kind: reports.REPORT_TYPE, days: int) -> list[Row]:
        results = await self.store.execute([reports.build_report(kind, days)])
        return results[0] if results else []

    async def ping(self) -> None:
        await self.store.execute([Statement("SELECT 1 AS ok;")])

    async def aclose(self) -> None:
        await self.store.aclose()


class DisabledIngestion:
    """Stand-in when no store is configured: every beacon is a no-op success."""

    enabled = False

    async def aclose(self) -> None:
        return None


def build_store(settings: Settings, client: httpx.AsyncClient) -> Store:
    if not settings.database_url:
        raise RuntimeError("TURSO_DATABASE_URL is not set")
    if settings.is_local_engine():
        return EngineStore.from_url(settings.database_url)
    token = settings.database_auth_token
    return PipelineStore(
        settings.database_url,
        token.get_secret_value() if token is not None else "",
        client,
    )


def build_ingestion(
    settings: Settings, client: httpx.AsyncClient
) -> IngestionService | DisabledIngestion:
    if not settings.store_configured():
        logger.warning("analytics disabled: TURSO_DATABASE_URL / TURSO_AUTH_TOKEN not set")
        return DisabledIngestion()
    geo = GeoResolver(client, settings.geo_lookup_url, settings.geo_timeout_seconds)
    return IngestionService(
        build_store(settings, client),
        geo,
        settings.analytics_salt.get_secret_value(),
    )
