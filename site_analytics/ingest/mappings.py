from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import ClassVar, Literal

from loguru import logger

from site_analytics.db import writers
from site_analytics.db.statements import Statement, Store
from site_analytics.ingest.geo import GeoResolver
from site_analytics.models.beacons import Beacon, MetricBeacon, PageViewBeacon, VitalsBeacon
from site_analytics.utils.time import epoch_millis, utc_now
from site_analytics.utils.useragent import browser_family

SESSION_OUTCOME = Literal["created", "updated", "upserted", "none"]


@dataclass(frozen=True)
class WriteContext:
    store: Store
    geo: GeoResolver
    hasher: Callable[[str], str]
    site_url: str
    ip: str | None


class SchemaMapping(ABC):
    """How one beacon kind lands in the store.

    Subclasses decide the tables, whether identifiers are hashed and how the
    session row is written; the ingestion service treats them uniformly.
    """

    kind: ClassVar[str]

    @abstractmethod
    async def persist(self, beacon: Beacon, ctx: WriteContext) -> SESSION_OUTCOME:
        """Write ``beacon`` and report what happened to its session row."""


class PageViewMapping(SchemaMapping):
    """``sessions`` + ``page_views``: check the session first, then write.

    A session that already has a country is never looked up again. Two
    beacons for a brand new session can both miss the SELECT and both insert;
    nothing guards that window.
    """

    kind = "page_view"

    async def persist(self, beacon: Beacon, ctx: WriteContext) -> SESSION_OUTCOME:
        assert isinstance(beacon, PageViewBeacon)
        path = str(beacon.path)
        ua_hash = ctx.hasher(beacon.user_agent) if beacon.user_agent else None
        session_hash = ctx.hasher(beacon.session_id) if beacon.session_id else None

        statements: list[Statement] = []
        outcome: SESSION_OUTCOME = "none"

        if session_hash:
            found = await ctx.store.execute([writers.select_session_country(session_hash)])
            rows = found[0] if found else []
            existing = rows[0] if rows else None

            if existing and existing.get("country_code"):
                country = str(existing["country_code"])
                logger.debug("country reused from session: {}", country)
                statements.append(
                    writers.upsert_session(
                        session_hash=session_hash,
                        path=path,
                        site_url=ctx.site_url,
                        user_agent_hash=ua_hash,
                        browser=None,
                        country_code=country,
                        screen_width=beacon.screen_width,
                        screen_height=beacon.screen_height,
                    )
                )
                outcome = "upserted"
            else:
                country = await ctx.geo.resolve(ctx.ip)
                if existing:
                    statements.append(
                        writers.update_session_country(
                            session_hash=session_hash, path=path, country_code=country
                        )
                    )
                    outcome = "updated"
                else:
                    statements.append(
                        writers.insert_session(
                            session_hash=session_hash,
                            path=path,
                            site_url=ctx.site_url,
                            user_agent_hash=ua_hash,
                            country_code=country,
                            screen_width=beacon.screen_width,
                            screen_height=beacon.screen_height,
                        )
                    )
                    outcome = "created"
        else:
            country = await ctx.geo.resolve(ctx.ip)

        statements.append(
            writers.insert_page_view(
                path=path,
                site_url=ctx.site_url,
                referrer=beacon.referrer,
                user_agent_hash=ua_hash,
                country_code=country,
                screen_width=beacon.screen_width,
                screen_height=beacon.screen_height,
                session_hash=session_hash,
            )
        )
        await ctx.store.execute(statements)
        return outcome


class VitalsMapping(SchemaMapping):
    """``sessions`` + ``pageviews`` in one pipeline call via upsert."""

    kind = "vitals"

    async def persist(self, beacon: Beacon, ctx: WriteContext) -> SESSION_OUTCOME:
        assert isinstance(beacon, VitalsBeacon)
        session_hash = ctx.hasher(str(beacon.session_id))
        ua_hash = ctx.hasher(beacon.user_agent) if beacon.user_agent else None
        browser = beacon.browser or browser_family(beacon.user_agent)
        country = await ctx.geo.resolve(ctx.ip)
        page = beacon.path or str(beacon.url)

        await ctx.store.execute(
            [
                writers.upsert_session(
                    session_hash=session_hash,
                    path=page,
                    site_url=ctx.site_url,
                    user_agent_hash=ua_hash,
                    browser=browser,
                    country_code=country,
                    screen_width=beacon.screen_width,
                    screen_height=beacon.screen_height,
                ),
                writers.insert_vitals_pageview(
                    session_hash=session_hash,
                    site_id=beacon.site_id,
                    url=str(beacon.url),
                    path=beacon.path,
                    referrer=beacon.referrer,
                    vitals=beacon.model_dump(include={"lcp", "cls", "fid", "fcp", "ttfb", "inp"}),
                    duration_ms=beacon.duration_ms,
                    bounce=beacon.bounce,
                ),
            ]
        )
        return "upserted"


class FlatMetricsMapping(SchemaMapping):
    """Single denormalised ``metrics`` row; identifiers stored as sent."""

    kind = "metric"

    async def persist(self, beacon: Beacon, ctx: WriteContext) -> SESSION_OUTCOME:
        assert isinstance(beacon, MetricBeacon)
        row = beacon.model_dump(exclude={"kind", "browser"})
        row["ts"] = epoch_millis(utc_now())
        await ctx.store.execute([writers.insert_metric(row)])
        return "none"


DEFAULT_MAPPINGS: dict[str, SchemaMapping] = {
    m.kind: m for m in (PageViewMapping(), VitalsMapping(), FlatMetricsMapping())
}
