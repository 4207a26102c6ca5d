from __future__ import annotations

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    text,
)
from sqlalchemy.dialects import sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.schema import CreateIndex, CreateTable

metadata = MetaData()

_NOW = text("CURRENT_TIMESTAMP")

# One row per session fingerprint; shared by the page-view and vitals ingestors.
sessions = Table(
    "sessions",
    metadata,
    Column("session_hash", String(64), primary_key=True),
    Column("first_page", String(500)),
    Column("last_page", String(500)),
    Column("site_url", String(500)),
    Column("user_agent_hash", String(16)),
    Column("browser", String(50)),
    Column("country_code", String(8)),
    Column("screen_width", Integer),
    Column("screen_height", Integer),
    Column("page_count", Integer, nullable=False, server_default=text("1")),
    Column("duration_seconds", Integer, nullable=False, server_default=text("0")),
    Column("timestamp", DateTime, nullable=False, server_default=_NOW),
    Column("updated_at", DateTime, nullable=False, server_default=_NOW),
)

page_views = Table(
    "page_views",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("path", String(500), nullable=False),
    Column("site_url", String(500)),
    Column("referrer", String(500)),
    Column("user_agent_hash", String(16)),
    Column("country_code", String(8)),
    Column("screen_width", Integer),
    Column("screen_height", Integer),
    Column("session_hash", String(64)),
    Column("is_bounce", Integer, nullable=False, server_default=text("0")),
    Column("timestamp", DateTime, nullable=False, server_default=_NOW),
    Index("ix_page_views_timestamp", "timestamp"),
    Index("ix_page_views_session_hash", "session_hash"),
)

pageviews = Table(
    "pageviews",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("session_hash", String(64), nullable=False),
    Column("site_id", String(100)),
    Column("url", String(500), nullable=False),
    Column("path", String(500)),
    Column("referrer", String(500)),
    Column("lcp", Float),
    Column("cls", Float),
    Column("fid", Float),
    Column("fcp", Float),
    Column("ttfb", Float),
    Column("inp", Float),
    Column("duration_ms", Integer),
    Column("bounce", Integer),
    Column("timestamp", DateTime, nullable=False, server_default=_NOW),
    Index("ix_pageviews_session_hash", "session_hash"),
)

metrics = Table(
    "metrics",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("session_id", String(100), nullable=False),
    Column("site_id", String(100), nullable=False),
    Column("url", String(500), nullable=False),
    Column("path", String(500)),
    Column("referrer", String(500)),
    Column("country_code", String(8)),
    Column("screen_width", Integer),
    Column("screen_height", Integer),
    Column("user_agent", String(1000)),
    Column("lcp", Float),
    Column("cls", Float),
    Column("fid", Float),
    Column("fcp", Float),
    Column("ttfb", Float),
    Column("inp", Float),
    Column("duration_ms", Integer),
    Column("bounce", Integer),
    Column("pageviews_in_session", Integer),
    Column("ts", Integer, nullable=False),
    Index("ix_metrics_site_id_ts", "site_id", "ts"),
)


def schema_ddl() -> list[str]:
    """CREATE TABLE / CREATE INDEX statements for the remote (libSQL) store."""
    dialect = sqlite.dialect()
    out: list[str] = []
    for table in metadata.sorted_tables:
        out.append(str(CreateTable(table, if_not_exists=True).compile(dialect=dialect)).strip())
        for index in sorted(table.indexes, key=lambda ix: ix.name or ""):
            out.append(str(CreateIndex(index, if_not_exists=True).compile(dialect=dialect)).strip())
    return out


def create_schema(engine: Engine) -> None:
    metadata.create_all(engine)
