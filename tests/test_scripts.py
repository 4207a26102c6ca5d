from __future__ import annotations

import asyncio

import pytest

from site_analytics.errors import StoreError, StoreHTTPError, StoreSQLError
from site_analytics.scripts import check_store, init_schema
from site_analytics.tracking import run_server


def test_init_schema_dry_run_prints_ddl(capsys):
    assert asyncio.run(init_schema._amain(dry_run=True)) == 0

    out = capsys.readouterr().out
    for table in ("sessions", "page_views", "pageviews", "metrics"):
        assert f"CREATE TABLE IF NOT EXISTS {table} " in out
    assert "CREATE INDEX IF NOT EXISTS ix_metrics_site_id_ts" in out


def test_init_schema_applies_ddl_to_local_store(monkeypatch, capsys):
    monkeypatch.setenv("TURSO_DATABASE_URL", "sqlite://")
    assert asyncio.run(init_schema._amain(dry_run=False)) == 0
    assert "Schema ready" in capsys.readouterr().out


@pytest.mark.parametrize(
    "exc, hint",
    [
        (StoreHTTPError("denied", status=401, detail="Unauthorized"), "TURSO_AUTH_TOKEN"),
        (StoreHTTPError("denied", status=403, detail="Forbidden"), "TURSO_AUTH_TOKEN"),
        (StoreHTTPError("missing", status=404, detail="Not Found"), "pipeline endpoint"),
        (StoreSQLError("SQL error: no such table: page_views", detail="no such table: page_views"), "init_schema"),
        (StoreError("connection refused"), "reachable"),
    ],
)
def test_friendly_hint(exc, hint):
    assert hint in check_store._friendly_hint(exc)


def test_check_store_against_local_store(monkeypatch, capsys):
    monkeypatch.setenv("TURSO_DATABASE_URL", "sqlite://")
    assert asyncio.run(check_store._amain(check_tables=True)) == 0
    assert "SUCCESS" in capsys.readouterr().out


def test_run_server_reads_bind_from_environment(monkeypatch):
    calls = []
    monkeypatch.setenv("ANALYTICS_API_HOST", "0.0.0.0")
    monkeypatch.setenv("ANALYTICS_API_PORT", "9001")
    monkeypatch.setenv("ANALYTICS_DEBUG", "true")
    monkeypatch.setattr(run_server.uvicorn, "run", lambda app, **kw: calls.append((app, kw)))

    assert run_server.main([]) == 0

    ((app, kw),) = calls
    assert app == "site_analytics.tracking.api:app"
    assert kw == {"host": "0.0.0.0", "port": 9001, "reload": False, "log_level": "debug"}
