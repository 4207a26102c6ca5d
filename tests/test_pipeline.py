from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from site_analytics.db.pipeline import PipelineStore, decode_value, encode_arg, pipeline_url
from site_analytics.db.statements import Statement
from site_analytics.errors import StoreError, StoreHTTPError, StoreSQLError


@pytest.mark.parametrize(
    "configured, expected",
    [
        ("libsql://site-org.turso.io", "https://site-org.turso.io/v2/pipeline"),
        ("https://site-org.turso.io/", "https://site-org.turso.io/v2/pipeline"),
        ("site-org.turso.io", "https://site-org.turso.io/v2/pipeline"),
    ],
)
def test_pipeline_url_normalisation(configured, expected):
    assert pipeline_url(configured) == expected


def test_argument_tagging():
    assert encode_arg(None) == {"type": "null"}
    assert encode_arg(True) == {"type": "integer", "value": "1"}
    assert encode_arg(False) == {"type": "integer", "value": "0"}
    assert encode_arg(42) == {"type": "integer", "value": "42"}
    assert encode_arg(0.25) == {"type": "float", "value": 0.25}
    assert encode_arg("TH") == {"type": "text", "value": "TH"}
    assert encode_arg(b"\x01") == {"type": "text", "value": "b'\\x01'"}


def test_value_decoding():
    assert decode_value({"type": "null"}) is None
    assert decode_value({"type": "integer", "value": "7"}) == 7
    assert decode_value({"type": "float", "value": 1.5}) == 1.5
    assert decode_value({"type": "text", "value": "x"}) == "x"
    assert decode_value({"type": "blob", "base64": "aGk="}) == b"hi"


def test_named_binds_become_positional_in_order():
    stmt = Statement(
        "INSERT INTO t (a, b, c) VALUES (:b, :a, :b)",
        {"a": 1, "b": "two"},
    )
    sql, args = stmt.positional()
    assert sql == "INSERT INTO t (a, b, c) VALUES (?, ?, ?)"
    assert args == ["two", 1, "two"]


def test_missing_bind_is_reported():
    with pytest.raises(ValueError, match="'b'"):
        Statement("SELECT :a, :b", {"a": 1}).positional()


def _store(handler) -> PipelineStore:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PipelineStore("libsql://db.example.io", "secret", client)


def test_execute_posts_one_batch_and_decodes_rows():
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        assert str(request.url) == "https://db.example.io/v2/pipeline"
        assert request.headers["authorization"] == "Bearer secret"
        return httpx.Response(
            200,
            json=[
                {"type": "ok", "response": {"type": "execute", "result": {"cols": [], "rows": []}}},
                {
                    "type": "ok",
                    "response": {
                        "type": "execute",
                        "result": {
                            "cols": [{"name": "path"}, {"name": "views"}],
                            "rows": [[{"type": "text", "value": "/"}, {"type": "integer", "value": "3"}]],
                        },
                    },
                },
            ],
        )

    store = _store(handler)
    results = asyncio.run(
        store.execute(
            [
                Statement("INSERT INTO x (v) VALUES (:v)", {"v": None}),
                Statement("SELECT path, views FROM y WHERE days = :d", {"d": 30}),
            ]
        )
    )

    assert results == [[], [{"path": "/", "views": 3}]]
    (body,) = seen
    assert [r["type"] for r in body["requests"]] == ["execute", "execute"]
    assert body["requests"][0]["stmt"] == {"sql": "INSERT INTO x (v) VALUES (?)", "args": [{"type": "null"}]}


def test_empty_batch_makes_no_call():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    assert asyncio.run(_store(handler).execute([])) == []


def test_non_success_status_raises_with_body():
    store = _store(lambda request: httpx.Response(401, text='{"error":"Unauthorized"}'))
    with pytest.raises(StoreHTTPError) as info:
        asyncio.run(store.execute([Statement("SELECT 1")]))
    assert info.value.status == 401
    assert info.value.detail == '{"error":"Unauthorized"}'


def test_sql_error_in_ok_response_raises():
    store = _store(
        lambda request: httpx.Response(
            200, json={"results": [{"type": "error", "error": {"message": "no such table: metrics"}}]}
        )
    )
    with pytest.raises(StoreSQLError, match="no such table: metrics"):
        asyncio.run(store.execute([Statement("SELECT * FROM metrics")]))


def test_transport_error_is_wrapped():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(StoreError) as info:
        asyncio.run(_store(handler).execute([Statement("SELECT 1")]))
    assert not isinstance(info.value, StoreHTTPError)
    assert "connection refused" in str(info.value)
