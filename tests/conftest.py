from __future__ import annotations

import json
from collections.abc import Iterator
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from site_analytics.config import Settings
from site_analytics.tracking.api import create_app

PIPELINE_HOST = "analytics-test.turso.io"
GEO_HOST = "ip-api.com"
VISITOR_IP = "203.0.113.7"


def ok_result(cols: list[str] | None = None, rows: list[list[Any]] | None = None) -> dict[str, Any]:
    return {
        "type": "ok",
        "response": {
            "type": "execute",
            "result": {
                "cols": [{"name": c} for c in cols or []],
                "rows": rows or [],
            },
        },
    }


class FakeBackend:
    """Pipeline endpoint + geolocation service behind one MockTransport."""

    def __init__(self) -> None:
        self.pipeline_calls: list[dict[str, Any]] = []
        self.pipeline_headers: list[httpx.Headers] = []
        self.geo_calls: list[str] = []
        self.session_countries: dict[str, str | None] = {}
        self.country = "TH"
        self.geo_status = 200
        self.pipeline_status = 200
        self.sql_error: str | None = None
        self.select_result: dict[str, Any] | None = None

    def statements(self) -> list[dict[str, Any]]:
        return [r["stmt"] for call in self.pipeline_calls for r in call["requests"]]

    def _pipeline(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.pipeline_calls.append(body)
        self.pipeline_headers.append(request.headers)
        if self.pipeline_status != 200:
            return httpx.Response(self.pipeline_status, text="upstream exploded")

        results: list[dict[str, Any]] = []
        for req in body["requests"]:
            sql = req["stmt"]["sql"]
            if self.sql_error is not None:
                results.append({"type": "error", "error": {"message": self.sql_error}})
                continue
            if "SELECT country_code FROM sessions" in sql:
                key = req["stmt"]["args"][0]["value"]
                if key in self.session_countries:
                    country = self.session_countries[key]
                    cell = {"type": "null"} if country is None else {"type": "text", "value": country}
                    results.append(ok_result(["country_code"], [[cell]]))
                else:
                    results.append(ok_result(["country_code"], []))
            elif sql.lstrip().upper().startswith("SELECT") and self.select_result is not None:
                results.append(self.select_result)
            else:
                results.append(ok_result())
        return httpx.Response(200, json={"baton": None, "base_url": None, "results": results})

    def _geo(self, request: httpx.Request) -> httpx.Response:
        self.geo_calls.append(request.url.path.rsplit("/", 1)[-1])
        if self.geo_status != 200:
            return httpx.Response(self.geo_status, text="quota exceeded")
        return httpx.Response(200, json={"countryCode": self.country})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == PIPELINE_HOST:
            return self._pipeline(request)
        if request.url.host == GEO_HOST:
            return self._geo(request)
        return httpx.Response(404)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def remote_settings() -> Settings:
    return Settings(
        database_url=f"libsql://{PIPELINE_HOST}",
        database_auth_token="test-token",
        analytics_salt="pepper",
    )


@pytest.fixture
def api(backend: FakeBackend, remote_settings: Settings) -> Iterator[TestClient]:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(backend))
    with TestClient(create_app(remote_settings, http_client=http_client)) as client:
        yield client


@pytest.fixture
def local_api(backend: FakeBackend) -> Iterator[TestClient]:
    settings = Settings(database_url="sqlite://", analytics_salt="pepper")
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(backend))
    with TestClient(create_app(settings, http_client=http_client)) as client:
        yield client
