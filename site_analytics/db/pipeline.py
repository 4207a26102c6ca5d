from __future__ import annotations

import base64
from typing import Any

import httpx
from loguru import logger

from site_analytics.db.statements import Row, Statement
from site_analytics.errors import StoreError, StoreHTTPError, StoreSQLError

PIPELINE_PATH = "/v2/pipeline"


def pipeline_url(database_url: str) -> str:
    url = database_url.strip().rstrip("/")
    if url.startswith("libsql://"):
        return "https://" + url[len("libsql://"):] + PIPELINE_PATH
    if url.startswith("https://"):
        return url + PIPELINE_PATH
    return f"https://{url}{PIPELINE_PATH}"


def encode_arg(value: Any) -> dict[str, Any]:
    if value is None:
        return {"type": "null"}
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return {"type": "integer", "value": "1" if value else "0"}
    if isinstance(value, int):
        return {"type": "integer", "value": str(value)}
    if isinstance(value, float):
        return {"type": "float", "value": value}
    if isinstance(value, str):
        return {"type": "text", "value": value}
    return {"type": "text", "value": str(value)}


def decode_value(cell: Any) -> Any:
    if not isinstance(cell, dict):
        return cell
    kind = cell.get("type")
    value = cell.get("value")
    if kind == "null" or value is None:
        return None
    if kind == "integer":
        return int(value)
    if kind == "float":
        return float(value)
    if kind == "blob":
        return base64.b64decode(cell.get("base64", value))
    return value


def _decode_rows(result: dict[str, Any]) -> list[Row]:
    execute_result = (result.get("response") or {}).get("result") or {}
    cols = [c.get("name") or f"col{i}" for i, c in enumerate(execute_result.get("cols") or [])]
    rows: list[Row] = []
    for raw in execute_result.get("rows") or []:
        if isinstance(raw, dict):
            rows.append({k: decode_value(v) for k, v in raw.items()})
            continue
        rows.append({name: decode_value(cell) for name, cell in zip(cols, raw)})
    return rows


def _error_message(result: dict[str, Any]) -> str:
    err = result.get("error")
    if isinstance(err, dict):
        return str(err.get("message") or err)
    return str(err or "unknown error")


class PipelineStore:
    """Client for a libSQL/Turso-style HTTP pipeline endpoint.

    Every ``execute`` call is one POST carrying all statements in order. There
    is no transaction around the batch and no retry; the first failing
    statement fails the call.
    """

    def __init__(self, database_url: str, auth_token: str, client: httpx.AsyncClient) -> None:
        self.base_url = pipeline_url(database_url)
        self._auth_token = auth_token
        self._client = client

    def _payload(self, statements: list[Statement]) -> dict[str, Any]:
        requests: list[dict[str, Any]] = []
        for stmt in statements:
            sql, args = stmt.positional()
            requests.append(
                {
                    "type": "execute",
                    "stmt": {"sql": sql, "args": [encode_arg(a) for a in args]},
                }
            )
        return {"requests": requests}

    async def execute(self, statements: list[Statement]) -> list[list[Row]]:
        if not statements:
            return []
        try:
            response = await self._client.post(
                self.base_url,
                headers={
                    "Authorization": f"Bearer {self._auth_token}",
                    "Content-Type": "application/json",
                },
                json=self._payload(statements),
            )
        except httpx.HTTPError as exc:
            logger.error("pipeline request failed: {}", exc)
            raise StoreError(f"Store request failed: {exc}", detail=str(exc)) from exc

        body = response.text
        if not response.is_success:
            logger.error("pipeline returned HTTP {}", response.status_code)
            raise StoreHTTPError(
                f"HTTP {response.status_code}: {response.reason_phrase}. Response: {body}",
                status=response.status_code,
                detail=body,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise StoreError("Store returned invalid JSON", status=response.status_code, detail=body) from exc

        results = data.get("results") if isinstance(data, dict) else data
        if not isinstance(results, list):
            raise StoreError("Store returned an unexpected payload", status=response.status_code, detail=body)

        out: list[list[Row]] = []
        for result in results[: len(statements)]:
            if not isinstance(result, dict):
                out.append([])
                continue
            if result.get("error") or result.get("type") == "error":
                message = _error_message(result)
                logger.error("pipeline SQL error: {}", message)
                raise StoreSQLError(f"SQL error: {message}", status=response.status_code, detail=message)
            out.append(_decode_rows(result))
        return out

    async def aclose(self) -> None:
        # the shared client is owned by the app lifespan
        return None
