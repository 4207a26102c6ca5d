from __future__ import annotations

import argparse
import asyncio
import sys

import httpx
from loguru import logger
from tenacity import retry, stop_after_attempt, wait_fixed

from site_analytics.config import load_settings
from site_analytics.errors import StoreError, StoreHTTPError
from site_analytics.ingest.service import IngestionService, build_ingestion

logger.remove()
logger.add(sys.stderr, level="WARNING")


def _friendly_hint(exc: BaseException) -> str:
    if isinstance(exc, StoreHTTPError) and exc.status in {401, 403}:
        return "Hint: check TURSO_AUTH_TOKEN (expired or for another database)."
    if isinstance(exc, StoreHTTPError) and exc.status == 404:
        return "Hint: TURSO_DATABASE_URL does not point at a libSQL pipeline endpoint."
    text = str(exc).upper()
    if "NO SUCH TABLE" in text:
        return "Hint: run `python -m site_analytics.scripts.init_schema` first."
    return "Hint: verify TURSO_DATABASE_URL is reachable from this machine."


@retry(stop=stop_after_attempt(3), wait=wait_fixed(1), reraise=True)
async def _ping_with_retry(service: IngestionService) -> None:
    await service.ping()


async def _amain(check_tables: bool) -> int:
    try:
        settings = load_settings()
    except Exception as exc:
        print(f"CONFIG ERROR: {exc}")
        return 2

    async with httpx.AsyncClient() as client:
        service = build_ingestion(settings, client)
        if not isinstance(service, IngestionService):
            print("Analytics disabled (set TURSO_DATABASE_URL and TURSO_AUTH_TOKEN).")
            return 2
        try:
            await _ping_with_retry(service)
            if check_tables:
                await service.report("daily", 1)
            print("SUCCESS: store reachable.")
            return 0
        except StoreError as exc:
            logger.debug("store error: {}", exc)
            print("FAILURE: could not reach the analytics store.")
            print(_friendly_hint(exc))
            print(f"Details: {exc.detail or exc}")
            return 1
        finally:
            await service.aclose()


def main() -> int:
    parser = argparse.ArgumentParser(description="Check connectivity to the analytics store.")
    parser.add_argument(
        "--tables",
        action="store_true",
        help="Also run the daily report query to confirm the schema exists.",
    )
    args = parser.parse_args()
    return asyncio.run(_amain(args.tables))


if __name__ == "__main__":
    raise SystemExit(main())
