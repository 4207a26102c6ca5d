from __future__ import annotations

import argparse
import asyncio
import sys

import httpx
from loguru import logger

from site_analytics.config import load_settings
from site_analytics.db.schema import schema_ddl
from site_analytics.db.statements import Statement
from site_analytics.errors import StoreError
from site_analytics.ingest.service import build_store

logger.remove()
logger.add(sys.stderr, level="INFO")


async def _amain(dry_run: bool) -> int:
    statements = [Statement(sql) for sql in schema_ddl()]
    if dry_run:
        for stmt in statements:
            print(stmt.sql + ";\n")
        return 0

    settings = load_settings()
    if not settings.store_configured():
        print("Analytics disabled (set TURSO_DATABASE_URL and TURSO_AUTH_TOKEN).")
        return 2

    async with httpx.AsyncClient() as client:
        store = build_store(settings, client)
        try:
            await store.execute(statements)
        except StoreError as exc:
            logger.error("schema creation failed: {}", exc)
            return 1
        finally:
            await store.aclose()

    print(f"Schema ready: {len(statements)} statements applied (tables + indexes, if missing).")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Create the analytics tables on the configured store.")
    parser.add_argument("--dry-run", action="store_true", help="Print the DDL instead of applying it.")
    args = parser.parse_args()
    return asyncio.run(_amain(args.dry_run))


if __name__ == "__main__":
    raise SystemExit(main())
