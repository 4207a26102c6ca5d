from __future__ import annotations

import asyncio
import threading

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from site_analytics.db.schema import create_schema
from site_analytics.db.statements import Row, Statement
from site_analytics.errors import StoreSQLError


def get_engine(database_url: str) -> Engine:
    if database_url in {"sqlite://", "sqlite:///:memory:"}:
        # in-memory: every checkout must see the same database
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, pool_pre_ping=True)


class EngineStore:
    """Runs the same statements as the pipeline store against a local engine.

    Unlike the pipeline endpoint, a batch here runs inside one transaction.
    Batches execute in a worker thread, one at a time.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._lock = threading.Lock()

    @classmethod
    def from_url(cls, database_url: str) -> "EngineStore":
        store = cls(get_engine(database_url))
        create_schema(store.engine)
        return store

    def _execute_sync(self, statements: list[Statement]) -> list[list[Row]]:
        out: list[list[Row]] = []
        with self._lock:
            try:
                with self.engine.begin() as conn:
                    for stmt in statements:
                        result = conn.execute(text(stmt.sql), stmt.params)
                        if result.returns_rows:
                            out.append([dict(row) for row in result.mappings().all()])
                        else:
                            out.append([])
            except SQLAlchemyError as exc:
                message = str(getattr(exc, "orig", None) or exc)
                raise StoreSQLError(f"SQL error: {message}", detail=message) from exc
        return out

    async def execute(self, statements: list[Statement]) -> list[list[Row]]:
        return await asyncio.to_thread(self._execute_sync, statements)

    async def aclose(self) -> None:
        await asyncio.to_thread(self.engine.dispose)
