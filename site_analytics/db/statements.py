from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from sqlalchemy import text
from sqlalchemy.dialects import sqlite

# libSQL speaks SQLite; its pipeline API only takes positional "?" args.
_DIALECT = sqlite.dialect()


@dataclass(frozen=True)
class Statement:
    sql: str
    params: dict[str, Any] = field(default_factory=dict)

    def positional(self) -> tuple[str, list[Any]]:
        compiled = text(self.sql).compile(dialect=_DIALECT)
        names = compiled.positiontup or []
        try:
            args = [self.params[name] for name in names]
        except KeyError as exc:
            raise ValueError(f"missing bind parameter {exc.args[0]!r} for statement") from exc
        return compiled.string, args


Row = dict[str, Any]


class Store(Protocol):
    async def execute(self, statements: list[Statement]) -> list[list[Row]]:
        """Run the statements in order; one row list per statement."""
        ...

    async def aclose(self) -> None:
        ...
