from __future__ import annotations

from typing import Literal

from site_analytics.db.statements import Statement

REPORT_TYPE = Literal["daily", "pages"]

DEFAULT_DAYS = 30
MIN_DAYS = 1
MAX_DAYS = 365


def clamp_days(raw: str | int | None) -> int:
    try:
        days = int(raw) if raw is not None else DEFAULT_DAYS
    except (TypeError, ValueError):
        days = DEFAULT_DAYS
    return min(max(days, MIN_DAYS), MAX_DAYS)


def report_type(raw: str | None) -> REPORT_TYPE:
    return "daily" if raw == "daily" else "pages"


def daily_views(days: int) -> Statement:
    return Statement(
        """
        SELECT
            DATE(timestamp) AS date,
            COUNT(*) AS total_views,
            COUNT(DISTINCT session_hash) AS unique_sessions
        FROM page_views
        WHERE timestamp >= datetime('now', '-' || :days || ' days')
        GROUP BY DATE(timestamp)
        ORDER BY date DESC;
        """,
        {"days": days},
    )


def page_stats(days: int) -> Statement:
    return Statement(
        """
        SELECT
            path,
            site_url,
            COUNT(*) AS views,
            COUNT(DISTINCT session_hash) AS unique_sessions,
            ROUND(AVG(CAST(is_bounce AS REAL)) * 100, 2) AS bounce_rate_percent
        FROM page_views
        WHERE timestamp >= datetime('now', '-' || :days || ' days')
        GROUP BY path, site_url
        ORDER BY views DESC;
        """,
        {"days": days},
    )


def build_report(kind: REPORT_TYPE, days: int) -> Statement:
    if kind == "daily":
        return daily_views(days)
    return page_stats(days)
