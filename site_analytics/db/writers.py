from __future__ import annotations

from typing import Any

from site_analytics.db.statements import Statement


def _as_int_flag(value: bool | None) -> int | None:
    if value is None:
        return None
    return 1 if value else 0


def select_session_country(session_hash: str) -> Statement:
    return Statement(
        """
        SELECT country_code FROM sessions WHERE session_hash = :session_hash LIMIT 1;
        """,
        {"session_hash": session_hash},
    )


def insert_session(
    *,
    session_hash: str,
    path: str,
    site_url: str | None,
    user_agent_hash: str | None,
    country_code: str | None,
    screen_width: Any = None,
    screen_height: Any = None,
) -> Statement:
    return Statement(
        """
        INSERT INTO sessions
            (session_hash, first_page, last_page, site_url, user_agent_hash, country_code,
             screen_width, screen_height)
        VALUES
            (:session_hash, :path, :path, :site_url, :user_agent_hash, :country_code,
             :screen_width, :screen_height);
        """,
        {
            "session_hash": session_hash,
            "path": path,
            "site_url": site_url,
            "user_agent_hash": user_agent_hash,
            "country_code": country_code,
            "screen_width": screen_width,
            "screen_height": screen_height,
        },
    )


def update_session_country(*, session_hash: str, path: str, country_code: str | None) -> Statement:
    return Statement(
        """
        UPDATE sessions
        SET last_page = :path,
            page_count = page_count + 1,
            duration_seconds = (strftime('%s', 'now') - strftime('%s', timestamp)),
            country_code = :country_code,
            updated_at = CURRENT_TIMESTAMP
        WHERE session_hash = :session_hash;
        """,
        {"session_hash": session_hash, "path": path, "country_code": country_code},
    )


def upsert_session(
    *,
    session_hash: str,
    path: str,
    site_url: str | None,
    user_agent_hash: str | None,
    browser: str | None,
    country_code: str | None,
    screen_width: Any = None,
    screen_height: Any = None,
) -> Statement:
    # Existing non-null values win; only navigation counters move forward.
    return Statement(
        """
        INSERT INTO sessions
            (session_hash, first_page, last_page, site_url, user_agent_hash, browser,
             country_code, screen_width, screen_height)
        VALUES
            (:session_hash, :path, :path, :site_url, :user_agent_hash, :browser,
             :country_code, :screen_width, :screen_height)
        ON CONFLICT(session_hash) DO UPDATE SET
            last_page = excluded.last_page,
            page_count = sessions.page_count + 1,
            duration_seconds = (strftime('%s', 'now') - strftime('%s', sessions.timestamp)),
            site_url = COALESCE(sessions.site_url, excluded.site_url),
            user_agent_hash = COALESCE(sessions.user_agent_hash, excluded.user_agent_hash),
            browser = COALESCE(sessions.browser, excluded.browser),
            country_code = COALESCE(sessions.country_code, excluded.country_code),
            screen_width = COALESCE(sessions.screen_width, excluded.screen_width),
            screen_height = COALESCE(sessions.screen_height, excluded.screen_height),
            updated_at = CURRENT_TIMESTAMP;
        """,
        {
            "session_hash": session_hash,
            "path": path,
            "site_url": site_url,
            "user_agent_hash": user_agent_hash,
            "browser": browser,
            "country_code": country_code,
            "screen_width": screen_width,
            "screen_height": screen_height,
        },
    )


def insert_page_view(
    *,
    path: str,
    site_url: str | None,
    referrer: str | None,
    user_agent_hash: str | None,
    country_code: str | None,
    screen_width: Any,
    screen_height: Any,
    session_hash: str | None,
    is_bounce: bool = False,
) -> Statement:
    return Statement(
        """
        INSERT INTO page_views
            (path, site_url, referrer, user_agent_hash, country_code, screen_width, screen_height,
             session_hash, is_bounce)
        VALUES
            (:path, :site_url, :referrer, :user_agent_hash, :country_code, :screen_width, :screen_height,
             :session_hash, :is_bounce);
        """,
        {
            "path": path,
            "site_url": site_url,
            "referrer": referrer,
            "user_agent_hash": user_agent_hash,
            "country_code": country_code,
            "screen_width": screen_width,
            "screen_height": screen_height,
            "session_hash": session_hash,
            "is_bounce": _as_int_flag(is_bounce),
        },
    )


_VITALS = ("lcp", "cls", "fid", "fcp", "ttfb", "inp")


def insert_vitals_pageview(
    *,
    session_hash: str,
    site_id: str | None,
    url: str,
    path: str | None,
    referrer: str | None,
    vitals: dict[str, Any],
    duration_ms: Any,
    bounce: bool | None,
) -> Statement:
    params: dict[str, Any] = {
        "session_hash": session_hash,
        "site_id": site_id,
        "url": url,
        "path": path,
        "referrer": referrer,
        "duration_ms": duration_ms,
        "bounce": _as_int_flag(bounce),
    }
    params.update({name: vitals.get(name) for name in _VITALS})
    return Statement(
        """
        INSERT INTO pageviews
            (session_hash, site_id, url, path, referrer,
             lcp, cls, fid, fcp, ttfb, inp, duration_ms, bounce)
        VALUES
            (:session_hash, :site_id, :url, :path, :referrer,
             :lcp, :cls, :fid, :fcp, :ttfb, :inp, :duration_ms, :bounce);
        """,
        params,
    )


def insert_metric(row: dict[str, Any]) -> Statement:
    params = dict(row)
    params["bounce"] = _as_int_flag(params.get("bounce"))
    return Statement(
        """
        INSERT INTO metrics (
            session_id, site_id, url, path, referrer, country_code,
            screen_width, screen_height, user_agent,
            lcp, cls, fid, fcp, ttfb, inp,
            duration_ms, bounce, pageviews_in_session, ts
        ) VALUES (
            :session_id, :site_id, :url, :path, :referrer, :country_code,
            :screen_width, :screen_height, :user_agent,
            :lcp, :cls, :fid, :fcp, :ttfb, :inp,
            :duration_ms, :bounce, :pageviews_in_session, :ts
        );
        """,
        params,
    )
