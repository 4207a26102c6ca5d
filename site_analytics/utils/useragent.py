from __future__ import annotations


def browser_family(ua: str | None) -> str | None:
    """
    Rough browser classification (coarse on purpose).
    """
    if not ua:
        return None
    ua_lower = ua.lower()

    if "firefox" in ua_lower and "seamonkey" not in ua_lower:
        return "Firefox"
    if "edg" in ua_lower:
        return "Edge"
    if "opr/" in ua_lower or "opera" in ua_lower:
        return "Opera"
    if "chrome" in ua_lower and "chromium" not in ua_lower:
        return "Chrome"
    if "chromium" in ua_lower:
        return "Chromium"
    if "safari" in ua_lower:
        return "Safari"
    return "Other"
