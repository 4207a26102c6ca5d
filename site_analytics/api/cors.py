from __future__ import annotations

ALLOW_METHODS = "POST, GET, OPTIONS"
ALLOW_HEADERS = "Content-Type"


def pick_cors_origin(allowed: list[str], request_origin: str | None) -> str | None:
    """
    "*" stays "*"; otherwise echo the Origin only if it is on the allowlist.
    """
    if "*" in allowed:
        return "*"
    if not request_origin:
        return None
    for origin in allowed:
        if request_origin == origin:
            return origin
    return None


def cors_headers(allowed: list[str], request_origin: str | None) -> dict[str, str]:
    origin = pick_cors_origin(allowed, request_origin)
    if origin is None:
        return {}
    headers = {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Headers": ALLOW_HEADERS,
        "Access-Control-Allow-Methods": ALLOW_METHODS,
    }
    if origin != "*":
        headers["Vary"] = "Origin"
    return headers
