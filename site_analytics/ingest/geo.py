from __future__ import annotations

import asyncio
import ipaddress
from collections.abc import Mapping

import httpx
from loguru import logger


def client_ip(headers: Mapping[str, str], peer: str | None = None) -> str | None:
    ip = headers.get("x-nf-client-connection-ip")
    if not ip:
        forwarded = headers.get("x-forwarded-for")
        if forwarded:
            ip = forwarded.split(",")[0]
    if not ip:
        ip = peer
    return ip.strip() if ip and ip.strip() else None


def _valid_ip(raw_ip: str) -> bool:
    try:
        ipaddress.ip_address(raw_ip)
    except ValueError:
        return False
    return True


class GeoResolver:
    """IP → ISO country code via an HTTP lookup service.

    ``resolve`` never raises: timeouts, transport errors, non-2xx responses and
    junk bodies all come back as ``None``.
    """

    def __init__(self, client: httpx.AsyncClient, url_template: str, timeout: float = 5.0) -> None:
        self._client = client
        self._url_template = url_template
        self._timeout = timeout

    async def _lookup(self, ip: str) -> str | None:
        response = await self._client.get(self._url_template.format(ip=ip), timeout=self._timeout)
        if not response.is_success:
            logger.warning(
                "country lookup failed: status={} body={}", response.status_code, response.text[:200]
            )
            return None
        data = response.json()
        if not isinstance(data, dict):
            return None
        code = data.get("countryCode")
        return code if isinstance(code, str) and code else None

    async def resolve(self, ip: str | None) -> str | None:
        if not ip or not _valid_ip(ip):
            return None
        try:
            return await asyncio.wait_for(self._lookup(ip), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("country lookup timed out after {}s", self._timeout)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("country lookup error: {}", exc)
        return None
