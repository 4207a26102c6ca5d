from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter

BEACON_KIND = Literal["page_view", "vitals", "metric"]

LOCAL_HOST_MARKERS = ("localhost", "127.0.0.1")

# SQLite INTEGER is a signed 64-bit value
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def _clamp_text(max_len: int):
    def _coerce(value: Any) -> str | None:
        if not isinstance(value, str):
            return None
        # lone surrogates from JSON escapes cannot be sent as UTF-8
        value = value.encode("utf-8", "replace").decode("utf-8")
        return value if len(value) <= max_len else value[:max_len]

    return _coerce


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if isinstance(value, int):
        return INT64_MIN <= value <= INT64_MAX
    return math.isfinite(value)


def _positive(value: Any) -> int | float | None:
    return value if _is_number(value) and value > 0 else None


def _non_negative(value: Any) -> int | float | None:
    return value if _is_number(value) and value >= 0 else None


def _flag(value: Any) -> bool | None:
    return value if isinstance(value, bool) else None


Path500 = Annotated[str | None, BeforeValidator(_clamp_text(500))]
Text1000 = Annotated[str | None, BeforeValidator(_clamp_text(1000))]
Text100 = Annotated[str | None, BeforeValidator(_clamp_text(100))]
Text50 = Annotated[str | None, BeforeValidator(_clamp_text(50))]
Text8 = Annotated[str | None, BeforeValidator(_clamp_text(8))]
PositiveNumber = Annotated[Union[int, float, None], BeforeValidator(_positive)]
Measurement = Annotated[Union[int, float, None], BeforeValidator(_non_negative)]
Flag = Annotated[bool | None, BeforeValidator(_flag)]


def is_local_site(site_url: str | None) -> bool:
    if not site_url:
        return True
    return any(marker in site_url for marker in LOCAL_HOST_MARKERS)


class Beacon(BaseModel, ABC):
    """Common base: every field optional, required ones checked by ``missing_fields``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    required_fields: ClassVar[tuple[str, ...]] = ()

    def missing_fields(self) -> list[str]:
        missing: list[str] = []
        for name in self.required_fields:
            if not getattr(self, name):
                field = type(self).model_fields[name]
                missing.append(field.alias or name)
        return missing

    @abstractmethod
    def resolved_site_url(self, forwarded_host: str | None = None) -> str | None:
        """Site URL the local-development filter is applied to."""


class PageViewBeacon(Beacon):
    kind: Literal["page_view"] = "page_view"
    required_fields: ClassVar[tuple[str, ...]] = ("path",)

    path: Path500 = None
    referrer: Path500 = None
    user_agent: Text1000 = Field(default=None, alias="userAgent")
    session_id: Text100 = Field(default=None, alias="sessionId")
    screen_width: PositiveNumber = Field(default=None, alias="screenWidth")
    screen_height: PositiveNumber = Field(default=None, alias="screenHeight")
    site_url: Path500 = Field(default=None, alias="siteUrl")

    def resolved_site_url(self, forwarded_host: str | None = None) -> str | None:
        if self.site_url:
            return self.site_url
        if forwarded_host:
            return f"https://{forwarded_host}"[:500]
        return None


class VitalsBeacon(Beacon):
    kind: Literal["vitals"] = "vitals"
    required_fields: ClassVar[tuple[str, ...]] = ("session_id", "url")

    session_id: Text100 = None
    site_id: Text100 = None
    url: Path500 = None
    path: Path500 = None
    referrer: Path500 = None
    user_agent: Text1000 = None
    browser: Text50 = None
    screen_width: PositiveNumber = None
    screen_height: PositiveNumber = None

    lcp: Measurement = None
    cls: Measurement = None
    fid: Measurement = None
    fcp: Measurement = None
    ttfb: Measurement = None
    inp: Measurement = None
    duration_ms: Measurement = None
    bounce: Flag = None

    def resolved_site_url(self, forwarded_host: str | None = None) -> str | None:
        return self.url


class MetricBeacon(VitalsBeacon):
    kind: Literal["metric"] = "metric"  # type: ignore[assignment]
    required_fields: ClassVar[tuple[str, ...]] = ("session_id", "site_id", "url")

    country_code: Text8 = None
    pageviews_in_session: PositiveNumber = None


BeaconIn = Annotated[
    Union[PageViewBeacon, VitalsBeacon, MetricBeacon],
    Field(discriminator="kind"),
]

beacon_adapter = TypeAdapter(BeaconIn)
