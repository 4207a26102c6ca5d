from __future__ import annotations


class StoreError(Exception):
    """Remote store call failed; ``detail`` holds whatever the store told us."""

    def __init__(self, message: str, *, status: int | None = None, detail: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.detail = detail


class StoreHTTPError(StoreError):
    pass


class StoreSQLError(StoreError):
    pass


class BeaconRejected(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
