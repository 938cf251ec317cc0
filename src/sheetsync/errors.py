"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Error hierarchy shared by the pruner, transport, auth and dispatch layers.
"""

from __future__ import annotations


class SheetSyncError(RuntimeError):
    """Base sheetsync error."""


class GraphFormatError(SheetSyncError):
    """Raised when a fetched flow document is not a JSON array of objects."""


class MalformedNodeError(GraphFormatError):
    """Raised when one graph node lacks a usable `id` or `type`."""


class NotFoundError(SheetSyncError):
    """Raised when no tab carries the requested sheet name."""

    def __init__(self, sheet: str) -> None:
        super().__init__(f"Sheet not found ({sheet})")
        self.sheet = sheet


class DelegateCountError(SheetSyncError):
    """Raised when a sheet does not hold exactly one delegate-in and delegate-out."""

    def __init__(self, in_count: int, out_count: int) -> None:
        if not (in_count or out_count):
            message = "Neither delegate-in node nor delegate-out node exists."
        else:
            message = (
                "Number of delegate nodes error. "
                f"(#dlg-in: {in_count}, #dlg-out: {out_count})"
            )
        super().__init__(message)
        self.in_count = in_count
        self.out_count = out_count


class InternalError(SheetSyncError):
    """Raised when extraction failed on an unexpected structural problem."""


class TransportError(SheetSyncError):
    """Connection-level failure; no HTTP response was received."""

    def __init__(self, code: str, url: str, detail: str | None = None) -> None:
        super().__init__(f"Request Fail ({code}) calling {url}: {detail or code}")
        self.code = code
        self.url = url
        self.detail = detail


class RemoteStatusError(SheetSyncError):
    """Remote answered with a status the current phase cannot continue from."""

    def __init__(
        self,
        status_code: int,
        url: str,
        status_message: str | None = None,
    ) -> None:
        message = f"HTTP {status_code} calling {url}"
        if status_message:
            message = f"{message}: {status_message}"
        super().__init__(message)
        self.status_code = status_code
        self.url = url
        self.status_message = status_message


class AuthError(SheetSyncError):
    """Raised when a bearer token cannot be obtained."""

    def __init__(
        self,
        message: str,
        *,
        url: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code
