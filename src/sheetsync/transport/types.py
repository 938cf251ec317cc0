"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Type models and contracts for the HTTP transport.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Protocol

ECONNRESET = "ECONNRESET"


@dataclass(frozen=True, slots=True)
class TransportOptions:
    """
    Per-call transport capability.

    Attributes:
        verify_tls: Validate server certificates on https calls. Disabling it
            only affects the call these options are passed to.
        timeout_s: Socket timeout in seconds.
    """

    verify_tls: bool = True
    timeout_s: float = 30.0


@dataclass(frozen=True, slots=True)
class HttpResponse:
    """Completed HTTP exchange; error statuses are responses too."""

    status_code: int
    body: str = ""
    status_message: str = ""
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


class Transport(Protocol):
    """One request/response exchange; raises `TransportError` without a response."""

    async def send(
        self,
        url: str,
        *,
        method: str,
        headers: Mapping[str, str] | None = None,
        body: str | None = None,
        options: TransportOptions | None = None,
    ) -> HttpResponse:
        ...
