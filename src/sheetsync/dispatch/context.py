"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Immutable per-call dispatch context: jobs, endpoints, phase state and outcomes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Literal

from ..auth.session import Credentials
from ..graph.types import GraphNode

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)

Scheme = Literal["http", "https"]
PhaseKind = Literal["fetch", "push"]

FLOWS_PATH = "/flows"


def normalize_host(value: str) -> str:
    """Strip a leading scheme and trailing slash from a configured address."""
    return _SCHEME_RE.sub("", value.strip()).rstrip("/")


@dataclass(frozen=True, slots=True)
class Endpoint:
    """One admin API base, `protocol://host`."""

    host: str
    protocol: Scheme = "http"

    def __post_init__(self) -> None:
        scheme = _SCHEME_RE.match(self.host.strip())
        if scheme is not None:
            # An explicit scheme in the address wins over the default.
            protocol = scheme.group(0)[:-3].lower()
            object.__setattr__(self, "protocol", protocol)
        object.__setattr__(self, "host", normalize_host(self.host))

    @property
    def base_url(self) -> str:
        return f"{self.protocol}://{self.host}"

    def url(self, path: str = FLOWS_PATH) -> str:
        return self.base_url + path

    def secure(self) -> "Endpoint":
        return replace(self, protocol="https")


@dataclass(frozen=True, slots=True)
class DispatchJob:
    """
    One configured sheet dispatch.

    Attributes:
        job_id: Id of the owning node; also names the relay path.
        sheet: Label of the tab to dispatch.
        source_host: Instance the sheet is read from (`host:port`).
        dest_host: Instance the sheet is written to (`host:port`).
        auth_required: Whether 401/400 answers trigger the token path.
        credentials: Credentials used on both instances.
        run_on_start: Dispatch once shortly after startup.
    """

    job_id: str
    sheet: str
    source_host: str
    dest_host: str
    auth_required: bool = False
    credentials: Credentials = field(default_factory=Credentials)
    run_on_start: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "source_host", normalize_host(self.source_host))
        object.__setattr__(self, "dest_host", normalize_host(self.dest_host))


class DispatchState(str, Enum):
    FETCH_PLAIN = "fetch_plain"
    FETCH_SECURE = "fetch_secure"
    FETCH_AUTH = "fetch_auth"
    PRUNE = "prune"
    PUSH_PLAIN = "push_plain"
    PUSH_SECURE = "push_secure"
    PUSH_AUTH = "push_auth"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_STATES: dict[tuple[PhaseKind, str], DispatchState] = {
    ("fetch", "plain"): DispatchState.FETCH_PLAIN,
    ("fetch", "secure"): DispatchState.FETCH_SECURE,
    ("fetch", "auth"): DispatchState.FETCH_AUTH,
    ("push", "plain"): DispatchState.PUSH_PLAIN,
    ("push", "secure"): DispatchState.PUSH_SECURE,
    ("push", "auth"): DispatchState.PUSH_AUTH,
}


@dataclass(frozen=True, slots=True)
class PhaseContext:
    """
    State of one fetch or push phase.

    Each transition produces a new context; each fallback flag flips at most
    once per phase.
    """

    kind: PhaseKind
    endpoint: Endpoint
    authenticated: bool = False
    protocol_fallback_used: bool = False
    auth_fallback_used: bool = False

    @property
    def url(self) -> str:
        return self.endpoint.url()

    @property
    def state(self) -> DispatchState:
        if self.authenticated:
            return _STATES[(self.kind, "auth")]
        if self.endpoint.protocol == "https":
            return _STATES[(self.kind, "secure")]
        return _STATES[(self.kind, "plain")]

    def with_secure_fallback(self) -> "PhaseContext":
        return replace(
            self,
            endpoint=self.endpoint.secure(),
            protocol_fallback_used=True,
        )

    def with_auth_fallback(self) -> "PhaseContext":
        return replace(self, authenticated=True, auth_fallback_used=True)


@dataclass(frozen=True, slots=True)
class DispatchOutcome:
    """Terminal result of one dispatch, clone, read or write run."""

    success: bool
    message: str
    states: tuple[DispatchState, ...] = ()
    status_code: int | str | None = None
    url: str | None = None
    flows: list[GraphNode] | None = None

    @property
    def final_state(self) -> DispatchState | None:
        return self.states[-1] if self.states else None
