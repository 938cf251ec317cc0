"""
Dispatch package.

Contains the fetch/prune/push orchestrator, its per-call context types,
operator reporting and the job registry.
"""

from .context import (
    DispatchJob,
    DispatchOutcome,
    DispatchState,
    Endpoint,
    PhaseContext,
    normalize_host,
)
from .orchestrator import SheetDispatcher
from .registry import DispatchRegistry, resolve_local_host
from .reporting import (
    InMemoryStatusReporter,
    LoggingStatusReporter,
    NodeStatus,
    StatusReporter,
    format_error_message,
    format_success_message,
)

__all__ = [
    "DispatchJob",
    "DispatchOutcome",
    "DispatchState",
    "Endpoint",
    "PhaseContext",
    "normalize_host",
    "SheetDispatcher",
    "DispatchRegistry",
    "resolve_local_host",
    "NodeStatus",
    "StatusReporter",
    "LoggingStatusReporter",
    "InMemoryStatusReporter",
    "format_error_message",
    "format_success_message",
]
