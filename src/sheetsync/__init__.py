"""
sheetsync: copy one sheet of a flow program between runtime instances.
"""

from .auth import CredentialSessionManager, Credentials
from .dispatch import (
    DispatchJob,
    DispatchOutcome,
    DispatchRegistry,
    DispatchState,
    Endpoint,
    SheetDispatcher,
)
from .errors import (
    AuthError,
    DelegateCountError,
    InternalError,
    NotFoundError,
    RemoteStatusError,
    SheetSyncError,
    TransportError,
)
from .graph import extract_sheet, parse_graph, prune_sheet, subflow_closure
from .settings import DispatchSettings
from .transport import HttpTransport, TransportOptions

__all__ = [
    "Credentials",
    "CredentialSessionManager",
    "DispatchJob",
    "DispatchOutcome",
    "DispatchRegistry",
    "DispatchSettings",
    "DispatchState",
    "Endpoint",
    "SheetDispatcher",
    "HttpTransport",
    "TransportOptions",
    "parse_graph",
    "subflow_closure",
    "extract_sheet",
    "prune_sheet",
    "SheetSyncError",
    "NotFoundError",
    "DelegateCountError",
    "AuthError",
    "TransportError",
    "RemoteStatusError",
    "InternalError",
]
