"""
HTTP transport package.

Contains the request/response client, its per-call options and contracts.
"""

from .client import HttpTransport, failure_code
from .types import ECONNRESET, HttpResponse, Transport, TransportOptions

__all__ = [
    "ECONNRESET",
    "HttpResponse",
    "HttpTransport",
    "Transport",
    "TransportOptions",
    "failure_code",
]
