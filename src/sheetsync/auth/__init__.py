"""
Auth package.

Contains credentials and request-scoped bearer token sessions.
"""

from .session import (
    CredentialSessionManager,
    Credentials,
    SessionState,
    TokenSession,
    bearer_headers,
)

__all__ = [
    "Credentials",
    "CredentialSessionManager",
    "SessionState",
    "TokenSession",
    "bearer_headers",
]
