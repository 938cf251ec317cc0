"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Request-scoped bearer token sessions against the flow admin API.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from ..errors import AuthError, TransportError
from ..transport.types import Transport, TransportOptions

logger = logging.getLogger("sheetsync.auth")

T = TypeVar("T")

TOKEN_PATH = "/auth/token"
REVOKE_PATH = "/auth/revoke"
BEARER = "Bearer"
JSON_CONTENT_TYPE = "application/json"


@dataclass(frozen=True, slots=True)
class Credentials:
    """Admin credentials stored with a configured sheet."""

    username: str = ""
    password: str = ""

    @staticmethod
    def from_env() -> "Credentials":
        return Credentials(
            username=os.getenv("SHEETSYNC_USERNAME", ""),
            password=os.getenv("SHEETSYNC_PASSWORD", ""),
        )


class SessionState(str, Enum):
    IDLE = "idle"
    TOKEN_REQUESTED = "token_requested"
    TOKEN_GRANTED = "token_granted"
    TOKEN_DENIED = "token_denied"
    REQUEST_SENT = "request_sent"
    TOKEN_REVOKED = "token_revoked"


class _TokenRequest(BaseModel):
    client_id: str
    grant_type: str = "password"
    scope: str = "*"
    username: str = ""
    password: str = ""

    @field_validator("username")
    @classmethod
    def _strip_username(cls, value: str) -> str:
        return value.strip()


class _TokenGrant(BaseModel):
    """Token endpoint response; extra fields such as `expires_in` are kept."""

    model_config = ConfigDict(extra="allow")

    access_token: str


def bearer_headers(token: str) -> dict[str, str]:
    return {
        "Authorization": f"{BEARER} {token}",
        "Content-Type": JSON_CONTENT_TYPE,
    }


class TokenSession:
    """
    One token lifetime wrapped around one privileged request.

    Entering requests the token (raising `AuthError` when denied); leaving
    always revokes it, whatever happened inside the block.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        base_url: str,
        credentials: Credentials,
        client_id: str,
        options: TransportOptions | None = None,
    ) -> None:
        self._transport = transport
        self._base_url = base_url.rstrip("/")
        self._credentials = credentials
        self._client_id = client_id
        self._options = options
        self._token: str | None = None
        self.state = SessionState.IDLE

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def headers(self) -> dict[str, str]:
        if self._token is None:
            raise AuthError("No token granted", url=self._base_url + TOKEN_PATH)
        return bearer_headers(self._token)

    async def __aenter__(self) -> "TokenSession":
        self._token = await self._request_token()
        self.state = SessionState.TOKEN_GRANTED
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._token is None:
            return
        self.state = SessionState.REQUEST_SENT
        await self._revoke_token(self._token)
        self._token = None
        self.state = SessionState.TOKEN_REVOKED

    async def _request_token(self) -> str:
        url = self._base_url + TOKEN_PATH
        self.state = SessionState.TOKEN_REQUESTED
        body = _TokenRequest(
            client_id=self._client_id,
            username=self._credentials.username or "",
            password=self._credentials.password or "",
        ).model_dump_json()
        try:
            resp = await self._transport.send(
                url,
                method="POST",
                headers={"Content-Type": JSON_CONTENT_TYPE},
                body=body,
                options=self._options,
            )
        except TransportError:
            self.state = SessionState.TOKEN_DENIED
            raise

        if resp.status_code != 200:
            self.state = SessionState.TOKEN_DENIED
            raise AuthError(
                resp.status_message or "Token request rejected",
                url=url,
                status_code=resp.status_code,
            )
        try:
            grant = _TokenGrant.model_validate_json(resp.body)
        except ValidationError as e:
            self.state = SessionState.TOKEN_DENIED
            raise AuthError("Fail to parse token.", url=url) from e
        logger.debug("Token granted by %s", url)
        return grant.access_token

    async def _revoke_token(self, token: str) -> None:
        url = self._base_url + REVOKE_PATH
        try:
            resp = await self._transport.send(
                url,
                method="POST",
                headers=bearer_headers(token),
                body=json.dumps({"token": token}),
                options=self._options,
            )
        except TransportError as e:
            logger.warning("Fail to revoke token at %s (code: %s)", url, e.code)
            return
        if resp.status_code == 200:
            logger.info("Revoked token at %s", url)
        else:
            logger.warning(
                "Fail to revoke token at %s (code: %s, %s)",
                url,
                resp.status_code,
                resp.status_message,
            )


class CredentialSessionManager:
    """Factory for request-scoped `TokenSession` objects."""

    def __init__(self, transport: Transport, *, client_id: str = "node-red-admin") -> None:
        self._transport = transport
        self._client_id = client_id

    def session(
        self,
        base_url: str,
        credentials: Credentials,
        *,
        options: TransportOptions | None = None,
    ) -> TokenSession:
        return TokenSession(
            self._transport,
            base_url=base_url,
            credentials=credentials,
            client_id=self._client_id,
            options=options,
        )

    async def with_token(
        self,
        base_url: str,
        credentials: Credentials,
        on_granted: Callable[[dict[str, str]], Awaitable[T]],
        *,
        options: TransportOptions | None = None,
    ) -> T:
        """Run ``on_granted(headers)`` under a fresh token, revoking it afterwards."""
        async with self.session(base_url, credentials, options=options) as session:
            return await on_granted(session.headers)
