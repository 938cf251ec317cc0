from __future__ import annotations

import asyncio
import json

import pytest

from sheetsync.auth import CredentialSessionManager, Credentials, SessionState
from sheetsync.errors import AuthError, TransportError
from sheetsync.transport import HttpResponse

BASE = "http://dest:1880"
TOKEN_URL = BASE + "/auth/token"
REVOKE_URL = BASE + "/auth/revoke"


def run_async(coro):
    return asyncio.run(coro)


def _grant(token: str = "tok-1") -> HttpResponse:
    return HttpResponse(
        status_code=200,
        body=json.dumps({"access_token": token, "expires_in": 604800, "token_type": "Bearer"}),
        status_message="OK",
    )


def test_token_request_sends_password_grant_with_trimmed_username(transport):
    transport.on("POST", TOKEN_URL, _grant())
    transport.on("POST", REVOKE_URL, HttpResponse(status_code=200))
    manager = CredentialSessionManager(transport)

    async def on_granted(headers):
        return headers

    headers = run_async(
        manager.with_token(BASE, Credentials(username="  admin \n", password=" pw "), on_granted)
    )

    assert headers["Authorization"] == "Bearer tok-1"
    token_call = transport.calls_to(TOKEN_URL)[0]
    assert json.loads(token_call.body) == {
        "client_id": "node-red-admin",
        "grant_type": "password",
        "scope": "*",
        "username": "admin",
        "password": " pw ",
    }


def test_token_is_revoked_after_successful_request(transport):
    transport.on("POST", TOKEN_URL, _grant("abc"))
    transport.on("POST", REVOKE_URL, HttpResponse(status_code=200))
    manager = CredentialSessionManager(transport, client_id="custom-client")

    async def scenario():
        async with manager.session(BASE, Credentials("u", "p")) as session:
            assert session.state is SessionState.TOKEN_GRANTED
            assert session.token == "abc"
        return session

    session = run_async(scenario())
    assert session.state is SessionState.TOKEN_REVOKED
    assert session.token is None
    revoke = transport.calls_to(REVOKE_URL)
    assert len(revoke) == 1
    assert json.loads(revoke[0].body) == {"token": "abc"}
    assert revoke[0].headers["Authorization"] == "Bearer abc"
    assert json.loads(transport.calls_to(TOKEN_URL)[0].body)["client_id"] == "custom-client"


def test_token_is_revoked_when_wrapped_request_fails(transport):
    transport.on("POST", TOKEN_URL, _grant())
    transport.on("POST", REVOKE_URL, HttpResponse(status_code=200))
    manager = CredentialSessionManager(transport)

    async def on_granted(headers):
        raise TransportError("ECONNRESET", BASE + "/flows")

    with pytest.raises(TransportError):
        run_async(manager.with_token(BASE, Credentials("u", "p"), on_granted))
    assert len(transport.calls_to(REVOKE_URL)) == 1


def test_rejected_token_request_raises_without_revoke(transport):
    transport.on(
        "POST",
        TOKEN_URL,
        HttpResponse(status_code=401, status_message="Unauthorized"),
    )
    manager = CredentialSessionManager(transport)
    session = manager.session(BASE, Credentials("u", "bad"))

    async def scenario():
        async with session:
            raise AssertionError("block must not run without a token")

    with pytest.raises(AuthError) as info:
        run_async(scenario())
    assert info.value.status_code == 401
    assert info.value.url == TOKEN_URL
    assert session.state is SessionState.TOKEN_DENIED
    assert transport.calls_to(REVOKE_URL) == []


def test_unparseable_token_body_is_denied(transport):
    transport.on("POST", TOKEN_URL, HttpResponse(status_code=200, body="<html>"))
    manager = CredentialSessionManager(transport)

    async def on_granted(headers):
        raise AssertionError("unreachable")

    with pytest.raises(AuthError, match="Fail to parse token."):
        run_async(manager.with_token(BASE, Credentials(), on_granted))

    transport.on("POST", BASE + "/x/auth/token", HttpResponse(status_code=200, body="{}"))
    with pytest.raises(AuthError):
        run_async(manager.with_token(BASE + "/x", Credentials(), on_granted))
    assert transport.calls_to(REVOKE_URL) == []


def test_revoke_failures_are_swallowed(transport, caplog):
    transport.on("POST", TOKEN_URL, _grant(), _grant("tok-2"))
    transport.on(
        "POST",
        REVOKE_URL,
        HttpResponse(status_code=500, status_message="Server Error"),
        TransportError("ECONNRESET", REVOKE_URL),
    )
    manager = CredentialSessionManager(transport)

    async def on_granted(headers):
        return "done"

    with caplog.at_level("WARNING", logger="sheetsync.auth"):
        assert run_async(manager.with_token(BASE, Credentials(), on_granted)) == "done"
        assert run_async(manager.with_token(BASE, Credentials(), on_granted)) == "done"
    assert len(transport.calls_to(REVOKE_URL)) == 2
    assert "Fail to revoke token" in caplog.text


def test_transport_failure_on_token_request_propagates(transport):
    transport.on("POST", TOKEN_URL, TransportError("ECONNREFUSED", TOKEN_URL))
    manager = CredentialSessionManager(transport)

    async def on_granted(headers):
        raise AssertionError("unreachable")

    with pytest.raises(TransportError) as info:
        run_async(manager.with_token(BASE, Credentials(), on_granted))
    assert info.value.code == "ECONNREFUSED"
