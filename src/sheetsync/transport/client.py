"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

HTTP(S) transport for the flow admin API.
"""

from __future__ import annotations

import asyncio
import codecs
import errno
import http.client
import logging
import socket
import ssl
import urllib.error
import urllib.request
from typing import Any, Mapping

from ..errors import TransportError
from .types import ECONNRESET, HttpResponse, TransportOptions

logger = logging.getLogger("sheetsync.transport")

CHUNK_SIZE = 16 * 1024


def failure_code(error: BaseException) -> str:
    """Errno-style code for a connection-level failure."""
    reason: Any = error.reason if isinstance(error, urllib.error.URLError) else error
    if isinstance(reason, str):
        return "EREQUEST"
    if isinstance(reason, (TimeoutError, socket.timeout)):
        return "ETIMEDOUT"
    if isinstance(reason, ssl.SSLError):
        return "EPROTO"
    if isinstance(reason, socket.gaierror):
        return "ENOTFOUND"
    if isinstance(reason, ConnectionResetError):
        return ECONNRESET
    code = getattr(reason, "errno", None)
    if isinstance(code, int) and code in errno.errorcode:
        return errno.errorcode[code]
    if isinstance(reason, http.client.HTTPException):
        return "EPROTO"
    return type(reason).__name__.upper()


class _NoRedirect(urllib.request.HTTPRedirectHandler):
    """Hand 3xx answers back to the caller as-is."""

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        return None


class HttpTransport:
    """
    Single request/response exchange over ``urllib``.

    Blocking I/O runs in a worker thread so callers stay on the event loop.
    Certificate validation is decided per call from ``TransportOptions``.
    Redirects are not followed; a 3xx comes back as the response.
    """

    def __init__(self, *, default_options: TransportOptions | None = None) -> None:
        self._default_options = default_options or TransportOptions()

    async def send(
        self,
        url: str,
        *,
        method: str,
        headers: Mapping[str, str] | None = None,
        body: str | None = None,
        options: TransportOptions | None = None,
    ) -> HttpResponse:
        opts = options or self._default_options
        return await asyncio.to_thread(
            self._send_blocking, url, method.upper(), dict(headers or {}), body, opts
        )

    def _ssl_context(self, url: str, options: TransportOptions) -> ssl.SSLContext | None:
        if not url.lower().startswith("https"):
            return None
        context = ssl.create_default_context()
        if not options.verify_tls:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    def _opener(self, context: ssl.SSLContext | None) -> urllib.request.OpenerDirector:
        return urllib.request.build_opener(
            _NoRedirect, urllib.request.HTTPSHandler(context=context)
        )

    def _read_body(self, stream: Any) -> str:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        parts: list[str] = []
        while True:
            chunk = stream.read(CHUNK_SIZE)
            if not chunk:
                break
            parts.append(decoder.decode(chunk))
        parts.append(decoder.decode(b"", final=True))
        return "".join(parts)

    def _send_blocking(
        self,
        url: str,
        method: str,
        headers: dict[str, str],
        body: str | None,
        options: TransportOptions,
    ) -> HttpResponse:
        data = body.encode("utf-8") if body is not None else None
        opener = self._opener(self._ssl_context(url, options))
        try:
            req = urllib.request.Request(url, data=data, method=method, headers=headers)
            with opener.open(req, timeout=options.timeout_s) as resp:
                return HttpResponse(
                    status_code=resp.status,
                    body=self._read_body(resp),
                    status_message=resp.reason or "",
                    headers=dict(resp.headers.items()),
                )
        except urllib.error.HTTPError as e:
            try:
                payload = self._read_body(e) if e.fp is not None else ""
            except OSError:
                payload = ""
            return HttpResponse(
                status_code=e.code,
                body=payload,
                status_message=str(e.reason or ""),
                headers=dict(e.headers.items()) if e.headers is not None else {},
            )
        except (urllib.error.URLError, OSError, http.client.HTTPException) as e:
            code = failure_code(e)
            logger.debug("%s %s failed: %s", method, url, code)
            raise TransportError(code, url, detail=str(e)) from e
        except ValueError as e:
            # Malformed URL or a host that fails IDNA encoding.
            logger.debug("%s %s rejected: %s", method, url, e)
            raise TransportError("EREQUEST", url, detail=str(e)) from e
