"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Fetch, prune and push of one sheet between two flow runtime instances.

Each phase (fetch, push) is a small state machine:

    PLAIN --ECONNRESET--> SECURE          (at most once per phase)
    PLAIN|SECURE --401/400 + auth--> AUTH (at most once per phase)
    any --expected status--> next phase
    any --anything else--> FAILED

All state lives in immutable `PhaseContext` values and a per-call `_Run`
record, so overlapping dispatches of the same job never share it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from ..auth.session import CredentialSessionManager, Credentials
from ..errors import (
    AuthError,
    GraphFormatError,
    InternalError,
    NotFoundError,
    RemoteStatusError,
    SheetSyncError,
    TransportError,
)
from ..graph.prune import extract_sheet, new_node_id, prune_sheet
from ..graph.types import FieldRename, GraphNode, RelayEndpoint, parse_graph, serialize_graph
from ..settings import DispatchSettings
from ..transport.client import HttpTransport
from ..transport.types import ECONNRESET, HttpResponse, Transport
from .context import (
    DispatchJob,
    DispatchOutcome,
    DispatchState,
    Endpoint,
    PhaseContext,
)
from .reporting import (
    LoggingStatusReporter,
    NodeStatus,
    StatusReporter,
    format_error_message,
    format_success_message,
)

logger = logging.getLogger("sheetsync.dispatch")

RESP_OK = 200
RESP_NO_CONTENT = 204
AUTH_RETRY_CODES = frozenset({400, 401})
JSON_CONTENT_TYPE = "application/json"


class _Run:
    """Per-call bookkeeping: state trail and the operator channel."""

    def __init__(self, reporter: StatusReporter, *, devel: bool) -> None:
        self.reporter = reporter
        self.devel = devel
        self.states: list[DispatchState] = []

    def enter(self, state: DispatchState) -> None:
        self.states.append(state)
        logger.debug("-> %s", state.value)

    def fail(
        self,
        info: str,
        status_code: int | str | None = None,
        url: str | None = None,
    ) -> DispatchOutcome:
        self.enter(DispatchState.FAILED)
        message = format_error_message(info, status_code, url)
        self.reporter.set_status(NodeStatus.error(info, status_code))
        self.reporter.emit(message)
        if self.devel:
            logger.info(message)
        return DispatchOutcome(
            success=False,
            message=message,
            states=tuple(self.states),
            status_code=status_code,
            url=url,
        )

    def succeed(
        self,
        message: str,
        status_code: int,
        url: str,
        flows: list[GraphNode] | None = None,
    ) -> DispatchOutcome:
        self.enter(DispatchState.SUCCEEDED)
        self.reporter.set_status(NodeStatus.cleared())
        self.reporter.emit(message)
        if self.devel:
            logger.info(message.rstrip("\n"))
        return DispatchOutcome(
            success=True,
            message=message,
            states=tuple(self.states),
            status_code=status_code,
            url=url,
            flows=flows,
        )

    def fail_from(self, error: SheetSyncError) -> DispatchOutcome:
        if isinstance(error, TransportError):
            return self.fail("Request Fail", error.code, error.url)
        if isinstance(error, RemoteStatusError):
            info = error.status_message or "Remote request failed"
            return self.fail(info, error.status_code, error.url)
        if isinstance(error, AuthError):
            return self.fail(str(error), error.status_code, error.url)
        return self.fail(str(error))


class SheetDispatcher:
    """
    Drive sheet transfers between flow runtime instances.

    Args:
        transport: Request/response client; defaults to `HttpTransport`.
        reporter: Default operator channel; each call may pass its own.
        settings: Dispatch settings; defaults to `DispatchSettings()`.
        sessions: Token session factory; defaults to one over ``transport``.
        rename: Rename rule for the adapter spliced behind the relay input.
        id_factory: Id generator for synthesized nodes.
    """

    def __init__(
        self,
        transport: Transport | None = None,
        *,
        reporter: StatusReporter | None = None,
        settings: DispatchSettings | None = None,
        sessions: CredentialSessionManager | None = None,
        rename: FieldRename | None = None,
        id_factory: Callable[[], str] = new_node_id,
    ) -> None:
        self._settings = settings or DispatchSettings()
        self._options = self._settings.transport_options()
        self._transport = transport or HttpTransport(default_options=self._options)
        self._reporter = reporter or LoggingStatusReporter()
        self._sessions = sessions or CredentialSessionManager(
            self._transport, client_id=self._settings.client_id
        )
        self._rename = rename or FieldRename()
        self._id_factory = id_factory

    @property
    def settings(self) -> DispatchSettings:
        return self._settings

    def _new_run(self, reporter: StatusReporter | None) -> _Run:
        run = _Run(reporter or self._reporter, devel=self._settings.devel)
        run.reporter.set_status(NodeStatus.cleared())
        return run

    async def _send(
        self,
        ctx: PhaseContext,
        *,
        method: str,
        body: str | None,
        headers: dict[str, str] | None = None,
    ) -> HttpResponse:
        hdrs = {"Accept": JSON_CONTENT_TYPE}
        if body is not None:
            hdrs["Content-Type"] = JSON_CONTENT_TYPE
        hdrs.update(headers or {})
        return await self._transport.send(
            ctx.url, method=method, headers=hdrs, body=body, options=self._options
        )

    async def _attempt(
        self,
        ctx: PhaseContext,
        *,
        method: str,
        body: str | None,
        credentials: Credentials,
    ) -> HttpResponse:
        if not ctx.authenticated:
            return await self._send(ctx, method=method, body=body)
        async with self._sessions.session(
            ctx.endpoint.base_url, credentials, options=self._options
        ) as session:
            return await self._send(ctx, method=method, body=body, headers=session.headers)

    async def _run_phase(
        self,
        run: _Run,
        ctx: PhaseContext,
        *,
        method: str,
        body: str | None,
        expected: int,
        auth_required: bool,
        credentials: Credentials,
        protocol_fallback: bool = True,
    ) -> tuple[HttpResponse, PhaseContext]:
        """Run one phase to its expected status, or raise a terminal error."""
        while True:
            run.enter(ctx.state)
            try:
                resp = await self._attempt(
                    ctx, method=method, body=body, credentials=credentials
                )
            except TransportError as e:
                if (
                    protocol_fallback
                    and e.code == ECONNRESET
                    and ctx.endpoint.protocol == "http"
                    and not ctx.authenticated
                    and not ctx.protocol_fallback_used
                ):
                    ctx = ctx.with_secure_fallback()
                    run.reporter.set_status(NodeStatus.cleared())
                    logger.info("HTTP %s fail, try HTTPS: %s", ctx.kind, ctx.url)
                    continue
                raise

            if resp.status_code == expected:
                return resp, ctx
            if (
                resp.status_code in AUTH_RETRY_CODES
                and auth_required
                and not ctx.authenticated
                and not ctx.auth_fallback_used
            ):
                logger.info(
                    "%s %s answered %s, retrying with token",
                    method,
                    ctx.url,
                    resp.status_code,
                )
                ctx = ctx.with_auth_fallback()
                continue
            raise RemoteStatusError(resp.status_code, ctx.url, resp.status_message)

    def _prune_for_dispatch(
        self,
        job: DispatchJob,
        body: str,
        source: Endpoint,
    ) -> list[GraphNode]:
        try:
            graph = parse_graph(body)
        except GraphFormatError as e:
            raise InternalError(f"Exception while sheet pruning. ({e})") from e
        relay = RelayEndpoint(
            protocol=source.protocol, host=job.source_host, owner_id=job.job_id
        )
        result = prune_sheet(
            graph,
            job.sheet,
            relay,
            rename=self._rename,
            id_factory=self._id_factory,
        )
        if not result.ok:
            raise result.to_error()
        return result.nodes

    def _extract(self, sheet: str, body: str) -> list[GraphNode]:
        try:
            graph = parse_graph(body)
        except GraphFormatError as e:
            raise InternalError(f"Exception while sheet pruning. ({e})") from e
        nodes = extract_sheet(graph, sheet)
        if nodes is None:
            raise NotFoundError(sheet)
        return nodes

    async def _transfer(
        self,
        job: DispatchJob,
        reporter: StatusReporter | None,
        *,
        relay: bool,
    ) -> DispatchOutcome:
        run = self._new_run(reporter)
        try:
            fetched, fetch_ctx = await self._run_phase(
                run,
                PhaseContext(kind="fetch", endpoint=Endpoint(job.source_host)),
                method="GET",
                body=None,
                expected=RESP_OK,
                auth_required=job.auth_required,
                credentials=job.credentials,
            )
            run.enter(DispatchState.PRUNE)
            if relay:
                nodes = self._prune_for_dispatch(job, fetched.body, fetch_ctx.endpoint)
            else:
                nodes = self._extract(job.sheet, fetched.body)
            pushed, push_ctx = await self._run_phase(
                run,
                PhaseContext(kind="push", endpoint=Endpoint(job.dest_host)),
                method="POST",
                body=serialize_graph(nodes),
                expected=RESP_NO_CONTENT,
                auth_required=job.auth_required,
                credentials=job.credentials,
            )
        except SheetSyncError as e:
            return run.fail_from(e)
        return run.succeed(
            format_success_message(pushed.status_code, push_ctx.url),
            pushed.status_code,
            push_ctx.url,
            flows=nodes,
        )

    async def dispatch_sheet(
        self,
        job: DispatchJob,
        *,
        reporter: StatusReporter | None = None,
    ) -> DispatchOutcome:
        """Fetch the source graph, prune the sheet for a relay, push it to the destination."""
        return await self._transfer(job, reporter, relay=True)

    async def clone_sheet(
        self,
        job: DispatchJob,
        *,
        reporter: StatusReporter | None = None,
    ) -> DispatchOutcome:
        """Copy the sheet verbatim, without relay rewriting or delegate checks."""
        return await self._transfer(job, reporter, relay=False)

    async def read_sheet(
        self,
        endpoint: Endpoint,
        sheet: str,
        *,
        auth_required: bool = False,
        credentials: Credentials | None = None,
        reporter: StatusReporter | None = None,
    ) -> DispatchOutcome:
        """Fetch one sheet from ``endpoint``; a token is requested up front when auth is required."""
        run = self._new_run(reporter)
        ctx = PhaseContext(kind="fetch", endpoint=endpoint, authenticated=auth_required)
        try:
            fetched, ctx = await self._run_phase(
                run,
                ctx,
                method="GET",
                body=None,
                expected=RESP_OK,
                auth_required=auth_required,
                credentials=credentials or Credentials(),
                protocol_fallback=False,
            )
            nodes = self._extract(sheet, fetched.body)
        except SheetSyncError as e:
            return run.fail_from(e)
        return run.succeed(
            f"[DONE] message: get sheet '{sheet}' OK ({len(nodes)} nodes)\n"
            f"[DONE]     url: {ctx.url}\n",
            fetched.status_code,
            ctx.url,
            flows=nodes,
        )

    async def write_flows(
        self,
        endpoint: Endpoint,
        flows: Sequence[GraphNode] | str,
        *,
        auth_required: bool = False,
        credentials: Credentials | None = None,
        reporter: StatusReporter | None = None,
    ) -> DispatchOutcome:
        """Push ``flows`` to ``endpoint``; a token is requested up front when auth is required."""
        run = self._new_run(reporter)
        body = flows if isinstance(flows, str) else serialize_graph(flows)
        ctx = PhaseContext(kind="push", endpoint=endpoint, authenticated=auth_required)
        try:
            pushed, ctx = await self._run_phase(
                run,
                ctx,
                method="POST",
                body=body,
                expected=RESP_NO_CONTENT,
                auth_required=auth_required,
                credentials=credentials or Credentials(),
                protocol_fallback=False,
            )
        except SheetSyncError as e:
            return run.fail_from(e)
        return run.succeed(
            format_success_message(pushed.status_code, ctx.url),
            pushed.status_code,
            ctx.url,
        )
