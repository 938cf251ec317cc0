"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Configured sheet jobs, manual triggers and run-on-start scheduling.
"""

from __future__ import annotations

import asyncio
import logging
import socket

from .context import DispatchJob, DispatchOutcome
from .orchestrator import SheetDispatcher
from .reporting import StatusReporter

logger = logging.getLogger("sheetsync.dispatch")

RESP_OK = 200
RESP_NOT_FOUND = 404
RESP_INTERNAL_ERROR = 500


def resolve_local_host(port: int = 1880) -> str:
    """`address:port` of this machine as seen by peers; loopback when unknown."""
    address = "127.0.0.1"
    try:
        for info in socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET):
            candidate = info[4][0]
            if not candidate.startswith("127."):
                address = candidate
                break
    except OSError:
        logger.warning("Get local url fail, use default: %s:%s", address, port)
    return f"{address}:{port}"


class DispatchRegistry:
    """
    Registry of configured sheet jobs.

    ``trigger`` starts one dispatch in the background and answers like the
    admin endpoint does: 200 started, 404 unknown job, 500 failed to start.
    Rerunning a job is safe: each run re-fetches, re-prunes and re-pushes.
    """

    def __init__(
        self,
        dispatcher: SheetDispatcher,
        *,
        clone: bool = False,
    ) -> None:
        self._dispatcher = dispatcher
        self._clone = clone
        self._jobs: dict[str, DispatchJob] = {}
        self._reporters: dict[str, StatusReporter] = {}
        self._tasks: set[asyncio.Task[DispatchOutcome]] = set()

    def register(self, job: DispatchJob, *, reporter: StatusReporter | None = None) -> None:
        self._jobs[job.job_id] = job
        if reporter is not None:
            self._reporters[job.job_id] = reporter
        else:
            self._reporters.pop(job.job_id, None)

    def unregister(self, job_id: str) -> None:
        self._jobs.pop(job_id, None)
        self._reporters.pop(job_id, None)

    def get(self, job_id: str) -> DispatchJob | None:
        return self._jobs.get(job_id)

    @property
    def job_ids(self) -> list[str]:
        return list(self._jobs.keys())

    async def run(self, job_id: str) -> DispatchOutcome:
        """Run one job to completion in the caller's task."""
        job = self._jobs.get(job_id)
        if job is None:
            raise KeyError(f"Dispatch job '{job_id}' is not registered")
        reporter = self._reporters.get(job_id)
        if self._clone:
            return await self._dispatcher.clone_sheet(job, reporter=reporter)
        return await self._dispatcher.dispatch_sheet(job, reporter=reporter)

    def _spawn(self, job_id: str, delay_s: float = 0.0) -> asyncio.Task[DispatchOutcome]:
        async def _delayed() -> DispatchOutcome:
            if delay_s > 0:
                await asyncio.sleep(delay_s)
            return await self.run(job_id)

        coro = _delayed()
        try:
            task = asyncio.create_task(coro, name=f"sheetsync:{job_id}")
        except RuntimeError:
            coro.close()
            raise
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[DispatchOutcome]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Dispatch task %s failed: %s",
                task.get_name(),
                exc,
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    def trigger(self, job_id: str) -> int:
        """Start one dispatch in the background; must be called from a running loop."""
        if job_id not in self._jobs:
            return RESP_NOT_FOUND
        try:
            self._spawn(job_id)
        except RuntimeError:
            logger.exception("Failed to start dispatch for job '%s'", job_id)
            return RESP_INTERNAL_ERROR
        return RESP_OK

    def start(self) -> list[asyncio.Task[DispatchOutcome]]:
        """Schedule every run-on-start job after the configured startup delay."""
        delay = self._dispatcher.settings.startup_delay_s
        return [
            self._spawn(job_id, delay)
            for job_id, job in self._jobs.items()
            if job.run_on_start
        ]

    async def aclose(self) -> None:
        """Wait for in-flight runs."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
