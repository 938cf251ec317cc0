"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Operator-facing status indicator and output channel.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger("sheetsync.dispatch")


@dataclass(frozen=True, slots=True)
class NodeStatus:
    """Status indicator shown next to a configured sheet."""

    fill: str | None = None
    shape: str | None = None
    text: str | None = None

    @staticmethod
    def cleared() -> "NodeStatus":
        return NodeStatus()

    @staticmethod
    def error(info: str, status_code: int | str | None = None) -> "NodeStatus":
        prefix = f"{status_code}: " if status_code else ""
        return NodeStatus(fill="red", shape="ring", text=prefix + info)

    @property
    def is_cleared(self) -> bool:
        return self.fill is None and self.shape is None and self.text is None


def format_error_message(
    info: str,
    status_code: int | str | None = None,
    url: str | None = None,
) -> str:
    msg = f"[ERROR] {info}"
    if status_code or url:
        details = ""
        if status_code:
            details += f"code: {status_code}, "
        if url:
            details += f"url: {url}"
        msg = f"{msg} ({details})"
    return msg


def format_success_message(status_code: int, url: str) -> str:
    return (
        "[DONE] message: set destination flow OK\n"
        f"[DONE]  status: {status_code}\n"
        f"[DONE]     url: {url}\n"
    )


class StatusReporter(Protocol):
    """Sink for status changes and human-readable output messages."""

    def set_status(self, status: NodeStatus) -> None:
        ...

    def emit(self, message: str) -> None:
        ...


class LoggingStatusReporter:
    """Report through the `sheetsync.dispatch` logger."""

    def __init__(self, *, name: str = "sheet") -> None:
        self._name = name
        self.status = NodeStatus.cleared()

    def set_status(self, status: NodeStatus) -> None:
        self.status = status
        if not status.is_cleared:
            logger.warning("[%s] status: %s", self._name, status.text)

    def emit(self, message: str) -> None:
        logger.info("[%s] %s", self._name, message.rstrip("\n"))


class InMemoryStatusReporter:
    """Record every status change and message; used by tests and embedders."""

    def __init__(self) -> None:
        self.statuses: list[NodeStatus] = []
        self.messages: list[str] = []

    @property
    def status(self) -> NodeStatus:
        return self.statuses[-1] if self.statuses else NodeStatus.cleared()

    def set_status(self, status: NodeStatus) -> None:
        self.statuses.append(status)

    def emit(self, message: str) -> None:
        self.messages.append(message)
