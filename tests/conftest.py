from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from sheetsync.transport import HttpResponse, TransportOptions


@dataclass
class RecordedCall:
    url: str
    method: str
    headers: dict[str, str] = field(default_factory=dict)
    body: str | None = None
    options: TransportOptions | None = None


class FakeTransport:
    """Scripted transport; the last result queued for a route repeats."""

    def __init__(self) -> None:
        self._routes: dict[tuple[str, str], list[HttpResponse | BaseException]] = {}
        self.calls: list[RecordedCall] = []

    def on(self, method: str, url: str, *results: HttpResponse | BaseException) -> None:
        self._routes.setdefault((method.upper(), url), []).extend(results)

    async def send(self, url, *, method, headers=None, body=None, options=None):
        self.calls.append(
            RecordedCall(
                url=url,
                method=method.upper(),
                headers=dict(headers or {}),
                body=body,
                options=options,
            )
        )
        queue = self._routes.get((method.upper(), url))
        if not queue:
            raise AssertionError(f"Unexpected request: {method} {url}")
        result = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(result, BaseException):
            raise result
        return result

    def calls_to(self, url: str, method: str | None = None) -> list[RecordedCall]:
        return [
            call
            for call in self.calls
            if call.url == url and (method is None or call.method == method.upper())
        ]


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def flows() -> list[dict]:
    """A source graph with one dispatchable sheet, nested subflows and noise."""
    return [
        {"id": "t1", "type": "tab", "label": "Sheet 1"},
        {"id": "t2", "type": "tab", "label": "Other"},
        {"id": "s1", "type": "subflow", "name": "outer", "in": [], "out": []},
        {"id": "s2", "type": "subflow", "name": "inner", "in": [], "out": []},
        {"id": "s3", "type": "subflow", "name": "unused", "in": [], "out": []},
        {"id": "cfg1", "type": "mqtt-broker", "broker": "localhost"},
        {
            "id": "din",
            "type": "flow-dlg-in",
            "z": "t1",
            "x": 100,
            "y": 200,
            "wires": [["n1"]],
        },
        {
            "id": "n1",
            "type": "mqtt out",
            "z": "t1",
            "x": 300,
            "y": 200,
            "broker": "cfg1",
            "wires": [],
        },
        {"id": "i1", "type": "subflow:s1", "z": "t1", "x": 300, "y": 300, "wires": [["dout"]]},
        {"id": "dout", "type": "flow-dlg-out", "z": "t1", "x": 500, "y": 300},
        {"id": "sn1", "type": "subflow:s2", "z": "s1", "x": 50, "y": 50, "wires": []},
        {"id": "sn2", "type": "debug", "z": "s2", "x": 60, "y": 60, "wires": []},
        {"id": "sn3", "type": "debug", "z": "s3", "x": 70, "y": 70, "wires": []},
        {"id": "o1", "type": "inject", "z": "t2", "x": 10, "y": 10, "wires": []},
    ]
