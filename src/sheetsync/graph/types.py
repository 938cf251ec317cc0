"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Flow graph node model, relay descriptors and prune result types.
"""

from __future__ import annotations

import copy
import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, TypeAlias

from ..errors import (
    DelegateCountError,
    GraphFormatError,
    InternalError,
    MalformedNodeError,
    NotFoundError,
)

JSONPrimitive: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONObject: TypeAlias = dict[str, JSONValue]

TAB_TYPE = "tab"
SUBFLOW_TYPE = "subflow"
SUBFLOW_INSTANCE_PREFIX = "subflow:"
DELEGATE_IN_TYPE = "flow-dlg-in"
DELEGATE_OUT_TYPE = "flow-dlg-out"


@dataclass(frozen=True, slots=True)
class GraphNode:
    """
    One node of a flow configuration graph.

    The wrapped record is never mutated. Rewrites go through
    ``with_updates`` which returns a new node.
    """

    data: Mapping[str, JSONValue]

    @classmethod
    def from_dict(cls, raw: Any) -> "GraphNode":
        if not isinstance(raw, Mapping):
            raise MalformedNodeError(f"Graph node must be an object, got {type(raw).__name__}")
        node_id = raw.get("id")
        node_type = raw.get("type")
        if not isinstance(node_id, str):
            raise MalformedNodeError(f"Graph node has no string id: {raw!r}")
        if not isinstance(node_type, str):
            raise MalformedNodeError(f"Graph node '{node_id}' has no string type")
        return cls(data=copy.deepcopy(dict(raw)))

    @property
    def id(self) -> str:
        return self.data["id"]  # type: ignore[return-value]

    @property
    def type(self) -> str:
        return self.data["type"]  # type: ignore[return-value]

    @property
    def z(self) -> str | None:
        value = self.data.get("z")
        return value if isinstance(value, str) and value else None

    @property
    def x(self) -> JSONValue:
        return self.data.get("x")

    @property
    def y(self) -> JSONValue:
        return self.data.get("y")

    @property
    def label(self) -> str | None:
        value = self.data.get("label")
        return value if isinstance(value, str) else None

    @property
    def is_tab(self) -> bool:
        return self.type == TAB_TYPE

    @property
    def is_subflow(self) -> bool:
        return self.type == SUBFLOW_TYPE

    @property
    def subflow_ref(self) -> str | None:
        """Referenced subflow definition id when this node is a subflow instance."""
        if self.type.startswith(SUBFLOW_INSTANCE_PREFIX):
            return self.type[len(SUBFLOW_INSTANCE_PREFIX) :]
        return None

    @property
    def is_delegate(self) -> bool:
        return self.type in (DELEGATE_IN_TYPE, DELEGATE_OUT_TYPE)

    @property
    def is_global_config(self) -> bool:
        """Neither a container nor placed on a canvas: usable from any container."""
        if self.is_tab or self.is_subflow:
            return False
        return self.x is None and self.y is None and self.z is None

    def get(self, key: str, default: JSONValue = None) -> JSONValue:
        return self.data.get(key, default)

    def with_updates(self, **changes: JSONValue) -> "GraphNode":
        merged = copy.deepcopy(dict(self.data))
        merged.update(copy.deepcopy(changes))
        return GraphNode(data=merged)

    def to_dict(self) -> JSONObject:
        return copy.deepcopy(dict(self.data))


def parse_graph(document: str | bytes | Iterable[Any]) -> list[GraphNode]:
    """Parse a `/flows` document into nodes, preserving input order."""
    if isinstance(document, (str, bytes)):
        try:
            document = json.loads(document)
        except ValueError as e:
            raise GraphFormatError("Flow document is not valid JSON") from e
    if not isinstance(document, list):
        raise GraphFormatError(
            f"Flow document must be a JSON array, got {type(document).__name__}"
        )
    return [GraphNode.from_dict(item) for item in document]


def serialize_graph(nodes: Iterable[GraphNode]) -> str:
    return json.dumps([node.to_dict() for node in nodes])


@dataclass(frozen=True, slots=True)
class RelayEndpoint:
    """
    Relay channel a pruned sheet connects back to.

    Attributes:
        protocol: Protocol the owning instance is reached with (`http`/`https`).
        host: `host:port` of the owning instance.
        owner_id: Id of the owning node; the relay listens on `/<owner_id>`.
    """

    protocol: str
    host: str
    owner_id: str

    @property
    def relay_protocol(self) -> str:
        return "wss" if self.protocol.lower() == "https" else "ws"

    @property
    def path(self) -> str:
        return f"{self.relay_protocol}://{self.host}/{self.owner_id}"


@dataclass(frozen=True, slots=True)
class FieldRename:
    """Rename-and-clear rule applied by the adapter behind a relay input."""

    source: str = "_session"
    target: str = "session_in"

    def function_body(self) -> str:
        return (
            f"if(msg.{self.source}) {{\n"
            f"    msg.{self.target} = msg.{self.source};\n"
            f"    delete msg.{self.source};\n"
            "}\n"
            "return msg;"
        )


@dataclass(frozen=True, slots=True)
class PruneOk:
    """Extraction succeeded; `nodes` is ready to push."""

    nodes: list[GraphNode] = field(default_factory=list)
    status: Literal["ok"] = "ok"

    @property
    def ok(self) -> bool:
        return True

    @property
    def message(self) -> str:
        return "Prune ok"


@dataclass(frozen=True, slots=True)
class PruneNotFound:
    """No tab carries the requested sheet name."""

    sheet: str
    status: Literal["not_found"] = "not_found"

    @property
    def ok(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return str(self.to_error())

    def to_error(self) -> NotFoundError:
        return NotFoundError(self.sheet)


@dataclass(frozen=True, slots=True)
class PruneDelegateCountError:
    """The sheet does not hold exactly one delegate-in and one delegate-out."""

    in_count: int
    out_count: int
    status: Literal["delegate_count"] = "delegate_count"

    @property
    def ok(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return str(self.to_error())

    def to_error(self) -> DelegateCountError:
        return DelegateCountError(self.in_count, self.out_count)


@dataclass(frozen=True, slots=True)
class PruneInternalError:
    """Extraction failed on an unexpected structural problem."""

    cause: str
    status: Literal["internal_error"] = "internal_error"

    @property
    def ok(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return str(self.to_error())

    def to_error(self) -> InternalError:
        return InternalError(f"Exception while sheet pruning. ({self.cause})")


PruneResult: TypeAlias = PruneOk | PruneNotFound | PruneDelegateCountError | PruneInternalError
