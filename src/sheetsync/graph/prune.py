"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Sheet extraction: select a tab with its subflows and rewrite delegate nodes
into relay endpoints.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Sequence

from ..errors import GraphFormatError
from .closure import subflow_closure
from .types import (
    DELEGATE_IN_TYPE,
    FieldRename,
    GraphNode,
    JSONObject,
    PruneDelegateCountError,
    PruneInternalError,
    PruneNotFound,
    PruneOk,
    PruneResult,
    RelayEndpoint,
)

logger = logging.getLogger("sheetsync.graph")

RELAY_CONFIG_TYPE = "websocket-client"
RELAY_IN_TYPE = "websocket in"
RELAY_OUT_TYPE = "websocket out"
ADAPTER_TYPE = "function"
ADAPTER_NAME = "reset-ws-sess"
ADAPTER_Y_OFFSET = 50


def new_node_id() -> str:
    """Quasi-unique id in the host runtime's `xxxxxxxx.xxxxx` hex style."""
    return f"{random.getrandbits(32):08x}.{random.getrandbits(20):05x}"


def find_sheet_tab(graph: Sequence[GraphNode], sheet_name: str) -> GraphNode | None:
    """First tab labeled ``sheet_name`` in iteration order."""
    for node in graph:
        if node.is_tab and node.label == sheet_name:
            return node
    return None


def _is_member(node: GraphNode, tab_id: str, closure: set[str]) -> bool:
    if node.id == tab_id or node.z == tab_id:
        return True
    if node.z is not None and node.z in closure:
        return True
    return node.is_subflow and node.id in closure


def extract_sheet(graph: Sequence[GraphNode], sheet_name: str) -> list[GraphNode] | None:
    """
    Select the tab labeled ``sheet_name``, its nodes, and every subflow it
    transitively uses. Returns ``None`` when no such tab exists.

    No delegate rewriting and no global configuration nodes; this is the
    plain copy used for cloning and reading a sheet.
    """
    tab = find_sheet_tab(graph, sheet_name)
    if tab is None:
        return None
    closure = subflow_closure(graph, {tab.id})
    return [node for node in graph if _is_member(node, tab.id, closure)]


class _SheetPruner:
    """Single-use builder for one `prune_sheet` call."""

    def __init__(
        self,
        relay: RelayEndpoint,
        rename: FieldRename,
        id_factory: Callable[[], str],
    ) -> None:
        self._relay = relay
        self._rename = rename
        self._id_factory = id_factory
        self._relay_config: GraphNode | None = None
        self.in_count = 0
        self.out_count = 0
        self.nodes: list[GraphNode] = []

    def _ensure_relay_config(self) -> str:
        if self._relay_config is None:
            self._relay_config = GraphNode(
                data={
                    "id": self._id_factory(),
                    "type": RELAY_CONFIG_TYPE,
                    "path": self._relay.path,
                    "wholemsg": "false",
                }
            )
            self.nodes.append(self._relay_config)
        return self._relay_config.id

    def _adapter(self, delegate: GraphNode) -> GraphNode:
        y = delegate.y
        if y is not None and not isinstance(y, (int, float)):
            raise TypeError(f"Delegate '{delegate.id}' has non-numeric y: {y!r}")
        data: JSONObject = {
            "id": self._id_factory(),
            "type": ADAPTER_TYPE,
            "name": ADAPTER_NAME,
            "func": self._rename.function_body(),
            "outputs": 1,
            "noerr": 0,
            "x": delegate.x,
            "y": (y or 0) + ADAPTER_Y_OFFSET,
            "z": delegate.z,
            "wires": delegate.get("wires", []),
        }
        return GraphNode.from_dict(data)

    def add(self, node: GraphNode) -> None:
        if not node.is_delegate:
            self.nodes.append(node)
            return

        config_id = self._ensure_relay_config()
        if node.type == DELEGATE_IN_TYPE:
            self.in_count += 1
            adapter = self._adapter(node)
            self.nodes.append(adapter)
            self.nodes.append(
                node.with_updates(
                    type=RELAY_IN_TYPE,
                    server="",
                    client=config_id,
                    wires=[[adapter.id]],
                )
            )
        else:
            self.out_count += 1
            self.nodes.append(
                node.with_updates(type=RELAY_OUT_TYPE, server="", client=config_id)
            )


def prune_sheet(
    graph: Sequence[GraphNode],
    sheet_name: str,
    relay: RelayEndpoint,
    *,
    rename: FieldRename | None = None,
    id_factory: Callable[[], str] = new_node_id,
) -> PruneResult:
    """
    Extract the sheet labeled ``sheet_name`` for dispatch over a relay.

    The result holds the tab, nodes placed on it or on any subflow in its
    closure, those subflow definitions, and every global configuration node.
    Delegate nodes are replaced by relay endpoints sharing one synthesized
    relay configuration node. Input order is preserved. Never raises.
    """
    try:
        tab = find_sheet_tab(graph, sheet_name)
        if tab is None:
            return PruneNotFound(sheet=sheet_name)

        closure = subflow_closure(graph, {tab.id})
        pruner = _SheetPruner(relay, rename or FieldRename(), id_factory)
        for node in graph:
            if _is_member(node, tab.id, closure) or node.is_global_config:
                pruner.add(node)
    except (GraphFormatError, AttributeError, KeyError, TypeError, ValueError) as e:
        logger.exception("Exception while pruning sheet '%s'", sheet_name)
        return PruneInternalError(cause=f"{type(e).__name__}: {e}")

    if pruner.in_count != 1 or pruner.out_count != 1:
        return PruneDelegateCountError(
            in_count=pruner.in_count, out_count=pruner.out_count
        )
    logger.debug(
        "Pruned sheet '%s': %d nodes, %d subflows",
        sheet_name,
        len(pruner.nodes),
        len(closure),
    )
    return PruneOk(nodes=pruner.nodes)
