"""
Flow graph package.

Contains the node model, subflow closure resolution and sheet pruning.
"""

from .closure import subflow_closure
from .prune import extract_sheet, find_sheet_tab, new_node_id, prune_sheet
from .types import (
    FieldRename,
    GraphNode,
    JSONObject,
    JSONValue,
    PruneDelegateCountError,
    PruneInternalError,
    PruneNotFound,
    PruneOk,
    PruneResult,
    RelayEndpoint,
    parse_graph,
    serialize_graph,
)

__all__ = [
    "GraphNode",
    "JSONObject",
    "JSONValue",
    "RelayEndpoint",
    "FieldRename",
    "PruneOk",
    "PruneNotFound",
    "PruneDelegateCountError",
    "PruneInternalError",
    "PruneResult",
    "parse_graph",
    "serialize_graph",
    "subflow_closure",
    "find_sheet_tab",
    "extract_sheet",
    "prune_sheet",
    "new_node_id",
]
