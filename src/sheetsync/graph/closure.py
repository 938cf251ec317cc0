"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Transitive subflow closure over a flow graph.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .types import GraphNode


def subflow_closure(graph: Sequence[GraphNode], seeds: Iterable[str]) -> set[str]:
    """
    Return ids of every subflow definition reachable from ``seeds``.

    Each round scans the graph for subflow instances placed in the previous
    round's frontier. A subflow enters the closure at most once, so cyclic
    definitions terminate after their last new discovery.
    """
    closure: set[str] = set()
    frontier: set[str] = set(seeds)
    while frontier:
        discovered: set[str] = set()
        for node in graph:
            if node.z not in frontier:
                continue
            ref = node.subflow_ref
            if ref is None or ref in closure or ref in discovered:
                continue
            discovered.add(ref)
        closure |= discovered
        frontier = discovered
    return closure
