from __future__ import annotations

import copy
import itertools

import pytest

from sheetsync.errors import GraphFormatError, MalformedNodeError
from sheetsync.graph import (
    FieldRename,
    GraphNode,
    PruneDelegateCountError,
    PruneInternalError,
    PruneNotFound,
    PruneOk,
    RelayEndpoint,
    extract_sheet,
    find_sheet_tab,
    new_node_id,
    parse_graph,
    prune_sheet,
    serialize_graph,
)

RELAY = RelayEndpoint(protocol="http", host="10.0.0.5:1880", owner_id="owner1")


def _ids():
    counter = itertools.count(1)
    return lambda: f"gen{next(counter)}"


def _prune(flows, sheet="Sheet 1", **kwargs):
    kwargs.setdefault("id_factory", _ids())
    return prune_sheet(parse_graph(flows), sheet, RELAY, **kwargs)


def _by_id(nodes):
    return {node.id: node for node in nodes}


def test_prune_unknown_sheet_is_not_found(flows):
    result = _prune(flows, sheet="X")
    assert isinstance(result, PruneNotFound)
    assert result.ok is False
    assert result.sheet == "X"
    assert result.message == "Sheet not found (X)"


def test_prune_selects_tab_closure_and_global_config(flows):
    result = _prune(flows)
    assert isinstance(result, PruneOk)
    ids = [node.id for node in result.nodes]
    assert set(ids) == {
        "t1", "s1", "s2", "cfg1", "din", "n1", "i1", "dout", "sn1", "sn2",
        "gen1", "gen2",
    }
    assert not {"t2", "s3", "sn3", "o1"} & set(ids)


def test_prune_preserves_input_order_with_synthesized_nodes_inline(flows):
    result = _prune(flows)
    ids = [node.id for node in result.nodes]
    assert ids == [
        "t1", "s1", "s2", "cfg1",
        "gen1", "gen2", "din",
        "n1", "i1", "dout", "sn1", "sn2",
    ]


def test_prune_rewrites_delegates_onto_one_relay_config(flows):
    result = _prune(flows)
    nodes = _by_id(result.nodes)

    relay_configs = [n for n in result.nodes if n.type == "websocket-client"]
    assert len(relay_configs) == 1
    config = relay_configs[0]
    assert config.to_dict() == {
        "id": "gen1",
        "type": "websocket-client",
        "path": "ws://10.0.0.5:1880/owner1",
        "wholemsg": "false",
    }

    relay_in = nodes["din"]
    assert relay_in.type == "websocket in"
    assert relay_in.get("server") == ""
    assert relay_in.get("client") == "gen1"
    assert relay_in.get("wires") == [["gen2"]]

    relay_out = nodes["dout"]
    assert relay_out.type == "websocket out"
    assert relay_out.get("client") == "gen1"
    assert relay_out.get("server") == ""


def test_prune_splices_adapter_between_relay_input_and_original_wires(flows):
    nodes = _by_id(_prune(flows).nodes)
    adapter = nodes["gen2"]
    assert adapter.type == "function"
    assert adapter.get("name") == "reset-ws-sess"
    assert adapter.get("wires") == [["n1"]]
    assert adapter.get("outputs") == 1
    assert adapter.x == 100
    assert adapter.y == 250
    assert adapter.z == "t1"
    assert "msg.session_in = msg._session;" in adapter.get("func")
    assert "delete msg._session;" in adapter.get("func")


def test_prune_adapter_uses_configured_rename_rule(flows):
    rename = FieldRename(source="_sid", target="relay_sid")
    nodes = _by_id(_prune(flows, rename=rename).nodes)
    func = nodes["gen2"].get("func")
    assert "msg.relay_sid = msg._sid;" in func
    assert "_session" not in func


def test_prune_does_not_mutate_input_graph(flows):
    graph = parse_graph(flows)
    before = [node.to_dict() for node in graph]
    result = prune_sheet(graph, "Sheet 1", RELAY, id_factory=_ids())
    assert result.ok
    assert [node.to_dict() for node in graph] == before
    assert graph[6].type == "flow-dlg-in"


def test_prune_without_delegate_in_reports_zero_in_count(flows):
    records = [f for f in flows if f["id"] != "din"]
    result = _prune(records)
    assert isinstance(result, PruneDelegateCountError)
    assert result.in_count == 0
    assert result.out_count == 1
    assert "#dlg-in: 0" in result.message


def test_prune_with_two_delegate_out_reports_out_count(flows):
    records = copy.deepcopy(flows)
    records.append({"id": "dout2", "type": "flow-dlg-out", "z": "t1", "x": 1, "y": 1})
    result = _prune(records)
    assert isinstance(result, PruneDelegateCountError)
    assert result.in_count == 1
    assert result.out_count == 2


def test_prune_without_any_delegate_reports_both_missing(flows):
    records = [f for f in flows if f["type"] not in ("flow-dlg-in", "flow-dlg-out")]
    result = _prune(records)
    assert isinstance(result, PruneDelegateCountError)
    assert (result.in_count, result.out_count) == (0, 0)
    assert result.message == "Neither delegate-in node nor delegate-out node exists."


def test_prune_counts_delegates_inside_included_subflows(flows):
    records = copy.deepcopy(flows)
    records.append({"id": "dout-sub", "type": "flow-dlg-out", "z": "s2", "x": 5, "y": 5})
    result = _prune(records)
    assert isinstance(result, PruneDelegateCountError)
    assert result.out_count == 2


def test_prune_ignores_delegates_on_other_tabs(flows):
    records = copy.deepcopy(flows)
    records.append({"id": "dout-other", "type": "flow-dlg-out", "z": "t2", "x": 5, "y": 5})
    assert isinstance(_prune(records), PruneOk)


def test_prune_reports_structural_failure_as_internal_error(flows):
    records = copy.deepcopy(flows)
    for record in records:
        if record["id"] == "din":
            record["y"] = "not-a-number"
    result = _prune(records)
    assert isinstance(result, PruneInternalError)
    assert result.ok is False
    assert "Exception while sheet pruning" in result.message


def test_prune_first_tab_wins_on_duplicate_labels(flows):
    records = copy.deepcopy(flows)
    records.insert(0, {"id": "t0", "type": "tab", "label": "Sheet 1"})
    graph = parse_graph(records)
    assert find_sheet_tab(graph, "Sheet 1").id == "t0"


def test_prune_relay_path_uses_wss_for_https_instances(flows):
    relay = RelayEndpoint(protocol="HTTPS", host="h:1880", owner_id="o")
    result = prune_sheet(parse_graph(flows), "Sheet 1", relay, id_factory=_ids())
    assert result.nodes[4].get("path") == "wss://h:1880/o"


def test_pruned_sheet_survives_serialization_round_trip(flows):
    result = _prune(flows)
    reparsed = parse_graph(serialize_graph(result.nodes))
    ids = {node.id for node in reparsed}
    assert {"t1", "din", "n1", "i1", "dout", "cfg1"} <= ids
    assert not {"t2", "o1", "s3", "sn3"} & ids
    assert [node.to_dict() for node in reparsed] == [n.to_dict() for n in result.nodes]


def test_extract_sheet_copies_members_without_rewrites(flows):
    nodes = extract_sheet(parse_graph(flows), "Sheet 1")
    assert [n.id for n in nodes] == ["t1", "s1", "s2", "din", "n1", "i1", "dout", "sn1", "sn2"]
    assert _by_id(nodes)["din"].type == "flow-dlg-in"
    assert extract_sheet(parse_graph(flows), "missing") is None


def test_parse_graph_rejects_non_array_documents():
    with pytest.raises(GraphFormatError):
        parse_graph('{"id": "t1"}')
    with pytest.raises(GraphFormatError):
        parse_graph("not json")
    with pytest.raises(MalformedNodeError):
        parse_graph([{"type": "tab"}])


def test_global_config_detection():
    assert GraphNode.from_dict({"id": "c", "type": "tls-config"}).is_global_config
    assert not GraphNode.from_dict({"id": "t", "type": "tab"}).is_global_config
    assert not GraphNode.from_dict({"id": "n", "type": "debug", "z": "t"}).is_global_config
    assert not GraphNode.from_dict({"id": "n", "type": "debug", "x": 1}).is_global_config


def test_new_node_id_shape():
    value = new_node_id()
    head, _, tail = value.partition(".")
    assert len(head) == 8 and len(tail) == 5
    int(head, 16)
    int(tail, 16)
