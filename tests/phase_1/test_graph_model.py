from __future__ import annotations

import copy

import pytest

from graphstage.config import SimulationConfig
from graphstage.contracts import DependencyLink, DependencyNode, NodeCategory
from graphstage.errors import DataIntegrityWarning, LayoutError, ValidationError
from graphstage.graph import GraphModel


def _nodes() -> list[dict]:
    return [
        {"id": "core", "category": "Core"},
        {"id": "react", "category": "Framework"},
        {"id": "d3", "category": "Library"},
        {"id": "python", "category": "Language"},
    ]


def test_build_resolves_edges_to_node_references() -> None:
    state = GraphModel().build(
        _nodes(),
        [{"source": "core", "target": "react"}, {"source": "react", "target": "d3"}],
    )
    assert state.node_ids == ["core", "react", "d3", "python"]
    assert len(state.edges) == 2
    first = state.edges[0]
    assert first.source is state.node("core")
    assert first.target is state.node("react")
    assert state.edge_index_pairs() == [(0, 1), (1, 2)]
    assert state.diagnostics == []


def test_radius_follows_category() -> None:
    state = GraphModel().build(_nodes(), [])
    radii = {node.id: node.radius for node in state.nodes}
    assert radii == {"core": 20.0, "react": 20.0, "d3": 12.0, "python": 12.0}


def test_radius_respects_configuration() -> None:
    config = SimulationConfig(default_radius=8.0, category_radii={"Database": 16.0})
    state = GraphModel(config).build(
        [{"id": "pg", "category": "Database"}, {"id": "core", "category": "Core"}], []
    )
    assert [node.radius for node in state.nodes] == [16.0, 8.0]


def test_duplicate_ids_raise_validation_error() -> None:
    nodes = _nodes() + [{"id": "react", "category": "Library"}]
    with pytest.raises(ValidationError) as excinfo:
        GraphModel().build(nodes, [])
    assert excinfo.value.duplicate_ids == ("react",)
    assert isinstance(excinfo.value, LayoutError)
    assert isinstance(excinfo.value, ValueError)


def test_ids_differing_in_whitespace_are_distinct() -> None:
    state = GraphModel().build(
        [{"id": "a"}, {"id": "a "}],
        [{"source": "a ", "target": "a"}, {"source": " a", "target": "a"}],
    )
    assert state.node_ids == ["a", "a "]
    assert [(edge.source.id, edge.target.id) for edge in state.edges] == [("a ", "a")]
    assert [link.source for link in state.dropped_edges] == [" a"]


def test_empty_node_id_is_a_valid_node() -> None:
    state = GraphModel().build(
        [{"id": "", "category": "Tool"}, {"id": "b"}],
        [{"source": "", "target": "b"}],
    )
    assert state.node_ids == ["", "b"]
    assert len(state.edges) == 1


def test_empty_ids_can_still_collide() -> None:
    with pytest.raises(ValidationError) as excinfo:
        GraphModel().build([{"id": ""}, {"id": ""}], [])
    assert excinfo.value.duplicate_ids == ("",)


def test_edge_without_endpoint_never_matches_empty_id() -> None:
    state = GraphModel().build([{"id": ""}, {"id": "b"}], [{"source": None, "target": "b"}])
    assert state.edges == []
    assert len(state.diagnostics) == 1


def test_unsupported_node_payload_is_rejected() -> None:
    with pytest.raises(ValidationError, match="Unsupported node payload"):
        GraphModel().build(["core"], [])  # type: ignore[list-item]


def test_dangling_edges_are_dropped_with_diagnostics() -> None:
    state = GraphModel().build(
        _nodes(),
        [
            {"source": "core", "target": "react"},
            {"source": "react", "target": "redux"},
            {"source": "ghost", "target": "phantom"},
        ],
    )
    assert len(state.edges) == 1
    assert [(link.source, link.target) for link in state.dropped_edges] == [
        ("react", "redux"),
        ("ghost", "phantom"),
    ]
    warnings = [item for item in state.diagnostics if isinstance(item, DataIntegrityWarning)]
    assert len(warnings) == 2
    assert warnings[0].missing_ids == ("redux",)
    assert warnings[1].missing_ids == ("ghost", "phantom")
    assert warnings[0].kind == "DataIntegrityWarning"


def test_malformed_edges_are_skipped() -> None:
    state = GraphModel().build(
        _nodes(),
        [{"source": "core", "target": "d3"}, "core->d3", {"target": "d3"}],  # type: ignore[list-item]
    )
    assert len(state.edges) == 1
    assert len(state.diagnostics) == 2


def test_self_loops_are_kept() -> None:
    state = GraphModel().build(_nodes(), [{"source": "core", "target": "core"}])
    assert len(state.edges) == 1
    assert state.edges[0].source is state.edges[0].target


def test_contract_models_are_accepted() -> None:
    state = GraphModel().build(
        [DependencyNode(id="a", category="Tool"), DependencyNode(id="b", category="Nonsense")],
        [DependencyLink(source="a", target="b")],
    )
    assert [node.category for node in state.nodes] == [NodeCategory.TOOL, NodeCategory.LIBRARY]
    assert len(state.edges) == 1


def test_build_does_not_mutate_caller_input() -> None:
    nodes = _nodes()
    edges = [{"source": "core", "target": "react"}, {"source": "react", "target": "ghost"}]
    nodes_before = copy.deepcopy(nodes)
    edges_before = copy.deepcopy(edges)
    state = GraphModel().build(nodes, edges)
    state.node("core").x = 10.0
    assert nodes == nodes_before
    assert edges == edges_before


def test_each_build_produces_fresh_state() -> None:
    model = GraphModel()
    first = model.build(_nodes(), [])
    second = model.build(_nodes(), [])
    first.node("core").x = 5.0
    assert second.node("core").x is None
    assert first.nodes[0] is not second.nodes[0]


def test_state_starts_unseeded_with_configured_schedule() -> None:
    config = SimulationConfig(alpha=0.8)
    state = GraphModel(config).build(_nodes(), [], center=(400.0, 300.0))
    assert state.alpha == 0.8
    assert state.alpha_target == 0.0
    assert state.tick_count == 0
    assert state.parameters.center_x == 400.0
    assert state.parameters.center_y == 300.0
    assert all(not node.seeded and not node.pinned for node in state.nodes)
    assert state.positions() == {}


def test_unknown_node_lookup() -> None:
    state = GraphModel().build(_nodes(), [])
    assert state.get("missing") is None
    with pytest.raises(KeyError):
        state.node("missing")


def test_empty_graph_builds() -> None:
    state = GraphModel().build([], [{"source": "a", "target": "b"}])
    assert state.nodes == []
    assert state.edges == []
    assert len(state.dropped_edges) == 1
