from __future__ import annotations

import math
import random

import pytest

from graphstage.config import SimulationConfig
from graphstage.errors import NumericInstability
from graphstage.graph import GraphModel, SimulationState
from graphstage.simulation import ForceSimulator, PositionSnapshot, SimulatorStatus

CATEGORIES = ["Language", "Framework", "Library", "Tool", "Database", "Core", "Unknown"]
WIDTH = 800.0
HEIGHT = 600.0


def _random_graph(seed: int, size: int) -> tuple[list[dict], list[dict]]:
    rng = random.Random(seed)
    nodes = [{"id": f"n{index}", "category": rng.choice(CATEGORIES)} for index in range(size)]
    edges = []
    for _ in range(rng.randint(0, size * 2)):
        source = f"n{rng.randrange(size)}"
        target = f"n{rng.randrange(size)}" if rng.random() > 0.05 else "ghost"
        edges.append({"source": source, "target": target})
    return nodes, edges


def _state(
    nodes: list[dict],
    edges: list[dict],
    config: SimulationConfig | None = None,
) -> SimulationState:
    return GraphModel(config).build(nodes, edges, center=(WIDTH / 2, HEIGHT / 2))


def _chain(size: int = 3) -> tuple[list[dict], list[dict]]:
    nodes = [{"id": f"c{index}", "category": "Library"} for index in range(size)]
    edges = [{"source": f"c{index}", "target": f"c{index + 1}"} for index in range(size - 1)]
    return nodes, edges


def _assert_in_bounds(simulator: ForceSimulator) -> None:
    (min_x, min_y), (max_x, max_y) = simulator.bounds
    for node_id, (x, y) in simulator.snapshot().positions.items():
        assert math.isfinite(x) and math.isfinite(y), node_id
        assert min_x - 1e-9 <= x <= max_x + 1e-9, node_id
        assert min_y - 1e-9 <= y <= max_y + 1e-9, node_id


@pytest.mark.parametrize(("seed", "size"), [(1, 1), (2, 2), (3, 17), (4, 64), (5, 200)])
def test_random_graphs_stay_finite_and_bounded(seed: int, size: int) -> None:
    nodes, edges = _random_graph(seed, size)
    simulator = ForceSimulator(_state(nodes, edges), width=WIDTH, height=HEIGHT)
    for _ in range(500):
        simulator.tick()
    assert len(simulator.snapshot().positions) == size
    _assert_in_bounds(simulator)


def test_initial_positions_are_seeded_within_bounds() -> None:
    nodes, edges = _random_graph(11, 40)
    state = _state(nodes, edges)
    simulator = ForceSimulator(state, width=WIDTH, height=HEIGHT)
    assert simulator.status is SimulatorStatus.RUNNING
    assert all(node.seeded for node in state.nodes)
    _assert_in_bounds(simulator)
    positions = simulator.snapshot().positions
    assert len(set(positions.values())) == len(positions)


def test_preset_positions_are_kept() -> None:
    state = _state(*_chain())
    state.node("c0").x = 123.0
    state.node("c0").y = 77.0
    ForceSimulator(state, width=WIDTH, height=HEIGHT)
    assert (state.node("c0").x, state.node("c0").y) == (123.0, 77.0)


def test_simulation_stops_within_bounded_ticks() -> None:
    nodes, edges = _random_graph(7, 30)
    simulator = ForceSimulator(_state(nodes, edges), width=WIDTH, height=HEIGHT)
    snapshot = simulator.run_until_stopped()
    assert snapshot.status is SimulatorStatus.STOPPED
    assert simulator.status is SimulatorStatus.STOPPED
    # alpha decays geometrically: 0.9772 ** 300 < 0.001
    assert snapshot.tick <= 310
    assert simulator.alpha < SimulationConfig().alpha_min


def test_tick_budget_stops_simulation_with_raised_alpha_target() -> None:
    config = SimulationConfig(max_ticks=50)
    simulator = ForceSimulator(_state(*_chain(), config=config), width=WIDTH, height=HEIGHT, config=config)
    simulator.set_alpha_target(0.3)
    simulator.run_until_stopped(1000)
    assert simulator.status is SimulatorStatus.STOPPED
    assert simulator.state.tick_count == 50


def test_status_moves_from_running_to_cooling() -> None:
    simulator = ForceSimulator(_state(*_chain()), width=WIDTH, height=HEIGHT)
    statuses = []
    while simulator.status is not SimulatorStatus.STOPPED:
        statuses.append(simulator.tick().status)
    assert statuses[0] is SimulatorStatus.RUNNING
    assert SimulatorStatus.COOLING in statuses
    first_cooling = statuses.index(SimulatorStatus.COOLING)
    assert all(status is SimulatorStatus.RUNNING for status in statuses[:first_cooling])
    assert statuses[-1] is SimulatorStatus.STOPPED


def test_alpha_decays_toward_target() -> None:
    simulator = ForceSimulator(_state(*_chain()), width=WIDTH, height=HEIGHT)
    simulator.tick()
    assert simulator.alpha == pytest.approx(1.0 - 0.0228)
    simulator.tick()
    assert simulator.alpha == pytest.approx((1.0 - 0.0228) ** 2)


def test_stopped_tick_is_a_no_op() -> None:
    simulator = ForceSimulator(_state(*_chain()), width=WIDTH, height=HEIGHT)
    settled = simulator.run_until_stopped()
    again = simulator.tick()
    assert again.tick == settled.tick
    assert again.positions == settled.positions


def test_pinned_node_stays_fixed_while_neighbours_move() -> None:
    state = _state(*_chain(4))
    simulator = ForceSimulator(state, width=WIDTH, height=HEIGHT)
    simulator.pin("c1", 200.0, 150.0)
    before = simulator.snapshot().positions
    for _ in range(60):
        simulator.tick()
    after = simulator.snapshot().positions
    assert after["c1"] == (200.0, 150.0)
    assert state.node("c1").vx == 0.0 and state.node("c1").vy == 0.0
    assert after["c0"] != before["c0"]
    assert after["c2"] != before["c2"]


def test_pinned_node_still_attracts_neighbours() -> None:
    nodes = [{"id": "anchor"}, {"id": "leaf"}]
    edges = [{"source": "anchor", "target": "leaf"}]
    config = SimulationConfig(repulsion_strength=0.0, centering_strength=0.0)
    state = _state(nodes, edges, config)
    state.node("anchor").x, state.node("anchor").y = 100.0, 300.0
    state.node("leaf").x, state.node("leaf").y = 700.0, 300.0
    simulator = ForceSimulator(state, width=WIDTH, height=HEIGHT, config=config)
    simulator.pin("anchor", 100.0, 300.0)
    for _ in range(100):
        simulator.tick()
    leaf_x, _ = simulator.snapshot().positions["leaf"]
    assert leaf_x < 700.0
    assert simulator.snapshot().positions["anchor"] == (100.0, 300.0)


def test_pin_clamps_into_bounds_and_reheats() -> None:
    simulator = ForceSimulator(_state(*_chain()), width=WIDTH, height=HEIGHT)
    simulator.run_until_stopped()
    simulator.pin("c0", -500.0, 5000.0)
    node = simulator.state.node("c0")
    assert (node.fx, node.fy) == (20.0, HEIGHT - 20.0)
    assert simulator.status is SimulatorStatus.RUNNING
    assert simulator.alpha >= 0.3


def test_pin_ignores_non_finite_coordinates() -> None:
    simulator = ForceSimulator(_state(*_chain()), width=WIDTH, height=HEIGHT)
    node = simulator.state.node("c0")
    start = (node.x, node.y)
    simulator.pin("c0", float("nan"), float("inf"))
    assert (node.fx, node.fy) == start


def test_pin_unknown_node_raises_key_error() -> None:
    simulator = ForceSimulator(_state(*_chain()), width=WIDTH, height=HEIGHT)
    with pytest.raises(KeyError):
        simulator.pin("missing", 10.0, 10.0)


def test_unpin_keeps_last_position_as_continuation() -> None:
    simulator = ForceSimulator(_state(*_chain()), width=WIDTH, height=HEIGHT)
    simulator.pin("c2", 321.0, 123.0)
    simulator.tick()
    simulator.unpin("c2")
    node = simulator.state.node("c2")
    assert (node.x, node.y) == (321.0, 123.0)
    assert node.fx is None and node.fy is None
    assert not node.pinned
    simulator.tick()
    assert (node.x, node.y) != (321.0, 123.0)


def test_reheat_resumes_a_stopped_simulation() -> None:
    simulator = ForceSimulator(_state(*_chain()), width=WIDTH, height=HEIGHT)
    simulator.run_until_stopped()
    simulator.reheat()
    assert simulator.status is SimulatorStatus.RUNNING
    assert simulator.alpha == pytest.approx(0.3)
    tick_before = simulator.state.tick_count
    simulator.tick()
    assert simulator.state.tick_count == tick_before + 1


def test_reheat_never_lowers_alpha() -> None:
    simulator = ForceSimulator(_state(*_chain()), width=WIDTH, height=HEIGHT)
    simulator.reheat(0.1)
    assert simulator.alpha == 1.0


def test_coincident_nodes_are_separated() -> None:
    nodes = [{"id": f"dup{index}"} for index in range(6)]
    state = _state(nodes, [])
    for node in state.nodes:
        node.x, node.y = 400.0, 300.0
    simulator = ForceSimulator(state, width=WIDTH, height=HEIGHT)
    for _ in range(20):
        simulator.tick()
    positions = list(simulator.snapshot().positions.values())
    assert len(set(positions)) == len(positions)
    _assert_in_bounds(simulator)


def test_collisions_push_overlapping_nodes_apart() -> None:
    nodes = [{"id": "a", "category": "Core"}, {"id": "b", "category": "Core"}]
    config = SimulationConfig(repulsion_strength=0.0, centering_strength=0.0)
    state = _state(nodes, [], config)
    state.node("a").x, state.node("a").y = 395.0, 300.0
    state.node("b").x, state.node("b").y = 405.0, 300.0
    simulator = ForceSimulator(state, width=WIDTH, height=HEIGHT, config=config)
    for _ in range(50):
        simulator.tick()
    a_x, _ = simulator.snapshot().positions["a"]
    b_x, _ = simulator.snapshot().positions["b"]
    assert b_x - a_x > 10.0


def test_non_finite_positions_are_sanitized_and_recorded() -> None:
    state = _state(*_chain())
    simulator = ForceSimulator(state, width=WIDTH, height=HEIGHT)
    state.node("c1").x = float("nan")
    snapshot = simulator.tick()
    assert all(math.isfinite(value) for point in snapshot.positions.values() for value in point)
    instabilities = [item for item in state.diagnostics if isinstance(item, NumericInstability)]
    assert len(instabilities) == 1
    assert instabilities[0].node_ids == ("c1",)
    assert instabilities[0].tick == snapshot.tick


def test_large_frame_gaps_are_capped() -> None:
    config = SimulationConfig()
    simulator = ForceSimulator(_state(*_random_graph(3, 25)), width=WIDTH, height=HEIGHT)
    before = simulator.snapshot().positions
    after = simulator.tick(dt=10.0).positions
    limit = config.max_velocity * config.max_time_scale + 1e-6
    for node_id, (x, y) in after.items():
        old_x, old_y = before[node_id]
        assert math.hypot(x - old_x, y - old_y) <= limit


def test_zero_dt_does_not_move_nodes() -> None:
    simulator = ForceSimulator(_state(*_chain()), width=WIDTH, height=HEIGHT)
    before = simulator.snapshot().positions
    after = simulator.tick(dt=0.0).positions
    assert after == before


def test_subscribers_receive_each_tick_until_unsubscribed() -> None:
    simulator = ForceSimulator(_state(*_chain()), width=WIDTH, height=HEIGHT)
    received: list[PositionSnapshot] = []
    unsubscribe = simulator.subscribe(received.append)
    simulator.tick()
    simulator.tick()
    unsubscribe()
    unsubscribe()
    simulator.tick()
    assert [snapshot.tick for snapshot in received] == [1, 2]


def test_resize_updates_bounds_without_resetting_positions() -> None:
    state = _state(*_chain())
    simulator = ForceSimulator(state, width=WIDTH, height=HEIGHT)
    simulator.tick()
    before = simulator.snapshot().positions
    simulator.resize(1200.0, 900.0)
    assert simulator.snapshot().positions == before
    assert simulator.bounds == ((20.0, 20.0), (1180.0, 880.0))
    assert (state.parameters.center_x, state.parameters.center_y) == (600.0, 450.0)


def test_shrinking_container_pulls_nodes_inside() -> None:
    nodes, edges = _random_graph(9, 30)
    simulator = ForceSimulator(_state(nodes, edges), width=WIDTH, height=HEIGHT)
    simulator.run_until_stopped()
    simulator.resize(200.0, 100.0)
    simulator.reheat()
    simulator.tick()
    _assert_in_bounds(simulator)


def test_zero_size_container_keeps_positions_finite() -> None:
    simulator = ForceSimulator(_state(*_random_graph(5, 10)), width=0.0, height=0.0)
    for _ in range(10):
        simulator.tick()
    assert set(simulator.snapshot().positions.values()) == {(0.0, 0.0)}


def test_empty_graph_ticks_and_stops() -> None:
    simulator = ForceSimulator(_state([], []), width=WIDTH, height=HEIGHT)
    snapshot = simulator.run_until_stopped()
    assert snapshot.positions == {}
    assert snapshot.status is SimulatorStatus.STOPPED


def test_stop_is_idempotent_and_freezes_state() -> None:
    state = _state(*_chain())
    simulator = ForceSimulator(state, width=WIDTH, height=HEIGHT)
    received: list[PositionSnapshot] = []
    simulator.subscribe(received.append)
    simulator.tick()
    simulator.stop()
    simulator.stop()
    frozen = simulator.snapshot().positions
    simulator.tick()
    simulator.pin("c0", 50.0, 50.0)
    simulator.pin("missing", 50.0, 50.0)
    simulator.unpin("c0")
    simulator.reheat()
    simulator.resize(100.0, 100.0)
    assert not simulator.alive
    assert simulator.status is SimulatorStatus.STOPPED
    assert simulator.snapshot().positions == frozen
    assert state.node("c0").fx is None
    assert len(received) == 1
