"""Iterative force-directed layout solver driven by an external frame loop."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from graphstage.config import SimulationConfig
from graphstage.errors import NumericInstability
from graphstage.graph.model import SimulationState
from graphstage.simulation import forces

LOGGER = logging.getLogger(__name__)

REFERENCE_FRAME_SECONDS = 1.0 / 60.0


class SimulatorStatus(str, Enum):
    """Lifecycle states of a force simulation."""

    INITIALIZING = "initializing"
    RUNNING = "running"
    COOLING = "cooling"
    STOPPED = "stopped"


@dataclass(frozen=True)
class PositionSnapshot:
    """Node positions emitted after a tick."""

    tick: int
    alpha: float
    status: SimulatorStatus
    positions: Dict[str, Tuple[float, float]]


SnapshotListener = Callable[[PositionSnapshot], None]


class ForceSimulator:
    """Explicit integrator over a :class:`SimulationState`.

    The simulator never schedules work itself. A host loop calls
    :meth:`tick` once per frame; once alpha has decayed below
    ``alpha_min`` (or the tick budget since the last reheat runs out) the
    simulator reports ``STOPPED`` and ticks become no-ops until a reheat.
    """

    def __init__(
        self,
        state: SimulationState,
        *,
        width: float,
        height: float,
        config: Optional[SimulationConfig] = None,
    ) -> None:
        self._state = state
        self._config = config or SimulationConfig()
        self._status = SimulatorStatus.INITIALIZING
        self._alive = True
        self._ticks_since_reheat = 0
        self._listeners: List[SnapshotListener] = []
        self._width = 0.0
        self._height = 0.0
        self._apply_container(width, height)
        self._seed_missing_positions()
        self._status = SimulatorStatus.RUNNING
        LOGGER.debug(
            "Force simulation initialised (nodes=%d, edges=%d)",
            len(state.nodes),
            len(state.edges),
        )

    @property
    def state(self) -> SimulationState:
        return self._state

    @property
    def status(self) -> SimulatorStatus:
        return self._status

    @property
    def alpha(self) -> float:
        return self._state.alpha

    @property
    def alive(self) -> bool:
        return self._alive

    @property
    def bounds(self) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        """Return ``((min_x, min_y), (max_x, max_y))`` allowed for node centres."""

        lower, upper = self._bounds_arrays()
        return (float(lower[0]), float(lower[1])), (float(upper[0]), float(upper[1]))

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a per-tick snapshot listener and return an unsubscribe callable."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def snapshot(self) -> PositionSnapshot:
        return PositionSnapshot(
            tick=self._state.tick_count,
            alpha=self._state.alpha,
            status=self._status,
            positions=self._state.positions(),
        )

    def tick(self, dt: Optional[float] = None) -> PositionSnapshot:
        """Advance the simulation by one step.

        Args:
            dt: Seconds since the previous frame. ``None`` advances one
                reference frame; larger gaps are capped by ``max_time_scale``.

        Returns:
            PositionSnapshot: Positions after the step (unchanged when stopped).
        """

        if not self._alive or self._status is SimulatorStatus.STOPPED:
            return self.snapshot()

        self._step(self._time_scale(dt))
        self._advance_alpha()
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)
        return snapshot

    def run_until_stopped(self, max_ticks: Optional[int] = None) -> PositionSnapshot:
        """Tick until the simulation stops or ``max_ticks`` is reached."""

        limit = max_ticks if max_ticks is not None else self._config.max_ticks
        snapshot = self.snapshot()
        for _ in range(limit):
            if self._status is SimulatorStatus.STOPPED or not self._alive:
                break
            snapshot = self.tick()
        return snapshot

    def reheat(self, alpha: Optional[float] = None) -> None:
        """Raise alpha so the layout re-settles, then resume decay."""

        if not self._alive:
            return
        floor = self._config.reheat_alpha if alpha is None else alpha
        self._state.alpha = min(1.0, max(self._state.alpha, floor))
        self._ticks_since_reheat = 0
        self._status = self._status_for_alpha(self._state.alpha)

    def set_alpha_target(self, target: float) -> None:
        """Set the value alpha decays toward (raised while dragging)."""

        if not self._alive:
            return
        self._state.alpha_target = min(1.0, max(0.0, target))

    def pin(self, node_id: str, x: float, y: float) -> None:
        """Fix a node at ``(x, y)``; it still exerts forces on its neighbours.

        Raises:
            KeyError: If ``node_id`` is not part of the simulation.
        """

        if not self._alive:
            return
        node = self._state.node(node_id)
        lower, upper = self._bounds_arrays()
        fx = float(np.clip(x, lower[0], upper[0])) if np.isfinite(x) else node.x
        fy = float(np.clip(y, lower[1], upper[1])) if np.isfinite(y) else node.y
        node.fx = fx
        node.fy = fy
        node.x = fx
        node.y = fy
        node.vx = 0.0
        node.vy = 0.0
        self.reheat()

    def unpin(self, node_id: str) -> None:
        """Release a pin, keeping the pinned position as the continuation point."""

        if not self._alive:
            return
        node = self._state.node(node_id)
        if node.fx is not None and node.fy is not None:
            node.x = node.fx
            node.y = node.fy
        node.fx = None
        node.fy = None
        self.reheat()

    def resize(self, width: float, height: float) -> None:
        """Update container bounds and center without resetting positions."""

        if not self._alive:
            return
        self._apply_container(width, height)

    def stop(self) -> None:
        """Halt the simulation permanently. Safe to call more than once."""

        if not self._alive:
            return
        self._alive = False
        self._status = SimulatorStatus.STOPPED
        self._listeners.clear()
        LOGGER.debug("Force simulation stopped after %d ticks", self._state.tick_count)

    def _apply_container(self, width: float, height: float) -> None:
        self._width = max(float(width), 0.0) if np.isfinite(width) else 0.0
        self._height = max(float(height), 0.0) if np.isfinite(height) else 0.0
        self._state.parameters = replace(
            self._state.parameters,
            center_x=self._width / 2.0,
            center_y=self._height / 2.0,
        )

    def _bounds_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        margin = self._config.bounds_margin
        half = np.array([self._width / 2.0, self._height / 2.0])
        extent = np.array([self._width, self._height])
        lower = np.minimum(np.full(2, margin), half)
        upper = np.maximum(extent - margin, half)
        return lower, upper

    def _center(self) -> np.ndarray:
        params = self._state.parameters
        return np.array([params.center_x, params.center_y], dtype=np.float64)

    def _seed_missing_positions(self) -> None:
        missing = [node for node in self._state.nodes if not node.seeded]
        if not missing:
            return
        params = self._state.parameters
        seeds = forces.seed_positions(len(missing), (params.center_x, params.center_y))
        lower, upper = self._bounds_arrays()
        seeds = forces.clamp_to_bounds(seeds, lower, upper)
        for node, (x, y) in zip(missing, seeds):
            node.x = float(x)
            node.y = float(y)

    def _time_scale(self, dt: Optional[float]) -> float:
        if dt is None or not np.isfinite(dt):
            return 1.0
        return float(min(max(dt / REFERENCE_FRAME_SECONDS, 0.0), self._config.max_time_scale))

    def _step(self, time_scale: float) -> None:
        state = self._state
        params = state.parameters
        nodes = state.nodes
        state.tick_count += 1
        self._ticks_since_reheat += 1
        if not nodes:
            return

        center = self._center()
        lower, upper = self._bounds_arrays()
        fallback = np.tile(center, (len(nodes), 1))
        raw_positions = np.array(
            [
                (node.fx, node.fy) if node.pinned else (node.x, node.y)
                for node in nodes
            ],
            dtype=np.float64,
        )
        positions, bad_positions = forces.sanitize(raw_positions, fallback)
        positions = forces.clamp_to_bounds(positions, lower, upper)
        movable = np.array([not node.pinned for node in nodes], dtype=bool)
        radii = np.array(
            [max(node.radius, params.collision_radius) for node in nodes],
            dtype=np.float64,
        )
        links = np.asarray(state.edge_index_pairs(), dtype=np.intp).reshape(-1, 2)

        total = forces.repulsion_forces(positions, params.repulsion_strength, params.min_distance)
        total = total + forces.link_forces(
            positions, links, params.link_distance, params.link_stiffness
        )
        total = total + forces.centering_forces(
            positions, (params.center_x, params.center_y), params.centering_strength
        )

        velocities = forces.clamp_speed(total * state.alpha, self._config.max_velocity)
        velocities[~movable] = 0.0
        velocities = velocities + forces.collision_corrections(
            positions, velocities, radii, movable, params.collision_strength
        )
        velocities = forces.clamp_speed(velocities, self._config.max_velocity)
        velocities, bad_velocities = forces.sanitize(velocities, np.zeros_like(velocities))

        updated = positions + velocities * time_scale
        updated = forces.clamp_to_bounds(updated, lower, upper)
        updated, bad_updates = forces.sanitize(updated, fallback)

        unstable = bad_positions | bad_velocities | bad_updates
        if unstable.any():
            node_ids = tuple(node.id for node, flag in zip(nodes, unstable) if flag)
            state.diagnostics.append(
                NumericInstability(
                    message=f"Sanitized non-finite values for {len(node_ids)} nodes",
                    tick=state.tick_count,
                    node_ids=node_ids,
                )
            )
            LOGGER.debug("Sanitized non-finite layout values at tick %d: %s", state.tick_count, node_ids)

        for index, node in enumerate(nodes):
            if node.pinned:
                node.x = float(updated[index, 0])
                node.y = float(updated[index, 1])
                node.fx = node.x
                node.fy = node.y
                node.vx = 0.0
                node.vy = 0.0
                continue
            node.vx = float(velocities[index, 0])
            node.vy = float(velocities[index, 1])
            node.x = float(updated[index, 0])
            node.y = float(updated[index, 1])

    def _advance_alpha(self) -> None:
        state = self._state
        state.alpha += (state.alpha_target - state.alpha) * self._config.alpha_decay
        if state.alpha < self._config.alpha_min or self._ticks_since_reheat >= self._config.max_ticks:
            self._status = SimulatorStatus.STOPPED
            LOGGER.debug(
                "Force simulation settled (tick=%d, alpha=%.5f)", state.tick_count, state.alpha
            )
            return
        self._status = self._status_for_alpha(state.alpha)

    def _status_for_alpha(self, alpha: float) -> SimulatorStatus:
        if alpha >= self._config.cooling_threshold:
            return SimulatorStatus.RUNNING
        return SimulatorStatus.COOLING
