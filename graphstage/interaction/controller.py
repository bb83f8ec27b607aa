"""Translate pointer, wheel and pinch events into pins, pans and zooms.

Handlers take the current :class:`InteractionState` and return a new one;
the only side effects are pin updates forwarded to the force simulator,
which owns per-node state. Events are processed one at a time, so a gesture
started by one pointer ignores every other pointer until it ends.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Optional

from graphstage.config import InteractionConfig
from graphstage.interaction.events import (
    InteractionEvent,
    PinchEvent,
    PointerEvent,
    PointerPhase,
    WheelDeltaMode,
    WheelEvent,
)
from graphstage.simulation.simulator import ForceSimulator
from graphstage.viewport.fitter import IDENTITY_TRANSFORM, ViewportFitter, ViewTransform

LOGGER = logging.getLogger(__name__)

_WHEEL_MODE_FACTORS = {
    WheelDeltaMode.LINE: 0.05,
    WheelDeltaMode.PAGE: 1.0,
}
_CTRL_WHEEL_BOOST = 10.0
# Larger zoom steps saturate at the scale bounds.
_MAX_WHEEL_EXPONENT = 64.0


@dataclass(frozen=True)
class DragSession:
    """A node drag in progress."""

    node_id: str
    pointer_id: int
    offset_x: float
    offset_y: float
    restore_alpha_target: float


@dataclass(frozen=True)
class PanSession:
    """A background pan in progress."""

    pointer_id: int
    origin_x: float
    origin_y: float
    start_transform: ViewTransform


@dataclass(frozen=True)
class InteractionState:
    """Snapshot of the view transform and the active gesture, if any."""

    transform: ViewTransform = IDENTITY_TRANSFORM
    drag: Optional[DragSession] = None
    pan: Optional[PanSession] = None

    @property
    def busy(self) -> bool:
        return self.drag is not None or self.pan is not None


def zoom_at(
    transform: ViewTransform,
    x: float,
    y: float,
    factor: float,
    *,
    min_scale: float,
    max_scale: float,
) -> ViewTransform:
    """Scale ``transform`` by ``factor`` keeping screen point ``(x, y)`` fixed."""

    if not (math.isfinite(factor) and factor > 0):
        return transform
    new_scale = min(max(transform.scale * factor, min_scale), max_scale)
    if new_scale == transform.scale:
        return transform
    world_x, world_y = transform.invert(x, y)
    return ViewTransform(
        scale=new_scale,
        translate_x=x - world_x * new_scale,
        translate_y=y - world_y * new_scale,
    )


class InteractionController:
    """Owns the interaction state for one mounted view."""

    def __init__(
        self,
        fitter: ViewportFitter,
        *,
        simulator: Optional[ForceSimulator] = None,
        config: Optional[InteractionConfig] = None,
        transform: ViewTransform = IDENTITY_TRANSFORM,
    ) -> None:
        self._fitter = fitter
        self._simulator = simulator
        self._config = config or InteractionConfig()
        self._state = InteractionState(transform=transform)
        self._alive = True

    @property
    def state(self) -> InteractionState:
        return self._state

    @property
    def transform(self) -> ViewTransform:
        return self._state.transform

    @property
    def alive(self) -> bool:
        return self._alive

    def attach_simulator(self, simulator: Optional[ForceSimulator]) -> None:
        """Switch to a new simulator, abandoning any drag on the previous one."""

        self._simulator = simulator
        self._state = replace(self._state, drag=None)

    def set_transform(self, transform: ViewTransform) -> None:
        """Replace the view transform (used on fit, resize and reset)."""

        if not self._alive:
            return
        clamped = replace(transform, scale=self._fitter.clamp_scale(transform.scale))
        self._state = replace(self._state, transform=clamped, pan=None)

    def reset_view(self) -> ViewTransform:
        """Restore the fitted transform for the current measurements."""

        if self._alive:
            self._state = replace(self._state, transform=self._fitter.reset(), pan=None)
        return self._state.transform

    def dispatch(self, event: InteractionEvent) -> InteractionState:
        """Run the handler for ``event`` to completion and store the new state."""

        if not self._alive:
            return self._state
        if isinstance(event, PointerEvent):
            if event.phase is PointerPhase.DOWN:
                self._state = self.on_pointer_down(event, self._state)
            elif event.phase is PointerPhase.MOVE:
                self._state = self.on_pointer_move(event, self._state)
            else:
                self._state = self.on_pointer_up(event, self._state)
        elif isinstance(event, WheelEvent):
            self._state = self.on_wheel(event, self._state)
        elif isinstance(event, PinchEvent):
            self._state = self.on_pinch(event, self._state)
        else:
            LOGGER.debug("Ignoring unsupported interaction event %r", event)
        return self._state

    def teardown(self) -> None:
        """Stop handling events; an active drag is abandoned without touching the simulator."""

        self._alive = False
        self._state = replace(self._state, drag=None, pan=None)

    def revive(self) -> None:
        """Resume handling events after :meth:`teardown`, with no gesture in progress."""

        self._alive = True
        self._state = replace(self._state, drag=None, pan=None)

    def hit_test(self, world_x: float, world_y: float, scale: float = 1.0) -> Optional[str]:
        """Return the id of the topmost node under a world-space point."""

        simulator = self._simulator
        if simulator is None or not simulator.alive:
            return None
        slop = self._config.hit_slop / scale if scale > 0 else 0.0
        for node in reversed(simulator.state.nodes):
            if node.x is None or node.y is None:
                continue
            reach = node.radius + slop
            if (node.x - world_x) ** 2 + (node.y - world_y) ** 2 <= reach * reach:
                return node.id
        return None

    def on_pointer_down(self, event: PointerEvent, state: InteractionState) -> InteractionState:
        if not self._alive or state.busy:
            return state
        world_x, world_y = state.transform.invert(event.x, event.y)
        node_id = self.hit_test(world_x, world_y, state.transform.scale)
        simulator = self._simulator
        if node_id is not None and simulator is not None:
            node = simulator.state.node(node_id)
            anchor_x = node.x if node.x is not None else world_x
            anchor_y = node.y if node.y is not None else world_y
            session = DragSession(
                node_id=node_id,
                pointer_id=event.pointer_id,
                offset_x=anchor_x - world_x,
                offset_y=anchor_y - world_y,
                restore_alpha_target=simulator.state.alpha_target,
            )
            simulator.set_alpha_target(self._config.drag_alpha_target)
            simulator.pin(node_id, anchor_x, anchor_y)
            LOGGER.debug("Drag started on node %s", node_id)
            return replace(state, drag=session)
        return replace(
            state,
            pan=PanSession(
                pointer_id=event.pointer_id,
                origin_x=event.x,
                origin_y=event.y,
                start_transform=state.transform,
            ),
        )

    def on_pointer_move(self, event: PointerEvent, state: InteractionState) -> InteractionState:
        if not self._alive:
            return state
        drag = state.drag
        if drag is not None and drag.pointer_id == event.pointer_id:
            simulator = self._simulator
            if simulator is not None and simulator.alive:
                world_x, world_y = state.transform.invert(event.x, event.y)
                simulator.pin(drag.node_id, world_x + drag.offset_x, world_y + drag.offset_y)
            return state
        pan = state.pan
        if pan is not None and pan.pointer_id == event.pointer_id:
            moved = pan.start_transform.translated(event.x - pan.origin_x, event.y - pan.origin_y)
            return replace(state, transform=moved)
        return state

    def on_pointer_up(self, event: PointerEvent, state: InteractionState) -> InteractionState:
        if not self._alive:
            return state
        drag = state.drag
        if drag is not None and drag.pointer_id == event.pointer_id:
            simulator = self._simulator
            if simulator is not None and simulator.alive:
                simulator.set_alpha_target(drag.restore_alpha_target)
                simulator.unpin(drag.node_id)
            LOGGER.debug("Drag released on node %s", drag.node_id)
            return replace(state, drag=None)
        pan = state.pan
        if pan is not None and pan.pointer_id == event.pointer_id:
            return replace(state, pan=None)
        return state

    def on_wheel(self, event: WheelEvent, state: InteractionState) -> InteractionState:
        if not self._alive or state.busy:
            return state
        return self._zoom(state, event.x, event.y, self.wheel_factor(event))

    def on_pinch(self, event: PinchEvent, state: InteractionState) -> InteractionState:
        if not self._alive or state.busy:
            return state
        return self._zoom(state, event.x, event.y, event.scale_factor)

    def wheel_factor(self, event: WheelEvent) -> float:
        """Convert a wheel delta into a multiplicative zoom factor."""

        unit = _WHEEL_MODE_FACTORS.get(event.delta_mode, self._config.wheel_sensitivity)
        if event.ctrl_key:
            unit *= _CTRL_WHEEL_BOOST
        exponent = min(max(-event.delta_y * unit, -_MAX_WHEEL_EXPONENT), _MAX_WHEEL_EXPONENT)
        return 2.0 ** exponent

    def _zoom(self, state: InteractionState, x: float, y: float, factor: float) -> InteractionState:
        viewport = self._fitter.config
        zoomed = zoom_at(
            state.transform,
            x,
            y,
            factor,
            min_scale=viewport.min_scale,
            max_scale=viewport.max_scale,
        )
        return replace(state, transform=zoomed)
