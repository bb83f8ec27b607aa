"""Mount lifecycle tying the layout components to a host view.

``GraphVisualization`` owns one force-directed graph: it builds the
simulation state, advances it from the host frame loop, forwards input to
the interaction controller and pushes frames through the render bridge.
``DiagramViewport`` is the zoom/pan counterpart for content drawn by an
external renderer, where only the view transform is managed.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional, Union

from graphstage.config import AppConfig
from graphstage.contracts import DependencyGraph
from graphstage.errors import LayoutDiagnostic, ValidationError
from graphstage.graph.model import EdgeInput, GraphModel, NodeInput
from graphstage.interaction.controller import InteractionController, InteractionState
from graphstage.interaction.events import InteractionEvent
from graphstage.render.bridge import PaintSurface, RenderBridge
from graphstage.simulation.simulator import (
    ForceSimulator,
    PositionSnapshot,
    SimulatorStatus,
    SnapshotListener,
)
from graphstage.viewport.fitter import (
    ContentBox,
    ContentMeasurer,
    ViewportFitter,
    ViewTransform,
    content_box_for,
)

LOGGER = logging.getLogger(__name__)


class GraphVisualization:
    """Interactive force-directed view of one dependency graph at a time."""

    def __init__(self, surface: PaintSurface, config: Optional[AppConfig] = None) -> None:
        self._config = config or AppConfig()
        self._model = GraphModel(self._config.simulation)
        self._fitter = ViewportFitter(self._config.viewport)
        self._controller = InteractionController(self._fitter, config=self._config.interaction)
        self._bridge = RenderBridge(surface, self._config.render)
        self._simulator: Optional[ForceSimulator] = None
        self._width = 0.0
        self._height = 0.0
        self._dirty = False
        self._placeholder = False
        self._last_error: Optional[str] = None

    @property
    def simulator(self) -> Optional[ForceSimulator]:
        return self._simulator

    @property
    def controller(self) -> InteractionController:
        return self._controller

    @property
    def bridge(self) -> RenderBridge:
        return self._bridge

    @property
    def transform(self) -> ViewTransform:
        return self._controller.transform

    @property
    def status(self) -> SimulatorStatus:
        if self._simulator is None:
            return SimulatorStatus.STOPPED
        return self._simulator.status

    @property
    def showing_placeholder(self) -> bool:
        return self._placeholder

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def diagnostics(self) -> List[LayoutDiagnostic]:
        collected: List[LayoutDiagnostic] = []
        if self._simulator is not None:
            collected.extend(self._simulator.state.diagnostics)
        collected.extend(self._fitter.diagnostics)
        return collected

    def mount(
        self,
        nodes: Iterable[NodeInput],
        edges: Iterable[EdgeInput],
        width: float,
        height: float,
    ) -> bool:
        """Build a simulation for a new dataset, replacing any previous one.

        Returns:
            bool: ``False`` when the dataset was rejected and the placeholder
            is shown instead.
        """

        self._halt_simulator()
        self._controller.revive()
        self._width = float(width)
        self._height = float(height)
        try:
            state = self._model.build(nodes, edges, center=(self._width / 2.0, self._height / 2.0))
        except ValidationError as exc:
            LOGGER.warning("Graph rejected; showing placeholder: %s", exc)
            self._show_placeholder(str(exc))
            return False

        self._placeholder = False
        self._last_error = None
        self._simulator = ForceSimulator(
            state,
            width=self._width,
            height=self._height,
            config=self._config.simulation,
        )
        self._bridge.bind(state)
        self._controller.attach_simulator(self._simulator)
        self._controller.set_transform(self._container_fit())
        self._sync_viewport()
        self._bridge.draw(self._simulator.snapshot())
        LOGGER.info(
            "Mounted dependency graph (nodes=%d, edges=%d, dropped=%d)",
            len(state.nodes),
            len(state.edges),
            len(state.dropped_edges),
        )
        return True

    def mount_graph(self, graph: DependencyGraph, width: float, height: float) -> bool:
        return self.mount(graph.nodes, graph.edges, width, height)

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Listen to per-tick snapshots of the current simulation."""

        if self._simulator is None:
            return lambda: None
        return self._simulator.subscribe(listener)

    def frame(self, dt: Optional[float] = None) -> Optional[PositionSnapshot]:
        """Advance one host frame and redraw when anything changed."""

        simulator = self._simulator
        if simulator is None or not simulator.alive:
            return None
        moving = simulator.status is not SimulatorStatus.STOPPED
        snapshot = simulator.tick(dt) if moving else simulator.snapshot()
        if moving or self._dirty:
            self._sync_viewport()
            self._bridge.draw(snapshot)
            self._dirty = False
        return snapshot

    def resize(self, width: float, height: float) -> None:
        """Adopt a new container size; node positions are kept."""

        self._width = float(width)
        self._height = float(height)
        if self._simulator is not None and self._simulator.alive:
            self._simulator.resize(self._width, self._height)
        self._controller.set_transform(self._container_fit())
        self._dirty = True
        if self._placeholder:
            self._sync_viewport()
            self._bridge.draw_placeholder()

    def dispatch(self, event: InteractionEvent) -> InteractionState:
        state = self._controller.dispatch(event)
        self._dirty = True
        return state

    def reset_view(self) -> ViewTransform:
        transform = self._controller.reset_view()
        self._dirty = True
        return transform

    def fit_to_content(self) -> ViewTransform:
        """Zoom so every node is visible, padded by the configured margin."""

        simulator = self._simulator
        if simulator is None:
            return self._controller.transform
        radii = {node.id: node.radius for node in simulator.state.nodes}
        box = content_box_for(simulator.state.positions(), radii)
        self._controller.set_transform(self._fitter.fit(self._width, self._height, box))
        self._dirty = True
        return self._controller.transform

    def unmount(self) -> None:
        """Stop the simulation and detach input; safe to call repeatedly."""

        self._halt_simulator()
        self._controller.teardown()

    def _halt_simulator(self) -> None:
        if self._simulator is not None:
            self._simulator.stop()
            LOGGER.debug("Previous simulation halted")
        self._simulator = None
        self._controller.attach_simulator(None)
        self._bridge.unbind()

    def _container_fit(self) -> ViewTransform:
        # Graph coordinates share the container's frame, so this fit is the identity
        # for any non-empty container.
        return self._fitter.fit(
            self._width,
            self._height,
            ContentBox(0.0, 0.0, self._width, self._height),
            padding=0.0,
        )

    def _sync_viewport(self) -> None:
        self._bridge.set_viewport(self._width, self._height, self._controller.transform)

    def _show_placeholder(self, reason: str) -> None:
        self._placeholder = True
        self._last_error = reason
        self._sync_viewport()
        self._bridge.draw_placeholder()


class DiagramViewport:
    """Zoom and pan over externally rendered content such as a diagram."""

    def __init__(self, config: Optional[AppConfig] = None) -> None:
        self._config = config or AppConfig()
        self._fitter = ViewportFitter(self._config.viewport)
        self._controller = InteractionController(self._fitter, config=self._config.interaction)

    @property
    def transform(self) -> ViewTransform:
        return self._controller.transform

    @property
    def diagnostics(self) -> List[LayoutDiagnostic]:
        return self._fitter.diagnostics

    def mount(
        self,
        width: float,
        height: float,
        content: Union[ContentBox, ContentMeasurer],
    ) -> ViewTransform:
        """Fit freshly rendered content into the container."""

        self._controller.revive()
        box = self._measure(content)
        self._controller.set_transform(self._fitter.fit(width, height, box))
        return self._controller.transform

    def update_content(self, content: Union[ContentBox, ContentMeasurer]) -> ViewTransform:
        """Re-fit after the external renderer produced new content."""

        box = self._measure(content)
        self._controller.set_transform(self._fitter.update_content(box))
        return self._controller.transform

    def resize(self, width: float, height: float) -> ViewTransform:
        self._controller.set_transform(self._fitter.resize(width, height))
        return self._controller.transform

    def dispatch(self, event: InteractionEvent) -> ViewTransform:
        return self._controller.dispatch(event).transform

    def reset_view(self) -> ViewTransform:
        return self._controller.reset_view()

    def unmount(self) -> None:
        self._controller.teardown()

    def _measure(self, content: Union[ContentBox, ContentMeasurer]) -> ContentBox:
        if isinstance(content, ContentBox):
            return content
        try:
            return content()
        except Exception:  # noqa: BLE001 - host measurers may fail while content is detached
            LOGGER.warning("Content measurement failed; falling back to identity", exc_info=True)
            return ContentBox(0.0, 0.0, 0.0, 0.0)
