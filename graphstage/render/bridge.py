"""Map simulation and view state onto draw calls for an external surface."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Tuple

from graphstage.config import RenderConfig
from graphstage.graph.model import SimulationState
from graphstage.simulation.simulator import PositionSnapshot
from graphstage.viewport.fitter import IDENTITY_TRANSFORM, ViewTransform

LOGGER = logging.getLogger(__name__)

LABEL_GAP = 12.0


@dataclass(frozen=True)
class NodeStyle:
    fill: str
    stroke: str
    stroke_width: float = 2.0


@dataclass(frozen=True)
class EdgeStyle:
    color: str
    opacity: float
    width: float
    arrow: bool = True


@dataclass(frozen=True)
class LabelStyle:
    font_size: float
    color: str = "currentColor"


class PaintSurface(Protocol):
    """Drawing backend (canvas, SVG, test recorder) fed by :class:`RenderBridge`."""

    def begin_frame(self, width: float, height: float) -> None: ...

    def set_transform(self, transform: ViewTransform) -> None: ...

    def draw_edge(self, x1: float, y1: float, x2: float, y2: float, style: EdgeStyle) -> None: ...

    def draw_node(
        self,
        node_id: str,
        x: float,
        y: float,
        radius: float,
        style: NodeStyle,
        title: str,
    ) -> None: ...

    def draw_label(self, x: float, y: float, text: str, style: LabelStyle) -> None: ...

    def draw_placeholder(self, message: str) -> None: ...

    def end_frame(self) -> None: ...


@dataclass(frozen=True)
class _NodeMeta:
    category: str
    radius: float


class RenderBridge:
    """Translate position snapshots and the view transform into surface calls."""

    def __init__(self, surface: PaintSurface, config: Optional[RenderConfig] = None) -> None:
        self._surface = surface
        self._config = config or RenderConfig()
        self._nodes: Dict[str, _NodeMeta] = {}
        self._order: List[str] = []
        self._edges: List[Tuple[str, str]] = []
        self._width = 0.0
        self._height = 0.0
        self._transform = IDENTITY_TRANSFORM
        self._frames_drawn = 0

    @property
    def surface(self) -> PaintSurface:
        return self._surface

    @property
    def frames_drawn(self) -> int:
        return self._frames_drawn

    def bind(self, state: SimulationState) -> None:
        """Capture node styling inputs and edge endpoints for a dataset."""

        self._nodes = {
            node.id: _NodeMeta(category=node.category.value, radius=node.radius) for node in state.nodes
        }
        self._order = [node.id for node in state.nodes]
        self._edges = [(edge.source.id, edge.target.id) for edge in state.edges]

    def unbind(self) -> None:
        self._nodes = {}
        self._order = []
        self._edges = []

    def set_viewport(self, width: float, height: float, transform: ViewTransform) -> None:
        self._width = width
        self._height = height
        self._transform = transform

    def draw(self, snapshot: PositionSnapshot) -> None:
        """Draw one frame: edges first, then nodes and labels on top."""

        surface = self._surface
        config = self._config
        positions = snapshot.positions
        surface.begin_frame(self._width, self._height)
        surface.set_transform(self._transform)

        edge_style = EdgeStyle(
            color=config.edge_color,
            opacity=config.edge_opacity,
            width=config.edge_width,
        )
        for source_id, target_id in self._edges:
            source = positions.get(source_id)
            target = positions.get(target_id)
            if source is None or target is None:
                continue
            surface.draw_edge(source[0], source[1], target[0], target[1], edge_style)

        label_style = LabelStyle(font_size=config.label_font_size)
        for node_id in self._order:
            position = positions.get(node_id)
            meta = self._nodes.get(node_id)
            if position is None or meta is None:
                continue
            style = NodeStyle(fill=config.color_for(meta.category), stroke=config.stroke_color)
            surface.draw_node(
                node_id,
                position[0],
                position[1],
                meta.radius,
                style,
                f"{node_id} ({meta.category})",
            )
            if config.show_labels:
                surface.draw_label(position[0], position[1] + meta.radius + LABEL_GAP, node_id, label_style)

        surface.end_frame()
        self._frames_drawn += 1

    def draw_placeholder(self, message: Optional[str] = None) -> None:
        """Draw the empty state shown when no graph can be displayed."""

        surface = self._surface
        surface.begin_frame(self._width, self._height)
        surface.draw_placeholder(message or self._config.placeholder_text)
        surface.end_frame()
        self._frames_drawn += 1
        LOGGER.debug("Rendered placeholder frame")
