"""Validation and normalisation of raw node/edge input into simulation state."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from graphstage.config import SimulationConfig
from graphstage.contracts import DependencyLink, DependencyNode, NodeCategory
from graphstage.errors import DataIntegrityWarning, LayoutDiagnostic, ValidationError

LOGGER = logging.getLogger(__name__)

NodeInput = Union[DependencyNode, Mapping[str, object]]
EdgeInput = Union[DependencyLink, Mapping[str, object]]


@dataclass
class Node:
    """Simulation node; position and velocity are owned by the simulator."""

    id: str
    category: NodeCategory
    radius: float
    x: Optional[float] = None
    y: Optional[float] = None
    vx: float = 0.0
    vy: float = 0.0
    fx: Optional[float] = None
    fy: Optional[float] = None

    @property
    def pinned(self) -> bool:
        return self.fx is not None and self.fy is not None

    @property
    def seeded(self) -> bool:
        return self.x is not None and self.y is not None


@dataclass(frozen=True)
class Edge:
    """Edge resolved to live node references."""

    source: Node
    target: Node


@dataclass(frozen=True)
class SimulationParameters:
    """Force parameters for a single simulation run."""

    link_distance: float
    link_stiffness: float
    repulsion_strength: float
    min_distance: float
    centering_strength: float
    collision_radius: float
    collision_strength: float
    center_x: float = 0.0
    center_y: float = 0.0

    @classmethod
    def from_config(
        cls,
        config: SimulationConfig,
        *,
        center: Tuple[float, float] = (0.0, 0.0),
    ) -> "SimulationParameters":
        return cls(
            link_distance=config.link_distance,
            link_stiffness=config.link_stiffness,
            repulsion_strength=config.repulsion_strength,
            min_distance=config.min_distance,
            centering_strength=config.centering_strength,
            collision_radius=config.collision_radius,
            collision_strength=config.collision_strength,
            center_x=float(center[0]),
            center_y=float(center[1]),
        )


@dataclass
class SimulationState:
    """Mutable state shared by the simulator and the interaction layer."""

    nodes: List[Node]
    edges: List[Edge]
    parameters: SimulationParameters
    alpha: float = 1.0
    alpha_target: float = 0.0
    tick_count: int = 0
    dropped_edges: List[DependencyLink] = field(default_factory=list)
    diagnostics: List[LayoutDiagnostic] = field(default_factory=list)
    _index: Dict[str, int] = field(init=False, repr=False, default_factory=dict)

    def __post_init__(self) -> None:
        self._index = {node.id: position for position, node in enumerate(self.nodes)}

    @property
    def node_ids(self) -> List[str]:
        return [node.id for node in self.nodes]

    def get(self, node_id: str) -> Optional[Node]:
        index = self._index.get(node_id)
        if index is None:
            return None
        return self.nodes[index]

    def node(self, node_id: str) -> Node:
        """Return the node with ``node_id``.

        Raises:
            KeyError: If the id is unknown.
        """

        return self.nodes[self._index[node_id]]

    def index_of(self, node_id: str) -> int:
        return self._index[node_id]

    def edge_index_pairs(self) -> List[Tuple[int, int]]:
        """Return edges as ``(source_index, target_index)`` pairs."""

        return [(self._index[edge.source.id], self._index[edge.target.id]) for edge in self.edges]

    def positions(self) -> Dict[str, Tuple[float, float]]:
        """Return positions of every seeded node."""

        return {
            node.id: (float(node.x), float(node.y))
            for node in self.nodes
            if node.x is not None and node.y is not None
        }


class GraphModel:
    """Build fresh simulation state from untrusted node and edge payloads."""

    def __init__(self, config: Optional[SimulationConfig] = None) -> None:
        self._config = config or SimulationConfig()

    @property
    def config(self) -> SimulationConfig:
        return self._config

    def build(
        self,
        nodes: Iterable[NodeInput],
        edges: Iterable[EdgeInput],
        *,
        center: Tuple[float, float] = (0.0, 0.0),
    ) -> SimulationState:
        """Validate input and produce a new :class:`SimulationState`.

        Node data is copied; caller objects are never mutated. Edges whose
        endpoints are absent from the node set are dropped and recorded as
        :class:`DataIntegrityWarning` diagnostics.

        Args:
            nodes: Node payloads (``DependencyNode`` or ``{id, category}`` mappings).
            edges: Edge payloads (``DependencyLink`` or ``{source, target}`` mappings).
            center: Initial centering point for the simulation.

        Returns:
            SimulationState: State ready for a ``ForceSimulator``.

        Raises:
            ValidationError: If node ids are duplicated or a node payload carries no usable id.
        """

        parsed_nodes = [self._parse_node(item) for item in nodes]
        duplicates = self._find_duplicates(parsed_nodes)
        if duplicates:
            raise ValidationError(
                "Duplicate node ids: " + ", ".join(duplicates),
                duplicate_ids=tuple(duplicates),
            )

        sim_nodes = [
            Node(
                id=item.id,
                category=item.category,
                radius=self._config.radius_for(item.category.value),
            )
            for item in parsed_nodes
        ]
        by_id: Dict[str, Node] = {node.id: node for node in sim_nodes}

        resolved: List[Edge] = []
        dropped: List[DependencyLink] = []
        diagnostics: List[LayoutDiagnostic] = []
        for raw_edge in edges:
            link = self._parse_link(raw_edge)
            if link is None:
                diagnostics.append(DataIntegrityWarning(message="Malformed edge payload dropped"))
                continue
            source = by_id.get(link.source)
            target = by_id.get(link.target)
            if source is None or target is None:
                missing = tuple(
                    endpoint for endpoint in (link.source, link.target) if endpoint not in by_id
                )
                dropped.append(link)
                diagnostics.append(
                    DataIntegrityWarning(
                        message=f"Dropped edge {link.source!r} -> {link.target!r}",
                        source=link.source,
                        target=link.target,
                        missing_ids=missing,
                    )
                )
                continue
            resolved.append(Edge(source=source, target=target))

        if diagnostics:
            LOGGER.debug(
                "Dropped %d dangling or malformed edges while building graph (%d nodes)",
                len(diagnostics),
                len(sim_nodes),
            )

        return SimulationState(
            nodes=sim_nodes,
            edges=resolved,
            parameters=SimulationParameters.from_config(self._config, center=center),
            alpha=self._config.alpha,
            alpha_target=self._config.alpha_target,
            dropped_edges=dropped,
            diagnostics=diagnostics,
        )

    @staticmethod
    def _parse_node(item: NodeInput) -> DependencyNode:
        if isinstance(item, DependencyNode):
            return item
        if not isinstance(item, Mapping):
            raise ValidationError(f"Unsupported node payload type: {type(item).__name__}")
        try:
            return DependencyNode.model_validate(dict(item))
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid node payload: {dict(item)!r}") from exc

    @staticmethod
    def _parse_link(item: EdgeInput) -> Optional[DependencyLink]:
        if isinstance(item, DependencyLink):
            return item
        if not isinstance(item, Mapping):
            return None
        try:
            return DependencyLink.model_validate(dict(item))
        except PydanticValidationError:
            LOGGER.debug("Skipping malformed edge payload %r", item)
            return None

    @staticmethod
    def _find_duplicates(nodes: Iterable[DependencyNode]) -> List[str]:
        seen: set[str] = set()
        duplicates: List[str] = []
        for node in nodes:
            if node.id in seen and node.id not in duplicates:
                duplicates.append(node.id)
            seen.add(node.id)
        return duplicates
