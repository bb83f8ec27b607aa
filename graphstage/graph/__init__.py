"""Graph input validation and simulation state."""

from .model import Edge, GraphModel, Node, SimulationParameters, SimulationState

__all__ = [
    "Edge",
    "GraphModel",
    "Node",
    "SimulationParameters",
    "SimulationState",
]
