"""Force-directed layout simulation."""

from . import forces
from .simulator import ForceSimulator, PositionSnapshot, SimulatorStatus

__all__ = [
    "ForceSimulator",
    "PositionSnapshot",
    "SimulatorStatus",
    "forces",
]
