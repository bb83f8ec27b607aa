"""Interactive 2D layout for dependency graphs and externally rendered diagrams."""

from .config import AppConfig, ConfigError, load_config
from .errors import LayoutError, ValidationError
from .session import DiagramViewport, GraphVisualization

__all__ = [
    "AppConfig",
    "ConfigError",
    "DiagramViewport",
    "GraphVisualization",
    "LayoutError",
    "ValidationError",
    "load_config",
]

__version__ = "0.1.0"
