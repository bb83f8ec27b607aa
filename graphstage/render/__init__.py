"""Rendering bridge and paint surfaces."""

from .bridge import EdgeStyle, LabelStyle, NodeStyle, PaintSurface, RenderBridge
from .svg import SvgSurface

__all__ = [
    "EdgeStyle",
    "LabelStyle",
    "NodeStyle",
    "PaintSurface",
    "RenderBridge",
    "SvgSurface",
]
