"""Paint surface that serialises frames as standalone SVG documents."""

from __future__ import annotations

import html
from typing import Final, List, Optional

from graphstage.render.bridge import EdgeStyle, LabelStyle, NodeStyle
from graphstage.viewport.fitter import IDENTITY_TRANSFORM, ViewTransform

ARROW_MARKER_ID: Final[str] = "graphstage-arrow"
_FONT_FAMILY: Final[str] = "system-ui, -apple-system, sans-serif"


def _num(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".") or "0"


def _attr(value: str) -> str:
    return html.escape(value, quote=True)


class SvgSurface:
    """Accumulate draw calls for one frame and emit an SVG string on ``end_frame``."""

    def __init__(self, *, background: Optional[str] = None, arrow_color: str = "#94a3b8") -> None:
        self._background = background
        self._arrow_color = arrow_color
        self._width = 0.0
        self._height = 0.0
        self._transform = IDENTITY_TRANSFORM
        self._edges: List[str] = []
        self._nodes: List[str] = []
        self._overlay: List[str] = []
        self._document = ""

    @property
    def document(self) -> str:
        """SVG markup of the last completed frame."""

        return self._document

    def begin_frame(self, width: float, height: float) -> None:
        self._width = width
        self._height = height
        self._transform = IDENTITY_TRANSFORM
        self._edges = []
        self._nodes = []
        self._overlay = []

    def set_transform(self, transform: ViewTransform) -> None:
        self._transform = transform

    def draw_edge(self, x1: float, y1: float, x2: float, y2: float, style: EdgeStyle) -> None:
        marker = f' marker-end="url(#{ARROW_MARKER_ID})"' if style.arrow else ""
        self._edges.append(
            f'<line x1="{_num(x1)}" y1="{_num(y1)}" x2="{_num(x2)}" y2="{_num(y2)}" '
            f'stroke="{_attr(style.color)}" stroke-opacity="{_num(style.opacity)}" '
            f'stroke-width="{_num(style.width)}"{marker}/>'
        )

    def draw_node(
        self,
        node_id: str,
        x: float,
        y: float,
        radius: float,
        style: NodeStyle,
        title: str,
    ) -> None:
        self._nodes.append(
            f'<circle data-id="{_attr(node_id)}" cx="{_num(x)}" cy="{_num(y)}" r="{_num(radius)}" '
            f'fill="{_attr(style.fill)}" stroke="{_attr(style.stroke)}" '
            f'stroke-width="{_num(style.stroke_width)}"><title>{html.escape(title)}</title></circle>'
        )

    def draw_label(self, x: float, y: float, text: str, style: LabelStyle) -> None:
        self._nodes.append(
            f'<text x="{_num(x)}" y="{_num(y)}" text-anchor="middle" '
            f'font-size="{_num(style.font_size)}" fill="{_attr(style.color)}">{html.escape(text)}</text>'
        )

    def draw_placeholder(self, message: str) -> None:
        self._overlay.append(
            f'<text x="{_num(self._width / 2)}" y="{_num(self._height / 2)}" text-anchor="middle" '
            f'dominant-baseline="middle" fill="#64748b">{html.escape(message)}</text>'
        )

    def end_frame(self) -> None:
        width = _num(self._width)
        height = _num(self._height)
        parts = [
            f'<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}" '
            f'viewBox="0 0 {width} {height}" font-family="{_attr(_FONT_FAMILY)}">',
            "<defs>"
            f'<marker id="{ARROW_MARKER_ID}" viewBox="0 -5 10 10" refX="25" refY="0" '
            'markerWidth="6" markerHeight="6" orient="auto">'
            f'<path d="M0,-5L10,0L0,5" fill="{_attr(self._arrow_color)}"/>'
            "</marker></defs>",
        ]
        if self._background:
            parts.append(f'<rect width="100%" height="100%" fill="{_attr(self._background)}"/>')
        if self._edges or self._nodes:
            parts.append(f'<g transform="{self._transform.to_svg()}">')
            parts.append(f'<g class="links">{"".join(self._edges)}</g>')
            parts.append(f'<g class="nodes">{"".join(self._nodes)}</g>')
            parts.append("</g>")
        parts.extend(self._overlay)
        parts.append("</svg>")
        self._document = "".join(parts)
