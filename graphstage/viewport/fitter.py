"""Geometry for fitting bounded content into a viewing container."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Callable, List, Mapping, Optional, Tuple, Union

from graphstage.config import ViewportConfig
from graphstage.errors import DegenerateContent, LayoutDiagnostic

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContentBox:
    """Axis-aligned bounding box of the content being fitted."""

    x: float
    y: float
    width: float
    height: float

    @property
    def is_measurable(self) -> bool:
        values = (self.x, self.y, self.width, self.height)
        if not all(math.isfinite(value) for value in values):
            return False
        return self.width > 0 and self.height > 0


@dataclass(frozen=True)
class ViewTransform:
    """Uniform scale followed by translation, mapping world to screen space."""

    scale: float = 1.0
    translate_x: float = 0.0
    translate_y: float = 0.0

    def apply(self, x: float, y: float) -> Tuple[float, float]:
        return x * self.scale + self.translate_x, y * self.scale + self.translate_y

    def invert(self, x: float, y: float) -> Tuple[float, float]:
        return (x - self.translate_x) / self.scale, (y - self.translate_y) / self.scale

    def translated(self, dx: float, dy: float) -> "ViewTransform":
        return replace(self, translate_x=self.translate_x + dx, translate_y=self.translate_y + dy)

    def to_svg(self) -> str:
        return f"translate({self.translate_x:.6g},{self.translate_y:.6g}) scale({self.scale:.6g})"


IDENTITY_TRANSFORM = ViewTransform()

# Supplied by the host; measures whatever the external renderer produced.
ContentMeasurer = Callable[[], ContentBox]


@dataclass(frozen=True)
class FitMeasurements:
    """Inputs of the most recent fit, reused by ``reset``."""

    container_width: float
    container_height: float
    content: Optional[ContentBox]
    padding: float


def clamp_scale(scale: float, min_scale: float, max_scale: float) -> float:
    """Clamp ``scale`` into ``[min_scale, max_scale]``; non-finite values map to ``min_scale``."""

    if not math.isfinite(scale):
        return min_scale
    return min(max(scale, min_scale), max_scale)


def fit_transform(
    container_width: float,
    container_height: float,
    content: ContentBox,
    padding: float,
    *,
    scale_cap: float = 1.0,
    min_scale: float = 0.1,
    max_scale: float = 8.0,
) -> ViewTransform:
    """Compute the transform that centres ``content`` inside the container.

    The scale fits the content within the container less ``padding`` on each
    side, never exceeds ``scale_cap`` and stays within the scale bounds.
    Unmeasurable content yields the identity transform.
    """

    if not content.is_measurable:
        return IDENTITY_TRANSFORM
    if not (math.isfinite(container_width) and math.isfinite(container_height)):
        return IDENTITY_TRANSFORM

    scale = min(
        (container_width - 2 * padding) / content.width,
        (container_height - 2 * padding) / content.height,
    )
    scale = min(scale, scale_cap)
    scale = clamp_scale(scale, min_scale, max_scale)
    translate_x = (container_width - content.width * scale) / 2 - content.x * scale
    translate_y = (container_height - content.height * scale) / 2 - content.y * scale
    return ViewTransform(scale=scale, translate_x=translate_x, translate_y=translate_y)


def content_box_for(
    positions: Mapping[str, Tuple[float, float]],
    radii: Union[Mapping[str, float], float] = 0.0,
) -> ContentBox:
    """Return the bounding box of circles centred at ``positions``."""

    min_x = min_y = math.inf
    max_x = max_y = -math.inf
    for node_id, (x, y) in positions.items():
        radius = radii.get(node_id, 0.0) if isinstance(radii, Mapping) else float(radii)
        min_x = min(min_x, x - radius)
        min_y = min(min_y, y - radius)
        max_x = max(max_x, x + radius)
        max_y = max(max_y, y + radius)
    if min_x > max_x:
        return ContentBox(0.0, 0.0, 0.0, 0.0)
    return ContentBox(min_x, min_y, max_x - min_x, max_y - min_y)


class ViewportFitter:
    """Stateful wrapper around :func:`fit_transform` remembering the last measurements."""

    def __init__(self, config: Optional[ViewportConfig] = None) -> None:
        self._config = config or ViewportConfig()
        self._measurements: Optional[FitMeasurements] = None
        self._diagnostics: List[LayoutDiagnostic] = []

    @property
    def config(self) -> ViewportConfig:
        return self._config

    @property
    def measurements(self) -> Optional[FitMeasurements]:
        return self._measurements

    @property
    def diagnostics(self) -> List[LayoutDiagnostic]:
        return list(self._diagnostics)

    def clamp_scale(self, scale: float) -> float:
        return clamp_scale(scale, self._config.min_scale, self._config.max_scale)

    def fit(
        self,
        container_width: float,
        container_height: float,
        content: ContentBox,
        padding: Optional[float] = None,
    ) -> ViewTransform:
        """Fit ``content`` into the container and remember the inputs for ``reset``."""

        resolved_padding = self._config.padding if padding is None else padding
        self._measurements = FitMeasurements(
            container_width=container_width,
            container_height=container_height,
            content=content,
            padding=resolved_padding,
        )
        return self._compute(self._measurements)

    def reset(self) -> ViewTransform:
        """Re-run the fit with the current measurements."""

        if self._measurements is None:
            return IDENTITY_TRANSFORM
        return self._compute(self._measurements)

    def resize(self, container_width: float, container_height: float) -> ViewTransform:
        """Record a new container size and re-fit the last content."""

        previous = self._measurements
        self._measurements = FitMeasurements(
            container_width=container_width,
            container_height=container_height,
            content=previous.content if previous else None,
            padding=previous.padding if previous else self._config.padding,
        )
        return self._compute(self._measurements)

    def update_content(self, content: ContentBox) -> ViewTransform:
        """Record a new content box, keeping the container size, and re-fit."""

        previous = self._measurements
        if previous is None:
            LOGGER.debug("Content updated before the container was measured; using identity")
            self._measurements = FitMeasurements(0.0, 0.0, content, self._config.padding)
            return IDENTITY_TRANSFORM
        self._measurements = replace(previous, content=content)
        return self._compute(self._measurements)

    def fit_measured(
        self,
        container_width: float,
        container_height: float,
        measure: ContentMeasurer,
    ) -> ViewTransform:
        """Fit content whose bounds come from a host-provided measurer."""

        return self.fit(container_width, container_height, measure())

    def _compute(self, measurements: FitMeasurements) -> ViewTransform:
        content = measurements.content
        if content is None or not content.is_measurable:
            width = content.width if content is not None else 0.0
            height = content.height if content is not None else 0.0
            self._diagnostics.append(
                DegenerateContent(
                    message="Content has no measurable size; using identity transform",
                    width=width,
                    height=height,
                )
            )
            LOGGER.debug("Degenerate content box (%s x %s); identity transform", width, height)
            return IDENTITY_TRANSFORM
        return fit_transform(
            measurements.container_width,
            measurements.container_height,
            content,
            measurements.padding,
            scale_cap=self._config.fit_scale_cap,
            min_scale=self._config.min_scale,
            max_scale=self._config.max_scale,
        )
