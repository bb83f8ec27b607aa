"""Viewport fitting and view transforms."""

from .fitter import (
    IDENTITY_TRANSFORM,
    ContentBox,
    ContentMeasurer,
    FitMeasurements,
    ViewportFitter,
    ViewTransform,
    clamp_scale,
    content_box_for,
    fit_transform,
)

__all__ = [
    "ContentBox",
    "ContentMeasurer",
    "FitMeasurements",
    "IDENTITY_TRANSFORM",
    "ViewTransform",
    "ViewportFitter",
    "clamp_scale",
    "content_box_for",
    "fit_transform",
]
