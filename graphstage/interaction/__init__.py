"""Pointer, wheel and pinch handling for drag, pan and zoom."""

from .controller import DragSession, InteractionController, InteractionState, PanSession, zoom_at
from .events import InteractionEvent, PinchEvent, PointerEvent, PointerPhase, WheelDeltaMode, WheelEvent

__all__ = [
    "DragSession",
    "InteractionController",
    "InteractionEvent",
    "InteractionState",
    "PanSession",
    "PinchEvent",
    "PointerEvent",
    "PointerPhase",
    "WheelDeltaMode",
    "WheelEvent",
    "zoom_at",
]
