"""Framework-neutral input events consumed by the interaction controller."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


class PointerPhase(str, Enum):
    """Phase of a pointer gesture."""

    DOWN = "down"
    MOVE = "move"
    UP = "up"
    CANCEL = "cancel"


class WheelDeltaMode(int, Enum):
    """Units of a wheel delta, mirroring DOM ``WheelEvent.deltaMode``."""

    PIXEL = 0
    LINE = 1
    PAGE = 2


@dataclass(frozen=True)
class PointerEvent:
    """Pointer event in container (screen) coordinates."""

    phase: PointerPhase
    x: float
    y: float
    pointer_id: int = 0


@dataclass(frozen=True)
class WheelEvent:
    """Wheel event; a positive ``delta_y`` zooms out.

    Trackpad pinches arrive from browsers as wheel events with ``ctrl_key`` set.
    """

    x: float
    y: float
    delta_y: float
    delta_mode: WheelDeltaMode = WheelDeltaMode.PIXEL
    ctrl_key: bool = False


@dataclass(frozen=True)
class PinchEvent:
    """Touch pinch step carrying the relative scale change since the previous step."""

    x: float
    y: float
    scale_factor: float


InteractionEvent = Union[PointerEvent, WheelEvent, PinchEvent]
