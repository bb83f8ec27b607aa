"""Error taxonomy shared by the layout, viewport and interaction layers.

Only :class:`ValidationError` is ever raised to callers. The remaining
entries are diagnostic records describing anomalies that were recovered
from locally; they are attached to the owning state object and logged, so
hosts can inspect them without the render path ever seeing an exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


class LayoutError(Exception):
    """Base class for errors raised by graphstage."""


class ValidationError(LayoutError, ValueError):
    """Raised when graph input cannot be turned into a simulation state."""

    def __init__(self, message: str, *, duplicate_ids: Tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.duplicate_ids = duplicate_ids


@dataclass(frozen=True)
class LayoutDiagnostic:
    """A recovered anomaly recorded for later inspection."""

    message: str

    @property
    def kind(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class DataIntegrityWarning(LayoutDiagnostic):
    """An edge referenced an id missing from the node set and was dropped."""

    source: str = ""
    target: str = ""
    missing_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class NumericInstability(LayoutDiagnostic):
    """Non-finite values appeared during a tick and were sanitized."""

    tick: int = 0
    node_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DegenerateContent(LayoutDiagnostic):
    """Content could not be measured, so the identity transform was used."""

    width: float = 0.0
    height: float = 0.0
