"""Immutable input contracts for dependency graph payloads."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, List, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

LOGGER = logging.getLogger(__name__)


class _FrozenBaseModel(BaseModel):
    """Base model enforcing immutability after creation."""

    model_config = ConfigDict(frozen=True)


class NodeCategory(str, Enum):
    """Categories assigned to dependency graph nodes by the upstream analysis."""

    LANGUAGE = "Language"
    FRAMEWORK = "Framework"
    LIBRARY = "Library"
    TOOL = "Tool"
    DATABASE = "Database"
    CORE = "Core"

    @classmethod
    def coerce(cls, value: object) -> "NodeCategory":
        """Map an arbitrary upstream value onto a known category.

        Matching is case-insensitive. Anything unrecognised falls back to
        ``LIBRARY`` since upstream classification is not reliable.
        """

        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            cleaned = value.strip().lower()
            for member in cls:
                if member.value.lower() == cleaned or member.name.lower() == cleaned:
                    return member
        LOGGER.debug("Unknown node category %r; treating as %s", value, cls.LIBRARY.value)
        return cls.LIBRARY


class DependencyNode(_FrozenBaseModel):
    """Node payload as produced by the repository analysis."""

    id: str
    category: NodeCategory = NodeCategory.LIBRARY

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: object) -> str:
        """Keep string identifiers verbatim, including empty ones.

        Upstream analysis occasionally emits numeric ids; those are converted
        with ``str``. Whitespace is significant, so ``"react "`` and
        ``"react"`` are distinct nodes.

        Raises:
            ValueError: If the identifier is neither a string nor a number.
        """
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        raise ValueError("node id must be a string")

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value: object) -> NodeCategory:
        return NodeCategory.coerce(value)


class DependencyLink(_FrozenBaseModel):
    """Directed edge payload; ids are not checked against the node set here."""

    source: str
    target: str

    @field_validator("source", "target", mode="before")
    @classmethod
    def _coerce_endpoint(cls, value: object) -> str:
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        raise ValueError("edge endpoints must be node ids")


class DependencyGraph(_FrozenBaseModel):
    """Container for a dependency graph payload."""

    nodes: List[DependencyNode] = Field(default_factory=list)
    edges: List[DependencyLink] = Field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "DependencyGraph":
        """Build a graph from a raw mapping, accepting ``links`` as an alias of ``edges``."""

        nodes = payload.get("nodes") or []
        edges = payload.get("edges")
        if edges is None:
            edges = payload.get("links") or []
        return cls(nodes=list(nodes), edges=list(edges))

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return len(self.edges)
