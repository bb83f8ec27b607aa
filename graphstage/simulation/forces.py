"""Pure force and constraint functions used by the force simulator.

Every function takes ``(n, 2)`` float arrays and returns a new array; none
mutate their inputs. Pairwise terms are vectorised with NumPy, which keeps a
few hundred nodes well inside a frame budget.
"""

from __future__ import annotations

import math
from typing import Tuple

import numpy as np

EPSILON = 1e-9
GOLDEN_ANGLE = math.pi * (3.0 - math.sqrt(5.0))
SEED_RADIUS = 10.0


def seed_positions(count: int, center: Tuple[float, float], *, start_index: int = 0) -> np.ndarray:
    """Return phyllotaxis seed positions around ``center``."""

    indices = np.arange(start_index, start_index + count, dtype=np.float64)
    radius = SEED_RADIUS * np.sqrt(0.5 + indices)
    angle = indices * GOLDEN_ANGLE
    seeds = np.empty((count, 2), dtype=np.float64)
    seeds[:, 0] = center[0] + radius * np.cos(angle)
    seeds[:, 1] = center[1] + radius * np.sin(angle)
    return seeds


def _fallback_directions(count: int) -> np.ndarray:
    """Antisymmetric unit directions used to separate coincident pairs."""

    directions = np.zeros((count, count, 2), dtype=np.float64)
    if count < 2:
        return directions
    rows, cols = np.triu_indices(count, k=1)
    angles = (rows * count + cols) * GOLDEN_ANGLE
    directions[rows, cols, 0] = np.cos(angles)
    directions[rows, cols, 1] = np.sin(angles)
    directions[cols, rows] = -directions[rows, cols]
    return directions


def _pairwise(positions: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Return unit vectors pointing from j to i and raw distances for every pair."""

    delta = positions[:, np.newaxis, :] - positions[np.newaxis, :, :]
    distance = np.sqrt(np.sum(delta * delta, axis=-1))
    separated = distance > EPSILON
    safe_distance = np.where(separated, distance, 1.0)
    unit = delta / safe_distance[..., np.newaxis]
    unit = np.where(separated[..., np.newaxis], unit, _fallback_directions(len(positions)))
    return unit, distance


def repulsion_forces(positions: np.ndarray, strength: float, min_distance: float) -> np.ndarray:
    """Inverse-square repulsion between every pair of nodes.

    Distances are floored at ``min_distance`` so coincident nodes produce a
    bounded push along a deterministic direction instead of a singularity.
    """

    count = len(positions)
    if count < 2 or strength == 0.0:
        return np.zeros((count, 2), dtype=np.float64)
    unit, distance = _pairwise(positions)
    floored = np.maximum(distance, min_distance)
    magnitude = strength / (floored * floored)
    np.fill_diagonal(magnitude, 0.0)
    return np.sum(unit * magnitude[..., np.newaxis], axis=1)


def link_forces(
    positions: np.ndarray,
    links: np.ndarray,
    rest_length: float,
    stiffness: float,
) -> np.ndarray:
    """Spring forces along edges, proportional to ``distance - rest_length``.

    ``links`` is an ``(m, 2)`` integer array of source/target indices.
    """

    forces = np.zeros_like(positions, dtype=np.float64)
    if len(links) == 0:
        return forces
    sources = links[:, 0]
    targets = links[:, 1]
    delta = positions[targets] - positions[sources]
    distance = np.sqrt(np.sum(delta * delta, axis=-1))
    separated = distance > EPSILON
    safe_distance = np.where(separated, distance, 1.0)
    unit = delta / safe_distance[:, np.newaxis]
    angles = np.arange(len(links), dtype=np.float64) * GOLDEN_ANGLE
    fallback = np.stack([np.cos(angles), np.sin(angles)], axis=-1)
    unit = np.where(separated[:, np.newaxis], unit, fallback)
    pull = (stiffness * (distance - rest_length))[:, np.newaxis] * unit
    np.add.at(forces, sources, pull)
    np.add.at(forces, targets, -pull)
    return forces


def centering_forces(positions: np.ndarray, center: Tuple[float, float], strength: float) -> np.ndarray:
    """Weak linear pull toward ``center``."""

    target = np.asarray(center, dtype=np.float64)
    return strength * (target[np.newaxis, :] - positions)


def clamp_speed(velocities: np.ndarray, max_speed: float) -> np.ndarray:
    """Scale down any velocity whose magnitude exceeds ``max_speed``."""

    speed = np.sqrt(np.sum(velocities * velocities, axis=-1))
    factor = np.where(speed > max_speed, max_speed / np.maximum(speed, EPSILON), 1.0)
    return velocities * factor[:, np.newaxis]


def collision_corrections(
    positions: np.ndarray,
    velocities: np.ndarray,
    radii: np.ndarray,
    movable: np.ndarray,
    strength: float,
) -> np.ndarray:
    """Velocity corrections separating overlapping nodes.

    Overlap is measured on predicted positions (``positions + velocities``)
    against a minimum separation equal to the sum of both radii. When one
    node of a pair is fixed the other absorbs the whole correction; fixed
    nodes never receive one.
    """

    count = len(positions)
    corrections = np.zeros((count, 2), dtype=np.float64)
    if count < 2 or strength == 0.0:
        return corrections
    predicted = positions + velocities
    unit, distance = _pairwise(predicted)
    min_separation = radii[:, np.newaxis] + radii[np.newaxis, :]
    overlap = np.maximum(min_separation - distance, 0.0)
    np.fill_diagonal(overlap, 0.0)
    movable_float = movable.astype(np.float64)
    share = movable_float[:, np.newaxis] * np.where(movable[np.newaxis, :], 0.5, 1.0)
    weighted = overlap * share * strength
    corrections = np.sum(unit * weighted[..., np.newaxis], axis=1)
    return corrections


def clamp_to_bounds(positions: np.ndarray, lower: np.ndarray, upper: np.ndarray) -> np.ndarray:
    """Clip positions into the axis-aligned box ``[lower, upper]``."""

    return np.clip(positions, lower[np.newaxis, :], upper[np.newaxis, :])


def sanitize(values: np.ndarray, fallback: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Replace non-finite rows with ``fallback`` rows.

    Returns:
        The cleaned array and a boolean mask of the rows that were replaced.
    """

    bad_rows = ~np.all(np.isfinite(values), axis=-1)
    if not bad_rows.any():
        return values, bad_rows
    cleaned = values.copy()
    cleaned[bad_rows] = fallback[bad_rows]
    return cleaned, bad_rows
