#!/usr/bin/env python3
"""Lay out a dependency graph JSON file and write the settled frame as SVG."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from graphstage.config import AppConfig, ConfigError, load_config
from graphstage.contracts import DependencyGraph
from graphstage.errors import ValidationError
from graphstage.graph.model import GraphModel
from graphstage.render.bridge import RenderBridge
from graphstage.render.svg import SvgSurface
from graphstage.simulation.simulator import ForceSimulator, PositionSnapshot
from graphstage.viewport.fitter import IDENTITY_TRANSFORM, ViewportFitter, content_box_for

LOGGER = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments for the renderer.

    Args:
        argv: Optional argument list; defaults to ``sys.argv``.

    Returns:
        argparse.Namespace: Parsed command line arguments.
    """
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("input", type=Path, help="JSON file with 'nodes' and 'edges' (or 'links')")
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Destination SVG path (default: input path with .svg suffix)",
    )
    parser.add_argument("--width", type=float, default=800.0, help="Canvas width (default: 800)")
    parser.add_argument("--height", type=float, default=600.0, help="Canvas height (default: 600)")
    parser.add_argument("--config", type=Path, default=None, help="Alternative config.yaml")
    parser.add_argument(
        "--max-ticks",
        type=int,
        default=None,
        help="Upper bound on simulation ticks (default: simulation.max_ticks)",
    )
    parser.add_argument(
        "--fit",
        action="store_true",
        help="Zoom the output so every node is visible",
    )
    return parser.parse_args(argv)


def load_graph(path: Path) -> DependencyGraph:
    """Read and validate a graph payload from ``path``.

    Raises:
        ValueError: If the file is not a JSON object.
    """

    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError(f"{path} must contain a JSON object")
    return DependencyGraph.from_payload(payload)


def render_graph(
    graph: DependencyGraph,
    *,
    width: float,
    height: float,
    config: AppConfig,
    max_ticks: Optional[int] = None,
    fit: bool = False,
) -> tuple[str, PositionSnapshot]:
    """Run the layout to rest and return the SVG document with the final snapshot."""

    state = GraphModel(config.simulation).build(
        graph.nodes, graph.edges, center=(width / 2.0, height / 2.0)
    )
    simulator = ForceSimulator(state, width=width, height=height, config=config.simulation)
    snapshot = simulator.run_until_stopped(max_ticks)
    LOGGER.info(
        "Layout finished after %d ticks (alpha=%.4f, status=%s)",
        snapshot.tick,
        snapshot.alpha,
        snapshot.status.value,
    )

    transform = IDENTITY_TRANSFORM
    if fit:
        radii = {node.id: node.radius for node in state.nodes}
        fitter = ViewportFitter(config.viewport)
        transform = fitter.fit(width, height, content_box_for(snapshot.positions, radii))

    surface = SvgSurface(background=config.render.background, arrow_color=config.render.edge_color)
    bridge = RenderBridge(surface, config.render)
    bridge.bind(state)
    bridge.set_viewport(width, height, transform)
    bridge.draw(snapshot)
    simulator.stop()
    return surface.document, snapshot


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the graph renderer.

    Returns:
        int: Exit status code where ``0`` indicates success.
    """
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    try:
        graph = load_graph(args.input)
    except (OSError, ValueError) as exc:
        print(f"Could not read graph: {exc}", file=sys.stderr)
        return 1

    try:
        document, snapshot = render_graph(
            graph,
            width=args.width,
            height=args.height,
            config=config,
            max_ticks=args.max_ticks,
            fit=args.fit,
        )
    except ValidationError as exc:
        print(f"Invalid graph: {exc}", file=sys.stderr)
        return 1

    output = args.output or args.input.with_suffix(".svg")
    output.write_text(document, encoding="utf-8")
    print(f"Wrote {output} ({len(snapshot.positions)} nodes, tick {snapshot.tick})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
