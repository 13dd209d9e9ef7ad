"""
Lattice Generator (Mode Dispatcher)
===================================
The single entry point `generate_lattice(settings) -> LatticeGraph`.

Why is this file needed?
------------------------
1. Mode selection: exactly one geometry mode is active. `resolve_mode` picks
   it in a fixed priority order (equal-step, grid, sphere, diamond, spiral,
   tree); modes are never merged.
2. Post-passes: every mode's output goes through deduplication (when
   enabled), masking, and the curved projection (when enabled), in that
   order.
3. Purity: all state lives in locals of one call, so the same settings always
   produce the same graph.
"""
from __future__ import annotations

import logging
from enum import StrEnum
from typing import Any, Mapping

from jilattice.controller.branches import BranchOverrides, TreeExpander
from jilattice.controller.curved import apply_curved_geometry
from jilattice.controller.dedup import deduplicate
from jilattice.controller.modes.diamond import generate_diamond
from jilattice.controller.modes.equal_step import generate_equal_step
from jilattice.controller.modes.grid import generate_grid
from jilattice.controller.modes.sphere import generate_sphere
from jilattice.controller.modes.spiral import generate_spiral
from jilattice.controller.nodes import LatticeBuilder
from jilattice.model.graph import LatticeGraph
from jilattice.model.settings import GridMode, LatticeSettings, LayoutMode

logger = logging.getLogger(__name__)


class GeometryMode(StrEnum):
    TREE = "tree"
    EQUAL_STEP = "equal_step"
    RECTANGULAR = "rectangular"
    SPHERE = "sphere"
    SPIRAL = "spiral"
    DIAMOND = "diamond"


def resolve_mode(settings: LatticeSettings) -> GeometryMode:
    if settings.equal_step.enabled:
        return GeometryMode.EQUAL_STEP
    if settings.geometry.enabled and settings.geometry.mode != GridMode.SPHERE:
        return GeometryMode.RECTANGULAR
    if settings.geometry.enabled:
        return GeometryMode.SPHERE
    if settings.visuals.layout_mode == LayoutMode.DIAMOND:
        return GeometryMode.DIAMOND
    if settings.spiral.enabled:
        return GeometryMode.SPIRAL
    return GeometryMode.TREE


def generate_tree(settings: LatticeSettings) -> LatticeGraph:
    builder = LatticeBuilder(settings)
    expander = TreeExpander(
        settings,
        builder,
        overrides=BranchOverrides.from_settings(settings),
        curved_enabled=settings.curved.enabled,
    )
    expander.expand()
    return builder.store.to_graph()


def generate_lattice(settings: LatticeSettings | Mapping[str, Any]) -> LatticeGraph:
    """
    Build the lattice described by `settings`.

    Args:
        settings: A `LatticeSettings` or its dict form.

    Returns:
        The finished graph after all post-passes.

    Raises:
        SettingsError: If the dict form is structurally invalid.
    """
    settings = LatticeSettings.coerce(settings)
    mode = resolve_mode(settings)
    logger.info(f"Generating lattice in '{mode}' mode")

    match mode:
        case GeometryMode.EQUAL_STEP:
            graph = generate_equal_step(settings)
        case GeometryMode.RECTANGULAR:
            graph = generate_grid(settings)
        case GeometryMode.SPHERE:
            graph = generate_sphere(settings)
        case GeometryMode.DIAMOND:
            graph = generate_diamond(settings)
        case GeometryMode.SPIRAL:
            graph = generate_spiral(settings)
        case GeometryMode.TREE:
            graph = generate_tree(settings)

    if settings.deduplicate:
        graph = deduplicate(graph, settings.dedup_tolerance, settings.priority_order)

    if settings.masked_node_ids:
        graph = graph.without_nodes(settings.masked_node_ids)

    if settings.curved.enabled:
        graph = LatticeGraph(apply_curved_geometry(graph.nodes, settings), graph.edges)

    logger.info(f"Lattice ready: {len(graph.nodes)} nodes, {len(graph.edges)} edges")
    return graph
