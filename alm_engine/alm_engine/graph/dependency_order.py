"""Solution dependency graph built from each unpacked solution's manifest.

Edges point **from** a required solution **to** the solution that requires
it.  Only solutions listed in the ALM manifest become nodes; dependencies on
platform or third-party solutions are outside our control and are ignored.
"""

from __future__ import annotations

import logging
from pathlib import Path

import networkx as nx

from alm_engine.manifest.loader import ManifestError
from alm_engine.models.manifest import AlmManifest
from alm_engine.versioning.solution_xml import read_required_solutions

logger = logging.getLogger(__name__)


def build_solution_graph(manifest: AlmManifest, solutions_dir: Path) -> nx.DiGraph:
    """Return a directed graph over the manifest's solutions.

    Node names are the manifest names; requirement matching ignores case the
    same way the platform does.
    """
    graph = nx.DiGraph()
    by_lower = {name.lower(): name for name in manifest.solution_names()}
    for name in manifest.solution_names():
        graph.add_node(name)

    for name in manifest.solution_names():
        for required in read_required_solutions(solutions_dir / name):
            upstream = by_lower.get(required.lower())
            if upstream is None:
                logger.debug("%s requires external solution %s", name, required)
                continue
            if upstream != name:
                graph.add_edge(upstream, name)
    return graph


def validate_solution_order(manifest: AlmManifest, solutions_dir: Path) -> nx.DiGraph:
    """Check that the manifest lists every solution after the ones it requires.

    Raises
    ------
    ManifestError
        On a dependency cycle, or when a solution is listed before a
        solution it requires.
    """
    graph = build_solution_graph(manifest, solutions_dir)

    cycles = list(nx.simple_cycles(graph))
    if cycles:
        formatted = "; ".join(" -> ".join([*cycle, cycle[0]]) for cycle in cycles)
        raise ManifestError(f"Cyclic solution dependencies: {formatted}")

    position = {name: index for index, name in enumerate(manifest.solution_names())}
    misordered = sorted(
        (upstream, downstream) for upstream, downstream in graph.edges if position[upstream] > position[downstream]
    )
    if misordered:
        details = ", ".join(f"{down} requires {up}" for up, down in misordered)
        raise ManifestError(f"Solutions are listed before their dependencies: {details}")
    return graph
