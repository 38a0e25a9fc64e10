"""Solution dependency graph."""

from __future__ import annotations

from alm_engine.graph.dependency_order import build_solution_graph, validate_solution_order

__all__ = [
    "build_solution_graph",
    "validate_solution_order",
]
