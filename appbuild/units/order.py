"""Build order computation.

Orders units so that every unit comes after the units it depends on.
Ties are broken by input order, so the result is deterministic.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from appbuild.errors import CycleError
from appbuild.units.models import UnitDescriptor

logger = logging.getLogger(__name__)


def _find_cycles(edges: dict[str, list[str]], names: Sequence[str]) -> list[list[str]]:
    """Return strongly connected components that form cycles (Tarjan)."""
    index: dict[str, int] = {}
    lowlink: dict[str, int] = {}
    on_stack: set[str] = set()
    stack: list[str] = []
    cycles: list[list[str]] = []
    counter = 0

    def visit(node: str) -> None:
        nonlocal counter
        index[node] = lowlink[node] = counter
        counter += 1
        stack.append(node)
        on_stack.add(node)
        for succ in edges[node]:
            if succ not in index:
                visit(succ)
                lowlink[node] = min(lowlink[node], lowlink[succ])
            elif succ in on_stack:
                lowlink[node] = min(lowlink[node], index[succ])
        if lowlink[node] == index[node]:
            component: list[str] = []
            while True:
                member = stack.pop()
                on_stack.discard(member)
                component.append(member)
                if member == node:
                    break
            if len(component) > 1 or node in edges[node]:
                cycles.append(sorted(component))

    for name in names:
        if name not in index:
            visit(name)
    return cycles


def compute_order(units: Sequence[UnitDescriptor]) -> list[UnitDescriptor]:
    """Compute a build order respecting dependency edges.

    Dependencies naming units outside of ``units`` are ignored; they are
    expected to have been built already.

    Args:
        units: Units to order.

    Returns:
        Units ordered so that dependencies precede dependents.

    Raises:
        CycleError: If the dependency relation contains a cycle.
    """
    by_name = {unit.name: unit for unit in units}
    names = [unit.name for unit in units]

    edges: dict[str, list[str]] = {
        unit.name: [dep for dep in unit.deps if dep in by_name] for unit in units
    }
    remaining = {name: len(set(deps)) for name, deps in edges.items()}
    dependents: dict[str, list[str]] = {name: [] for name in names}
    for name, deps in edges.items():
        for dep in set(deps):
            dependents[dep].append(name)

    position = {name: i for i, name in enumerate(names)}
    ready = sorted((n for n in names if remaining[n] == 0), key=position.__getitem__)
    ordered: list[str] = []

    while ready:
        name = ready.pop(0)
        ordered.append(name)
        for dependent in dependents[name]:
            remaining[dependent] -= 1
            if remaining[dependent] == 0:
                ready.append(dependent)
        ready.sort(key=position.__getitem__)

    if len(ordered) != len(names):
        cycles = _find_cycles(edges, names)
        raise CycleError(cycles)

    logger.debug("Build order: %s", ", ".join(ordered))
    return [by_name[name] for name in ordered]


__all__ = ["compute_order"]
