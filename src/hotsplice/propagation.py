"""Work out which modules must be re-imported after a file change."""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import AbstractContextManager, nullcontext
from pathlib import Path
from typing import Any

from .graph import DependencyGraph
from .registry import ModuleRegistry, RegistryEntry

LOGGER = logging.getLogger(__name__)


def collect_acceptees(
    changed: RegistryEntry,
    graph: DependencyGraph,
    registry: ModuleRegistry,
    *,
    evict: Callable[[RegistryEntry], None],
    unwatch: Callable[[Path], None],
    guard: AbstractContextManager[Any] | None = None,
) -> list[Path]:
    """Invalidate ``changed`` and its dependants, returning the reload roots.

    Each visited module has its store callback run, is evicted via ``evict``
    and loses its outgoing edges; dependencies left without a dependant are
    passed to ``unwatch``. A module that accepted updates, or that nothing
    imports, becomes a reload root. Otherwise the walk continues into its
    dependants. Every module is visited at most once, so cycles terminate.

    The walk is depth-first in dependant insertion order and uses an explicit
    stack. Callback and eviction errors propagate; work already done is kept.
    Graph and registry access happens inside ``guard``; store callbacks and
    evictions run outside it.
    """

    if guard is None:
        guard = nullcontext()

    acceptees: dict[Path, None] = {}
    reloaded: set[Path] = set()
    stack: list[RegistryEntry] = [changed]

    while stack:
        entry = stack.pop()
        if entry.path in reloaded:
            continue
        reloaded.add(entry.path)

        entry.store_callback()
        evict(entry)

        with guard:
            for dependency in sorted(graph.remove_dependencies(entry.path)):
                LOGGER.debug("Unwatching %s (no dependants left)", dependency)
                unwatch(dependency)
            dependants = graph.dependants_of(entry.path)
            pending: list[RegistryEntry] = []
            for dependant in dependants:
                dependant_entry = registry.get(dependant)
                if dependant_entry is not None and dependant not in reloaded:
                    pending.append(dependant_entry)

        if entry.accepted or not dependants:
            acceptees[entry.path] = None
            continue

        LOGGER.debug(
            "%s is not accepted; propagating to %d dependant(s)", entry.path, len(pending)
        )
        stack.extend(reversed(pending))

    return list(acceptees)


__all__ = ["collect_acceptees"]
