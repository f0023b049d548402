"""Directed "imported by" graph between loaded modules."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path


class DependencyGraph:
    """Edges ``dependent -> dependency`` recorded as modules import each other.

    Cycles are allowed; callers walking the graph keep their own visited set.
    Dependants are returned in first-insertion order so traversal is
    reproducible.
    """

    def __init__(self) -> None:
        self._dependencies: dict[Path, dict[Path, None]] = {}
        self._dependants: dict[Path, dict[Path, None]] = {}

    def add_dependency(self, dependent: Path, dependency: Path) -> None:
        """Record that ``dependent`` imported ``dependency``; no-op when already known."""

        self._dependencies.setdefault(dependent, {})[dependency] = None
        self._dependants.setdefault(dependency, {})[dependent] = None

    def remove_dependencies(self, dependent: Path) -> set[Path]:
        """Drop all outgoing edges of ``dependent``.

        Returns the dependencies that no longer have any dependant.
        """

        orphaned: set[Path] = set()
        for dependency in self._dependencies.pop(dependent, {}):
            dependants = self._dependants.get(dependency)
            if dependants is None:
                continue
            dependants.pop(dependent, None)
            if not dependants:
                del self._dependants[dependency]
                orphaned.add(dependency)
        return orphaned

    def dependants_of(self, dependency: Path) -> list[Path]:
        return list(self._dependants.get(dependency, ()))

    def dependencies_of(self, dependent: Path) -> list[Path]:
        return list(self._dependencies.get(dependent, ()))

    def nodes(self) -> set[Path]:
        return set(self._dependencies) | set(self._dependants)

    def edges(self) -> Iterator[tuple[Path, Path]]:
        for dependent, dependencies in self._dependencies.items():
            for dependency in dependencies:
                yield dependent, dependency

    def __contains__(self, edge: object) -> bool:
        if not isinstance(edge, tuple) or len(edge) != 2:
            return False
        dependent, dependency = edge
        return dependency in self._dependencies.get(dependent, ())

    def __len__(self) -> int:
        return sum(len(dependencies) for dependencies in self._dependencies.values())


__all__ = ["DependencyGraph"]
