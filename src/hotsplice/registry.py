"""Persistent per-path reload state."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Any


def _noop() -> None:
    return None


@dataclass(eq=False)
class RegistryEntry:
    """Reload state for one module path.

    Survives eviction from ``sys.modules`` so acceptance, stash and patch
    history carry over between loads of the same file.
    """

    path: Path
    name: str
    module: ModuleType
    requester: Path | None = None
    accepted: bool = False
    stash: dict[str, Any] | None = None
    patch_history: dict[str, list[type]] = field(default_factory=dict)
    store_callback: Callable[[], None] = _noop


class ModuleRegistry:
    """Get-or-create store of :class:`RegistryEntry` keyed by module path."""

    def __init__(self) -> None:
        self._entries: dict[Path, RegistryEntry] = {}

    def register_or_get(self, path: Path, module: ModuleType) -> RegistryEntry:
        entry = self._entries.get(path)
        if entry is None:
            entry = RegistryEntry(path=path, name=module.__name__, module=module)
            self._entries[path] = entry
        return entry

    def get(self, path: Path) -> RegistryEntry | None:
        return self._entries.get(path)

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def __iter__(self) -> Iterator[RegistryEntry]:
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["ModuleRegistry", "RegistryEntry"]
