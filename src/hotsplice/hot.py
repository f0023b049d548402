"""Per-module ``__hot__`` handle exposed to reloadable code."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from .patching import history_key, patch_class
from .registry import RegistryEntry

HOT_ATTR = "__hot__"

StashCallback = Callable[[dict[str, Any]], None]


class HotHandle:
    """Control object bound as ``__hot__`` in every tracked module.

    A fresh handle is created for each execution of the module body, but all
    of them write into the same persistent :class:`RegistryEntry`.
    """

    def __init__(self, entry: RegistryEntry) -> None:
        self._entry = entry

    @property
    def accepted(self) -> bool:
        return self._entry.accepted

    def accept(self) -> None:
        """Declare this module a reload boundary."""

        self._entry.accepted = True

    def store(self, callback: StashCallback) -> None:
        """Register ``callback`` to fill a fresh stash right before reload."""

        entry = self._entry

        def _store() -> None:
            entry.stash = {}
            callback(entry.stash)

        entry.store_callback = _store

    def restore(self, callback: StashCallback) -> None:
        """Hand the stash to ``callback`` once, then discard it."""

        entry = self._entry
        if entry.stash is not None:
            stash, entry.stash = entry.stash, None
            callback(stash)

    def patch(self, *classes: type) -> None:
        """Reconcile ``classes`` with every earlier class of the same name."""

        history = self._entry.patch_history
        for cls in classes:
            patch_class(history.setdefault(history_key(cls), []), cls)

    def __repr__(self) -> str:
        return f"HotHandle({self._entry.name!r}, accepted={self._entry.accepted})"


class NullHandle:
    """Stand-in used when a module runs without hot reloading."""

    accepted = False

    def accept(self) -> None:
        return None

    def store(self, callback: StashCallback) -> None:
        return None

    def restore(self, callback: StashCallback) -> None:
        return None

    def patch(self, *classes: type) -> None:
        return None


def get_hot(module_globals: Mapping[str, Any]) -> HotHandle | NullHandle:
    """Return the module's handle, e.g. ``hot = get_hot(globals())``."""

    handle = module_globals.get(HOT_ATTR)
    if isinstance(handle, HotHandle):
        return handle
    return NullHandle()


__all__ = ["HOT_ATTR", "HotHandle", "NullHandle", "get_hot"]
