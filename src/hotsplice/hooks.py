"""Import-system plumbing: a meta path finder and an ``__import__`` wrapper.

Both delegate to the regular import machinery and only report what happened
to the :class:`~hotsplice.runtime.HotReloader` that installed them.
"""

from __future__ import annotations

import importlib.abc
import importlib.util
import sys
from collections.abc import Callable, Mapping, Sequence
from importlib.machinery import ModuleSpec, SourceFileLoader
from pathlib import Path
from types import ModuleType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .runtime import HotReloader

ImportFunction = Callable[..., ModuleType]


class HotLoader(importlib.abc.Loader):
    """Wrap a source loader so module execution goes through the reloader."""

    def __init__(self, loader: SourceFileLoader, reloader: HotReloader) -> None:
        self._loader = loader
        self._reloader = reloader

    def create_module(self, spec: ModuleSpec) -> ModuleType | None:
        return self._loader.create_module(spec)

    def exec_module(self, module: ModuleType) -> None:
        self._reloader.exec_module(self._loader, module)

    def __getattr__(self, name: str) -> Any:
        # get_source, get_code, is_package, get_resource_reader, ...
        if name.startswith("__") or name in ("_loader", "_reloader"):
            raise AttributeError(name)
        return getattr(self._loader, name)


class HotFinder(importlib.abc.MetaPathFinder):
    """Meta path finder that wraps eligible source loaders in :class:`HotLoader`."""

    def __init__(self, reloader: HotReloader) -> None:
        self._reloader = reloader

    def find_spec(
        self,
        fullname: str,
        path: Sequence[str] | None,
        target: ModuleType | None = None,
    ) -> ModuleSpec | None:
        spec = self._find_with_others(fullname, path, target)
        if spec is None:
            return None
        loader = spec.loader
        if (
            isinstance(loader, SourceFileLoader)
            and spec.origin
            and self._reloader.eligible(Path(spec.origin).resolve())
        ):
            spec.loader = HotLoader(loader, self._reloader)
        return spec

    def _find_with_others(
        self,
        fullname: str,
        path: Sequence[str] | None,
        target: ModuleType | None,
    ) -> ModuleSpec | None:
        for finder in list(sys.meta_path):
            if finder is self:
                continue
            find_spec = getattr(finder, "find_spec", None)
            if find_spec is None:
                continue
            spec = find_spec(fullname, path, target)
            if spec is not None:
                return spec
        return None


class ImportHook:
    """Replacement for ``builtins.__import__`` that records who imported what."""

    def __init__(self, original: ImportFunction, reloader: HotReloader) -> None:
        self.original = original
        self._reloader = reloader

    def __call__(
        self,
        name: str,
        globals: Mapping[str, Any] | None = None,
        locals: Mapping[str, Any] | None = None,
        fromlist: Sequence[str] | None = (),
        level: int = 0,
    ) -> ModuleType:
        result = self.original(name, globals, locals, fromlist, level)
        caller = caller_path(globals)
        for target in imported_names(name, globals, fromlist, level):
            self._reloader.record_require(caller, target)
        return result


def module_path(module: ModuleType) -> Path | None:
    """Return the resolved source path of ``module`` if it has one."""

    filename = getattr(module, "__file__", None)
    if not filename:
        return None
    return Path(filename).resolve()


def caller_path(module_globals: Mapping[str, Any] | None) -> Path | None:
    """Path of the importing module, or None for ``__main__`` and unknown callers."""

    if not module_globals or module_globals.get("__name__") == "__main__":
        return None
    filename = module_globals.get("__file__")
    if not filename:
        return None
    return Path(filename).resolve()


def imported_names(
    name: str,
    module_globals: Mapping[str, Any] | None,
    fromlist: Sequence[str] | None,
    level: int,
) -> list[str]:
    """Absolute module names an import statement resolved to.

    ``import a.b`` yields ``a.b``; ``from . import x`` yields the package and
    ``pkg.x`` when ``x`` is a submodule.
    """

    if level > 0:
        package = _package_of(module_globals)
        if not package:
            return []
        try:
            base = importlib.util.resolve_name("." * level + name, package)
        except (ImportError, ValueError):
            return []
    else:
        base = name

    names = [base] if base else []
    for item in fromlist or ():
        if item == "*":
            continue
        candidate = f"{base}.{item}"
        if candidate in sys.modules:
            names.append(candidate)
    return names


def _package_of(module_globals: Mapping[str, Any] | None) -> str | None:
    if not module_globals:
        return None
    package = module_globals.get("__package__")
    if package is not None:
        return package
    module_name = module_globals.get("__name__")
    if not module_name:
        return None
    if "__path__" in module_globals:
        return module_name
    return module_name.rpartition(".")[0]


__all__ = [
    "HotFinder",
    "HotLoader",
    "ImportHook",
    "caller_path",
    "imported_names",
    "module_path",
]
