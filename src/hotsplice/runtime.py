"""Hot reload context tying the import hooks, graph, registry and watcher together."""

from __future__ import annotations

import builtins
import importlib
import logging
import sys
import threading
from importlib.machinery import SourceFileLoader
from pathlib import Path
from types import ModuleType, TracebackType
from typing import Any

from .config import HotConfig, merge_config
from .eligibility import is_eligible
from .graph import DependencyGraph
from .hooks import HotFinder, ImportHook, module_path
from .hot import HOT_ATTR, HotHandle
from .patching import patch_exports
from .propagation import collect_acceptees
from .registry import ModuleRegistry, RegistryEntry
from .watcher import ModuleWatcher

LOGGER = logging.getLogger(__name__)


class HotReloadError(RuntimeError):
    """Raised when the reloader is asked to act on a module it does not track."""


class HotReloader:
    """Owns all hot reload state for one process.

    Change events are serialised with a cycle lock, so one event is fully
    processed (including re-imports) before the next one starts. Graph and
    registry bookkeeping uses a separate lock that is never held while module
    code or store callbacks run, so imports on other threads can proceed
    during a reload.
    """

    def __init__(
        self,
        config: HotConfig | None = None,
        *,
        watcher: ModuleWatcher | None = None,
    ) -> None:
        self.config = config or HotConfig()
        self.graph = DependencyGraph()
        self.registry = ModuleRegistry()
        self.watcher = watcher or ModuleWatcher(debounce_seconds=self.config.debounce_seconds)
        self.watcher.on_change(self.handle_change)
        self._lock = threading.RLock()
        self._cycle_lock = threading.RLock()
        self._finder: HotFinder | None = None
        self._import_hook: ImportHook | None = None

    def configure(self, **options: Any) -> HotConfig:
        """Shallow-merge ``options`` into the active configuration."""

        with self._lock:
            self.config = merge_config(self.config, **options)
            return self.config

    def eligible(self, path: Path | None) -> bool:
        return is_eligible(self.config, path)

    @property
    def installed(self) -> bool:
        return self._finder is not None

    def install(self) -> None:
        """Hook the import system; modules imported afterwards are tracked."""

        with self._lock:
            if self._finder is not None:
                return
            self._finder = HotFinder(self)
            sys.meta_path.insert(0, self._finder)
            self._import_hook = ImportHook(builtins.__import__, self)
            builtins.__import__ = self._import_hook
            LOGGER.debug("Import hooks installed")

    def uninstall(self) -> None:
        with self._lock:
            if self._finder is None:
                return
            if self._finder in sys.meta_path:
                sys.meta_path.remove(self._finder)
            hook = self._import_hook
            if hook is not None and builtins.__import__ is hook:
                builtins.__import__ = hook.original
            self._finder = None
            self._import_hook = None
            LOGGER.debug("Import hooks removed")

    def start(self) -> None:
        self.watcher.start()

    def stop(self) -> None:
        self.watcher.stop()

    def __enter__(self) -> HotReloader:
        self.install()
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()
        self.uninstall()

    # Loader hooks -----------------------------------------------------------------

    def inject(self, module: ModuleType, path: Path) -> HotHandle:
        """Register ``path`` and bind a fresh ``__hot__`` handle to ``module``."""

        existing = getattr(module, HOT_ATTR, None)
        if isinstance(existing, HotHandle):
            return existing
        with self._lock:
            entry = self.registry.register_or_get(path, module)
        handle = HotHandle(entry)
        setattr(module, HOT_ATTR, handle)
        return handle

    def exec_module(self, loader: SourceFileLoader, module: ModuleType) -> None:
        """Execute ``module`` with a handle injected, patching exports afterwards."""

        path = module_path(module)
        eligible = path is not None and self.eligible(path)
        if eligible:
            self.inject(module, path)
        loader.exec_module(module)
        if eligible and self.config.patch_exports:
            patch_exports(module, getattr(module, HOT_ATTR))

    def record_require(self, caller: Path | None, name: str) -> None:
        """Note that ``caller`` imported module ``name`` and watch its file."""

        module = sys.modules.get(name)
        if module is None:
            return
        path = module_path(module)
        if path is None or not self.eligible(path):
            return
        with self._lock:
            entry = self.registry.get(path)
            if entry is None:
                return
            if caller is not None and caller != path and caller in self.registry:
                self.graph.add_dependency(caller, path)
                if entry.requester is None:
                    entry.requester = caller
            self.watcher.add(path)

    # Reloading --------------------------------------------------------------------

    def reload(self, entry: RegistryEntry) -> list[Path]:
        """Invalidate ``entry`` and return the modules that must be re-imported."""

        return collect_acceptees(
            entry,
            self.graph,
            self.registry,
            evict=self._evict,
            unwatch=self.watcher.unwatch,
            guard=self._lock,
        )

    def handle_change(self, path: Path) -> list[Path]:
        """Reload after ``path`` changed on disk; returns the re-imported paths."""

        path = Path(path)
        with self._cycle_lock:
            with self._lock:
                entry = self.registry.get(path)
            if entry is None:
                return []
            self._announce("Changed: %s", path)
            acceptees = self.reload(entry)
            for acceptee in acceptees:
                self._announce("Reloading: %s", acceptee)
                self.require_again(acceptee)
            return acceptees

    def require_again(self, path: Path) -> ModuleType:
        """Re-import ``path`` on behalf of the module that first imported it."""

        entry = self.registry.get(path)
        if entry is None:
            raise HotReloadError(f"Module {path} is not tracked")
        with self._cycle_lock:
            module = importlib.import_module(entry.name)
            self.record_require(entry.requester, entry.name)
        return module

    def snapshot(self) -> dict[str, Any]:
        """Return a serialisable summary of tracked state."""

        with self._lock:
            return {
                "installed": self.installed,
                "watching": self.watcher.is_running,
                "modules": sorted(str(entry.path) for entry in self.registry),
                "accepted": sorted(str(entry.path) for entry in self.registry if entry.accepted),
                "edges": sorted((str(a), str(b)) for a, b in self.graph.edges()),
                "watched": sorted(str(path) for path in self.watcher.watched),
            }

    def _evict(self, entry: RegistryEntry) -> None:
        module = sys.modules.get(entry.name)
        if module is not None and module_path(module) == entry.path:
            del sys.modules[entry.name]
            LOGGER.debug("Evicted %s from module cache", entry.name)

    def _announce(self, message: str, path: Path) -> None:
        if self.config.silent:
            return
        LOGGER.info(message, _display_path(path))


def _display_path(path: Path) -> Path:
    try:
        return path.relative_to(Path.cwd())
    except ValueError:
        return path


__all__ = ["HotReloader", "HotReloadError"]
