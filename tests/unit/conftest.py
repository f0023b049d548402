from __future__ import annotations

import importlib
import sys
from collections.abc import Callable, Iterator
from pathlib import Path
from textwrap import dedent

import pytest

from hotsplice.runtime import HotReloader


class StubWatcher:
    """Records watch bookkeeping instead of touching the filesystem."""

    def __init__(self) -> None:
        self.watched: set[Path] = set()
        self.added: list[Path] = []
        self.unwatched: list[Path] = []
        self.callbacks: list[Callable[[Path], None]] = []
        self.started = False

    def on_change(self, callback: Callable[[Path], None]) -> None:
        self.callbacks.append(callback)

    def add(self, path: Path) -> None:
        self.added.append(path)
        self.watched.add(path)

    def unwatch(self, path: Path) -> None:
        self.unwatched.append(path)
        self.watched.discard(path)

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.started = False

    @property
    def is_running(self) -> bool:
        return self.started


class ModuleTree:
    """Writes importable modules into a temporary sys.path entry."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def write(self, name: str, body: str = "") -> Path:
        path = self.root / f"{name.replace('.', '/')}.py"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(dedent(body), encoding="utf-8")
        importlib.invalidate_caches()
        return path.resolve()

    def package(self, name: str, body: str = "") -> Path:
        return self.write(f"{name}.__init__", body)


@pytest.fixture()
def module_tree(tmp_path, monkeypatch) -> Iterator[ModuleTree]:
    root = tmp_path / "modules"
    root.mkdir()
    monkeypatch.syspath_prepend(str(root))
    monkeypatch.setattr(sys, "dont_write_bytecode", True)
    yield ModuleTree(root)
    resolved = str(root.resolve())
    for name, module in list(sys.modules.items()):
        filename = getattr(module, "__file__", None) or ""
        if filename and str(Path(filename).resolve()).startswith(resolved):
            sys.modules.pop(name, None)


@pytest.fixture()
def stub_watcher() -> StubWatcher:
    return StubWatcher()


@pytest.fixture()
def reloader(stub_watcher) -> Iterator[HotReloader]:
    instance = HotReloader(watcher=stub_watcher)  # type: ignore[arg-type]
    instance.install()
    try:
        yield instance
    finally:
        instance.uninstall()
