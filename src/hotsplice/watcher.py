"""Filesystem watcher for individual module source files."""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler, FileSystemMovedEvent
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver, ObservedWatch

LOGGER = logging.getLogger(__name__)


class ModuleWatcher:
    """Watch a changing set of files and report modifications.

    watchdog observes directories, so a directory is scheduled while at least
    one file inside it is watched. Files can be added and removed while the
    observer is running.
    """

    def __init__(
        self,
        *,
        debounce_seconds: float = 0.2,
        observer_factory: Callable[[], BaseObserver] | None = None,
    ) -> None:
        self._observer_factory = observer_factory or Observer
        self._observer: BaseObserver | None = None
        self._files: dict[Path, set[Path]] = {}
        self._watches: dict[Path, ObservedWatch] = {}
        self._change_callbacks: list[Callable[[Path], None]] = []
        self._handler = _ModuleEventHandler(
            is_watched=self.is_watched,
            change_callback=self._emit_change,
            debounce_seconds=max(0.0, debounce_seconds),
        )
        self._lock = threading.RLock()

    def on_change(self, callback: Callable[[Path], None]) -> None:
        """Register callback invoked with the path of a modified watched file."""

        self._change_callbacks.append(callback)

    def add(self, path: Path) -> None:
        """Start watching ``path``; no-op when already watched."""

        path = Path(path)
        directory = path.parent
        with self._lock:
            files = self._files.setdefault(directory, set())
            if path in files:
                return
            files.add(path)
            if self._observer is not None and directory not in self._watches:
                self._schedule(self._observer, directory)
        LOGGER.debug("Watching %s", path)

    def unwatch(self, path: Path) -> None:
        """Stop watching ``path``; no-op when it is not watched."""

        path = Path(path)
        directory = path.parent
        with self._lock:
            files = self._files.get(directory)
            if not files or path not in files:
                return
            files.discard(path)
            if files:
                return
            del self._files[directory]
            watch = self._watches.pop(directory, None)
            if watch is not None and self._observer is not None:
                self._observer.unschedule(watch)
        LOGGER.debug("Stopped watching %s", path)

    def is_watched(self, path: Path) -> bool:
        with self._lock:
            return path in self._files.get(path.parent, ())

    @property
    def watched(self) -> frozenset[Path]:
        with self._lock:
            return frozenset(path for files in self._files.values() for path in files)

    def start(self) -> None:
        """Start watching filesystem events."""

        with self._lock:
            if self._observer is not None:
                return
            observer = self._observer_factory()
            for directory in list(self._files):
                self._schedule(observer, directory)
            observer.start()
            self._observer = observer

    def stop(self) -> None:
        """Stop watching and wait for the observer thread to finish."""

        with self._lock:
            observer = self._observer
            if observer is None:
                return
            self._observer = None
            self._watches.clear()
        observer.stop()
        try:
            observer.join(timeout=5)
        except RuntimeError:  # pragma: no cover - watchdog internals
            LOGGER.warning("Failed to join module observer thread")

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def _schedule(self, observer: BaseObserver, directory: Path) -> None:
        if not directory.is_dir():
            LOGGER.warning("Cannot watch missing directory %s", directory)
            return
        self._watches[directory] = observer.schedule(
            self._handler, str(directory), recursive=False
        )

    def _emit_change(self, path: Path) -> None:
        for callback in list(self._change_callbacks):
            try:
                callback(path)
            except Exception:
                LOGGER.exception("Reload failed for %s", path)


class _ModuleEventHandler(FileSystemEventHandler):
    """Forward modifications of watched files to the watcher."""

    def __init__(
        self,
        *,
        is_watched: Callable[[Path], bool],
        change_callback: Callable[[Path], None],
        debounce_seconds: float,
    ) -> None:
        super().__init__()
        self._is_watched = is_watched
        self._change_callback = change_callback
        self._debounce_seconds = debounce_seconds
        self._recent: dict[Path, float] = {}
        self._recent_lock = threading.Lock()

    def on_modified(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._handle_path(_event_path(event.src_path))

    def on_created(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._handle_path(_event_path(event.src_path))

    def on_moved(self, event: FileSystemMovedEvent) -> None:
        if event.is_directory:
            return
        self._handle_path(_event_path(event.dest_path))

    def _handle_path(self, path: Path) -> None:
        resolved = path.resolve()
        if not self._is_watched(resolved):
            return
        if not self._should_emit(resolved):
            return
        self._change_callback(resolved)

    def _should_emit(self, path: Path) -> bool:
        if self._debounce_seconds <= 0:
            return True
        now = time.monotonic()
        with self._recent_lock:
            last = self._recent.get(path)
            if last is not None and now - last < self._debounce_seconds:
                return False
            self._recent[path] = now
            self._prune_stale(now)
            return True

    def _prune_stale(self, now: float) -> None:
        """Remove old entries to keep the dedupe cache bounded."""

        threshold = now - max(self._debounce_seconds * 4, 1.0)
        stale = [candidate for candidate, ts in self._recent.items() if ts < threshold]
        for candidate in stale:
            self._recent.pop(candidate, None)


def _event_path(value: str | bytes) -> Path:
    if isinstance(value, bytes):
        return Path(os.fsdecode(value))
    return Path(value)


__all__ = ["ModuleWatcher"]
