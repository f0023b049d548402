from __future__ import annotations

import logging
from pathlib import Path

import pytest
from watchdog.events import FileCreatedEvent, FileModifiedEvent, FileMovedEvent

from hotsplice.watcher import ModuleWatcher


class StubObserver:
    def __init__(self) -> None:
        self.scheduled: dict[object, str] = {}
        self.unscheduled: list[str] = []
        self.handler = None
        self.started = False

    def schedule(self, handler, path: str, recursive: bool = False) -> object:
        self.handler = handler
        token = object()
        self.scheduled[token] = path
        return token

    def unschedule(self, watch: object) -> None:
        self.unscheduled.append(self.scheduled.pop(watch))

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.started = False

    def join(self, timeout: float | None = None) -> None:
        return None


@pytest.fixture()
def observer() -> StubObserver:
    return StubObserver()


@pytest.fixture()
def watcher(observer) -> ModuleWatcher:
    return ModuleWatcher(debounce_seconds=0, observer_factory=lambda: observer)


def _touch(path: Path) -> Path:
    path.write_text("VALUE = 1\n", encoding="utf-8")
    return path.resolve()


def test_directories_are_scheduled_once_per_directory(tmp_path, watcher, observer):
    first = _touch(tmp_path / "first.py")
    second = _touch(tmp_path / "second.py")

    watcher.add(first)
    watcher.start()
    watcher.add(second)
    watcher.add(second)

    assert list(observer.scheduled.values()) == [str(tmp_path.resolve())]
    assert watcher.watched == {first, second}
    assert watcher.is_running


def test_unwatching_last_file_unschedules_directory(tmp_path, watcher, observer):
    first = _touch(tmp_path / "first.py")
    second = _touch(tmp_path / "second.py")
    watcher.start()
    watcher.add(first)
    watcher.add(second)

    watcher.unwatch(first)
    assert observer.unscheduled == []

    watcher.unwatch(second)
    watcher.unwatch(second)
    assert observer.unscheduled == [str(tmp_path.resolve())]
    assert watcher.watched == frozenset()


def test_events_for_watched_files_are_reported(tmp_path, watcher, observer):
    watched = _touch(tmp_path / "watched.py")
    other = _touch(tmp_path / "other.py")
    changes: list[Path] = []
    watcher.on_change(changes.append)
    watcher.add(watched)
    watcher.start()

    observer.handler.dispatch(FileModifiedEvent(str(watched)))
    observer.handler.dispatch(FileModifiedEvent(str(other)))
    observer.handler.dispatch(FileCreatedEvent(str(watched)))
    observer.handler.dispatch(FileMovedEvent(str(tmp_path / "tmp123"), str(watched)))

    assert changes == [watched, watched, watched]


def test_debounce_drops_rapid_duplicates(tmp_path, observer):
    watcher = ModuleWatcher(debounce_seconds=60, observer_factory=lambda: observer)
    path = _touch(tmp_path / "busy.py")
    changes: list[Path] = []
    watcher.on_change(changes.append)
    watcher.add(path)
    watcher.start()

    observer.handler.dispatch(FileModifiedEvent(str(path)))
    observer.handler.dispatch(FileModifiedEvent(str(path)))

    assert changes == [path]


def test_callback_errors_are_logged_not_raised(tmp_path, watcher, observer, caplog):
    path = _touch(tmp_path / "broken.py")

    def _fail(_path: Path) -> None:
        raise RuntimeError("boom")

    watcher.on_change(_fail)
    watcher.add(path)
    watcher.start()

    with caplog.at_level(logging.ERROR, logger="hotsplice.watcher"):
        observer.handler.dispatch(FileModifiedEvent(str(path)))

    assert "Reload failed" in caplog.text


def test_stop_clears_observer(tmp_path, watcher, observer):
    watcher.add(_touch(tmp_path / "mod.py"))
    watcher.start()

    watcher.stop()
    watcher.stop()

    assert not watcher.is_running
    assert observer.started is False
