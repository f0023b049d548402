"""Decide which module files take part in hot reloading."""

from __future__ import annotations

from pathlib import Path

from .config import HotConfig

SOURCE_SUFFIX = ".py"


def is_eligible(config: HotConfig, path: Path | str | None) -> bool:
    """Return True when ``path`` is a Python source file not matched by any exclude pattern."""

    if path is None:
        return False
    candidate = Path(path)
    if candidate.suffix != SOURCE_SUFFIX:
        return False
    text = candidate.as_posix()
    return not any(pattern.search(text) for pattern in config.exclude)


__all__ = ["is_eligible"]
