"""hotsplice: reload changed Python modules in a running process."""

from importlib import metadata
from typing import Any

from .config import ConfigError, HotConfig, load_config
from .hot import HotHandle, NullHandle, get_hot
from .runtime import HotReloader, HotReloadError


def _discover_version() -> str:
    """Return the installed package version, falling back to dev marker."""
    try:
        return metadata.version("hotsplice")
    except metadata.PackageNotFoundError:  # pragma: no cover - occurs in source checkouts
        return "0.0.0"


def install(config: HotConfig | None = None, **options: Any) -> HotReloader:
    """Create a reloader, hook the import system and start watching.

    Keep the returned object around; it owns all hot reload state for the
    process and can be stopped with :meth:`HotReloader.stop` and
    :meth:`HotReloader.uninstall`.
    """

    reloader = HotReloader(config)
    if options:
        reloader.configure(**options)
    reloader.install()
    reloader.start()
    return reloader


__all__ = [
    "__version__",
    "ConfigError",
    "HotConfig",
    "HotHandle",
    "HotReloadError",
    "HotReloader",
    "NullHandle",
    "get_hot",
    "install",
    "load_config",
]
__version__ = _discover_version()
