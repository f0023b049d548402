"""hotsplice command-line interface."""

from __future__ import annotations

import logging
import os
import runpy
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Any, NoReturn

import typer

from . import __version__
from .config import (
    DEFAULT_CONFIG_PATH,
    ConfigError,
    HotConfig,
    compile_patterns,
    load_config,
    merge_config,
)
from .logging import configure_logging
from .runtime import HotReloader

app = typer.Typer(help="Run Python programs with module hot reloading.")
LOGGER = logging.getLogger(__name__)


@dataclass
class CLIState:
    """Stores shared CLI options."""

    config_path: Path | None


def _print_version(value: bool) -> None:
    if value:
        typer.echo(f"hotsplice {__version__}")
        raise typer.Exit()


@app.callback()
def _hotsplice(
    ctx: typer.Context,
    config: Annotated[
        Path | None,
        typer.Option(
            "-c",
            "--config",
            help="Path to hotsplice config (env HOTSPLICE_CONFIG or ./hotsplice.yaml).",
        ),
    ] = None,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_print_version,
            is_eager=True,
            help="Show the version and exit.",
        ),
    ] = False,
) -> None:
    """Capture global CLI options."""

    resolved = config.expanduser() if config else None
    ctx.obj = CLIState(config_path=resolved)


@app.command(context_settings={"allow_extra_args": True, "ignore_unknown_options": True})
def run(
    ctx: typer.Context,
    target: Annotated[str, typer.Argument(help="Script path, or module name with --module.")],
    module: Annotated[
        bool,
        typer.Option("-m", "--module", help="Treat TARGET as a module name."),
    ] = False,
    silent: Annotated[
        bool | None,
        typer.Option("--silent/--no-silent", help="Suppress Changed/Reloading log lines."),
    ] = None,
    patch_exports: Annotated[
        bool | None,
        typer.Option(
            "--patch-exports/--no-patch-exports",
            help="Patch classes of every reloaded module automatically.",
        ),
    ] = None,
    exclude: Annotated[
        list[str] | None,
        typer.Option("--exclude", help="Extra regex of paths to leave alone (repeatable)."),
    ] = None,
    wait: Annotated[
        bool,
        typer.Option("--wait/--no-wait", help="Keep watching after the target returns."),
    ] = True,
) -> None:
    """Execute TARGET as __main__ with hot reloading enabled."""

    state = _state(ctx)
    config = _apply_overrides(
        _load_config(state.config_path),
        silent=silent,
        patch_exports=patch_exports,
        exclude=exclude,
    )
    configure_logging(config.logging)

    if not module and not Path(target).is_file():
        typer.secho(f"Script not found: {target}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    reloader = HotReloader(config)
    saved_argv = list(sys.argv)
    saved_path = list(sys.path)
    sys.argv = [target, *ctx.args]
    if not module:
        sys.path.insert(0, str(Path(target).resolve().parent))
    try:
        with reloader:
            try:
                if module:
                    runpy.run_module(target, run_name="__main__", alter_sys=True)
                else:
                    runpy.run_path(target, run_name="__main__")
                if wait:
                    _wait_for_interrupt()
            except KeyboardInterrupt:
                LOGGER.info("Interrupted; stopping hot reload")
    finally:
        sys.argv = saved_argv
        sys.path[:] = saved_path


@app.command("config")
def show_config(ctx: typer.Context) -> None:
    """Display the effective configuration."""

    state = _state(ctx)
    config = _load_config(state.config_path)
    typer.echo("→ hotsplice configuration")
    typer.echo(f"Version: {__version__}")
    typer.echo(f"Config path: {_resolved_config_path(state.config_path)}")
    typer.echo(f"Silent: {config.silent}")
    typer.echo(f"Patch exports: {config.patch_exports}")
    typer.echo(f"Debounce: {config.debounce_seconds:.2f}s")
    typer.echo(f"Log level: {config.logging.level}")
    typer.echo("Exclude:")
    for pattern in config.exclude:
        typer.echo(f"  - {pattern.pattern}")


def _state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise RuntimeError("CLI state missing from context.")
    return state


def _load_config(path: Path | None) -> HotConfig:
    try:
        return load_config(path)
    except ConfigError as exc:
        _config_failure(exc)


def _apply_overrides(
    config: HotConfig,
    *,
    silent: bool | None,
    patch_exports: bool | None,
    exclude: list[str] | None,
) -> HotConfig:
    overrides: dict[str, Any] = {}
    if silent is not None:
        overrides["silent"] = silent
    if patch_exports is not None:
        overrides["patch_exports"] = patch_exports
    try:
        if exclude:
            overrides["exclude"] = config.exclude + compile_patterns(exclude, "--exclude")
        return merge_config(config, **overrides)
    except ConfigError as exc:
        _config_failure(exc)


def _config_failure(exc: ConfigError) -> NoReturn:
    typer.secho(f"Configuration error: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(2) from exc


def _wait_for_interrupt() -> None:
    stop = threading.Event()
    while not stop.wait(0.5):
        pass


def _resolved_config_path(path: Path | None) -> Path:
    if path:
        return path
    env = os.environ.get("HOTSPLICE_CONFIG")
    if env:
        return Path(env).expanduser()
    return DEFAULT_CONFIG_PATH.resolve()


def main() -> None:  # pragma: no cover - delegated to Typer
    app()


__all__ = ["app", "main"]
