"""Command line entry point: ``game-updater`` / ``python -m game_updater``."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import click
import structlog
from rich.console import Console

from game_updater import __version__
from game_updater.commands import resolve_command, update_command, verify_command
from game_updater.core.config import UpdaterConfig


def configure_logging(colors: bool = False) -> None:
    """Route structlog through the stdlib logging machinery."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=colors),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


configure_logging()
logger = structlog.get_logger()


def make_console(output: str) -> Console:
    """Console for command output; only ``rich`` output gets colours."""
    if output == "rich":
        return Console(force_terminal=True)
    return Console(force_terminal=False, no_color=True, width=120)


@click.group()
@click.version_option(version=__version__, prog_name="game-updater")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON configuration file",
)
@click.option(
    "--install-dir",
    "-i",
    type=click.Path(file_okay=False, path_type=Path),
    help="Game installation directory (default: from config, else current directory)",
)
@click.option("--verbose", "-v", is_flag=True, help="Show more detail in command output")
@click.option("--debug", "-d", is_flag=True, help="Log debug events")
@click.option(
    "--output",
    "-o",
    type=click.Choice(["rich", "json", "plain"], case_sensitive=False),
    default="rich",
    help="Output format",
)
@click.pass_context
def main(
    ctx: click.Context,
    config: Path | None,
    install_dir: Path | None,
    verbose: bool,
    debug: bool,
    output: str,
) -> None:
    """Incremental game updater: patch chains, delta patches and integrity checks."""
    ctx.ensure_object(dict)
    output = output.lower()

    try:
        app_config = UpdaterConfig.load(config)
    except Exception as e:
        logger.error("config_load_failed", path=str(config) if config else None, error=str(e))
        sys.exit(1)

    overrides: dict[str, Any] = {"output_format": output}
    if install_dir is not None:
        overrides["install_dir"] = install_dir
    if debug:
        overrides["log_level"] = "DEBUG"
    app_config = app_config.model_copy(update=overrides)

    if debug:
        configure_logging(colors=True)

    ctx.obj["config"] = app_config
    ctx.obj["console"] = make_console(output)
    ctx.obj["verbose"] = verbose or debug
    ctx.obj["debug"] = debug

    logger.debug("cli_initialized", config=app_config.model_dump(mode="json"))


@main.command()
@click.pass_context
def version(ctx: click.Context) -> None:
    """Show version information."""
    console: Console = ctx.obj["console"]
    config: UpdaterConfig = ctx.obj["config"]

    if config.output_format == "json":
        print(json.dumps({
            "name": "game-updater",
            "version": __version__,
            "python_version": sys.version.replace("\n", " "),
            "platform": sys.platform,
        }, indent=2))
        return

    console.print(f"game-updater {__version__}")
    if ctx.obj["verbose"]:
        console.print(f"Python {sys.version}")
        console.print(f"Platform: {sys.platform}")


main.add_command(resolve_command)
main.add_command(update_command)
main.add_command(verify_command)


def handle_exception(exc_type: type[BaseException], exc_value: BaseException, exc_traceback: Any) -> None:
    """Log uncaught exceptions instead of printing a bare traceback."""
    if issubclass(exc_type, KeyboardInterrupt):
        logger.info("interrupted")
        sys.exit(130)

    logger.error("uncaught_exception", exc_info=(exc_type, exc_value, exc_traceback))
    sys.exit(1)


if __name__ == "__main__":
    sys.excepthook = handle_exception
    main()
