"""
Main CLI for skillmgr using Click.

    skillmgr serve            start every skill and listen for install requests
    skillmgr skills           show the reconciled skill list
    skillmgr validate-config  check a YAML configuration file
"""

import asyncio
from pathlib import Path
from typing import Any

import click
from pydantic import ValidationError

from .config.loader import load_config
from .config.schema import AppConfig
from .core import EXIT_INTERRUPTED, LifecycleCoordinator
from .logging import configure_logging
from .skills.reconciler import reconcile

# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 3

_VERSION = "0.3.0"


def _load(config: Path | None, cli_args: dict[str, Any]) -> AppConfig:
    try:
        return load_config(config_path=config, cli_args=cli_args)
    except FileNotFoundError as e:
        click.echo(f"Configuration error: {e}", err=True)
        raise SystemExit(EXIT_CONFIG_ERROR)
    except ValidationError as e:
        click.echo(f"Invalid configuration:\n{e}", err=True)
        raise SystemExit(EXIT_CONFIG_ERROR)


def _config_option(fn):
    return click.option(
        "-c",
        "--config",
        type=click.Path(exists=True, path_type=Path),
        help="YAML configuration file",
    )(fn)


@click.group()
@click.version_option(version=_VERSION, prog_name="skillmgr")
def main() -> None:
    """skillmgr - installs, starts and supervises skill processes."""
    pass


@main.command()
@_config_option
@click.option("--skill-folder", type=click.Path(path_type=Path), help="User skill root (env: SKILL_FOLDER)")
@click.option("--core-dir", type=click.Path(path_type=Path), help="Bundled core skills root")
@click.option("--logs-dir", type=click.Path(path_type=Path), help="Per-skill log directory")
@click.option("--bus-port", type=int, help="Port for the HTTP bus (env: SKILLMGR_BUS_PORT)")
@click.option("--log-file", type=click.Path(path_type=Path), help="JSON log file")
@click.option("--log-level", type=click.Choice(["debug", "info", "human", "warn", "error"]))
@click.option("-v", "--verbose", count=True, help="More technical output (-v, -vv)")
@click.option("--quiet", is_flag=True, help="Silence console output")
def serve(config: Path | None, quiet: bool, **kwargs: Any) -> None:
    """Start all skills and serve install requests until SIGINT/SIGTERM."""
    app_config = _load(config, kwargs)
    configure_logging(app_config.logging, quiet=quiet)

    coordinator = LifecycleCoordinator.from_config(app_config)
    try:
        report = asyncio.run(coordinator.run())
    except KeyboardInterrupt:
        raise SystemExit(EXIT_INTERRUPTED)
    except Exception as e:
        click.echo(f"skillmgr stopped: {e}", err=True)
        raise SystemExit(EXIT_FAILED)

    if report.failed and not quiet:
        click.echo(f"{len(report.failed)} skill(s) failed to start during boot", err=True)


@main.command()
@_config_option
@click.option("--skill-folder", type=click.Path(path_type=Path), help="User skill root (env: SKILL_FOLDER)")
@click.option("--core-dir", type=click.Path(path_type=Path), help="Bundled core skills root")
def skills(config: Path | None, **kwargs: Any) -> None:
    """List the skills that 'serve' would start, user skills first."""
    app_config = _load(config, kwargs)
    result = reconcile(app_config.skills.core_dir, app_config.skills.skill_folder)

    for error in result.errors:
        click.echo(f"  (unavailable) {error.path}: {error.reason}", err=True)

    if not result.descriptors:
        click.echo("  No skills found.")
        return

    for d in sorted(result.descriptors, key=lambda d: (d.origin.value != "user", d.name)):
        click.echo(f"  {d.name:30s} ({d.origin.value})  {d.source_path}")


@main.command("validate-config")
@_config_option
def validate_config(config: Path | None) -> None:
    """Validate a configuration file and print the effective paths."""
    app_config = _load(config, {})
    click.echo("Configuration OK")
    click.echo(f"  skill folder: {app_config.skills.skill_folder}")
    click.echo(f"  core skills:  {app_config.skills.core_dir}")
    click.echo(f"  logs:         {app_config.supervisor.logs_dir}")
    click.echo(f"  service key:  {app_config.bus.service_key}")


if __name__ == "__main__":
    main()
