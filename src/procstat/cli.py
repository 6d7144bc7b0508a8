"""CLI commands for procstat."""

from pathlib import Path

import click

CONFIG_OPTION = click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: ~/.config/procstat/config.toml)",
)


def _load_config(config_path: Path | None):
    from procstat.config import Config, ConfigurationError

    try:
        return Config.load(config_path)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(package_name="procstat")
def main() -> None:
    """Sample /proc I/O and scheduling stats of processes as JSON Lines."""
    pass


@main.command()
@click.option("--pid", "-p", "pids", type=int, multiple=True, help="PID to watch (repeatable)")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False),
    default=None,
    help="Output file (default: stdout)",
)
@click.option("--interval", "-i", type=str, default=None, help="Seconds between samples")
@click.option("--stat", "stats", multiple=True, help="Stat file to read (repeatable)")
@click.option("--escaping", type=click.Choice(["json", "newline"]), default=None)
@click.option("--log-file", type=click.Path(dir_okay=False), default=None, help="JSON log file")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@CONFIG_OPTION
def sample(
    pids: tuple[int, ...],
    output: str | None,
    interval: str | None,
    stats: tuple[str, ...],
    escaping: str | None,
    log_file: str | None,
    verbose: bool,
    config_path: Path | None,
) -> None:
    """Sample the given PIDs until they exit or a signal arrives."""
    import asyncio

    from procstat import logging as plog
    from procstat.config import ConfigurationError, parse_interval
    from procstat.sampler import SetupError, run_sampler

    if not pids:
        raise click.UsageError("no pid given")

    try:
        cfg = _load_config(config_path).with_overrides(
            interval=parse_interval(interval) if interval is not None else None,
            output=output,
            stats=list(stats),
            escaping=escaping,
            log_file=log_file,
            log_level="debug" if verbose else None,
        )
    except ConfigurationError as e:
        raise click.UsageError(str(e)) from e

    try:
        plog.configure(cfg.logging)
    except OSError as e:
        plog.setup_failed(f"cannot open log file {cfg.logging.file}: {e.strerror or e}")
        raise SystemExit(1) from e

    try:
        asyncio.run(run_sampler(pids, cfg))
    except SetupError as e:
        plog.setup_failed(str(e))
        raise SystemExit(1) from e


@main.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
@CONFIG_OPTION
def config_show(config_path: Path | None) -> None:
    """Display current configuration."""
    cfg = _load_config(config_path)
    path = config_path or cfg.config_path

    click.echo(f"Config file: {path}")
    click.echo(f"Exists: {path.exists()}")
    click.echo()
    click.echo("[sampling]")
    click.echo(f"  interval = {cfg.sampling.interval}")
    click.echo(f"  stats = {', '.join(cfg.sampling.stats)}")
    click.echo(f"  proc_root = {cfg.sampling.proc_root}")
    click.echo(f"  heartbeat_ticks = {cfg.sampling.heartbeat_ticks}")
    click.echo()
    click.echo("[output]")
    click.echo(f"  path = {cfg.output.path or '<stdout>'}")
    click.echo(f"  escaping = {cfg.output.escaping}")
    click.echo()
    click.echo("[logging]")
    click.echo(f"  level = {cfg.logging.level}")
    click.echo(f"  file = {cfg.logging.file or '<none>'}")


@config.command("reset")
@click.confirmation_option(prompt="Reset config to defaults?")
@CONFIG_OPTION
def config_reset(config_path: Path | None) -> None:
    """Reset configuration to defaults."""
    from procstat import logging as plog
    from procstat.config import Config

    cfg = Config()
    path = config_path or cfg.config_path
    cfg.save(path)
    plog.config_written(str(path))
    click.echo(f"Config reset to defaults at {path}")
