"""Configuration system for procstat."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit

ESCAPING_MODES = ("json", "newline")
LOG_LEVELS = ("debug", "info", "warning", "error")


class ConfigurationError(ValueError):
    """Raised when configuration or command-line input is unusable."""


@dataclass
class SamplingConfig:
    """Sampling loop configuration."""

    interval: float = 1.0  # Seconds between ticks
    stats: list[str] = field(default_factory=lambda: ["io", "stat"])  # Files under /proc/<pid>/
    proc_root: str = "/proc"
    heartbeat_ticks: int = 60  # Log a heartbeat every N ticks (0 = never)


@dataclass
class OutputConfig:
    """Sample stream configuration."""

    path: str = ""  # Empty = standard output
    escaping: str = "json"  # "json" (full string escaping) or "newline" (legacy)


@dataclass
class LoggingConfig:
    """Diagnostic logging configuration (never written to the sample stream)."""

    level: str = "info"
    file: str = ""  # Empty = console only
    max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    backup_count: int = 3  # Number of backup log files to keep


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "procstat"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ("sampling", "output", "logging"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        All defaults come from the dataclass definitions, so Config() and
        Config.load() on a missing file are identical.

        Raises:
            ConfigurationError: If the file can't be parsed or holds invalid values.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f).unwrap()
        except tomlkit.exceptions.TOMLKitError as e:
            raise ConfigurationError(f"Failed to parse config file {path}: {e}") from e

        return cls(
            sampling=_load_sampling_config(data.get("sampling", {})),
            output=_load_output_config(data.get("output", {})),
            logging=_load_logging_config(data.get("logging", {})),
        )

    def with_overrides(
        self,
        *,
        interval: float | None = None,
        output: str | None = None,
        stats: list[str] | None = None,
        escaping: str | None = None,
        log_file: str | None = None,
        log_level: str | None = None,
    ) -> "Config":
        """Return a copy with command-line values applied over this config.

        Overrides go through the same validation as file values.
        """
        sampling = self.sampling
        out = self.output
        log_cfg = self.logging

        if interval is not None or stats:
            sampling = _load_sampling_config(
                {
                    "interval": interval if interval is not None else sampling.interval,
                    "stats": list(stats) if stats else list(sampling.stats),
                    "proc_root": sampling.proc_root,
                    "heartbeat_ticks": sampling.heartbeat_ticks,
                }
            )
        if output is not None or escaping is not None:
            out = _load_output_config(
                {
                    "path": output if output is not None else out.path,
                    "escaping": escaping if escaping is not None else out.escaping,
                }
            )
        if log_file is not None or log_level is not None:
            log_cfg = _load_logging_config(
                {
                    **dataclasses.asdict(log_cfg),
                    **({"file": log_file} if log_file is not None else {}),
                    **({"level": log_level} if log_level is not None else {}),
                }
            )

        return Config(sampling=sampling, output=out, logging=log_cfg)


def parse_interval(value: object) -> float:
    """Validate a sampling interval in seconds.

    Raises:
        ConfigurationError: If value isn't a positive finite number.
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"interval must be a number, got {value!r}")
    try:
        interval = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"interval must be a number, got {value!r}") from e
    if not interval > 0 or interval == float("inf"):
        raise ConfigurationError(f"interval must be > 0, got {value!r}")
    return interval


def _load_sampling_config(data: dict) -> SamplingConfig:
    """Load sampling config from TOML data, using dataclass defaults for missing fields."""
    defaults = SamplingConfig()

    interval = parse_interval(data.get("interval", defaults.interval))

    stats = data.get("stats", defaults.stats)
    if isinstance(stats, str) or not isinstance(stats, list) or not stats:
        raise ConfigurationError(f"stats must be a non-empty list of names, got {stats!r}")
    for name in stats:
        if not isinstance(name, str) or not name or "/" in name or name in (".", ".."):
            raise ConfigurationError(f"Invalid stat name: {name!r}")
    if len(set(stats)) != len(stats):
        raise ConfigurationError(f"Duplicate stat names in {stats!r}")

    heartbeat_ticks = data.get("heartbeat_ticks", defaults.heartbeat_ticks)
    if not isinstance(heartbeat_ticks, int) or heartbeat_ticks < 0:
        raise ConfigurationError(f"heartbeat_ticks must be >= 0, got {heartbeat_ticks!r}")

    return SamplingConfig(
        interval=interval,
        stats=[str(name) for name in stats],
        proc_root=str(data.get("proc_root", defaults.proc_root)),
        heartbeat_ticks=heartbeat_ticks,
    )


def _load_output_config(data: dict) -> OutputConfig:
    """Load output config from TOML data."""
    defaults = OutputConfig()
    escaping = data.get("escaping", defaults.escaping)
    if escaping not in ESCAPING_MODES:
        raise ConfigurationError(
            f"Invalid escaping: {escaping!r}. Must be one of {list(ESCAPING_MODES)}"
        )
    return OutputConfig(
        path=str(data.get("path", defaults.path)),
        escaping=escaping,
    )


def _load_logging_config(data: dict) -> LoggingConfig:
    """Load logging config from TOML data."""
    defaults = LoggingConfig()
    level = str(data.get("level", defaults.level)).lower()
    if level not in LOG_LEVELS:
        raise ConfigurationError(f"Invalid log level: {level!r}. Must be one of {list(LOG_LEVELS)}")

    max_bytes = data.get("max_bytes", defaults.max_bytes)
    backup_count = data.get("backup_count", defaults.backup_count)
    if isinstance(max_bytes, bool) or not isinstance(max_bytes, int) or max_bytes < 0:
        raise ConfigurationError(f"max_bytes must be an integer >= 0, got {max_bytes!r}")
    if isinstance(backup_count, bool) or not isinstance(backup_count, int) or backup_count < 0:
        raise ConfigurationError(f"backup_count must be an integer >= 0, got {backup_count!r}")

    return LoggingConfig(
        level=level,
        file=str(data.get("file", defaults.file)),
        max_bytes=max_bytes,
        backup_count=backup_count,
    )
