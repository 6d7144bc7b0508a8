"""Tests for configuration system."""

import pytest

from procstat.config import (
    Config,
    ConfigurationError,
    LoggingConfig,
    OutputConfig,
    SamplingConfig,
    parse_interval,
)


def test_sampling_config_defaults():
    """SamplingConfig has correct defaults."""
    config = SamplingConfig()
    assert config.interval == 1.0
    assert config.stats == ["io", "stat"]
    assert config.proc_root == "/proc"
    assert config.heartbeat_ticks == 60


def test_output_config_defaults():
    """OutputConfig defaults to stdout with full JSON escaping."""
    config = OutputConfig()
    assert config.path == ""
    assert config.escaping == "json"


def test_logging_config_defaults():
    """LoggingConfig logs to console only at info level."""
    config = LoggingConfig()
    assert config.level == "info"
    assert config.file == ""


def test_config_paths():
    """Config provides the config file path."""
    config = Config()
    assert "procstat" in str(config.config_dir)
    assert config.config_path.name == "config.toml"


def test_config_load_missing_file_returns_defaults(tmp_path):
    """Config.load() on a missing file equals Config()."""
    assert Config.load(tmp_path / "nope.toml") == Config()


def test_config_save_load_preserves_values(tmp_path):
    """Values written by save() are read back by load()."""
    config_path = tmp_path / "config.toml"
    config = Config()
    config.sampling.interval = 0.25
    config.sampling.stats = ["io", "stat", "statm"]
    config.output.escaping = "newline"
    config.logging.file = "/var/log/procstat.jsonl"
    config.save(config_path)

    content = config_path.read_text()
    assert "interval = 0.25" in content
    assert "[output]" in content

    loaded = Config.load(config_path)
    assert loaded == config


def test_config_load_partial_file(tmp_path):
    """Missing keys fall back to dataclass defaults."""
    config_path = tmp_path / "config.toml"
    config_path.write_text("""
[sampling]
interval = 2

[output]
path = "/tmp/out.jsonl"
""")

    config = Config.load(config_path)
    assert config.sampling.interval == 2.0
    assert config.sampling.stats == ["io", "stat"]
    assert config.output.path == "/tmp/out.jsonl"
    assert config.output.escaping == "json"
    assert config.logging.level == "info"


def test_config_load_malformed_toml(tmp_path):
    """Unparseable TOML raises ConfigurationError."""
    config_path = tmp_path / "config.toml"
    config_path.write_text("[sampling\ninterval = ")

    with pytest.raises(ConfigurationError, match="Failed to parse"):
        Config.load(config_path)


@pytest.mark.parametrize(
    "toml",
    [
        "[sampling]\ninterval = 0",
        "[sampling]\ninterval = -1.5",
        '[sampling]\ninterval = "fast"',
        "[sampling]\nstats = []",
        '[sampling]\nstats = "io"',
        '[sampling]\nstats = ["io", "../environ"]',
        '[sampling]\nstats = ["io", "io"]',
        "[sampling]\nheartbeat_ticks = -1",
        '[output]\nescaping = "xml"',
        '[logging]\nlevel = "chatty"',
        "[logging]\nbackup_count = -1",
        "[logging]\nbackup_count = 1.5",
        '[logging]\nmax_bytes = "5MB"',
        "[logging]\nmax_bytes = true",
    ],
)
def test_config_load_rejects_invalid_values(tmp_path, toml):
    """Invalid values raise ConfigurationError."""
    config_path = tmp_path / "config.toml"
    config_path.write_text(toml)

    with pytest.raises(ConfigurationError):
        Config.load(config_path)


def test_configuration_error_is_value_error():
    """ConfigurationError can be caught as ValueError."""
    assert issubclass(ConfigurationError, ValueError)


@pytest.mark.parametrize("value, expected", [("0.5", 0.5), (2, 2.0), ("1e-3", 0.001)])
def test_parse_interval_valid(value, expected):
    """parse_interval() accepts positive numbers and numeric strings."""
    assert parse_interval(value) == expected


@pytest.mark.parametrize("value", ["0", "-1", "abc", "", "nan", "inf", None, True])
def test_parse_interval_invalid(value):
    """parse_interval() rejects zero, negatives and non-numbers."""
    with pytest.raises(ConfigurationError):
        parse_interval(value)


def test_with_overrides_applies_values():
    """Command-line overrides replace config values."""
    config = Config().with_overrides(
        interval=0.1,
        output="out.jsonl",
        stats=["stat"],
        escaping="newline",
        log_file="log.jsonl",
        log_level="debug",
    )

    assert config.sampling.interval == 0.1
    assert config.sampling.stats == ["stat"]
    assert config.output.path == "out.jsonl"
    assert config.output.escaping == "newline"
    assert config.logging.file == "log.jsonl"
    assert config.logging.level == "debug"


def test_with_overrides_keeps_unset_values():
    """Overrides left as None keep the loaded values."""
    base = Config()
    base.sampling.proc_root = "/host/proc"
    base.output.path = "keep.jsonl"

    config = base.with_overrides(interval=3.0)

    assert config.sampling.interval == 3.0
    assert config.sampling.proc_root == "/host/proc"
    assert config.output.path == "keep.jsonl"
    assert base.sampling.interval == 1.0


def test_with_overrides_validates():
    """Overrides go through the same validation as file values."""
    with pytest.raises(ConfigurationError):
        Config().with_overrides(stats=["a/b"])
