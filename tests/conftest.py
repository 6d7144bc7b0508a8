"""Shared test fixtures for procstat."""

import logging
from pathlib import Path

import pytest
import structlog

from procstat.config import Config, LoggingConfig, OutputConfig, SamplingConfig

IO_TEXT = "rchar: 1024\nwchar: 2048\nsyscr: 10\nsyscw: 20\nread_bytes: 0\nwrite_bytes: 4096\n"


def stat_text(pid: int, command: str = "worker") -> str:
    """Return a /proc/<pid>/stat style line."""
    return f"{pid} ({command}) S 1 {pid} {pid} 0 -1 4194304 120 0 0 0 5 3 0 0 20 0 1 0\n"


class FakeProc:
    """A /proc-like directory tree under tmp_path."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def add(self, pid: int, io: str = IO_TEXT, stat: str | None = None, **extra: str) -> Path:
        """Create (or overwrite) the stat files of a process."""
        pid_dir = self.root / str(pid)
        pid_dir.mkdir(parents=True, exist_ok=True)
        (pid_dir / "io").write_text(io)
        (pid_dir / "stat").write_text(stat if stat is not None else stat_text(pid))
        for name, text in extra.items():
            (pid_dir / name).write_text(text)
        return pid_dir

    def kill(self, pid: int) -> None:
        """Remove a process's files so reads fail."""
        pid_dir = self.root / str(pid)
        for f in pid_dir.iterdir():
            f.unlink()
        pid_dir.rmdir()


@pytest.fixture
def fake_proc(tmp_path: Path) -> FakeProc:
    """Create an empty fake /proc tree."""
    root = tmp_path / "proc"
    root.mkdir()
    return FakeProc(root)


def make_config(
    proc_root: Path | str = "/proc",
    interval: float = 0.01,
    escaping: str = "json",
    heartbeat_ticks: int = 0,
    stats: list[str] | None = None,
    output: str = "",
) -> Config:
    """Create a Config for testing with a short interval."""
    return Config(
        sampling=SamplingConfig(
            interval=interval,
            stats=stats or ["io", "stat"],
            proc_root=str(proc_root),
            heartbeat_ticks=heartbeat_ticks,
        ),
        output=OutputConfig(path=output, escaping=escaping),
        logging=LoggingConfig(),
    )


@pytest.fixture(autouse=True)
def restore_logging():
    """Put back pytest's root handlers after procstat.logging.configure() clears them."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()
