"""Per-process statistic reader backed by /proc/<pid>/<name> files."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path

import psutil

DEFAULT_STATS = ("io", "stat")


class ReadFailure(OSError):
    """Raised when any statistic file of a process can't be read.

    A read failure is treated as the process having exited.
    """

    def __init__(self, pid: int, path: Path, reason: str) -> None:
        super().__init__(f"PID {pid}: cannot read {path}: {reason}")
        self.pid = pid
        self.path = path
        self.reason = reason


class StatSource:
    """Reads the raw statistic blobs for a process, all or nothing.

    Paths are computed once per PID and cached, so the hot path only opens
    and reads files.
    """

    def __init__(
        self,
        pids: Iterable[int] = (),
        stats: Sequence[str] = DEFAULT_STATS,
        proc_root: str | Path = "/proc",
    ) -> None:
        if not stats:
            raise ValueError("At least one stat name is required")
        self.stats = tuple(stats)
        self.proc_root = Path(proc_root)
        self._paths: dict[int, tuple[tuple[str, Path], ...]] = {}
        for pid in pids:
            self.paths(pid)

    def paths(self, pid: int) -> tuple[tuple[str, Path], ...]:
        """Return (name, path) pairs for a PID, computing them on first use."""
        cached = self._paths.get(pid)
        if cached is None:
            base = self.proc_root / str(pid)
            cached = tuple((name, base / name) for name in self.stats)
            self._paths[pid] = cached
        return cached

    def fetch(self, pid: int) -> dict[str, bytes]:
        """Read every statistic file for a PID.

        Returns:
            Mapping of stat name to raw file content, in configured order.

        Raises:
            ReadFailure: If any file can't be opened or read. No partial
                result is returned.
        """
        blobs: dict[str, bytes] = {}
        for name, path in self.paths(pid):
            try:
                with open(path, "rb") as f:
                    blobs[name] = f.read()
            except OSError as e:
                raise ReadFailure(pid, path, e.strerror or str(e)) from e
        return blobs


def process_name(pid: int) -> str | None:
    """Return the command name for a PID, or None if it can't be inspected."""
    try:
        return psutil.Process(pid).name()
    except (psutil.NoSuchProcess, psutil.AccessDenied, ValueError, OverflowError):
        return None
