"""Watched-process slots and liveness tracking."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass


@dataclass
class WatchSlot:
    """One watched PID.

    Retired slots stay in place so slot indices remain stable.
    """

    pid: int
    retired: bool = False


class LivenessTracker:
    """Tracks which watched PIDs are still sampled.

    A PID is retired the first time its statistics can't be read and is
    never sampled again, even if the PID number is later reused.
    """

    def __init__(self, pids: Iterable[int]) -> None:
        self.slots: list[WatchSlot] = [WatchSlot(pid=pid) for pid in pids]

    def __iter__(self) -> Iterator[WatchSlot]:
        return iter(self.slots)

    def live_ids(self) -> list[int]:
        """Return PIDs of all non-retired slots, in watch order."""
        return [slot.pid for slot in self.slots if not slot.retired]

    def mark_dead(self, pid: int) -> bool:
        """Retire every slot watching this PID.

        Returns:
            True if a live slot was retired, False if already retired or unknown.
        """
        changed = False
        for slot in self.slots:
            if slot.pid == pid and not slot.retired:
                slot.retired = True
                changed = True
        return changed

    def any_live(self) -> bool:
        """Return True if at least one slot is still sampled."""
        return any(not slot.retired for slot in self.slots)
