"""Single-line JSON encoding of sampling ticks.

Each tick becomes one line:

    {"time":1706000000.123456,"procs":{"123":{"io":"rchar: 1\\n...","stat":"123 (cmd) S ..."}}}

Blobs are decoded as UTF-8; undecodable bytes become backslash escapes
(e.g. ``\\xff``) so every record is valid text.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field

from procstat.config import ESCAPING_MODES


@dataclass
class Tick:
    """One sampling tick: wall-clock time plus blobs of PIDs read successfully."""

    time: float
    procs: dict[int, dict[str, bytes]] = field(default_factory=dict)


def _decode(blob: bytes) -> str:
    return blob.decode("utf-8", errors="backslashreplace")


def _escape_newlines(blob: bytes) -> str:
    return _decode(blob).replace("\n", "\\n")


class Encoder:
    """Serializes ticks to single-line JSON.

    Two escaping policies are supported:
    - "json": full JSON string escaping; output always parses.
    - "newline": only newlines are escaped, matching the legacy record
      format. Blobs containing quotes, backslashes or other control
      characters produce invalid JSON in this mode.
    """

    def __init__(self, escaping: str = "json") -> None:
        if escaping not in ESCAPING_MODES:
            raise ValueError(f"Unknown escaping: {escaping!r}")
        self.escaping = escaping

    def encode(self, tick: Tick) -> str:
        """Return the record for a tick, without a trailing newline."""
        if self.escaping == "newline":
            return self._encode_newline_only(tick)

        record = {
            "time": round(tick.time, 6),
            "procs": {
                str(pid): {name: _decode(blob) for name, blob in blobs.items()}
                for pid, blobs in tick.procs.items()
            },
        }
        return json.dumps(record, ensure_ascii=False, separators=(",", ":"))

    def _encode_newline_only(self, tick: Tick) -> str:
        parts = [f'{{"time":{tick.time:f},"procs":{{']
        for i, (pid, blobs) in enumerate(tick.procs.items()):
            if i:
                parts.append(",")
            fields = ",".join(
                f'"{name}":"{_escape_newlines(blob)}"'
                for name, blob in blobs.items()
            )
            parts.append(f'"{pid}":{{{fields}}}')
        parts.append("}}")
        return "".join(parts)
