"""
Append-only JSONL audit sink for leaderboard entries.

The leaderboard appends one line per accepted submission, in acceptance
order; ``read_jsonl`` replays a file back into dicts. A line is compact JSON
with sorted keys, so the same entry always produces the same line and two
audit files can be compared with a plain diff.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, TextIO


def encode_record(record: Dict[str, Any]) -> str:
    """Single-line JSON for ``record``: sorted keys, no whitespace, literal Unicode."""
    return json.dumps(record, separators=(",", ":"), ensure_ascii=False, sort_keys=True)


class JsonlWriter:
    """
    Line-per-record writer over a file opened in append mode.

    Every ``write`` is flushed before it returns, so an accepted entry is on
    disk once ``Leaderboard.submit`` returns. The writer does no locking of its
    own; the leaderboard calls it under its writer lock.
    """

    def __init__(self, path: str) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._handle: Optional[TextIO] = self.path.open("a", encoding="utf-8")
        self.records_written = 0

    @property
    def closed(self) -> bool:
        return self._handle is None

    def write(self, record: Dict[str, Any]) -> None:
        if self._handle is None:
            raise ValueError(f"audit log {self.path} is closed")
        self._handle.write(encode_record(record) + "\n")
        self._handle.flush()
        self.records_written += 1

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "JsonlWriter":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def read_jsonl(path: str) -> Iterator[Dict[str, Any]]:
    """Yield records from a file written by ``JsonlWriter``; blank lines are skipped."""
    with Path(path).open("r", encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError as exc:
                raise ValueError(f"{path}:{line_number}: invalid JSONL record: {exc}") from exc
