from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Optional, Protocol, Tuple

import numpy as np


class Channel(Protocol):
    """Transport used for checkpointing; results < 0 signal failure."""

    def send_vector(self, db_tag: int, c_tag: int, data: np.ndarray) -> int:
        ...

    def recv_vector(self, db_tag: int, c_tag: int, data: np.ndarray) -> int:
        ...


class MemoryChannel:
    """In-process channel keyed by (db_tag, c_tag). Useful for tests and restarts within one process."""

    def __init__(self) -> None:
        self._records: Dict[Tuple[int, int], np.ndarray] = {}

    def __len__(self) -> int:
        return len(self._records)

    def send_vector(self, db_tag: int, c_tag: int, data: np.ndarray) -> int:
        self._records[(int(db_tag), int(c_tag))] = np.array(data, dtype=np.float64, copy=True)
        return 0

    def recv_vector(self, db_tag: int, c_tag: int, data: np.ndarray) -> int:
        stored = self._records.get((int(db_tag), int(c_tag)))
        if stored is None or stored.shape != data.shape:
            return -1
        data[:] = stored
        return 0


class JsonlChannel:
    """Append-only JSONL channel; the last record written for a (db_tag, c_tag) pair wins."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path is not None else Path("logs") / "checkpoints.jsonl"

    def send_vector(self, db_tag: int, c_tag: int, data: np.ndarray) -> int:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            line = json.dumps({"db_tag": int(db_tag), "c_tag": int(c_tag), "data": [float(v) for v in np.ravel(data)]})
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError:
            return -1
        return 0

    def recv_vector(self, db_tag: int, c_tag: int, data: np.ndarray) -> int:
        if not self.path.exists():
            return -1
        found = None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                for line in f:
                    if not line.strip():
                        continue
                    rec = json.loads(line)
                    if rec.get("db_tag") == int(db_tag) and rec.get("c_tag") == int(c_tag):
                        found = rec.get("data")
        except (OSError, json.JSONDecodeError):
            return -2
        if found is None or len(found) != data.size:
            return -1
        data[:] = np.asarray(found, dtype=np.float64)
        return 0
