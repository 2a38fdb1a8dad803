# filmcrawl/cache.py
from __future__ import annotations

import hashlib
import json
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Callable, Optional

from .errors import PersistenceFailure


def _atomic_write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(delete=False, dir=str(path.parent), suffix=".tmp") as tmp:
        tmp.write(data)
        tmp.flush()
        os.fsync(tmp.fileno())
        tmp_path = Path(tmp.name)
    try:
        tmp_path.replace(path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


def atomic_write_json(path: Path, obj: Any) -> None:
    """Write-to-temp-then-rename; raises PersistenceFailure instead of OSError."""
    path = Path(path)
    try:
        _atomic_write_bytes(path, json.dumps(obj, ensure_ascii=False, indent=2).encode("utf-8"))
    except OSError as e:
        raise PersistenceFailure(path, e) from e


def read_json(path: Path, default: Any) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return default
    except (OSError, ValueError):
        # Corrupted? Return default rather than blowing up the caller.
        return default


class DiskCache:
    """
    Tiny JSON disk cache with remember() semantics.
    Files live under {root}/{group}/{sha}.json as {"_fetched_ts": ..., "data": ...}.
    """
    def __init__(self, root: str | Path, clock: Callable[[], float] = time.time):
        self.root = Path(root)
        self.clock = clock

    def _path_for(self, group: str, key: str) -> Path:
        h = hashlib.sha256(key.encode("utf-8")).hexdigest()[:32]
        return self.root / group / f"{h}.json"

    def get(self, group: str, key: str, ttl: int) -> Optional[Any]:
        payload = read_json(self._path_for(group, key), None)
        if not isinstance(payload, dict) or "data" not in payload:
            return None
        try:
            fetched_at = float(payload.get("_fetched_ts", 0))
        except (TypeError, ValueError):
            return None
        if (self.clock() - fetched_at) > ttl:
            return None
        return payload["data"]

    def put(self, group: str, key: str, data: Any) -> None:
        atomic_write_json(self._path_for(group, key), {"_fetched_ts": self.clock(), "data": data})

    def remember(self, group: str, key: str, ttl: int, producer: Callable[[], Any]) -> Any:
        cached = self.get(group, key, ttl)
        if cached is not None:
            return cached
        value = producer()
        # don't pin an empty answer for a whole TTL window
        if value:
            self.put(group, key, value)
        return value
