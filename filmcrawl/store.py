# filmcrawl/store.py
from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple

from .cache import atomic_write_json, read_json
from .errors import InvalidProvider
from .models import AggregateMovie, ProviderCursor

AGGREGATE_FILE = "films.json"
METADATA_FILE = "metadata.json"

_registry_guard = threading.Lock()
_locks: Dict[str, threading.RLock] = {}


def _named_lock(name: str) -> threading.RLock:
    with _registry_guard:
        lock = _locks.get(name)
        if lock is None:
            lock = _locks[name] = threading.RLock()
        return lock


def provider_lock(provider_id: int) -> threading.RLock:
    """Process-wide exclusive section for one provider's chunk calls."""
    return _named_lock(f"provider:{int(provider_id)}")


def _document_lock(path: Path) -> threading.RLock:
    return _named_lock(f"doc:{Path(path).resolve()}")


class AggregateRepository:
    """
    films.json: {"movies": [AggregateMovie...], "lastUpdated": epoch}
    Movies are keyed by TMDB id; an existing record is never replaced,
    only its provider membership grows.
    """
    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.lock = _document_lock(self.path)

    def _load_raw(self) -> Dict[str, Any]:
        raw = read_json(self.path, None)
        if not isinstance(raw, dict) or not isinstance(raw.get("movies"), list):
            return {"movies": [], "lastUpdated": 0}
        return raw

    def load(self) -> Tuple[List[AggregateMovie], float]:
        raw = self._load_raw()
        movies: List[AggregateMovie] = []
        seen = set()
        for rec in raw["movies"]:
            try:
                m = AggregateMovie.from_dict(rec)
            except (KeyError, TypeError, ValueError):
                continue
            if m.id in seen:
                continue
            seen.add(m.id)
            movies.append(m)
        try:
            last = float(raw.get("lastUpdated") or 0)
        except (TypeError, ValueError):
            last = 0
        return movies, last

    def ids(self) -> set[int]:
        movies, _ = self.load()
        return {m.id for m in movies}

    def save(self, movies: Iterable[AggregateMovie], last_updated: float) -> None:
        atomic_write_json(self.path, {
            "movies": [m.to_dict() for m in movies],
            "lastUpdated": last_updated,
        })

    def merge(self, batch: Iterable[AggregateMovie], provider_id: int, provider_name: str,
              now: float) -> Tuple[int, List[AggregateMovie]]:
        """
        Upsert a chunk's sightings against the current document.
        Returns (added, movies) as written.
        """
        with self.lock:
            movies, _ = self.load()
            index = {m.id: m for m in movies}
            added = 0
            for movie in batch:
                if upsert(index, movies, movie, provider_id, provider_name):
                    added += 1
            self.save(movies, now)
            return added, movies


def upsert(index: Dict[int, AggregateMovie], movies: List[AggregateMovie], movie: AggregateMovie,
           provider_id: int, provider_name: str) -> bool:
    """True when the movie was appended, False when merged into an existing record."""
    existing = index.get(movie.id)
    if existing is not None:
        existing.add_provider(provider_id, provider_name)
        return False
    movie.add_provider(provider_id, provider_name)
    index[movie.id] = movie
    movies.append(movie)
    return True


class CursorRepository:
    """
    metadata.json: {"providers": {"<id>": ProviderCursor...}, "lastCacheRefresh": epoch}
    Cursors are created lazily for every configured provider.
    """
    def __init__(self, path: str | Path, providers: Dict[int, str]):
        self.path = Path(path)
        self.providers = dict(providers)
        self.lock = _document_lock(self.path)

    def _load_raw(self) -> Dict[str, Any]:
        raw = read_json(self.path, None)
        if not isinstance(raw, dict):
            raw = {}
        if not isinstance(raw.get("providers"), dict):
            raw["providers"] = {}
        raw.setdefault("lastCacheRefresh", 0)
        return raw

    def _cursor_from(self, raw: Dict[str, Any], provider_id: int) -> ProviderCursor:
        rec = raw["providers"].get(str(provider_id))
        if not isinstance(rec, dict):
            rec = {}
        return ProviderCursor.from_dict(rec, id=provider_id, name=self.providers[provider_id])

    def load(self) -> Tuple[Dict[int, ProviderCursor], float]:
        raw = self._load_raw()
        cursors = {pid: self._cursor_from(raw, pid) for pid in self.providers}
        try:
            refreshed = float(raw.get("lastCacheRefresh") or 0)
        except (TypeError, ValueError):
            refreshed = 0
        return cursors, refreshed

    def get(self, provider_id: int) -> ProviderCursor:
        if provider_id not in self.providers:
            raise InvalidProvider(provider_id)
        return self._cursor_from(self._load_raw(), provider_id)

    def save(self, cursor: ProviderCursor, now: float, refreshed: bool = True) -> None:
        if cursor.id not in self.providers:
            raise InvalidProvider(cursor.id)
        with self.lock:
            raw = self._load_raw()
            # keep every configured provider present, even ones never crawled
            for pid in self.providers:
                raw["providers"].setdefault(str(pid), self._cursor_from(raw, pid).to_dict())
            raw["providers"][str(cursor.id)] = cursor.to_dict()
            if refreshed:
                raw["lastCacheRefresh"] = now
            atomic_write_json(self.path, raw)


def open_repositories(data_dir: str | Path, providers: Dict[int, str]) -> Tuple[AggregateRepository, CursorRepository]:
    root = Path(data_dir)
    return AggregateRepository(root / AGGREGATE_FILE), CursorRepository(root / METADATA_FILE, providers)
