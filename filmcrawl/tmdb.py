# filmcrawl/tmdb.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests

from .cache import DiskCache
from .config import Config
from .errors import UpstreamMalformed, UpstreamUnavailable

logger = logging.getLogger(__name__)

_ATTEMPTS = 3
_RETRY_STATUSES = {429, 500, 502, 503, 504}


@dataclass
class DiscoverPage:
    results: List[Dict[str, Any]] = field(default_factory=list)
    total_pages: Optional[int] = None


class TMDBClient:
    """Thin adapter over the three TMDB endpoints the crawler needs."""

    def __init__(self, config: Config, cache: Optional[DiskCache] = None,
                 session: Optional[requests.Session] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config
        self.base = config.tmdb_base_url.rstrip("/")
        self.cache = cache
        self.session = session or requests.Session()
        self.sleep = sleep

    def _headers(self) -> Dict[str, str]:
        h = {"Accept": "application/json"}
        if self.config.tmdb_bearer:
            h["Authorization"] = f"Bearer {self.config.tmdb_bearer}"
        return h

    def _params(self, params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        q = {k: v for k, v in (params or {}).items() if v is not None}
        # Prefer the v4 read token; fall back to the v3 api_key query param
        if self.config.tmdb_api_key and not self.config.tmdb_bearer:
            q.setdefault("api_key", self.config.tmdb_api_key)
        return q

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base}/{path.lstrip('/')}"
        q = self._params(params)
        status: Optional[int] = None
        reason = ""
        # tiny retry/backoff for 429/5xx
        for attempt in range(_ATTEMPTS):
            try:
                r = self.session.get(url, headers=self._headers(), params=q, timeout=self.config.tmdb_timeout)
            except requests.RequestException as e:
                status, reason = None, str(e)
            else:
                status = r.status_code
                if status < 400:
                    try:
                        data = r.json()
                    except ValueError:
                        raise UpstreamMalformed(path, "response is not JSON")
                    if not isinstance(data, dict):
                        raise UpstreamMalformed(path, "response is not a JSON object")
                    return data
                reason = _status_message(r)
                if status not in _RETRY_STATUSES:
                    break
            if attempt < _ATTEMPTS - 1:
                self.sleep(0.5 + attempt * 0.5)
        logger.warning("TMDB GET %s failed (status=%s): %s", path, status, reason)
        raise UpstreamUnavailable(path, status, reason)

    # ---- endpoints ----

    def discover(self, provider_id: int, page: int, date_floor: str, date_ceiling: str) -> DiscoverPage:
        """One page of a provider's catalog, newest release first."""
        data = self._get("discover/movie", {
            "with_watch_providers": provider_id,
            "watch_region": self.config.watch_region,
            "sort_by": "primary_release_date.desc",
            "primary_release_date.gte": date_floor,
            "primary_release_date.lte": date_ceiling,
            "include_adult": "false",
            "language": self.config.language,
            "page": page,
        })
        results = data.get("results")
        if results is None:
            results = []
        if not isinstance(results, list):
            raise UpstreamMalformed("discover/movie", "results is not a list")
        rows = [c for c in (clean_row(r) for r in results) if c is not None]
        total = data.get("total_pages")
        try:
            total_pages = int(total) if total is not None else None
        except (TypeError, ValueError):
            total_pages = None
        return DiscoverPage(results=rows, total_pages=total_pages)

    def credits(self, movie_id: int) -> List[str]:
        data = self._get(f"movie/{int(movie_id)}/credits")
        cast = data.get("cast") or []
        if not isinstance(cast, list):
            raise UpstreamMalformed(f"movie/{movie_id}/credits", "cast is not a list")
        names: List[str] = []
        for person in cast[: self.config.cast_limit]:
            name = person.get("name") if isinstance(person, dict) else None
            if name:
                names.append(name)
        return names

    def genre_list(self) -> List[Dict[str, Any]]:
        data = self._get("genre/movie/list", {"language": self.config.language})
        genres = data.get("genres") or []
        return [
            {"id": int(g["id"]), "name": g.get("name") or ""}
            for g in genres
            if isinstance(g, dict) and g.get("id") is not None
        ]

    def genre_map(self) -> Dict[int, str]:
        """
        id -> name, cached on disk for genre_ttl.
        Genres only decorate records, so a failed lookup yields an empty map.
        """
        try:
            if self.cache is None:
                genres = self.genre_list()
            else:
                genres = self.cache.remember("genres", f"genre/movie/list:{self.config.language}",
                                             self.config.genre_ttl, self.genre_list)
        except UpstreamUnavailable:
            return {}
        return {int(g["id"]): g["name"] for g in genres or []}


def clean_row(row: Any) -> Optional[Dict[str, Any]]:
    """Coerce a discover row to an int id and a str release_date; None when unusable."""
    if not isinstance(row, dict):
        return None
    try:
        movie_id = int(row.get("id"))
    except (TypeError, ValueError):
        return None
    release_date = row.get("release_date")
    return {**row, "id": movie_id, "release_date": release_date if isinstance(release_date, str) else ""}


def _status_message(r: requests.Response) -> str:
    try:
        body = r.json()
    except ValueError:
        return (r.text or "")[:200]
    if isinstance(body, dict) and body.get("status_message"):
        return str(body["status_message"])
    return ""
