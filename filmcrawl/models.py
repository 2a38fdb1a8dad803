# filmcrawl/models.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

TMDB_MOVIE_URL = "https://www.themoviedb.org/movie/{id}"


def _as_int(v: Any, default: Optional[int] = None) -> Optional[int]:
    try:
        if v is None or v == "":
            return default
        return int(v)
    except (TypeError, ValueError):
        return default


def _as_float(v: Any, default: float = 0.0) -> float:
    try:
        return float(v)
    except (TypeError, ValueError):
        return default


class CursorState(str, Enum):
    FRESH = "fresh"              # completed, inside the TTL window: nothing to do
    STALE = "stale"              # completed, TTL expired: start a new epoch
    IN_PROGRESS = "in_progress"  # not completed: keep paging from nextPage


@dataclass
class ProviderCursor:
    id: int
    name: str
    last_fetched: float = 0
    next_page: int = 1
    total_pages: Optional[int] = None
    completed: bool = False
    latest_release_date: Optional[str] = None
    seen_ids: List[int] = field(default_factory=list)

    def state(self, now: float, ttl: int) -> CursorState:
        if not self.completed:
            return CursorState.IN_PROGRESS
        if (now - (self.last_fetched or 0)) > ttl:
            return CursorState.STALE
        return CursorState.FRESH

    def needs_refresh(self, now: float, ttl: int) -> bool:
        return self.state(now, ttl) is not CursorState.FRESH

    def reset_epoch(self) -> None:
        # seen_ids survive the reset so the duplicate streak can find the old tail
        self.completed = False
        self.next_page = 1
        self.total_pages = None

    def note_release_date(self, release_date: str) -> None:
        if release_date and (not self.latest_release_date or release_date > self.latest_release_date):
            self.latest_release_date = release_date

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "lastFetched": self.last_fetched,
            "nextPage": self.next_page,
            "totalPages": self.total_pages,
            "completed": self.completed,
            "latestReleaseDate": self.latest_release_date,
            "seen_ids": list(self.seen_ids),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any], *, id: int, name: str) -> "ProviderCursor":
        seen: List[int] = []
        for x in d.get("seen_ids") or []:
            v = _as_int(x)
            if v is not None:
                seen.append(v)
        return cls(
            id=id,
            name=name,
            last_fetched=_as_float(d.get("lastFetched"), 0),
            next_page=max(1, _as_int(d.get("nextPage"), 1) or 1),
            total_pages=_as_int(d.get("totalPages")),
            completed=bool(d.get("completed", False)),
            latest_release_date=d.get("latestReleaseDate") or None,
            seen_ids=list(dict.fromkeys(seen)),
        )


@dataclass
class AggregateMovie:
    id: int
    title: str = ""
    release_date: str = ""
    year: str = ""
    overview: str = ""
    vote_average: float = 0
    vote_count: int = 0
    poster_path: Optional[str] = None
    genres: List[Dict[str, Any]] = field(default_factory=list)
    cast: List[str] = field(default_factory=list)
    provider_ids: List[int] = field(default_factory=list)
    providers: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def tmdb_url(self) -> str:
        return TMDB_MOVIE_URL.format(id=self.id)

    def add_provider(self, provider_id: int, provider_name: str) -> bool:
        """Append provider membership; False when it was already there."""
        if provider_id in self.provider_ids:
            return False
        self.provider_ids.append(provider_id)
        self.providers.append({"id": provider_id, "name": provider_name})
        return True

    @classmethod
    def from_tmdb(cls, row: Dict[str, Any], genre_map: Dict[int, str], cast: List[str],
                  provider_id: int, provider_name: str) -> "AggregateMovie":
        genres: List[Dict[str, Any]] = []
        for gid in row.get("genre_ids") or []:
            gid = _as_int(gid)
            if gid is not None and gid in genre_map:
                genres.append({"id": gid, "name": genre_map[gid]})
        rd = row.get("release_date") or ""
        return cls(
            id=int(row["id"]),
            title=row.get("title") or "",
            release_date=rd,
            year=rd[:4] if len(rd) >= 4 else "",
            overview=row.get("overview") or "",
            vote_average=row.get("vote_average") or 0,
            vote_count=row.get("vote_count") or 0,
            poster_path=row.get("poster_path"),
            genres=genres,
            cast=list(cast),
            provider_ids=[provider_id],
            providers=[{"id": provider_id, "name": provider_name}],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "release_date": self.release_date,
            "year": self.year,
            "overview": self.overview,
            "vote_average": self.vote_average,
            "vote_count": self.vote_count,
            "poster_path": self.poster_path,
            "genres": list(self.genres),
            "cast": list(self.cast),
            "provider_ids": list(self.provider_ids),
            "providers": list(self.providers),
            "tmdb_url": self.tmdb_url,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AggregateMovie":
        return cls(
            id=int(d["id"]),
            title=d.get("title") or "",
            release_date=d.get("release_date") or "",
            year=str(d.get("year") or ""),
            overview=d.get("overview") or "",
            vote_average=d.get("vote_average") or 0,
            vote_count=d.get("vote_count") or 0,
            poster_path=d.get("poster_path"),
            genres=list(d.get("genres") or []),
            cast=list(d.get("cast") or []),
            provider_ids=[int(p) for p in d.get("provider_ids") or []],
            providers=list(d.get("providers") or []),
        )


@dataclass
class ProviderSnapshot:
    id: int
    name: str
    cached: int
    completed: bool
    total_pages: Optional[int]
    next_page: int
    last_fetched: float
    latest_release_date: Optional[str]
    needs_refresh: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "cached": self.cached,
            "completed": self.completed,
            "totalPages": self.total_pages,
            "nextPage": self.next_page,
            "lastFetched": self.last_fetched,
            "latestReleaseDate": self.latest_release_date,
            "needsRefresh": self.needs_refresh,
        }


@dataclass
class Notification:
    provider_id: int
    provider_name: str
    added: int

    def to_dict(self) -> Dict[str, Any]:
        return {"providerId": self.provider_id, "providerName": self.provider_name, "added": self.added}


@dataclass
class ChunkResult:
    provider: ProviderSnapshot
    cached_movies: int
    new_added: int = 0
    fresh: bool = False
    pages_fetched: int = 0
    stopped_early: bool = False

    @property
    def completed(self) -> bool:
        return self.provider.completed

    @property
    def toast(self) -> Optional[Notification]:
        if self.new_added <= 0:
            return None
        return Notification(self.provider.id, self.provider.name, self.new_added)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"provider": self.provider.to_dict()}
        if self.fresh:
            out["overall"] = {"cachedMovies": self.cached_movies}
            out["message"] = "Provider cache is fresh."
            return out
        toast = self.toast
        out["overall"] = {"cachedMovies": self.cached_movies, "newAdded": self.new_added}
        out["toast"] = toast.to_dict() if toast else None
        return out
