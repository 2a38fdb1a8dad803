# filmcrawl/status.py
from __future__ import annotations

from typing import Any, Dict, Iterable, List

from .models import AggregateMovie, ProviderCursor, ProviderSnapshot
from .store import AggregateRepository, CursorRepository


def provider_snapshot(cursor: ProviderCursor, movies: Iterable[AggregateMovie],
                      now: float, ttl: int) -> ProviderSnapshot:
    cached = sum(1 for m in movies if cursor.id in m.provider_ids)
    return ProviderSnapshot(
        id=cursor.id,
        name=cursor.name,
        cached=cached,
        completed=cursor.completed,
        total_pages=cursor.total_pages,
        next_page=cursor.next_page,
        last_fetched=cursor.last_fetched,
        latest_release_date=cursor.latest_release_date,
        needs_refresh=cursor.needs_refresh(now, ttl),
    )


def status_response(aggregates: AggregateRepository, cursors: CursorRepository,
                    now: float, ttl: int) -> Dict[str, Any]:
    movies, last_updated = aggregates.load()
    by_provider, refreshed = cursors.load()
    snapshots: List[Dict[str, Any]] = [
        provider_snapshot(c, movies, now, ttl).to_dict() for c in by_provider.values()
    ]
    return {
        "overall": {
            "totalCached": len(movies),
            "uniqueMovies": len(movies),
            "lastUpdated": last_updated,
        },
        "providers": snapshots,
        "cacheFreshness": refreshed,
    }


def films_response(aggregates: AggregateRepository) -> Dict[str, Any]:
    movies, last_updated = aggregates.load()
    return {"movies": [m.to_dict() for m in movies], "lastUpdated": last_updated}
