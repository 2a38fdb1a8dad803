# filmcrawl/catalog_builder.py
from __future__ import annotations

import time
from pathlib import Path
from typing import Callable, List, Optional

from .cache import DiskCache
from .config import Config
from .errors import InvalidProvider, UpstreamUnavailable
from .logging_utils import HeartbeatLogger, NullHeartbeat, make_heartbeat
from .models import AggregateMovie, ChunkResult, CursorState
from .status import provider_snapshot
from .store import AggregateRepository, CursorRepository, open_repositories, provider_lock
from .tmdb import TMDBClient, clean_row


def _release_year(release_date: str) -> Optional[int]:
    if len(release_date) >= 4 and release_date[:4].isdigit():
        return int(release_date[:4])
    return None


class CatalogCrawler:
    """
    Incrementally harvests each provider's TMDB catalog into the aggregate store.

    One advance() call is one chunk: it pages the provider's discover query from
    the persisted cursor until the row budget, the page cap or a stop signal is
    hit, merges new sightings into films.json and moves the cursor forward.
    Callers poll advance() until the provider reports completed.
    """

    def __init__(self, config: Config, client: TMDBClient,
                 aggregates: AggregateRepository, cursors: CursorRepository,
                 heartbeat: Optional[HeartbeatLogger] = None,
                 clock: Callable[[], float] = time.time):
        self.config = config
        self.client = client
        self.aggregates = aggregates
        self.cursors = cursors
        self.heartbeat = heartbeat or NullHeartbeat()
        self.clock = clock

    def advance(self, provider_id: int, chunk_size: Optional[int] = None) -> ChunkResult:
        try:
            provider_id = int(provider_id)
        except (TypeError, ValueError):
            raise InvalidProvider(provider_id)
        if self.config.provider_name(provider_id) is None:
            raise InvalidProvider(provider_id)
        with provider_lock(provider_id):
            return self._advance(provider_id, self.config.clamp_chunk(chunk_size))

    def _cast_for(self, provider_id: int, movie_id: int) -> List[str]:
        try:
            return self.client.credits(movie_id)
        except UpstreamUnavailable as e:
            # a movie without cast is still worth keeping
            self.heartbeat.ping("chunk.upstream_error", provider=provider_id, movie=movie_id, error=str(e))
            return []

    def _advance(self, provider_id: int, chunk_size: int) -> ChunkResult:
        cfg = self.config
        now = self.clock()
        ttl = cfg.cache_ttl
        cursor = self.cursors.get(provider_id)
        state = cursor.state(now, ttl)

        if state is CursorState.FRESH:
            movies, _ = self.aggregates.load()
            self.heartbeat.ping("chunk.fresh", provider=provider_id, cached=len(movies))
            return ChunkResult(
                provider=provider_snapshot(cursor, movies, now, ttl),
                cached_movies=len(movies),
                fresh=True,
            )

        dirty = False
        if state is CursorState.STALE:
            cursor.reset_epoch()
            dirty = True

        floor_year = cfg.start_year
        current_year = time.localtime(now).tm_year
        date_floor = f"{floor_year}-01-01"
        date_ceiling = f"{current_year}-12-31"

        genre_map = self.client.genre_map()
        known_ids = self.aggregates.ids()
        seen = set(cursor.seen_ids)
        page = cursor.next_page
        total_pages = cursor.total_pages

        batch: List[AggregateMovie] = []
        processed = 0
        pages_fetched = 0
        duplicate_streak = 0
        stop_early = False
        upstream_failed = False

        self.heartbeat.ping("chunk.start", provider=provider_id, page=page, chunk=chunk_size,
                            epoch_reset=dirty or None)

        while pages_fetched < cfg.max_chunk_pages:
            try:
                result = self.client.discover(provider_id, page, date_floor, date_ceiling)
            except UpstreamUnavailable as e:
                upstream_failed = True
                self.heartbeat.ping("chunk.upstream_error", provider=provider_id, page=page, error=str(e))
                break
            if not result.results:
                stop_early = True
                break

            pages_fetched += 1
            processed += len(result.results)
            if total_pages is None:
                total_pages = result.total_pages

            for raw in result.results:
                row = clean_row(raw)
                if row is None:
                    continue
                release_date = row["release_date"]
                year = _release_year(release_date)
                if year is not None:
                    if year < floor_year:
                        # sorted newest first: everything after this is older still
                        stop_early = True
                        break
                    if year > current_year:
                        continue

                movie_id = row["id"]
                if movie_id in seen:
                    duplicate_streak += 1
                    if duplicate_streak >= cfg.duplicate_streak_limit:
                        stop_early = True
                        break
                    continue
                duplicate_streak = 0

                # already stored by another provider: only membership changes
                cast = [] if movie_id in known_ids else self._cast_for(provider_id, movie_id)
                batch.append(AggregateMovie.from_tmdb(row, genre_map, cast, provider_id, cursor.name))
                seen.add(movie_id)
                cursor.seen_ids.append(movie_id)
                cursor.note_release_date(release_date)

            self.heartbeat.ping("chunk.page", provider=provider_id, page=page, rows=len(result.results),
                                total_pages=total_pages, sighted=len(batch))
            if stop_early:
                break
            page += 1
            if total_pages is not None and page > total_pages:
                stop_early = True
                break
            if processed >= chunk_size:
                break

        advanced = pages_fetched > 0 or stop_early
        if stop_early:
            cursor.completed = True

        if not (advanced or dirty):
            movies, _ = self.aggregates.load()
            return ChunkResult(
                provider=provider_snapshot(cursor, movies, now, ttl),
                cached_movies=len(movies),
                pages_fetched=0,
            )

        if advanced:
            # aggregate first: a cursor never points past work that is not on disk
            added, movies = self.aggregates.merge(batch, provider_id, cursor.name, now)
            cursor.last_fetched = now
        else:
            added = 0
            movies, _ = self.aggregates.load()
        cursor.next_page = page
        cursor.total_pages = total_pages
        self.cursors.save(cursor, now, refreshed=advanced)

        self.heartbeat.ping("chunk.done", provider=provider_id, next_page=page, pages=pages_fetched,
                            added=added, completed=cursor.completed, upstream_failed=upstream_failed or None)
        return ChunkResult(
            provider=provider_snapshot(cursor, movies, now, ttl),
            cached_movies=len(movies),
            new_added=added,
            pages_fetched=pages_fetched,
            stopped_early=stop_early,
        )


def build_crawler(config: Optional[Config] = None, echo: Optional[bool] = None) -> CatalogCrawler:
    """Wire a crawler over the on-disk stores under config.data_dir."""
    config = config or Config.from_env()
    data_dir = Path(config.data_dir)
    aggregates, cursors = open_repositories(data_dir, config.providers)
    client = TMDBClient(config, cache=DiskCache(data_dir / "cache"))
    heartbeat = make_heartbeat(data_dir, echo=config.heartbeat_console if echo is None else echo)
    return CatalogCrawler(config, client, aggregates, cursors, heartbeat=heartbeat)
