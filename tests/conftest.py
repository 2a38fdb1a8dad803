import time
from typing import Dict, List, Optional

import pytest

from filmcrawl.catalog_builder import CatalogCrawler
from filmcrawl.config import Config
from filmcrawl.errors import UpstreamUnavailable
from filmcrawl.store import open_repositories
from filmcrawl.tmdb import DiscoverPage

# Mid-2025, local time, so the crawl ceiling is 2025-12-31
NOW = time.mktime((2025, 6, 15, 12, 0, 0, 0, 0, -1))

GENRES = {28: "Action", 18: "Drama", 35: "Comedy"}


def movie(movie_id: int, release_date: str = "2024-05-01", genre_ids=(28,), title: Optional[str] = None) -> dict:
    return {
        "id": movie_id,
        "title": title or f"Movie {movie_id}",
        "release_date": release_date,
        "overview": f"Overview {movie_id}",
        "vote_average": 7.1,
        "vote_count": 120,
        "poster_path": f"/p{movie_id}.jpg",
        "genre_ids": list(genre_ids),
    }


def page_of(start: int, count: int = 20, release_date: str = "2024-05-01") -> List[dict]:
    return [movie(i, release_date) for i in range(start, start + count)]


class FakeCatalog:
    """Stands in for TMDBClient; pages are 1-indexed per provider."""

    def __init__(self, pages: Optional[Dict[int, List[List[dict]]]] = None,
                 total_pages: Optional[Dict[int, int]] = None):
        self.pages = pages or {}
        self.total_pages = total_pages or {}
        self.fail_pages = set()
        self.fail_credits = set()
        self.discover_calls = []
        self.credit_calls = []
        self.genre_calls = 0

    def discover(self, provider_id, page, date_floor, date_ceiling):
        self.discover_calls.append((provider_id, page, date_floor, date_ceiling))
        if (provider_id, page) in self.fail_pages:
            raise UpstreamUnavailable("discover/movie", 503)
        pages = self.pages.get(provider_id, [])
        rows = pages[page - 1] if page <= len(pages) else []
        return DiscoverPage(results=[dict(r) if isinstance(r, dict) else r for r in rows],
                            total_pages=self.total_pages.get(provider_id, len(pages)))

    def credits(self, movie_id):
        self.credit_calls.append(movie_id)
        if movie_id in self.fail_credits:
            raise UpstreamUnavailable(f"movie/{movie_id}/credits", 500)
        return [f"Actor {movie_id}-{n}" for n in range(5)]

    def genre_map(self):
        self.genre_calls += 1
        return dict(GENRES)


class Clock:
    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def config(tmp_path):
    return Config({"data_dir": str(tmp_path / "data"), "heartbeat_console": False})


@pytest.fixture
def catalog():
    return FakeCatalog()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def repos(config):
    return open_repositories(config.data_dir, config.providers)


@pytest.fixture
def crawler(config, catalog, repos, clock):
    aggregates, cursors = repos
    return CatalogCrawler(config, catalog, aggregates, cursors, clock=clock)
