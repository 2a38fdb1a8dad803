from conftest import NOW, page_of
from filmcrawl.models import AggregateMovie, ProviderCursor
from filmcrawl.status import films_response, provider_snapshot, status_response


def test_snapshot_counts_movies_hosted_by_provider():
    movies = [
        AggregateMovie(id=1, provider_ids=[8]),
        AggregateMovie(id=2, provider_ids=[8, 9]),
        AggregateMovie(id=3, provider_ids=[9]),
    ]
    cursor = ProviderCursor(id=8, name="Netflix", completed=True, last_fetched=NOW, next_page=3,
                            total_pages=2, latest_release_date="2025-01-01")

    snap = provider_snapshot(cursor, movies, NOW + 10, 86400).to_dict()

    assert snap == {
        "id": 8,
        "name": "Netflix",
        "cached": 2,
        "completed": True,
        "totalPages": 2,
        "nextPage": 3,
        "lastFetched": NOW,
        "latestReleaseDate": "2025-01-01",
        "needsRefresh": False,
    }
    assert provider_snapshot(cursor, movies, NOW + 86401, 86400).needs_refresh is True


def test_status_on_empty_stores(repos):
    aggregates, cursors = repos
    doc = status_response(aggregates, cursors, NOW, 86400)

    assert doc["overall"] == {"totalCached": 0, "uniqueMovies": 0, "lastUpdated": 0}
    assert [p["id"] for p in doc["providers"]] == [8, 9, 337, 350]
    assert all(p["needsRefresh"] for p in doc["providers"])
    assert doc["cacheFreshness"] == 0


def test_status_and_films_after_a_chunk(crawler, catalog, repos):
    catalog.pages[8] = [page_of(1, 3)]
    crawler.advance(8)
    aggregates, cursors = repos

    doc = status_response(aggregates, cursors, NOW, 86400)
    films = films_response(aggregates)

    assert doc["overall"]["totalCached"] == 3
    assert doc["overall"]["lastUpdated"] == NOW
    assert doc["cacheFreshness"] == NOW
    netflix = doc["providers"][0]
    assert (netflix["cached"], netflix["completed"], netflix["needsRefresh"]) == (3, True, False)
    assert [m["id"] for m in films["movies"]] == [1, 2, 3]
    assert films["lastUpdated"] == NOW
