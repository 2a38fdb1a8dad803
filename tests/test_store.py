import json

from filmcrawl.models import AggregateMovie, CursorState, ProviderCursor
from filmcrawl.store import AggregateRepository, CursorRepository, upsert

PROVIDERS = {8: "Netflix", 9: "Amazon"}


def _movie(mid, provider=8, name="Netflix"):
    return AggregateMovie(id=mid, title=f"M{mid}", provider_ids=[provider],
                          providers=[{"id": provider, "name": name}])


def test_upsert_appends_then_merges_membership():
    movies = []
    index = {}
    assert upsert(index, movies, _movie(1), 8, "Netflix") is True
    assert upsert(index, movies, _movie(1, 9, "Amazon"), 9, "Amazon") is False
    assert upsert(index, movies, _movie(1, 9, "Amazon"), 9, "Amazon") is False

    assert len(movies) == 1
    assert movies[0].provider_ids == [8, 9]
    assert movies[0].providers == [{"id": 8, "name": "Netflix"}, {"id": 9, "name": "Amazon"}]


def test_upsert_never_replaces_existing_fields():
    movies = []
    index = {}
    upsert(index, movies, _movie(1), 8, "Netflix")
    newer = AggregateMovie(id=1, title="Renamed", cast=["Someone"])
    upsert(index, movies, newer, 9, "Amazon")

    assert movies[0].title == "M1"
    assert movies[0].cast == []


def test_aggregate_missing_or_corrupt_file_loads_empty(tmp_path):
    repo = AggregateRepository(tmp_path / "films.json")
    assert repo.load() == ([], 0)

    (tmp_path / "films.json").write_text("{not json", encoding="utf-8")
    assert repo.load() == ([], 0)

    (tmp_path / "films.json").write_text(json.dumps({"movies": "nope"}), encoding="utf-8")
    assert repo.load() == ([], 0)


def test_aggregate_merge_round_trips_document(tmp_path):
    repo = AggregateRepository(tmp_path / "films.json")
    added, movies = repo.merge([_movie(1), _movie(2)], 8, "Netflix", 1000.0)
    assert added == 2
    added, movies = repo.merge([_movie(2, 9, "Amazon"), _movie(3, 9, "Amazon")], 9, "Amazon", 2000.0)
    assert added == 1

    raw = json.loads((tmp_path / "films.json").read_text(encoding="utf-8"))
    assert raw["lastUpdated"] == 2000.0
    assert [m["id"] for m in raw["movies"]] == [1, 2, 3]
    assert raw["movies"][1]["provider_ids"] == [8, 9]
    assert repo.ids() == {1, 2, 3}
    # no temp files left behind
    assert sorted(p.name for p in tmp_path.iterdir()) == ["films.json"]


def test_aggregate_load_drops_duplicate_and_broken_records(tmp_path):
    (tmp_path / "films.json").write_text(json.dumps({
        "movies": [{"id": 1, "title": "a"}, {"id": 1, "title": "b"}, {"title": "no id"}],
        "lastUpdated": 5,
    }), encoding="utf-8")
    movies, last = AggregateRepository(tmp_path / "films.json").load()
    assert [(m.id, m.title) for m in movies] == [(1, "a")]
    assert last == 5


def test_cursor_lazily_created_for_every_provider(tmp_path):
    repo = CursorRepository(tmp_path / "metadata.json", PROVIDERS)
    cursors, refreshed = repo.load()

    assert refreshed == 0
    assert set(cursors) == {8, 9}
    c = cursors[9]
    assert (c.name, c.next_page, c.total_pages, c.completed, c.seen_ids) == ("Amazon", 1, None, False, [])
    assert not (tmp_path / "metadata.json").exists()


def test_cursor_save_keeps_other_providers(tmp_path):
    repo = CursorRepository(tmp_path / "metadata.json", PROVIDERS)
    cursor = repo.get(8)
    cursor.next_page = 4
    cursor.total_pages = 9
    cursor.seen_ids = [1, 2]
    repo.save(cursor, 1234.0)

    raw = json.loads((tmp_path / "metadata.json").read_text(encoding="utf-8"))
    assert set(raw["providers"]) == {"8", "9"}
    assert raw["lastCacheRefresh"] == 1234.0
    assert raw["providers"]["8"]["nextPage"] == 4
    assert raw["providers"]["8"]["seen_ids"] == [1, 2]
    again = repo.get(8)
    assert (again.next_page, again.total_pages, again.seen_ids) == (4, 9, [1, 2])


def test_cursor_from_dict_repairs_bad_values():
    c = ProviderCursor.from_dict({"nextPage": 0, "totalPages": "x", "seen_ids": [3, "4", None, 3]},
                                 id=8, name="Netflix")
    assert c.next_page == 1
    assert c.total_pages is None
    assert c.seen_ids == [3, 4]


def test_cursor_state_machine():
    c = ProviderCursor(id=8, name="Netflix", last_fetched=1000)
    assert c.state(1000, 60) is CursorState.IN_PROGRESS
    c.completed = True
    assert c.state(1060, 60) is CursorState.FRESH
    assert c.state(1061, 60) is CursorState.STALE
    assert c.needs_refresh(1061, 60) is True

    c.seen_ids = [1]
    c.next_page = 7
    c.reset_epoch()
    assert (c.completed, c.next_page, c.total_pages, c.seen_ids) == (False, 1, None, [1])
