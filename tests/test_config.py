from filmcrawl.config import Config


def test_defaults():
    cfg = Config()
    assert cfg.providers == {8: "Netflix", 9: "Amazon", 337: "Disney", 350: "Apple"}
    assert cfg.watch_region == "GB"
    assert cfg.start_year == 2020
    assert cfg.cache_ttl == 86400
    assert (cfg.min_chunk_size, cfg.max_chunk_size, cfg.max_chunk_pages) == (20, 1000, 60)
    assert cfg["duplicate_streak_limit"] == 5
    assert "cast_limit" in cfg


def test_from_env_reads_whitelisted_keys():
    cfg = Config.from_env({
        "PROVIDERS": "8:Netflix, 2:Apple TV",
        "TMDB_ACCESS_TOKEN": "abc",
        "START_YEAR": "2018",
        "MAX_CHUNK_PAGES": "not-a-number",
        "HEARTBEAT_CONSOLE": "off",
        "UNRELATED": "x",
    })
    assert cfg.providers == {8: "Netflix", 2: "Apple TV"}
    assert cfg.tmdb_bearer == "abc"
    assert cfg.start_year == 2018
    assert cfg.max_chunk_pages == 60
    assert cfg.heartbeat_console is False
    assert "UNRELATED" not in cfg.to_dict()
    assert "abc" not in repr(cfg)


def test_providers_accept_json_and_fall_back_on_garbage():
    assert Config({"providers": '{"8": "Netflix"}'}).providers == {8: "Netflix"}
    assert Config({"providers": {"337": "Disney"}}).providers == {337: "Disney"}
    assert Config({"providers": "netflix"}).providers == Config().providers


def test_clamp_chunk():
    cfg = Config()
    assert cfg.clamp_chunk(None) == 1000
    assert cfg.clamp_chunk(1) == 20
    assert cfg.clamp_chunk(250) == 250
    assert cfg.clamp_chunk(5000) == 1000
    assert cfg.provider_name(337) == "Disney"
    assert cfg.provider_name(1) is None
