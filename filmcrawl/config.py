# filmcrawl/config.py
from __future__ import annotations

import json
import os
from typing import Any, Dict


def _as_bool(v: Any, default: bool = False) -> bool:
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    return s in ("1", "true", "yes", "y", "on")


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return default
    return str(v).strip()


def _as_providers(v: Any, default: Any) -> Dict[int, str]:
    """
    Accepts:
      - a mapping:        {8: "Netflix", "9": "Amazon"}
      - JSON-ish strings: '{"8": "Netflix", "9": "Amazon"}'
      - id:name pairs:    "8:Netflix,9:Amazon"
    Returns an ordered {provider_id: display_name} map.
    """
    if isinstance(v, dict):
        return {int(k): str(name).strip() for k, name in v.items()}
    s = str(v or "").strip()
    if not s:
        return _as_providers(default, None) if default else {}
    if s.startswith("{"):
        return {int(k): str(name).strip() for k, name in json.loads(s).items()}
    out: Dict[int, str] = {}
    for part in s.split(","):
        pid, sep, name = part.partition(":")
        if not sep or not pid.strip():
            raise ValueError(f"bad provider entry: {part!r}")
        out[int(pid)] = name.strip() or pid.strip()
    return out


class Config:
    """
    Simple config holder that can be constructed from environment variables.
    - Attribute access: cfg.key
    - Mapping access:   cfg["key"], cfg.get("key", default)
    """

    # Defaults used if no environment value is present
    _DEFAULTS: Dict[str, Any] = {
        # TMDB access
        "tmdb_base_url": "https://api.themoviedb.org/3",
        "tmdb_api_key": "",
        "tmdb_bearer": "",
        "tmdb_timeout": 30,
        "watch_region": "GB",
        "language": "en-GB",

        # providers crawled by the catalog builder
        "providers": "8:Netflix,9:Amazon,337:Disney,350:Apple",

        # persistence
        "data_dir": "data",
        "cache_ttl": 86400,
        "genre_ttl": 86400,

        # crawl window & chunking
        "start_year": 2020,
        "min_chunk_size": 20,
        "max_chunk_size": 1000,
        "default_chunk_size": 1000,
        "max_chunk_pages": 60,
        "duplicate_streak_limit": 5,
        "cast_limit": 5,

        # console breadcrumbs from the heartbeat logger
        "heartbeat_console": True,
    }

    # Mapping of ENV -> internal key
    _ENV_MAP: Dict[str, str] = {
        "TMDB_BASE_URL": "tmdb_base_url",
        "TMDB_API_KEY": "tmdb_api_key",
        "TMDB_BEARER": "tmdb_bearer",
        "TMDB_ACCESS_TOKEN": "tmdb_bearer",
        "TMDB_READ_TOKEN": "tmdb_bearer",
        "TMDB_TIMEOUT": "tmdb_timeout",
        "WATCH_REGION": "watch_region",
        "TMDB_LANGUAGE": "language",

        "PROVIDERS": "providers",

        "DATA_DIR": "data_dir",
        "CACHE_TTL": "cache_ttl",
        "GENRE_TTL": "genre_ttl",

        "START_YEAR": "start_year",
        "MIN_CHUNK_SIZE": "min_chunk_size",
        "MAX_CHUNK_SIZE": "max_chunk_size",
        "DEFAULT_CHUNK_SIZE": "default_chunk_size",
        "MAX_CHUNK_PAGES": "max_chunk_pages",
        "DUPLICATE_STREAK_LIMIT": "duplicate_streak_limit",
        "CAST_LIMIT": "cast_limit",

        "HEARTBEAT_CONSOLE": "heartbeat_console",
    }

    # Which keys should be cast to which types
    _CASTERS: Dict[str, Any] = {
        "tmdb_base_url": _as_str,
        "tmdb_api_key": _as_str,
        "tmdb_bearer": _as_str,
        "tmdb_timeout": _as_int,
        "watch_region": _as_str,
        "language": _as_str,
        "providers": _as_providers,
        "data_dir": _as_str,
        "cache_ttl": _as_int,
        "genre_ttl": _as_int,
        "start_year": _as_int,
        "min_chunk_size": _as_int,
        "max_chunk_size": _as_int,
        "default_chunk_size": _as_int,
        "max_chunk_pages": _as_int,
        "duplicate_streak_limit": _as_int,
        "cast_limit": _as_int,
        "heartbeat_console": _as_bool,
    }

    def __init__(self, data: Dict[str, Any] | None = None):
        # merge defaults with provided data
        merged = dict(self._DEFAULTS)
        merged.update(data or {})
        for k, caster in self._CASTERS.items():
            if k in merged:
                try:
                    merged[k] = caster(merged[k], self._DEFAULTS.get(k))
                except Exception:
                    # fall back to default if cast fails
                    merged[k] = caster(self._DEFAULTS.get(k), self._DEFAULTS.get(k))
        if merged["min_chunk_size"] > merged["max_chunk_size"]:
            merged["min_chunk_size"], merged["max_chunk_size"] = merged["max_chunk_size"], merged["min_chunk_size"]
        self._d = merged

    # --- construction helpers ---

    @classmethod
    def from_env(cls, environ: Dict[str, str] | None = None) -> "Config":
        """
        Build Config from process environment (plus defaults).
        Only whitelisted env vars are read via _ENV_MAP.
        """
        env = environ if environ is not None else os.environ
        data: Dict[str, Any] = {}
        for env_key, cfg_key in cls._ENV_MAP.items():
            if env_key in env and cfg_key not in data:
                data[cfg_key] = env[env_key]
        return cls(data)

    # --- derived values ---

    def clamp_chunk(self, requested: int | None) -> int:
        if requested is None:
            requested = self._d["default_chunk_size"]
        return max(self._d["min_chunk_size"], min(self._d["max_chunk_size"], int(requested)))

    def provider_name(self, provider_id: int) -> str | None:
        return self._d["providers"].get(provider_id)

    # --- dict-like API ---

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._d)

    def get(self, key: str, default: Any = None) -> Any:
        return self._d.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self._d[key]

    def __contains__(self, key: str) -> bool:
        return key in self._d

    # --- attribute API ---

    def __getattr__(self, key: str) -> Any:
        try:
            return self._d[key]
        except KeyError as e:
            # surface the real missing attribute name
            raise AttributeError(key) from e

    def __repr__(self) -> str:
        shown = {k: ("***" if k in ("tmdb_api_key", "tmdb_bearer") and v else v) for k, v in self._d.items()}
        return f"Config({shown!r})"
