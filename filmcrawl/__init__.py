"""Incremental multi-provider TMDB catalog crawler."""
from __future__ import annotations

from .catalog_builder import CatalogCrawler, build_crawler
from .config import Config
from .errors import CrawlError, InvalidProvider, PersistenceFailure, UpstreamMalformed, UpstreamUnavailable

__all__ = [
    "CatalogCrawler",
    "build_crawler",
    "Config",
    "CrawlError",
    "InvalidProvider",
    "PersistenceFailure",
    "UpstreamMalformed",
    "UpstreamUnavailable",
]

__version__ = "0.1.0"
