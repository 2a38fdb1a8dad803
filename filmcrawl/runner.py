# filmcrawl/runner.py
"""Command line entry point.

Usage:
    filmcrawl status
    filmcrawl crawl --provider 8 --chunk-size 200
    filmcrawl crawl                 # every configured provider
    filmcrawl serve --port 8000
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from typing import Callable, Dict, List, Optional

from rich.console import Console

from .catalog_builder import CatalogCrawler, build_crawler
from .config import Config
from .errors import CrawlError
from .logging_utils import setup_logging
from .models import ChunkResult
from .status import status_response

logger = logging.getLogger(__name__)
console = Console()


def crawl_provider(crawler: CatalogCrawler, provider_id: int, chunk_size: Optional[int] = None,
                   delay: float = 0.5, max_chunks: int = 200,
                   sleep: Callable[[float], None] = time.sleep) -> List[ChunkResult]:
    """
    The polling loop the browser runs: advance one chunk at a time until the
    provider reports completed (or the chunk cap is hit).
    """
    results: List[ChunkResult] = []
    for i in range(max(1, max_chunks)):
        res = crawler.advance(provider_id, chunk_size)
        results.append(res)
        if res.toast:
            console.print(f"[green]+{res.toast.added}[/green] {res.toast.provider_name} "
                          f"(total {res.cached_movies})")
        if res.completed or res.fresh:
            break
        if res.pages_fetched == 0:
            # upstream refused the page; back off before the retry
            sleep(delay * 4)
        elif i < max_chunks - 1:
            sleep(delay)
    return results


def crawl_all(crawler: CatalogCrawler, provider_ids: Optional[List[int]] = None, **kw) -> Dict[int, List[ChunkResult]]:
    ids = provider_ids or list(crawler.config.providers)
    out: Dict[int, List[ChunkResult]] = {}
    for pid in ids:
        logger.info("Crawling provider %s", pid)
        out[pid] = crawl_provider(crawler, pid, **kw)
        last = out[pid][-1]
        logger.info("Provider %s: cached=%d completed=%s next_page=%d",
                    pid, last.provider.cached, last.completed, last.provider.next_page)
    return out


def _cmd_status(crawler: CatalogCrawler, args: argparse.Namespace) -> int:
    doc = status_response(crawler.aggregates, crawler.cursors, crawler.clock(), crawler.config.cache_ttl)
    print(json.dumps(doc, ensure_ascii=False, indent=2))
    return 0


def _cmd_crawl(crawler: CatalogCrawler, args: argparse.Namespace) -> int:
    crawl_all(crawler, args.provider or None, chunk_size=args.chunk_size,
              delay=args.delay, max_chunks=args.max_chunks)
    return 0


def _cmd_serve(config: Config, args: argparse.Namespace) -> int:
    import uvicorn

    from .api import create_app

    uvicorn.run(create_app(config), host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="filmcrawl", description="Incremental TMDB provider catalog crawler")
    parser.add_argument("--log-level", default="INFO")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="print per-provider crawl status as JSON")

    crawl = sub.add_parser("crawl", help="poll chunk advances until providers complete")
    crawl.add_argument("--provider", type=int, action="append", help="provider id (repeatable); default: all")
    crawl.add_argument("--chunk-size", type=int, default=None)
    crawl.add_argument("--delay", type=float, default=0.5, help="seconds between chunk calls")
    crawl.add_argument("--max-chunks", type=int, default=200)

    serve = sub.add_parser("serve", help="run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level.upper())
    config = Config.from_env()
    if args.command == "serve":
        return _cmd_serve(config, args)
    crawler = build_crawler(config)
    try:
        if args.command == "status":
            return _cmd_status(crawler, args)
        return _cmd_crawl(crawler, args)
    except CrawlError as e:
        logger.error("%s", e)
        return 2


if __name__ == "__main__":
    sys.exit(main())
