"""
FastAPI surface for the crawler.

One action per call, mirroring what the browser's polling loop needs:
- GET /api?action=status                     -> per-provider progress + totals
- GET /api?action=chunk&provider=8&chunkSize -> one bounded crawl advance
- GET /api?action=films                      -> full aggregate dump
chunkSize: missing or blank uses the default size, garbage clamps to the minimum.
Errors come back as {"error": true, "message": ...} with a 4xx/5xx status.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse

from .catalog_builder import CatalogCrawler, build_crawler
from .config import Config
from .errors import CrawlError, InvalidProvider
from .status import films_response, status_response

logger = logging.getLogger(__name__)

_NO_STORE = {"Cache-Control": "no-store, no-cache, must-revalidate, max-age=0"}


def _respond(payload: Dict[str, Any], status_code: int = 200) -> JSONResponse:
    return JSONResponse(payload, status_code=status_code, headers=_NO_STORE)


def _error(message: str, status_code: int) -> JSONResponse:
    return _respond({"error": True, "message": message}, status_code)


def _parse_provider(raw: Optional[str]) -> int:
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        raise InvalidProvider(raw)


def _parse_chunk(raw: Optional[str]) -> Optional[int]:
    if raw is None or not str(raw).strip():
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        # unparseable sizes read as 0 and clamp up to the minimum chunk
        return 0


def create_app(config: Optional[Config] = None, crawler: Optional[CatalogCrawler] = None) -> FastAPI:
    crawler = crawler or build_crawler(config)
    cfg = crawler.config
    app = FastAPI(title="filmcrawl")
    app.state.crawler = crawler

    @app.get("/health")
    def health():
        """Cheap readiness check: no TMDB calls, no disk reads."""
        return {"status": "ok"}

    @app.get("/api")
    def api(
        action: str = Query("status"),
        provider: Optional[str] = Query(None),
        chunk_size: Optional[str] = Query(None, alias="chunkSize"),
    ):
        try:
            if action == "chunk":
                provider_id = _parse_provider(provider)
                result = crawler.advance(provider_id, _parse_chunk(chunk_size))
                return _respond(result.to_dict())
            if action == "films":
                return _respond(films_response(crawler.aggregates))
            # unknown actions fall back to status
            return _respond(status_response(crawler.aggregates, crawler.cursors,
                                            crawler.clock(), cfg.cache_ttl))
        except InvalidProvider as e:
            return _error(str(e), e.status_code)
        except CrawlError as e:
            logger.error("action=%s failed: %s", action, e)
            return _error(str(e), e.status_code)
        except Exception as e:
            logger.exception("action=%s crashed", action)
            return _error(str(e) or e.__class__.__name__, 500)

    return app


def get_app() -> FastAPI:
    """uvicorn factory: `uvicorn filmcrawl.api:get_app --factory`"""
    return create_app()
