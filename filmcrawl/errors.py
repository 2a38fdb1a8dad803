"""Exceptions raised by the crawler, its TMDB adapter and its stores"""

from __future__ import annotations

from typing import Any, Optional


class CrawlError(Exception):
    """Base exception for filmcrawl"""

    status_code = 500


class InvalidProvider(CrawlError):
    """Provider id is missing or not one of the configured providers"""

    status_code = 400

    def __init__(self, provider_id: Any):
        self.provider_id = provider_id
        super().__init__(f"Invalid provider id: {provider_id!r}")


class UpstreamUnavailable(CrawlError):
    """TMDB request failed or returned a non-success status"""

    status_code = 502

    def __init__(self, path: str, status: Optional[int] = None, reason: str = ""):
        self.path = path
        self.status = status
        msg = f"TMDB request failed: {path}"
        if status is not None:
            msg += f" (HTTP {status})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class UpstreamMalformed(UpstreamUnavailable):
    """TMDB answered, but not with the JSON shape we expect"""

    def __init__(self, path: str, reason: str = "unexpected response body"):
        super().__init__(path, None, reason)


class PersistenceFailure(CrawlError):
    """A crawl document could not be written"""

    def __init__(self, path: Any, cause: Optional[BaseException] = None):
        self.path = str(path)
        self.cause = cause
        msg = f"Unable to persist {self.path}"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)
