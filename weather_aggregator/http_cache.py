"""
Shared HTTP session with optional requests-cache SQLite caching.

Forecasts go stale quickly and every live call counts against a provider's
request budget, so caching is off unless enabled in settings.
"""

from typing import Any

import requests
from requests_cache import CachedSession

from weather_aggregator.config import CacheSettings, get_settings
from weather_aggregator.logging_config import get_logger

logger = get_logger(__name__)

# Module-level singleton (tests can override/reset)
_SESSION: requests.Session | None = None
_SESSION_CACHE: CacheSettings | None = None

SECRET_PARAMS = {"appid", "apikey", "apiKey", "key"}


def redact_params(params: dict[str, Any] | None) -> dict[str, Any]:
    """Return a copy of query params with API keys masked for logging."""
    if not params:
        return {}
    return {k: ("***" if k in SECRET_PARAMS else v) for k, v in params.items()}


def _sqlite_session(cache_name: str, expire_after_s: int) -> CachedSession:
    """Create SQLite-backed cached session."""
    logger.info(f"Using SQLite cache backend: {cache_name}")
    return CachedSession(
        cache_name=cache_name,
        backend="sqlite",
        allowable_codes=(200,),
        expire_after=expire_after_s,
        # API keys are part of the query string; keep them in the key
        ignored_parameters=[],
    )


def _make_session(cache: CacheSettings) -> requests.Session:
    """Create a new session for the given cache settings."""
    if cache.enabled:
        return _sqlite_session(cache.cache_name, cache.expire_after_s)
    logger.debug("HTTP caching disabled, using plain requests session")
    return requests.Session()


def get_session(cache: CacheSettings | None = None) -> requests.Session:
    """
    Get the shared session, creating it on first use.

    Args:
        cache: Cache settings of the calling context (defaults to
            get_settings().cache). A session built for different cache
            settings is closed and replaced.

    Returns:
        Plain or cached requests session
    """
    global _SESSION, _SESSION_CACHE
    cache = cache or get_settings().cache
    if _SESSION is not None and _SESSION_CACHE is not None and _SESSION_CACHE != cache:
        logger.debug("Cache settings changed, rebuilding HTTP session")
        reset_session()
    if _SESSION is None:
        _SESSION = _make_session(cache)
        _SESSION_CACHE = cache
    return _SESSION


def reset_session() -> None:
    """Close and clear the module session (for tests)."""
    global _SESSION, _SESSION_CACHE
    if _SESSION is not None:
        _SESSION.close()
    _SESSION = None
    _SESSION_CACHE = None


def set_session_for_tests(session: requests.Session) -> None:
    """Force get_session() to return a provided session (for tests)."""
    global _SESSION, _SESSION_CACHE
    _SESSION = session
    _SESSION_CACHE = None


def request(
    method: str,
    url: str,
    cache: CacheSettings | None = None,
    **kwargs: Any,
) -> requests.Response:
    """
    Make an HTTP request through the shared session.

    Args:
        method: HTTP method
        url: Request URL
        cache: Cache settings of the calling context
        **kwargs: Additional request parameters

    Returns:
        HTTP response
    """
    session = get_session(cache)
    logger.debug(f"Making {method} request to {url} params={redact_params(kwargs.get('params'))}")

    response = session.request(method, url, **kwargs)

    cache_status = "HIT" if getattr(response, "from_cache", False) else "MISS"
    logger.debug(f"{method} {url} -> {response.status_code} (Cache: {cache_status})")
    return response
