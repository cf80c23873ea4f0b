"""Fetching of remote catalog and bill of material documents.

``get_text`` is the only entry point. Documents are small YAML files, so the
helper retries transport failures and 5xx answers a few times and keeps
successful bodies for ``Constants.HTTP_CACHE_TTL_SEC`` seconds; a catalog
listed by several configs is downloaded once per run.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, Tuple

import requests

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)

# url -> ((status, text), fetched_at)
_documents: Dict[str, Tuple[Tuple[int, str], float]] = {}


def clear_cache() -> None:
    """Forget every fetched document."""
    _documents.clear()


def _cached(url: str):
    entry = _documents.get(url)
    if entry is None:
        return None
    result, fetched_at = entry
    if time.time() - fetched_at >= Constants.HTTP_CACHE_TTL_SEC:
        del _documents[url]
        return None
    return result


def _trace(message: str, url: str, **fields: Any) -> None:
    if is_debug_enabled(logger):
        logger.debug(
            message,
            extra=extra_context(component="http_client", action="GET", target=safe_url(url), **fields),
        )


def _backoff(attempt: int) -> float:
    return Constants.HTTP_RETRY_BASE_DELAY_SEC * (2 ** (attempt - 1))


def get_text(url: str) -> Tuple[int, str]:
    """GET ``url`` and return ``(status_code, body)``.

    4xx answers are returned as they are and cached like successes. A status
    of 0 means every attempt failed; the body then holds the last reason.
    """
    cached = _cached(url)
    if cached is not None:
        _trace("Document served from cache", url, event="cache_hit")
        return cached

    reason = "no attempt made"
    for attempt in range(1, Constants.HTTP_RETRY_MAX + 1):
        if attempt > 1:
            time.sleep(_backoff(attempt - 1))

        with Timer() as timer:
            try:
                response = requests.get(url, timeout=Constants.REQUEST_TIMEOUT)
            except requests.Timeout:
                reason = "timeout"
                _trace("Document request timed out", url, event="http_exception", outcome="timeout",
                       attempt=attempt)
                continue
            except requests.RequestException as exc:
                reason = str(exc)
                _trace("Document request failed", url, event="http_exception", outcome="request_exception",
                       attempt=attempt)
                continue

        if response.status_code >= 500:
            reason = f"HTTP {response.status_code}"
            _trace("Document server error", url, event="http_response", outcome="retry",
                   status_code=response.status_code, attempt=attempt)
            continue

        result = (response.status_code, response.text)
        _documents[url] = (result, time.time())
        _trace("Document fetched", url, event="http_response", outcome="success",
               status_code=response.status_code, duration_ms=timer.duration_ms())
        return result

    return 0, f"Request failed after {Constants.HTTP_RETRY_MAX} attempts: {reason}"
