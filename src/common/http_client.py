"""HTTP access for remote source trees.

Raw source files are fetched through one shared ``requests.Session`` with a
per-request timeout, bounded retries with exponential backoff on transport
errors and 5xx responses, and a short-lived in-memory cache so several
discovery hooks reading the same file hit the network once.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Dict, Optional, Tuple, Union

import requests

from constants import Constants
from common.logging_utils import Timer, extra_context, is_debug_enabled, safe_url

logger = logging.getLogger(__name__)

Response = Tuple[int, Dict[str, str], str]

_USER_AGENT = "libforge (+https://github.com/libforge/libforge)"

# url -> (response, fetched_at)
_responses: Dict[str, Tuple[Response, float]] = {}
_responses_lock = threading.Lock()

_session: Optional[requests.Session] = None
_session_lock = threading.Lock()


def _get_session() -> requests.Session:
    global _session  # pylint: disable=global-statement
    with _session_lock:
        if _session is None:
            _session = requests.Session()
            _session.headers["User-Agent"] = _USER_AGENT
        return _session


def _cached(url: str) -> Optional[Response]:
    with _responses_lock:
        entry = _responses.get(url)
    if entry is None:
        return None
    response, fetched_at = entry
    if time.time() - fetched_at >= Constants.HTTP_CACHE_TTL_SEC:
        return None
    return response


def clear_cache() -> None:
    """Forget every cached response."""
    with _responses_lock:
        _responses.clear()


def _attempt(url: str, headers: Optional[Dict[str, str]]) -> Union[requests.Response, str]:
    """One GET; returns the response, or a short reason when none arrived."""
    try:
        return _get_session().get(url, timeout=Constants.REQUEST_TIMEOUT, headers=headers)
    except requests.Timeout:
        return "timeout"
    except requests.RequestException as exc:
        return str(exc)


def robust_get(url: str, *, headers: Optional[Dict[str, str]] = None) -> Response:
    """GET ``url`` and return ``(status, headers, text)``.

    Non-5xx responses (404 included) are returned and cached as-is. When
    every attempt fails, the status is 0 and the text carries the last reason.
    """
    target = safe_url(url)
    cached = None if headers else _cached(url)
    if cached is not None:
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP cache hit",
                extra=extra_context(event="cache_hit", component="http_client", action="GET", target=target)
            )
        return cached

    reason = "no attempts made"
    for attempt in range(1, Constants.HTTP_RETRY_MAX + 1):
        if attempt > 1:
            time.sleep(Constants.HTTP_RETRY_BASE_DELAY_SEC * (2 ** (attempt - 2)))
        with Timer() as t:
            outcome = _attempt(url, headers)

        if isinstance(outcome, str):
            reason = outcome
        elif outcome.status_code >= 500:
            reason = f"server error {outcome.status_code}"
        else:
            result = (outcome.status_code, dict(outcome.headers), outcome.text)
            if not headers:
                with _responses_lock:
                    _responses[url] = (result, time.time())
            if is_debug_enabled(logger):
                logger.debug(
                    "HTTP response",
                    extra=extra_context(
                        event="http_response",
                        component="http_client",
                        action="GET",
                        target=target,
                        status_code=outcome.status_code,
                        attempt=attempt,
                        duration_ms=t.duration_ms(),
                    )
                )
            return result

        logger.debug("GET %s attempt %d/%d failed: %s", target, attempt, Constants.HTTP_RETRY_MAX, reason)

    logger.warning("GET %s failed after %d attempt(s): %s", target, Constants.HTTP_RETRY_MAX, reason)
    return 0, {}, f"request failed after {Constants.HTTP_RETRY_MAX} attempts: {reason}"
