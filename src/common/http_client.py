"""Shared async HTTP helpers used by registry clients.

Encapsulates timeout, retry and DEBUG tracing so registry modules avoid
duplicating try/except blocks. All helpers take an externally owned
``aiohttp.ClientSession`` so one connection pool serves a whole resolution run.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Tuple

import aiohttp

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)


def make_session(timeout: Optional[float] = None, limit: int = 100) -> aiohttp.ClientSession:
    """Create a client session with the project-wide request timeout."""
    total = timeout if timeout is not None else Constants.REQUEST_TIMEOUT
    connector = aiohttp.TCPConnector(limit=limit)
    return aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=total),
        connector=connector,
    )


async def robust_get(
    session: aiohttp.ClientSession,
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
) -> Tuple[int, Dict[str, str], str]:
    """Perform GET with bounded retries on timeouts, connection errors, undecodable bodies and 5xx.

    Returns:
        Tuple of (status_code, headers_dict, body_text). ``status_code`` is 0
        when every attempt failed; the body then carries the last error.
    """
    safe_target = safe_url(url)
    last_exception: Optional[str] = None

    for attempt in range(Constants.HTTP_RETRY_MAX):
        if attempt:
            await asyncio.sleep(Constants.HTTP_RETRY_BASE_DELAY_SEC * (2 ** (attempt - 1)))
        with Timer() as t:
            try:
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP request",
                        extra=extra_context(
                            event="http_request",
                            component="http_client",
                            action="GET",
                            target=safe_target,
                            attempt=attempt + 1,
                        ),
                    )
                async with session.get(url, headers=headers) as response:
                    text = await response.text()
                    status = response.status
                    response_headers = dict(response.headers)
            except asyncio.TimeoutError:
                last_exception = "timeout"
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP timeout",
                        extra=extra_context(
                            event="http_exception",
                            component="http_client",
                            action="GET",
                            outcome="timeout",
                            attempt=attempt + 1,
                            target=safe_target,
                        ),
                    )
                continue
            except aiohttp.ClientError as exc:
                last_exception = str(exc) or exc.__class__.__name__
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP request exception",
                        extra=extra_context(
                            event="http_exception",
                            component="http_client",
                            action="GET",
                            outcome="request_exception",
                            attempt=attempt + 1,
                            target=safe_target,
                        ),
                    )
                continue
            except UnicodeDecodeError as exc:
                last_exception = f"undecodable response body: {exc.reason}"
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP body decode error",
                        extra=extra_context(
                            event="http_exception",
                            component="http_client",
                            action="GET",
                            outcome="decode_error",
                            attempt=attempt + 1,
                            target=safe_target,
                        ),
                    )
                continue

        if status >= 500:
            last_exception = f"HTTP {status}"
            continue

        if is_debug_enabled(logger):
            logger.debug(
                "HTTP response ok",
                extra=extra_context(
                    event="http_response",
                    component="http_client",
                    action="GET",
                    outcome="success",
                    status_code=status,
                    duration_ms=t.duration_ms(),
                    target=safe_target,
                ),
            )
        return status, response_headers, text

    # All retries failed
    return 0, {}, f"Request failed after {Constants.HTTP_RETRY_MAX} attempts: {last_exception}"


async def get_json(
    session: aiohttp.ClientSession,
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
) -> Tuple[int, Dict[str, str], Optional[Any]]:
    """Perform GET and parse a JSON body.

    Args:
        session: Open client session.
        url: Target URL.
        headers: Optional request headers.

    Returns:
        Tuple of (status_code, headers_dict, parsed_json_or_none)
    """
    status_code, response_headers, text = await robust_get(session, url, headers=headers)

    if status_code == 200 and text:
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            if is_debug_enabled(logger):
                logger.debug(
                    "JSON decode error",
                    extra=extra_context(
                        event="parse",
                        component="http_client",
                        action="get_json",
                        outcome="json_decode_error",
                        status_code=status_code,
                        target=safe_url(url),
                    ),
                )
            return status_code, response_headers, None
        return status_code, response_headers, parsed

    return status_code, response_headers, None
