from __future__ import annotations

import asyncio
import time

import httpx
import structlog

from .errors import CheckError


logger = structlog.get_logger(__name__)


async def _fetch_status(client: httpx.AsyncClient, url: str, timeout_secs: float) -> int:
    # Only the status line matters; the body is never read.
    async with client.stream("GET", url, follow_redirects=True, timeout=timeout_secs) as resp:
        return resp.status_code


async def _get_status(client: httpx.AsyncClient, url: str, timeout_secs: float) -> int | None:
    started = time.perf_counter()
    try:
        status = await asyncio.wait_for(_fetch_status(client, url, timeout_secs), timeout=timeout_secs)
    except (httpx.RequestError, asyncio.TimeoutError) as e:
        # Target down and network path broken look the same from here; both count as DOWN.
        logger.debug(
            "Check request failed",
            url=url,
            error=f"{type(e).__name__}: {e}",
            elapsed_ms=round((time.perf_counter() - started) * 1000.0, 3),
        )
        return None
    except httpx.InvalidURL as e:
        raise CheckError(url, f"Cannot build request for {url}: {e}") from e

    logger.debug(
        "Check response",
        url=url,
        status_code=status,
        elapsed_ms=round((time.perf_counter() - started) * 1000.0, 3),
    )
    return status


async def is_url_up(url: str, timeout_secs: float, *, client: httpx.AsyncClient | None = None) -> bool:
    """Return True iff a GET on ``url`` answers 2xx within ``timeout_secs``.

    ``timeout_secs`` is one deadline for the whole request, redirects included.

    Transport failures (timeout, DNS, refused connection, TLS) return False.
    Raises :class:`CheckError` only when the request cannot be attempted.
    """
    if client is not None:
        status = await _get_status(client, url, timeout_secs)
    else:
        try:
            owned = httpx.AsyncClient(timeout=timeout_secs)
        except (httpx.HTTPError, ValueError, OSError) as e:
            raise CheckError(url, f"Failed to build HTTP client: {e}") from e
        async with owned:
            status = await _get_status(owned, url, timeout_secs)

    return status is not None and 200 <= status < 300
