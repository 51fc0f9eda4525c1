# ahamai/fallback.py
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

import httpx

from . import config
from .errors import AllMethodsFailed, ProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")

USER_AGENT = "AhamAI/0.1 (+https://github.com/ahamai)"


def http_client(transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """Shared client settings for outbound tool calls."""
    return httpx.AsyncClient(
        timeout=config.http_timeout(),
        headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        follow_redirects=True,
        transport=transport,
    )


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    provider: str,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> Any:
    """GET a JSON document, turning transport, status and decode failures into ProviderError."""
    try:
        r = await client.get(url, params=params, headers=headers)
    except httpx.HTTPError as e:
        raise ProviderError(provider, f"request failed: {e}") from e

    if r.status_code != 200:
        raise ProviderError(provider, f"failed: {r.status_code}", status_code=r.status_code)

    try:
        return r.json()
    except ValueError as e:
        raise ProviderError(provider, "bad JSON payload") from e


async def run_methods(label: str, methods: Sequence[Callable[[], Awaitable[T]]]) -> T:
    """
    Linear fallback: await each method in order and return the first result.
    No retries and no backoff; a method that raises simply hands over to the next one.
    """
    errors: List[Exception] = []
    for i, method in enumerate(methods, start=1):
        try:
            logger.info("Trying method %d for %s", i, label)
            result = await method()
            logger.info("Method %d succeeded for %s", i, label)
            return result
        except Exception as e:
            logger.info("Method %d failed for %s: %s", i, label, e)
            errors.append(e)

    logger.warning("All %d methods failed for %s", len(methods), label)
    raise AllMethodsFailed(label, errors)
