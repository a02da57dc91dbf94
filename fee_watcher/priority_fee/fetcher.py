"""
HTTP client for the Drift priority fee service.

GET {endpoint}/batchPriorityFees?marketType=perp,spot&marketIndex=0,1
returns one record per requested market:

    [{"marketType": "perp", "marketIndex": 0, "low": 1, "medium": 10, ...}, ...]
"""

import asyncio
from typing import Optional, Sequence

import aiohttp
from loguru import logger
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .errors import FetchError
from .types import PriorityFeeLevels

BATCH_PRIORITY_FEES_PATH = "/batchPriorityFees"
REQUEST_TIMEOUT_SECS = 10


def _is_transient(exc: BaseException) -> bool:
    """Network hiccups, timeouts, rate limits and 5xx are worth retrying"""
    if isinstance(exc, FetchError):
        return exc.status is not None and (exc.status == 429 or exc.status >= 500)
    return isinstance(exc, (aiohttp.ClientConnectionError, asyncio.TimeoutError))


def build_url(endpoint: str) -> str:
    return endpoint.rstrip("/") + BATCH_PRIORITY_FEES_PATH


def parse_response(payload) -> list[PriorityFeeLevels]:
    """Decode a batchPriorityFees payload"""
    if not isinstance(payload, list):
        raise FetchError(f"Expected a list of fee records, got {type(payload).__name__}")

    fees = []
    for record in payload:
        try:
            fees.append(PriorityFeeLevels.from_json(record))
        except (KeyError, TypeError, ValueError) as e:
            raise FetchError(f"Malformed fee record {record!r}: {e}") from e
    return fees


async def _get_json(session: aiohttp.ClientSession, url: str, params: dict):
    async with session.get(url, params=params) as response:
        if response.status >= 400:
            text = await response.text()
            raise FetchError(
                f"Fee service returned {response.status}: {text[:200]}",
                status=response.status,
            )
        try:
            return await response.json(content_type=None)
        except ValueError as e:
            raise FetchError(f"Fee service returned invalid JSON: {e}") from e


async def fetch_priority_fees(
    endpoint: str,
    market_types: Sequence[str],
    market_indexes: Sequence[int],
    session: Optional[aiohttp.ClientSession] = None,
    max_attempts: int = 3,
    backoff: float = 1.0,
) -> list[PriorityFeeLevels]:
    """
    Fetch current fee levels for a batch of markets.

    Args:
        endpoint: Base URL of the fee service
        market_types: Market categories, parallel to market_indexes
        market_indexes: Market indexes, parallel to market_types
        session: Optional aiohttp session (a short-lived one is created if not provided)
        max_attempts: Attempts before giving up on transient failures
        backoff: Exponential backoff multiplier in seconds

    Returns:
        Fee levels in the order the service reported them

    Raises:
        ValueError: market_types and market_indexes differ in length
        FetchError: the service could not be reached or the payload was malformed
    """
    if len(market_types) != len(market_indexes):
        raise ValueError(
            f"market_types ({len(market_types)}) and market_indexes "
            f"({len(market_indexes)}) must be the same length"
        )

    url = build_url(endpoint)
    params = {
        "marketType": ",".join(market_types),
        "marketIndex": ",".join(str(i) for i in market_indexes),
    }

    owns_session = session is None
    if owns_session:
        session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT_SECS),
            headers={"Accept": "application/json"},
        )

    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=backoff, max=10),
            retry=retry_if_exception(_is_transient),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.debug(f"Retrying priority fee fetch (attempt {attempt.retry_state.attempt_number})")
                payload = await _get_json(session, url, params)
    except FetchError:
        raise
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise FetchError(f"Priority fee request to {url} failed: {e!r}") from e
    finally:
        if owns_session:
            await session.close()

    return parse_response(payload)
