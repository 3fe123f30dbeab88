"""Shared utilities for API source connectors.

Provides retry logic with exponential backoff and credential decryption
used by the HTTP connector implementations.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx
from cryptography.fernet import InvalidToken

from foundry.core.encryption import decrypt_value
from foundry.core.exceptions import ConnectorFailure

logger = logging.getLogger(__name__)

DEFAULT_RETRY_DELAYS = (1.0, 2.0, 4.0)
DEFAULT_TIMEOUT = 30.0


async def retry_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    max_retries: int = 3,
    retry_delays: tuple[float, ...] = DEFAULT_RETRY_DELAYS,
    retry_on_status: tuple[int, ...] = (429, 500, 502, 503, 504),
    **kwargs: Any,
) -> httpx.Response:
    """Make an HTTP request with exponential backoff retry.

    Args:
        client: The httpx AsyncClient to use.
        method: HTTP method (GET, POST, etc.).
        url: The URL to request.
        max_retries: Maximum number of retry attempts.
        retry_delays: Tuple of delay seconds for each retry (1s, 2s, 4s).
        retry_on_status: HTTP status codes that trigger a retry.
        **kwargs: Additional arguments passed to client.request().

    Returns:
        The HTTP response.

    Raises:
        httpx.HTTPStatusError: If the request fails after all retries.
        httpx.RequestError: If the transport keeps failing.
    """
    for attempt in range(max_retries + 1):
        try:
            response = await client.request(method, url, **kwargs)

            if response.status_code in retry_on_status and attempt < max_retries:
                delay = retry_delays[min(attempt, len(retry_delays) - 1)]
                logger.warning(
                    "Request to %s returned %d, retrying in %.1fs (attempt %d/%d)",
                    url, response.status_code, delay, attempt + 1, max_retries,
                )
                await asyncio.sleep(delay)
                continue

            response.raise_for_status()
            return response

        except httpx.HTTPStatusError:
            raise
        except httpx.RequestError as exc:
            if attempt >= max_retries:
                raise
            delay = retry_delays[min(attempt, len(retry_delays) - 1)]
            logger.warning(
                "Request to %s failed: %s, retrying in %.1fs (attempt %d/%d)",
                url, exc, delay, attempt + 1, max_retries,
            )
            await asyncio.sleep(delay)

    raise RuntimeError("Unexpected retry loop exit")


def decrypt_credential(connector: str, ciphertext: str | None) -> str:
    """Decrypt a stored API key.

    Raises:
        ConnectorFailure: The key is missing or cannot be decrypted.
    """
    if not ciphertext:
        raise ConnectorFailure(connector, "API key not configured")
    try:
        return decrypt_value(ciphertext)
    except (InvalidToken, ValueError) as e:
        raise ConnectorFailure(connector, "Stored API key could not be decrypted") from e


def describe_status_error(exc: httpx.HTTPStatusError) -> str:
    response = exc.response
    return response.reason_phrase or f"HTTP {response.status_code}"
