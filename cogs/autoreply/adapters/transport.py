"""Shared HTTP transport for JSON completion endpoints."""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import aiohttp

from ..core.exceptions import ProviderException

logger = logging.getLogger(__name__)


async def send_request(
    provider_name: str,
    url: str,
    api_key: str,
    body: Dict[str, Any],
    timeout: float = 60.0,
    debug: bool = False
) -> Any:
    """
    POST a JSON body and return the decoded JSON response.

    Args:
        provider_name: Backend name used in error messages
        url: Endpoint URL
        api_key: Bearer token (omitted when empty)
        body: Request body
        timeout: Total request timeout in seconds
        debug: Log the request body at INFO instead of DEBUG

    Raises:
        ProviderException: On HTTP errors, connection failures, timeouts or
            a non-JSON response
    """
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"

    log = logger.info if debug else logger.debug
    log(f"🔄 {provider_name} request to {url}: {json.dumps(body, ensure_ascii=False)[:2000]}")

    try:
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
            async with session.post(url, json=body, headers=headers) as response:
                if response.status >= 400:
                    text = await response.text()
                    raise ProviderException(provider_name, f"HTTP {response.status}: {text[:500]}")
                return await response.json(content_type=None)
    except asyncio.TimeoutError as e:
        raise ProviderException(provider_name, f"Request timed out after {timeout} seconds", e)
    except aiohttp.ClientError as e:
        raise ProviderException(provider_name, "Request failed", e)
    except json.JSONDecodeError as e:
        raise ProviderException(provider_name, "Response was not valid JSON", e)
