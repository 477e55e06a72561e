"""
Async HTTP client wrapper using aiohttp.
Used for outbound alert webhooks; retries with exponential backoff.
"""

import asyncio
from typing import Optional, Dict, Any
import aiohttp
import logging

logger = logging.getLogger(__name__)


class HttpClient:
    """
    Async HTTP client wrapper using aiohttp.
    Provides a JSON POST with retry/backoff support.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: int = 30,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ):
        """
        Initialize HTTP client.

        Args:
            base_url: Optional base URL for all requests
            timeout: Request timeout in seconds
            max_retries: Maximum number of attempts
            retry_delay: Initial delay between retries in seconds
        """
        self.base_url = base_url
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()

    def _build_url(self, endpoint: str) -> str:
        """Build full URL from endpoint."""
        if self.base_url and endpoint:
            return f"{self.base_url.rstrip('/')}/{endpoint.lstrip('/')}"
        return self.base_url or endpoint

    async def post_json(
        self,
        endpoint: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
    ) -> int:
        """
        POST a JSON document, retrying transport errors and 5xx responses.

        Args:
            endpoint: Path appended to base_url, or a full URL
            payload: JSON body
            headers: Request headers

        Returns:
            HTTP status code of the final response
        """
        url = self._build_url(endpoint)
        session = await self._get_session()
        last_exception: Optional[BaseException] = None

        for attempt in range(self.max_retries):
            try:
                async with session.post(url, json=payload, headers=headers) as response:
                    # Body is consumed inside the context so the connection is released
                    await response.read()
                    response.raise_for_status()
                    return response.status
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_exception = e
                if isinstance(e, aiohttp.ClientResponseError) and e.status < 500:
                    logger.error(f"Request to {url} rejected with {e.status}; not retrying")
                    break
                if attempt < self.max_retries - 1:
                    delay = self.retry_delay * (2 ** attempt)
                    logger.warning(
                        f"Request failed (attempt {attempt + 1}/{self.max_retries}): {e}. Retrying in {delay}s..."
                    )
                    await asyncio.sleep(delay)
                else:
                    logger.error(f"Request failed after {self.max_retries} attempts: {e}")

        raise last_exception or RuntimeError("Request failed")
