import asyncio
from typing import Dict, Any, Optional

import httpx
from httpx import TimeoutException, HTTPStatusError

from bodymetrics.core.exceptions import APIClientError, APITimeoutError
from bodymetrics.utils.logging import get_logger

LOGGER = get_logger(__name__)


def _error_code_from_body(response: httpx.Response) -> Optional[str]:
    """Pull the provider error code out of an OpenAI-style error body."""
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict):
        code = error.get("code") or error.get("type")
        return str(code) if code else None
    return None


class BaseLLMClient:
    """Base client for LLM API interactions.

    Handles common logic for HTTP requests, transport-level retries, timeout
    management, and error logging. Client errors (4xx other than 429) are
    raised immediately with the provider's status and error code attached so
    callers can classify them.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: int = 60,
        max_retries: int = 2,
        retry_delay: int = 2
    ):
        """Initialize the LLM client.

        Args:
            api_key: API key for authentication
            base_url: Base URL for the API
            timeout: Request timeout in seconds
            max_retries: Maximum number of transport attempts
            retry_delay: Base delay for exponential backoff
        """
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.logger = LOGGER

    async def call_api(
        self,
        endpoint: str = "",
        payload: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """POST a JSON payload with retry logic.

        Args:
            endpoint: API endpoint (appended to base_url)
            payload: JSON payload
            headers: Additional headers

        Returns:
            Parsed JSON response

        Raises:
            APIClientError: If the API call fails after retries
            APITimeoutError: If the API call times out after retries
        """
        url = f"{self.base_url}{endpoint}" if endpoint else self.base_url

        default_headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if headers:
            default_headers.update(headers)

        self.logger.debug(
            f"Calling LLM API: {url}",
            extra={"timeout": self.timeout}
        )

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for attempt in range(self.max_retries):
                try:
                    response = await client.post(url, headers=default_headers, json=payload)
                    response.raise_for_status()
                    return self._decode_json(response, url)

                except HTTPStatusError as e:
                    await self._handle_http_error(e, attempt, url)

                except TimeoutException as e:
                    await self._handle_timeout_error(e, attempt, url)

                except httpx.TransportError as e:
                    await self._handle_transport_error(e, attempt, url)

        raise APIClientError(f"Failed to call API {url} after {self.max_retries} attempts")

    def _decode_json(self, response: httpx.Response, url: str) -> Dict[str, Any]:
        """Decode a 2xx body, failing fast on gateway pages and other non-JSON replies."""
        try:
            return response.json()
        except ValueError as e:
            self.logger.error(
                "API returned a non-JSON body",
                extra={
                    "url": url,
                    "status_code": response.status_code,
                    "content_type": response.headers.get("content-type"),
                    "body": response.text[:500],
                }
            )
            raise APIClientError(
                f"Invalid JSON in response from {url}",
                original_error=e,
                status_code=response.status_code,
            ) from e

    async def _handle_http_error(self, error: HTTPStatusError, attempt: int, url: str):
        """Handle HTTP status errors."""
        status_code = error.response.status_code
        error_code = _error_code_from_body(error.response)
        error_body = error.response.text or ""

        self.logger.warning(
            f"API HTTP error (Attempt {attempt + 1}/{self.max_retries})",
            extra={
                "url": url,
                "status_code": status_code,
                "error_code": error_code,
                "error_body": error_body[:500]
            }
        )

        # Don't retry on client errors (4xx) unless it's rate limiting (429)
        retryable = status_code >= 500 or (status_code == 429 and error_code != "insufficient_quota")
        if not retryable or attempt >= self.max_retries - 1:
            raise APIClientError(
                f"API Error {status_code}: {error_body[:200]}",
                original_error=error,
                status_code=status_code,
                error_code=error_code,
            ) from error

        await self._wait_before_retry(attempt)

    async def _handle_timeout_error(self, error: TimeoutException, attempt: int, url: str):
        """Handle timeout errors."""
        self.logger.warning(
            f"API Timeout (Attempt {attempt + 1}/{self.max_retries})",
            extra={"url": url}
        )

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APITimeoutError(
                f"API Timeout after {self.max_retries} attempts", original_error=error
            ) from error

    async def _handle_transport_error(self, error: httpx.TransportError, attempt: int, url: str):
        """Handle connection-level errors."""
        self.logger.warning(
            f"API transport error (Attempt {attempt + 1}/{self.max_retries})",
            extra={"url": url, "error": str(error)}
        )

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APIClientError(f"API Error: {str(error)}", original_error=error) from error

    async def _wait_before_retry(self, attempt: int):
        """Exponential backoff wait."""
        wait_time = self.retry_delay * (2 ** attempt)
        await asyncio.sleep(wait_time)
