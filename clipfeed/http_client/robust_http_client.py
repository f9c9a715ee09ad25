"""
Synchronous HTTP client shared by the resolver, the oEmbed extractor and
the video content fetcher.
"""

import httpx
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from clipfeed.core.logging import get_logger
from clipfeed.core.settings import get_settings
from clipfeed.utils.error_logger import log_http_error

logger = get_logger(__name__)

# Status errors are answers, not transport failures; only these are retried
RETRYABLE_TRANSPORT_ERRORS = (httpx.ConnectError, httpx.ReadTimeout, httpx.RemoteProtocolError)


class RobustHttpClient:
    """
    A synchronous HTTP client for GET requests.

    Follows redirects, applies default headers and timeouts, retries transport
    errors with exponential backoff and logs failures with response details.
    """

    def __init__(
        self,
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
        max_attempts: int | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Args:
            timeout: Default timeout in seconds (settings.http_timeout_seconds).
            headers: Extra default headers merged over the configured User-Agent.
            max_attempts: Attempts per request for transport errors
                (settings.http_max_retries).
            transport: Optional httpx transport, used by tests.
        """
        settings = get_settings()
        self.default_timeout = timeout or settings.http_timeout_seconds
        self.max_attempts = max_attempts or settings.http_max_retries

        base_headers = {"User-Agent": settings.http_user_agent}
        if headers:
            base_headers.update(headers)
        self.default_headers = base_headers

        self._transport = transport
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Initializes and returns the httpx.Client instance."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                headers=self.default_headers,
                timeout=self.default_timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=8),
            retry=retry_if_exception_type(RETRYABLE_TRANSPORT_ERRORS),
            reraise=True,
        )

    def get(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        """
        Performs a GET request, following redirects.

        Returns:
            An httpx.Response object; ``response.url`` is the final URL.

        Raises:
            httpx.HTTPStatusError: For 4xx or 5xx responses.
            httpx.RequestError: For network errors once retries are exhausted.
        """
        client = self._get_client()
        request_headers = self.default_headers.copy()
        if headers:
            request_headers.update(headers)
        effective_timeout = timeout if timeout is not None else self.default_timeout

        logger.debug(f"GET {url} (timeout {effective_timeout}s)")
        try:
            for attempt in self._retrying():
                with attempt:
                    response = client.get(
                        url, headers=request_headers, timeout=effective_timeout, params=params
                    )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            log_http_error(
                "robust_http_client",
                url,
                response=e.response,
                error=e,
                operation="http_get",
                context={"status_code": e.response.status_code},
            )
            raise
        except httpx.RequestError as e:
            log_http_error("robust_http_client", url, error=e, operation="http_get")
            raise

        if response.history:
            logger.info(f"Request to {url} was redirected. Final URL: {response.url}")
        return response

    def close(self) -> None:
        """Closes the underlying httpx.Client."""
        if self._client and not self._client.is_closed:
            self._client.close()
            self._client = None


_http_client: RobustHttpClient | None = None


def get_http_client() -> RobustHttpClient:
    """Return the shared HTTP client."""
    global _http_client
    if _http_client is None:
        _http_client = RobustHttpClient()
    return _http_client
