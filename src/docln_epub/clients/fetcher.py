"""Rate-limited page fetcher."""

import logging

import httpx

from schemas.raw_page import RawPage

from .exceptions import FetchTimeoutError, HttpStatusError, TransportError
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://docln.net"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)


class RateLimitedFetcher:
    """Fetches pages and images while respecting a global request interval.

    Provides a lazy-initialized httpx.Client with context manager support,
    configured via a dict. Every call to fetch() claims one slot from the
    rate limiter before the request is sent, whether or not it succeeds.
    The fetcher never retries; callers decide what to do with a failure.

    Config keys:
        base_url: Base URL for relative paths (default: https://docln.net)
        timeout: Request timeout in seconds (default: 30)
        min_interval: Minimum seconds between request starts (default: 0.5)
        headers: Headers sent with every request (default: browser User-Agent)

    Example:
        with RateLimitedFetcher({"min_interval": 1.0}) as fetcher:
            page = fetcher.fetch("/sang-tac/12345")
    """

    def __init__(
        self,
        config: dict | None = None,
        http_client: httpx.Client | None = None,
        rate_limiter: RateLimiter | None = None,
    ):
        """Initialize the fetcher.

        Args:
            config: Fetcher configuration (see class docstring)
            http_client: Optional HTTP client. If not provided, one will be
                         created on first use and closed by close().
            rate_limiter: Optional shared rate limiter. If not provided, one
                          is created from min_interval.
        """
        self._config = config or {}
        self._client = http_client
        self._owns_client = http_client is None
        self.rate_limiter = rate_limiter or RateLimiter(self.min_interval)

    @property
    def base_url(self) -> str:
        return str(self._config.get("base_url", DEFAULT_BASE_URL)).rstrip("/")

    @property
    def timeout(self) -> float:
        return float(self._config.get("timeout", 30))

    @property
    def min_interval(self) -> float:
        return float(self._config.get("min_interval", 0.5))

    @property
    def headers(self) -> dict[str, str]:
        return dict(self._config.get("headers", {"User-Agent": DEFAULT_USER_AGENT}))

    @property
    def client(self) -> httpx.Client:
        """Lazy-initialized httpx client."""
        if self._client is None:
            self._client = httpx.Client(
                timeout=self.timeout,
                headers=self.headers,
                follow_redirects=True,
            )
        return self._client

    def __enter__(self) -> "RateLimitedFetcher":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    def absolute_url(self, url: str) -> str:
        """Resolve a site-relative path against the base URL."""
        if url.startswith("//"):
            return f"https:{url}"
        if url.startswith("/"):
            return f"{self.base_url}{url}"
        return url

    def fetch(self, url: str) -> RawPage:
        """Fetch a URL.

        Args:
            url: Absolute URL or path relative to base_url

        Returns:
            RawPage for a 2xx response

        Raises:
            FetchTimeoutError: If the request exceeds the timeout
            HttpStatusError: For non-2xx responses
            TransportError: For connection and protocol failures, and URLs
                            httpx cannot send
        """
        url = self.absolute_url(url)
        self.rate_limiter.acquire()
        logger.debug(f"GET {url}")

        try:
            response = self.client.get(url, headers=self.headers, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise FetchTimeoutError(
                f"Timed out after {self.timeout}s: {url}", url=url
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Request failed: {url}: {e}", cause=e, url=url) from e
        except httpx.InvalidURL as e:
            raise TransportError(f"Invalid URL: {url}: {e}", cause=e, url=url) from e

        return self._handle_response(url, response)

    def _handle_response(self, url: str, response: httpx.Response) -> RawPage:
        """Map non-2xx responses to HttpStatusError.

        Args:
            url: Requested URL
            response: The HTTP response to check

        Returns:
            RawPage built from the response
        """
        if not response.is_success:
            raise HttpStatusError(
                f"HTTP {response.status_code}: {url}",
                status_code=response.status_code,
                url=url,
            )

        return RawPage(
            url=str(response.url),
            status_code=response.status_code,
            content=response.content,
        )
