import logging
import time
from threading import Lock

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
DEFAULT_RATE_LIMIT = 5  # requests per second
DEFAULT_TIMEOUT = 30  # seconds

# Wire keys returned by the catalog API, mapped onto the names we store locally.
RESPONSE_KEYS = {
    'stripe_product_id': 'remote_product_id',
    'stripe_price_id': 'remote_price_id',
}


class CatalogAPIError(Exception):
    """Raised for any transport, HTTP or rate-limit failure talking to the catalog API."""

    def __init__(self, message: str, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class RateLimiter:
    """
    Fixed-window rate limiter (thread-safe).

    Allows up to `rate` requests per 1-second window. The window starts
    lazily on the first request; once the bucket is empty the limiter sleeps
    until the window expires and opens a fresh one.
    """

    def __init__(self, rate: int):
        self._rate = rate
        self._tokens = rate
        self._window_start = None
        self._lock = Lock()

    def acquire(self):
        with self._lock:
            now = time.monotonic()

            if self._window_start is None or (now - self._window_start) >= 1.0:
                self._window_start = now
                self._tokens = self._rate

            if self._tokens > 0:
                self._tokens -= 1
            else:
                wait = 1.0 - (now - self._window_start)
                if wait > 0:
                    time.sleep(wait)
                self._window_start = time.monotonic()
                self._tokens = self._rate - 1


class CatalogClient:
    """Client for the remote payment-processor catalog (products and prices)."""

    def __init__(self):
        self._base_url = settings.CATALOG_API_BASE_URL.rstrip('/')
        self._timeout = getattr(settings, 'CATALOG_API_TIMEOUT', DEFAULT_TIMEOUT)
        self._session = requests.Session()
        self._session.headers.update({'X-Api-Key': settings.CATALOG_API_KEY})
        self._rate_limiter = RateLimiter(getattr(settings, 'CATALOG_API_RATE_LIMIT', DEFAULT_RATE_LIMIT))

    def close(self) -> None:
        self._session.close()

    def create_product(self, fields: dict) -> dict:
        """Create a remote product together with its initial price."""
        response = self._request('POST', f"{self._base_url}/products/", json=fields)
        return self._remote_ids(response)

    def update_product(self, product_id: str, fields: dict) -> dict:
        """
        Update a remote product. The returned dict only carries the ids of
        the sub-resources the API reports as changed.
        """
        response = self._request('PATCH', f"{self._base_url}/products/{product_id}/", json=fields)
        return self._remote_ids(response)

    def update_price(self, price_id: str, fields: dict) -> dict:
        response = self._request('PATCH', f"{self._base_url}/prices/{price_id}/", json=fields)
        return self._json(response)

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        backoff = 1.0
        for attempt in range(1, MAX_RETRIES + 1):
            self._rate_limiter.acquire()
            try:
                response = self._session.request(method, url, timeout=self._timeout, **kwargs)
            except requests.RequestException as exc:
                raise CatalogAPIError(f"{method} {url} failed: {exc}") from exc

            if response.status_code == 429:
                retry_after = self._parse_retry_after(response)
                wait = retry_after if retry_after is not None else backoff
                logger.warning(
                    "429 Too Many Requests (attempt %d/%d). Waiting %.1fs before retry.",
                    attempt, MAX_RETRIES, wait,
                )
                time.sleep(wait)
                backoff *= 2
                continue

            try:
                response.raise_for_status()
            except requests.HTTPError as exc:
                raise CatalogAPIError(
                    f"{method} {url} returned {response.status_code}: {response.text[:200]}",
                    status_code=response.status_code,
                ) from exc
            return response

        raise CatalogAPIError(
            f"{method} {url} failed after {MAX_RETRIES} retries due to rate limiting.",
            status_code=429,
        )

    @staticmethod
    def _json(response: requests.Response) -> dict:
        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError as exc:
            raise CatalogAPIError(
                f"Invalid JSON in catalog response: {exc}", status_code=response.status_code,
            ) from exc
        if not isinstance(body, dict):
            raise CatalogAPIError(
                f"Unexpected catalog response type {type(body).__name__}",
                status_code=response.status_code,
            )
        return body

    @classmethod
    def _remote_ids(cls, response: requests.Response) -> dict:
        body = cls._json(response)
        return {local: body[wire] for wire, local in RESPONSE_KEYS.items() if body.get(wire)}

    @staticmethod
    def _parse_retry_after(response: requests.Response):
        """Return float seconds from Retry-After header, or None if absent/invalid."""
        header = response.headers.get('Retry-After')
        if header is None:
            return None
        try:
            return float(header)
        except (TypeError, ValueError):
            return None
