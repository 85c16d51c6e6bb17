"""
Catalog API Client

Async HTTP client for the Shopify Admin REST API with:
- Explicit configuration passed in at construction
- Bounded retry on HTTP 429 honouring Retry-After
- Link-header cursor pagination with a since_id fallback
- Request metrics
"""

import asyncio
import math
import time
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence

import httpx
import structlog

from sellthrough.config import CatalogSettings
from sellthrough.exceptions import CatalogError, CatalogHTTPError, CatalogRateLimitError
from sellthrough.metrics import CATALOG_REQUEST_TIME, CATALOG_REQUESTS, CATALOG_RETRIES

logger = structlog.get_logger(__name__)

PRODUCT_FIELDS = ("id", "title", "tags", "variants", "images")

SleepFunc = Callable[[float], Awaitable[Any]]


def _endpoint_label(path: str) -> str:
    """Metric label for a request path or absolute URL, e.g. ``products.json``"""
    return httpx.URL(path).path.rstrip("/").rsplit("/", 1)[-1] or "root"


class CatalogClient:
    """
    Client for the external catalog/inventory API.

    Example:
        async with CatalogClient(settings.catalog) as client:
            async for page in client.iter_product_pages():
                ...
    """

    def __init__(
        self,
        config: CatalogSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        if not config.shop_domain:
            raise CatalogError("Catalog shop is not configured; set SHOP_NAME")

        self.config = config
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers={
                "X-Shopify-Access-Token": config.access_token.get_secret_value(),
                "Accept": "application/json",
            },
            timeout=config.timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "CatalogClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool"""
        await self._client.aclose()

    def retry_delay(self, response: httpx.Response) -> float:
        """Seconds to wait before retrying a 429 response"""
        try:
            retry_after = float(response.headers.get("Retry-After", 0))
        except ValueError:
            retry_after = 0.0
        if not math.isfinite(retry_after):
            retry_after = 0.0
        return max(retry_after, self.config.min_retry_delay) + self.config.retry_jitter

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        """
        Issue a GET, retrying on HTTP 429.

        Args:
            path: Path relative to the API base URL, or an absolute URL
            params: Query parameters

        Returns:
            The successful (2xx) response

        Raises:
            CatalogRateLimitError: Still 429 after ``max_retries`` retries
            CatalogHTTPError: Any other non-2xx status (not retried)
            CatalogError: Transport failure
        """
        endpoint = _endpoint_label(path)
        retries = 0

        while True:
            start = time.perf_counter()
            try:
                response = await self._client.get(path, params=params)
            except httpx.TransportError as e:
                logger.error("Catalog request failed", endpoint=endpoint, error=str(e))
                raise CatalogError(f"Catalog request to {endpoint} failed: {e}") from e
            finally:
                CATALOG_REQUEST_TIME.labels(endpoint=endpoint).observe(time.perf_counter() - start)

            CATALOG_REQUESTS.labels(endpoint=endpoint, status=str(response.status_code)).inc()

            if response.status_code == 429:
                if retries >= self.config.max_retries:
                    logger.error(
                        "Catalog API rate limit retries exhausted",
                        endpoint=endpoint,
                        attempts=retries + 1,
                    )
                    raise CatalogRateLimitError(str(response.url), attempts=retries + 1, body=response.text)

                retries += 1
                delay = self.retry_delay(response)
                logger.warning(
                    "Catalog API rate limited, backing off",
                    endpoint=endpoint,
                    retry=retries,
                    max_retries=self.config.max_retries,
                    retry_after=response.headers.get("Retry-After"),
                    delay_seconds=delay,
                )
                CATALOG_RETRIES.labels(endpoint=endpoint).inc()
                await self._sleep(delay)
                continue

            if not response.is_success:
                logger.error(
                    "Catalog API error",
                    endpoint=endpoint,
                    status_code=response.status_code,
                )
                raise CatalogHTTPError(response.status_code, str(response.url), response.text)

            return response

    async def iter_product_pages(
        self,
        fields: Sequence[str] = PRODUCT_FIELDS,
    ) -> AsyncIterator[List[Dict[str, Any]]]:
        """
        Yield every page of the product catalog.

        Follows the ``Link: <...>; rel="next"`` cursor. When the API sends no
        Link header at all, falls back to a ``since_id`` cursor built from the
        last product of the page. Stops on an empty page or when no further
        cursor exists.
        """
        limit = self.config.page_size
        base_params: Dict[str, Any] = {"limit": limit, "fields": ",".join(fields)}
        next_url: Optional[str] = None
        since_id: Optional[str] = None
        page_number = 0

        while True:
            if next_url is not None:
                response = await self.get(next_url)
            else:
                params = dict(base_params)
                if since_id is not None:
                    params["since_id"] = since_id
                response = await self.get("products.json", params=params)

            products = response.json().get("products") or []
            page_number += 1
            logger.debug("Fetched product page", page=page_number, products=len(products))

            if not products:
                return

            yield products

            if "link" in response.headers:
                next_link = response.links.get("next")
                if not next_link or not next_link.get("url"):
                    return
                next_url = next_link["url"]
            else:
                if len(products) < limit:
                    return
                since_id = str(products[-1]["id"])

    async def list_inventory_levels(
        self,
        stock_item_ids: Sequence[str],
        limit: int = 250,
    ) -> List[Dict[str, Any]]:
        """
        Fetch inventory levels for a batch of stock items in one request.

        Returns:
            Location-level entries (``inventory_item_id``, ``location_id``, ``available``)
        """
        response = await self.get(
            "inventory_levels.json",
            params={
                "inventory_item_ids": ",".join(stock_item_ids),
                "limit": limit,
            },
        )
        return response.json().get("inventory_levels") or []


def create_catalog_client(config: Optional[CatalogSettings] = None) -> CatalogClient:
    """Create a CatalogClient from application settings"""
    from sellthrough.config import get_settings

    return CatalogClient(config or get_settings().catalog)
