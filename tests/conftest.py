"""
Test Suite Configuration
"""
import pytest
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from sellthrough.catalog import CatalogClient
from sellthrough.config import CatalogSettings, Settings
from sellthrough.database import apply_migrations


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays"""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeCatalog:
    """
    In-memory catalog API served through httpx.MockTransport.

    Products are paged with ``since_id`` (no Link header); inventory levels
    are filtered by the requested stock item ids.
    """

    def __init__(
        self,
        products: Optional[List[Dict[str, Any]]] = None,
        levels: Optional[List[Dict[str, Any]]] = None,
    ):
        self.products = sorted(products or [], key=lambda p: int(p["id"]))
        self.levels = levels or []
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        params = request.url.params

        if path.endswith("/products.json"):
            limit = int(params.get("limit", 250))
            since_id = params.get("since_id")
            products = [
                p for p in self.products
                if since_id is None or int(p["id"]) > int(since_id)
            ]
            return httpx.Response(200, json={"products": products[:limit]})

        if path.endswith("/inventory_levels.json"):
            ids = set(params.get("inventory_item_ids", "").split(","))
            levels = [level for level in self.levels if str(level["inventory_item_id"]) in ids]
            return httpx.Response(200, json={"inventory_levels": levels})

        return httpx.Response(404, json={"errors": "Not Found"})

    def requests_to(self, endpoint: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(f"/{endpoint}")]


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
        debug=True,
    )


@pytest.fixture
def catalog_settings() -> CatalogSettings:
    """Catalog settings pointing at a fake shop"""
    return CatalogSettings(
        shop_name="test-shop",
        access_token="test-token",
        api_version="2024-10",
        page_size=250,
        max_retries=5,
        min_retry_delay=2.0,
        retry_jitter=0.3,
    )


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    """Fake sleep that records delays instead of waiting"""
    return SleepRecorder()


@pytest.fixture
def make_catalog() -> Callable[..., FakeCatalog]:
    """Factory for in-memory catalog APIs"""
    return FakeCatalog


@pytest.fixture
async def catalog_factory(catalog_settings, sleep_recorder) -> AsyncGenerator[Callable[..., CatalogClient], None]:
    """Build CatalogClients backed by a mock transport handler"""
    clients: List[CatalogClient] = []

    def factory(handler: Callable[[httpx.Request], httpx.Response], **overrides: Any) -> CatalogClient:
        config = catalog_settings.model_copy(update=overrides) if overrides else catalog_settings
        client = CatalogClient(config, transport=httpx.MockTransport(handler), sleep=sleep_recorder)
        clients.append(client)
        return client

    yield factory

    for client in clients:
        await client.aclose()


@pytest.fixture
async def test_engine():
    """Create a migrated in-memory test database engine"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    await apply_migrations(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
async def test_db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session"""
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()
