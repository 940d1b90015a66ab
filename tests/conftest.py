# tests/conftest.py
import pytest
from typing import Dict, Optional, Tuple
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from database.database import Base
from models.catalog import CatalogEntry
from services.database import CatalogService
import models.database  # noqa: F401  registers tables on Base


class FakeRedis:
    """In-process stand-in for redis.asyncio.Redis with decode_responses=True"""

    def __init__(self, available: bool = True):
        self.available = available
        self.store: Dict[str, Tuple[str, Optional[int]]] = {}

    def _check(self):
        if not self.available:
            raise RedisConnectionError("Error 111 connecting to localhost:6379. Connection refused.")

    async def get(self, key: str) -> Optional[str]:
        self._check()
        entry = self.store.get(key)
        return entry[0] if entry else None

    async def set(self, key: str, value, ex: Optional[int] = None):
        self._check()
        self.store[key] = (str(value), ex)
        return True

    async def delete(self, *keys: str) -> int:
        self._check()
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    def ttl_of(self, key: str) -> Optional[int]:
        return self.store[key][1]


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def unavailable_redis():
    return FakeRedis(available=False)


@pytest.fixture(scope="function")
async def test_engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test_tapearchive.db'}",
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    return sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )


@pytest.fixture(scope="function")
async def test_session(session_factory):
    async with session_factory() as session:
        yield session
        await session.rollback()


PHISH_CATALOG = [
    CatalogEntry(key="tweezer", name="Tweezer", aliases=["Twezer", "Tweeser"]),
    CatalogEntry(key="the-flu", name="The Flu"),
    CatalogEntry(key="bathtub-gin", name="Bathtub Gin"),
    CatalogEntry(key="harry-hood", name="Harry Hood", aliases=["Hood"]),
]


@pytest.fixture
async def phish_catalog(test_session):
    await CatalogService(test_session).upsert_catalog_tracks("Phish", PHISH_CATALOG)
    return PHISH_CATALOG
