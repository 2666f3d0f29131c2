import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_catalog_service
from app.main import app
from app.services.catalog import CatalogService
from tests.fakes import FakeCollection


@pytest.fixture
def anyio_backend():
    """The service fans out with asyncio.gather, so async tests run on asyncio."""
    return "asyncio"


@pytest.fixture
def catalog():
    return FakeCollection()


@pytest.fixture
def recent():
    return FakeCollection()


@pytest.fixture
def service(catalog, recent):
    return CatalogService(catalog, recent, facet_cache_ttl=0)


@pytest.fixture
def client(service):
    """TestClient with the catalog service bound to fake collections."""
    app.dependency_overrides[get_catalog_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()
