"""FastAPI dependencies shared by the routers."""

from fastapi import Request

from app.core.database import CatalogStore
from app.services.catalog import CatalogService


def get_store(request: Request) -> CatalogStore:
    """The store opened by the application lifespan."""
    return request.app.state.store


def get_catalog_service(request: Request) -> CatalogService:
    """The catalog service bound to the application's store."""
    return request.app.state.catalog_service
