"""Liveness and readiness routes."""

from fastapi import APIRouter, Depends

from app.api.deps import get_store
from app.core.database import CatalogStore

SERVICE_NAME = "tldrcontent-api"
SERVICE_VERSION = "1.0.0"

router = APIRouter()


@router.get("/")
async def root():
    """Service banner."""
    return {"status": "ok", "service": SERVICE_NAME, "version": SERVICE_VERSION}


@router.get("/health")
async def health_check(store: CatalogStore = Depends(get_store)):
    """Health check endpoint reporting database connectivity."""
    connected = await store.ping()
    return {"status": "healthy", "db": "connected" if connected else "disconnected"}
