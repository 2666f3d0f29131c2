import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.routes_api import router as api_router
from app.api.routes_health import SERVICE_VERSION
from app.api.routes_health import router as health_router
from app.core.config import get_settings
from app.core.database import CatalogStore
from app.services.catalog import CatalogError, CatalogService

load_dotenv()

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

INTERNAL_ERROR = "Internal server error"


@asynccontextmanager
async def app_lifespan(app: FastAPI):
    """Open the content store for the lifetime of the application.

    A store that cannot be reached at startup aborts the process.
    """
    store = CatalogStore(settings)
    try:
        await store.connect()
    except Exception as e:
        logger.critical(f"MongoDB connection error: {e}")
        raise

    app.state.store = store
    app.state.catalog_service = CatalogService(
        store.catalog, store.recent, facet_cache_ttl=settings.facet_cache_ttl
    )
    try:
        yield
    finally:
        logger.info("Shutting down, closing connections...")
        await store.close()


app = FastAPI(
    title="TLDR Content",
    description="Browse, filter and search a merged catalog of movies and shows",
    version=SERVICE_VERSION,
    debug=settings.debug,
    lifespan=app_lifespan,
)

app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_origin_regex=settings.cors_origin_regex,
    allow_methods=["GET", "OPTIONS"],
)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=exc.headers,
    )


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError):
    logger.error(f"Catalog error on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": INTERNAL_ERROR})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": INTERNAL_ERROR})


app.include_router(health_router)
app.include_router(api_router, prefix="/api")
