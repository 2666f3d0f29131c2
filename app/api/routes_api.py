"""API routes returning catalog content as JSON."""

from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from app.api.deps import get_catalog_service
from app.models.content import CatalogItem, ContentPage, SearchPage, Stats, YearRange
from app.services.catalog import (
    CatalogService,
    ContentNotFoundError,
    Facet,
    InvalidSearchQueryError,
)
from app.services.query_builder import build_filter, build_page, build_sort

router = APIRouter()

Service = Annotated[CatalogService, Depends(get_catalog_service)]


class ContentQuery(BaseModel):
    """Filter, sort and paging parameters shared by listing and search.

    Everything is taken as a string so malformed numbers are ignored by the
    query builder instead of being rejected.
    """

    page: Optional[str] = None
    limit: Optional[str] = None
    genre: Optional[str] = None
    language: Optional[str] = None
    year: Optional[str] = None
    year_from: Optional[str] = None
    year_to: Optional[str] = None
    min_rating: Optional[str] = None
    type: Optional[str] = None
    country: Optional[str] = None
    sort: Optional[str] = None
    order: Optional[str] = None


class SearchQuery(ContentQuery):
    """Content parameters plus the search text."""

    q: Optional[str] = None


@router.get("/content", response_model=ContentPage, response_model_exclude_unset=True)
async def list_content(params: Annotated[ContentQuery, Query()], service: Service):
    """List movies and shows with optional filters."""
    result = await service.list_content(
        build_filter(params.model_dump()),
        build_sort(params.sort, params.order),
        build_page(params.page, params.limit),
    )
    return {"items": result.items, "pagination": result.pagination()}


@router.get(
    "/content/{content_id}",
    response_model=CatalogItem,
    response_model_exclude_unset=True,
)
async def get_content(content_id: str, service: Service):
    """Get a single item by IMDb id or database id."""
    try:
        return await service.get_content(content_id)
    except ContentNotFoundError:
        raise HTTPException(status_code=404, detail="Content not found")


@router.get("/search", response_model=SearchPage, response_model_exclude_unset=True)
async def search_content(params: Annotated[SearchQuery, Query()], service: Service):
    """Search titles, cast and directors.

    The content filters apply on top of the text match; results are always
    ordered by rating.
    """
    try:
        result = await service.search(
            params.q,
            build_filter(params.model_dump()),
            build_page(params.page, params.limit),
        )
    except InvalidSearchQueryError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"query": params.q, "items": result.items, "pagination": result.pagination()}


@router.get("/genres", response_model=List[str])
async def list_genres(service: Service):
    return await service.distinct_values(Facet.GENRES)


@router.get("/languages", response_model=List[str])
async def list_languages(service: Service):
    return await service.distinct_values(Facet.LANGUAGES)


@router.get("/countries", response_model=List[str])
async def list_countries(service: Service):
    return await service.distinct_values(Facet.COUNTRIES)


@router.get("/years", response_model=YearRange)
async def year_range(service: Service):
    """Earliest and latest release year in the catalog."""
    min_year, max_year = await service.year_range()
    return YearRange(min=min_year, max=max_year)


@router.get(
    "/recent", response_model=List[CatalogItem], response_model_exclude_unset=True
)
async def recent_content(
    service: Service, limit: Optional[str] = Query(None, description="Max items (50)")
):
    """Recently added items, newest first."""
    return await service.recent(limit)


@router.get("/stats", response_model=Stats)
async def catalog_stats(service: Service):
    """Counts of movies, shows, genres and languages."""
    return await service.stats()
