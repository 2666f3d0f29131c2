"""Catalog service: listing, lookup, search and facets over the content store."""

import asyncio
import logging
import math
import re
from datetime import date
from enum import Enum
from typing import Any, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from cachetools import TTLCache
from pydantic import BaseModel
from pymongo import DESCENDING
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.errors import PyMongoError

from app.services.query_builder import (
    DEFAULT_PAGE_SIZE,
    MAX_RECENT_SIZE,
    PRIMARY_RATING_FIELD,
    SECONDARY_RATING_FIELD,
    SHOW_CONTENT_TYPES,
    ContentFilter,
    ContentType,
    PageRequest,
    SortSpec,
    clamp_limit,
)

logger = logging.getLogger(__name__)

MIN_SEARCH_LENGTH = 2
FALLBACK_MIN_YEAR = 1900

LIST_PROJECTION = {
    "_id": 1,
    "imdb_id": 1,
    "title": 1,
    "original_title": 1,
    "year": 1,
    "release_date": 1,
    "overview": 1,
    "plot": 1,
    "runtime": 1,
    PRIMARY_RATING_FIELD: 1,
    SECONDARY_RATING_FIELD: 1,
    "genres": 1,
    "languages": 1,
    "countries": 1,
    "poster_url": 1,
    "backdrop_url": 1,
    "content_type": 1,
}

SEARCH_PROJECTION = {
    "_id": 1,
    "imdb_id": 1,
    "title": 1,
    "original_title": 1,
    "year": 1,
    "release_date": 1,
    "overview": 1,
    PRIMARY_RATING_FIELD: 1,
    SECONDARY_RATING_FIELD: 1,
    "genres": 1,
    "languages": 1,
    "poster_url": 1,
    "content_type": 1,
}

SEARCH_FIELDS = ("title", "original_title", "cast.name", "directors")


class CatalogError(Exception):
    """Domain exception for content store failures."""

    def __init__(self, message: str, original_exception: Exception = None):
        super().__init__(message)
        self.original_exception = original_exception


class ContentNotFoundError(Exception):
    """No catalog item matches the requested identifier."""


class InvalidSearchQueryError(ValueError):
    """The search query is missing or too short."""


class Facet(str, Enum):
    """Attributes with a distinct-value listing, mapped to their stored field."""

    GENRES = "genres.name"
    LANGUAGES = "languages"
    COUNTRIES = "countries"


class PageResult(BaseModel):
    """A slice of matching items plus the total match count."""

    items: List[dict]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit)

    def pagination(self) -> dict:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "pages": self.pages,
        }


def _jsonable(value: Any) -> Any:
    """Replace ObjectIds with their hex strings, recursing into containers."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value


def _clean_facet_values(values: List[Any]) -> List[str]:
    """Drop null and blank entries, de-duplicate and sort."""
    return sorted({v for v in values if isinstance(v, str) and v.strip()})


def search_query(query: str, content_filter: ContentFilter) -> dict:
    """Combine a title/people text match with the filter predicates."""
    pattern = {"$regex": re.escape(query), "$options": "i"}
    text_match = {"$or": [{field: pattern} for field in SEARCH_FIELDS]}
    filter_query = content_filter.to_query()
    if not filter_query:
        return text_match
    # both sides may carry an $or, so they are combined with $and
    return {"$and": [text_match, filter_query]}


class CatalogService:
    """Read operations over the merged catalog and the recently added feed.

    Count and page queries run concurrently and may observe different
    snapshots when the collection is written to in between. Pagination is
    therefore only eventually consistent.
    """

    def __init__(
        self,
        catalog: AsyncCollection,
        recent: AsyncCollection,
        facet_cache_ttl: int = 300,
    ) -> None:
        self.catalog = catalog
        self.recent_items = recent
        self._facet_cache: Optional[TTLCache] = (
            TTLCache(maxsize=16, ttl=facet_cache_ttl) if facet_cache_ttl > 0 else None
        )

    async def _find_page(
        self, query: dict, sort: SortSpec, page: PageRequest, projection: dict
    ) -> PageResult:
        cursor = (
            self.catalog.find(query, projection)
            .sort(sort.to_mongo())
            .skip(page.skip)
            .limit(page.limit)
        )
        try:
            items, total = await asyncio.gather(
                cursor.to_list(),
                self.catalog.count_documents(query),
            )
        except PyMongoError as exc:
            logger.error(f"Error fetching content page: {exc}", exc_info=exc)
            raise CatalogError("Failed to fetch content page", exc) from exc

        return PageResult(
            items=[_jsonable(item) for item in items],
            total=total,
            page=page.page,
            limit=page.limit,
        )

    async def list_content(
        self, content_filter: ContentFilter, sort: SortSpec, page: PageRequest
    ) -> PageResult:
        """List catalog items matching a filter, sorted and paginated."""
        return await self._find_page(
            content_filter.to_query(), sort, page, LIST_PROJECTION
        )

    async def get_content(self, content_id: str) -> dict:
        """Look up an item by IMDb id, falling back to its database id.

        Raises:
            ContentNotFoundError: Neither identifier matches.
        """
        try:
            item = await self.catalog.find_one({"imdb_id": content_id})
            if item is None:
                try:
                    object_id = ObjectId(content_id)
                except (InvalidId, TypeError):
                    object_id = None
                if object_id is not None:
                    item = await self.catalog.find_one({"_id": object_id})
        except PyMongoError as exc:
            logger.error(f"Error fetching content {content_id}: {exc}", exc_info=exc)
            raise CatalogError(f"Failed to fetch content {content_id}", exc) from exc

        if item is None:
            raise ContentNotFoundError(content_id)
        return _jsonable(item)

    async def search(
        self, query: Optional[str], content_filter: ContentFilter, page: PageRequest
    ) -> PageResult:
        """Search titles, cast and directors, best rated first.

        Raises:
            InvalidSearchQueryError: The query is shorter than two characters.
        """
        if not query or len(query) < MIN_SEARCH_LENGTH:
            raise InvalidSearchQueryError(
                f"Search query must be at least {MIN_SEARCH_LENGTH} characters"
            )
        sort = SortSpec(field=PRIMARY_RATING_FIELD, ascending=False)
        return await self._find_page(
            search_query(query, content_filter), sort, page, SEARCH_PROJECTION
        )

    async def distinct_values(self, facet: Facet) -> List[str]:
        """Sorted, de-duplicated, non-blank values of a facet across the catalog."""
        cache_key = ("distinct", facet.value)
        if self._facet_cache is not None and cache_key in self._facet_cache:
            return self._facet_cache[cache_key]

        try:
            values = await self.catalog.distinct(facet.value)
        except PyMongoError as exc:
            logger.error(f"Error fetching {facet.name.lower()}: {exc}", exc_info=exc)
            raise CatalogError(f"Failed to fetch {facet.name.lower()}", exc) from exc

        cleaned = _clean_facet_values(values)
        if self._facet_cache is not None:
            self._facet_cache[cache_key] = cleaned
        return cleaned

    async def year_range(self) -> tuple[int, int]:
        """Lowest and highest release year in the catalog.

        An empty catalog yields 1900 through the current year.
        """
        cache_key = ("years",)
        if self._facet_cache is not None and cache_key in self._facet_cache:
            return self._facet_cache[cache_key]

        pipeline = [
            {"$match": {"year": {"$exists": True, "$ne": None}}},
            {"$group": {"_id": None, "min": {"$min": "$year"}, "max": {"$max": "$year"}}},
        ]
        try:
            cursor = await self.catalog.aggregate(pipeline)
            result = await cursor.to_list()
        except PyMongoError as exc:
            logger.error(f"Error fetching year range: {exc}", exc_info=exc)
            raise CatalogError("Failed to fetch year range", exc) from exc

        if result:
            years = (result[0]["min"], result[0]["max"])
        else:
            years = (FALLBACK_MIN_YEAR, date.today().year)

        if self._facet_cache is not None:
            self._facet_cache[cache_key] = years
        return years

    async def recent(self, limit: Any = None) -> List[dict]:
        """Most recently ingested items, newest first (at most 50)."""
        size = clamp_limit(limit, default=DEFAULT_PAGE_SIZE, max_limit=MAX_RECENT_SIZE)
        cursor = self.recent_items.find({}).sort("inserted_at", DESCENDING).limit(size)
        try:
            items = await cursor.to_list()
        except PyMongoError as exc:
            logger.error(f"Error fetching recent items: {exc}", exc_info=exc)
            raise CatalogError("Failed to fetch recent items", exc) from exc
        return [_jsonable(item) for item in items]

    async def stats(self) -> dict:
        """Movie, show, genre and language counts.

        The four reads are independent and not taken from a single snapshot.
        """
        try:
            movies, shows, genres, languages = await asyncio.gather(
                self.catalog.count_documents({"content_type": ContentType.MOVIE.value}),
                self.catalog.count_documents(
                    {"content_type": {"$in": list(SHOW_CONTENT_TYPES)}}
                ),
                self.catalog.distinct(Facet.GENRES.value),
                self.catalog.distinct(Facet.LANGUAGES.value),
            )
        except PyMongoError as exc:
            logger.error(f"Error fetching stats: {exc}", exc_info=exc)
            raise CatalogError("Failed to fetch stats", exc) from exc

        return {
            "total": movies + shows,
            "movies": movies,
            "shows": shows,
            "genres": len([g for g in genres if g]),
            "languages": len([lang for lang in languages if lang]),
        }
