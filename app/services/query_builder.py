"""Translate request parameters into MongoDB filters, sorts and pages.

Everything in this module is pure. Parameters arrive as optional strings
straight from the query string; anything that cannot be understood is
treated as absent rather than raising, so a bad ``year=abc`` simply does
not constrain the result.
"""

import math
import re
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict
from pymongo import ASCENDING, DESCENDING

# Two upstream providers rate titles independently; either may be missing.
PRIMARY_RATING_FIELD = "imdb_rating"
SECONDARY_RATING_FIELD = "tmdb_vote_average"

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
MAX_RECENT_SIZE = 50

# BSON integers are signed 64-bit
MAX_INT64 = 2**63 - 1

_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")
_FLOAT_PREFIX = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


class ContentType(str, Enum):
    """Content type labels found in the catalog."""

    MOVIE = "movie"
    TV = "tv"
    SHOW = "show"
    SERIES = "series"


# Episodic content is labelled inconsistently by the ingestion sources.
SHOW_CONTENT_TYPES = (ContentType.TV.value, ContentType.SHOW.value, ContentType.SERIES.value)


class SortKey(str, Enum):
    """Logical sort keys accepted by the ``sort`` parameter."""

    RELEASE_DATE = "release_date"
    RATING = "rating"
    TITLE = "title"
    YEAR = "year"
    POPULARITY = "popularity"


SORT_FIELDS = {
    SortKey.RELEASE_DATE: "release_date",
    SortKey.RATING: PRIMARY_RATING_FIELD,
    SortKey.TITLE: "title",
    SortKey.YEAR: "year",
    SortKey.POPULARITY: "tmdb_popularity",
}


def parse_int(value: Any) -> Optional[int]:
    """Parse the leading integer of a value, or None if there is none."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        parsed = value
    else:
        match = _INT_PREFIX.match(str(value))
        if not match:
            return None
        parsed = int(match.group(1))
    return parsed if abs(parsed) <= MAX_INT64 else None


def parse_float(value: Any) -> Optional[float]:
    """Parse the leading number of a value, or None if there is none."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = _FLOAT_PREFIX.match(str(value))
    return float(match.group(1)) if match else None


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text if text else None


def _contains(value: str) -> dict:
    """Case-insensitive literal substring match."""
    return {"$regex": re.escape(value), "$options": "i"}


class ContentFilter(BaseModel):
    """Optional predicates for narrowing the catalog.

    A ``None`` field places no constraint. When ``year`` is set, it takes
    precedence over ``year_from``/``year_to``.
    """

    model_config = ConfigDict(frozen=True)

    genre: Optional[str] = None
    language: Optional[str] = None
    year: Optional[int] = None
    year_from: Optional[int] = None
    year_to: Optional[int] = None
    min_rating: Optional[float] = None
    content_type: Optional[str] = None
    country: Optional[str] = None

    def to_query(self) -> dict:
        """Render the predicates as a MongoDB filter document."""
        query: dict = {}

        if self.genre is not None:
            query["genres.name"] = _contains(self.genre)

        if self.language is not None:
            query["languages"] = _contains(self.language)

        if self.year is not None:
            query["year"] = self.year
        elif self.year_from is not None or self.year_to is not None:
            year_range = {}
            if self.year_from is not None:
                year_range["$gte"] = self.year_from
            if self.year_to is not None:
                year_range["$lte"] = self.year_to
            query["year"] = year_range

        if self.min_rating is not None:
            query["$or"] = [
                {PRIMARY_RATING_FIELD: {"$gte": self.min_rating}},
                {SECONDARY_RATING_FIELD: {"$gte": self.min_rating}},
            ]

        if self.content_type is not None:
            query["content_type"] = self.content_type

        if self.country is not None:
            query["countries"] = _contains(self.country)

        return query


def with_genre(f: ContentFilter, genre: Any) -> ContentFilter:
    return f.model_copy(update={"genre": _text(genre)})


def with_language(f: ContentFilter, language: Any) -> ContentFilter:
    return f.model_copy(update={"language": _text(language)})


def with_year(f: ContentFilter, year: Any) -> ContentFilter:
    return f.model_copy(update={"year": parse_int(year)})


def with_year_range(f: ContentFilter, year_from: Any, year_to: Any) -> ContentFilter:
    return f.model_copy(
        update={"year_from": parse_int(year_from), "year_to": parse_int(year_to)}
    )


def with_min_rating(f: ContentFilter, min_rating: Any) -> ContentFilter:
    rating = parse_float(min_rating)
    if rating is not None and math.isnan(rating):
        rating = None
    return f.model_copy(update={"min_rating": rating})


def with_content_type(f: ContentFilter, content_type: Any) -> ContentFilter:
    return f.model_copy(update={"content_type": _text(content_type)})


def with_country(f: ContentFilter, country: Any) -> ContentFilter:
    return f.model_copy(update={"country": _text(country)})


def build_filter(params: Mapping[str, Any]) -> ContentFilter:
    """Build a ContentFilter from raw request parameters.

    Recognised keys: ``genre``, ``language``, ``year``, ``year_from``,
    ``year_to``, ``min_rating``, ``type``, ``country``. Anything else is
    ignored.
    """
    f = ContentFilter()
    f = with_genre(f, params.get("genre"))
    f = with_language(f, params.get("language"))
    f = with_year(f, params.get("year"))
    f = with_year_range(f, params.get("year_from"), params.get("year_to"))
    f = with_min_rating(f, params.get("min_rating"))
    f = with_content_type(f, params.get("type"))
    f = with_country(f, params.get("country"))
    return f


class SortSpec(BaseModel):
    """A single sort field and direction."""

    model_config = ConfigDict(frozen=True)

    field: str
    ascending: bool = False

    def to_mongo(self) -> list[tuple[str, int]]:
        """Sort specification in the form pymongo's ``sort()`` accepts."""
        return [(self.field, ASCENDING if self.ascending else DESCENDING)]


DEFAULT_SORT = SortSpec(field=SORT_FIELDS[SortKey.RELEASE_DATE], ascending=False)


def build_sort(sort: Optional[str] = None, order: Optional[str] = None) -> SortSpec:
    """Map a logical sort key and order onto a SortSpec.

    ``order="asc"`` sorts ascending, anything else descending. An unknown or
    missing key falls back to release date descending, ignoring ``order``.
    """
    if not sort:
        return DEFAULT_SORT
    try:
        key = SortKey(sort)
    except ValueError:
        return DEFAULT_SORT
    return SortSpec(field=SORT_FIELDS[key], ascending=order == "asc")


class PageRequest(BaseModel):
    """Offset-based page request (1-based page numbers)."""

    model_config = ConfigDict(frozen=True)

    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def clamp_limit(
    limit: Any, default: int = DEFAULT_PAGE_SIZE, max_limit: int = MAX_PAGE_SIZE
) -> int:
    """Parse a page size, falling back to ``default`` and clamping to [1, max]."""
    parsed = parse_int(limit)
    if not parsed:
        parsed = default
    return max(1, min(parsed, max_limit))


def build_page(
    page: Any = None, limit: Any = None, max_limit: int = MAX_PAGE_SIZE
) -> PageRequest:
    """Build a PageRequest from raw ``page``/``limit`` parameters."""
    size = clamp_limit(limit, max_limit=max_limit)
    page_number = parse_int(page) or 1
    # keep the skip offset inside the BSON integer range
    page_number = min(max(1, page_number), MAX_INT64 // size)
    return PageRequest(page=page_number, limit=size)
