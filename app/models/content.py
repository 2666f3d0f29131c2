"""Response models for catalog content."""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CatalogItem(BaseModel):
    """A movie or show from the merged catalog.

    Documents are written by the ingestion process and passed through as
    stored, so field types are not enforced here. Only the identifier is
    declared, to expose the database id as ``_id``.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[Any] = Field(None, alias="_id")


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class ContentPage(BaseModel):
    """A page of catalog items."""

    items: List[CatalogItem]
    pagination: Pagination


class SearchPage(ContentPage):
    """A page of search results with the query echoed back."""

    query: str


class YearRange(BaseModel):
    min: Any
    max: Any


class Stats(BaseModel):
    """Catalog-wide counts."""

    total: int
    movies: int
    shows: int
    genres: int
    languages: int
