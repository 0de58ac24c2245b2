"""Query value types: paging, sort, filter, search and page results."""
from __future__ import annotations

from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from triview.config import settings
from triview.domain.entities import Entity


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class SortSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str = Field(..., min_length=1, description="Field to sort by")
    direction: SortDirection = Field(default=SortDirection.ASC, description="Sort direction")


class FilterSpec(BaseModel):
    """A single conjunctive predicate: ``field`` equals ``value``."""

    model_config = ConfigDict(frozen=True)

    field: str = Field(..., min_length=1, description="Field to filter on")
    value: str = Field(..., description="Required value")


class QueryParams(BaseModel):
    model_config = ConfigDict(frozen=True)

    page: Optional[int] = Field(default=None, ge=0, description="Zero-based page index")
    size: Optional[int] = Field(default=None, ge=1, description="Page size")
    sort: Tuple[SortSpec, ...] = Field(default=(), description="Ordered sort spec")
    filter: Tuple[FilterSpec, ...] = Field(default=(), description="Conjunctive filter predicates")
    search: Optional[str] = Field(default=None, description="Free-text search term")

    def normalized(self) -> QueryParams:
        """Fill paging defaults and drop a blank search term."""
        search = self.search if self.search and self.search.strip() else None
        return self.model_copy(update={
            "page": 0 if self.page is None else self.page,
            "size": settings.DEFAULT_PAGE_SIZE if self.size is None else min(self.size, settings.MAX_PAGE_SIZE),
            "search": search,
        })

    def with_filter(self, field: str, value: str) -> QueryParams:
        """Inject a filter, replacing any caller predicate on the same field."""
        kept = tuple(f for f in self.filter if f.field != field)
        return self.model_copy(update={"filter": kept + (FilterSpec(field=field, value=value),)})

    def with_search(self, term: Optional[str]) -> QueryParams:
        return self.model_copy(update={"search": term})


class QueryResponse(BaseModel):
    """One page as returned by a query service."""

    content: List[Entity] = Field(default_factory=list)
    page: int = 0
    size: int = 0
    total_elements: int = 0
    total_pages: int = 0
    first: bool = True
    last: bool = True


class PageResult(BaseModel):
    """Outcome of a successful page load, after the merge."""

    model_config = ConfigDict(frozen=True)

    ids: Tuple[str, ...] = Field(default=(), description="Entity ids on the page, in server order")
    changed_ids: Tuple[str, ...] = Field(default=(), description="Ids whose content changed in the store")
    version: int = Field(..., description="Store version after the merge")
    page: int
    size: int
    total_elements: int
    total_pages: int
    first: bool
    last: bool
    epoch: int = Field(..., description="Query epoch this result belongs to")


class QueryState(BaseModel):
    """Pagination and query state after the last applied load."""

    page: int = 0
    size: int = Field(default_factory=lambda: settings.DEFAULT_PAGE_SIZE)
    sort: Tuple[SortSpec, ...] = ()
    filter: Tuple[FilterSpec, ...] = ()
    search: Optional[str] = None
    total_elements: Optional[int] = None
    total_pages: Optional[int] = None
