"""
API Request/Response Schemas using Pydantic.

Structure of HTTP requests and responses for the triview API.
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from triview.application.selection_coordinator import SelectionMode
from triview.domain.entities import EntityKind
from triview.domain.query import QueryParams, SortDirection

# Selection schemas
class SelectionRequest(BaseModel):
    id: str = Field(..., min_length=1, description="ID of the entity to select")
    mode: SelectionMode = Field(default=SelectionMode.REPLACE, description="replace, toggle or extend")

class SelectionResponse(BaseModel):
    selected: List[str] = Field(default_factory=list, description="Selected ids, oldest first")
    count: int = Field(0, description="Number of selected entities")
    last_selected: Optional[str] = Field(None, description="Most recently selected id")
    version: int = Field(0, description="Selection version")

# Query schemas
class SearchRequest(QueryParams):
    term: str = Field(..., description="Search term")

# Element schemas
class ElementCreate(BaseModel):
    kind: EntityKind = Field(..., description="Entity kind")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Attribute values")
    relations: Dict[str, Optional[str]] = Field(default_factory=dict, description="Relation role to referenced id")

class ElementUpdate(BaseModel):
    attributes: Dict[str, Any] = Field(..., description="Attributes to change")

class ElementDeleteResponse(BaseModel):
    success: bool = Field(default=True, description="Whether the deletion was successful")
    removed: List[str] = Field(default_factory=list, description="Ids removed from the store")

# Store schemas
class StoreStatus(BaseModel):
    name: str = Field(..., description="Store identity")
    version: int = Field(..., description="Store version")
    entities: int = Field(..., description="Number of entities held")
    selected: int = Field(..., description="Number of selected entities")

# View schemas
class OrderingRequest(BaseModel):
    name: str = Field(default="insertion", description="insertion, name, short_name, status, created, updated or an attribute name")
    direction: SortDirection = Field(default=SortDirection.ASC, description="asc or desc")
