from fastapi import APIRouter, Depends, Query
from typing import Any, Dict, Optional

from triview.application.query_coordinator import QueryCoordinator
from triview.application.store import NormalizedStore
from triview.dependencies import get_query_coordinator, get_store
from triview.domain.entities import EntityKind
from triview.domain.errors import NotFoundError
from triview.domain.query import PageResult, QueryParams
from triview.infrastructure.record_mapper import entity_to_record
from triview.schemas.api_schemas import ElementCreate, ElementDeleteResponse, ElementUpdate, SearchRequest

router = APIRouter()

@router.post("/elements/query", response_model=PageResult)
async def load_page(
    params: Optional[QueryParams] = None,
    coordinator: QueryCoordinator = Depends(get_query_coordinator),
):
    """
    Load one page into the store using paging, sort, filter and search.
    """
    return await coordinator.load_page(params)

@router.post("/elements/by-type/{kind}", response_model=PageResult)
async def load_by_type(
    kind: EntityKind,
    params: Optional[QueryParams] = None,
    coordinator: QueryCoordinator = Depends(get_query_coordinator),
):
    """
    Load one page of a single kind.
    """
    return await coordinator.load_by_type(kind, params)

@router.post("/elements/search", response_model=PageResult)
async def search(
    request: SearchRequest,
    coordinator: QueryCoordinator = Depends(get_query_coordinator),
):
    """
    Load one page matching a search term.
    """
    params = QueryParams.model_validate(request.model_dump(exclude={"term"}))
    return await coordinator.search(request.term, params)

@router.post("/elements/approved", response_model=PageResult)
async def load_approved(
    params: Optional[QueryParams] = None,
    coordinator: QueryCoordinator = Depends(get_query_coordinator),
):
    """
    Load one page of approved elements.
    """
    return await coordinator.load_approved(params)

@router.post("/elements/{element_id}/related", response_model=PageResult)
async def load_related(
    element_id: str,
    params: Optional[QueryParams] = None,
    coordinator: QueryCoordinator = Depends(get_query_coordinator),
):
    """
    Load one page of elements referencing the given element.
    """
    return await coordinator.load_related(element_id, params)

@router.get("/elements/{element_id}")
async def get_element(element_id: str, store: NormalizedStore = Depends(get_store)) -> Dict[str, Any]:
    """
    Get one element as currently held in the store.
    """
    entity = store.get(element_id)
    if entity is None:
        raise NotFoundError(f"Element not loaded: {element_id}")
    return entity_to_record(entity)

@router.post("/elements", status_code=201)
async def create_element(
    element: ElementCreate,
    coordinator: QueryCoordinator = Depends(get_query_coordinator),
) -> Dict[str, Any]:
    """
    Create an element on the server and merge it into the store.
    """
    entity = await coordinator.create_entity(element.kind, element.attributes, element.relations)
    return entity_to_record(entity)

@router.patch("/elements/{element_id}")
async def update_element(
    element_id: str,
    element: ElementUpdate,
    coordinator: QueryCoordinator = Depends(get_query_coordinator),
) -> Dict[str, Any]:
    """
    Update element attributes on the server and merge the new snapshot.
    """
    entity = await coordinator.update_entity(element_id, element.attributes)
    return entity_to_record(entity)

@router.delete("/elements/{element_id}", response_model=ElementDeleteResponse)
async def delete_element(
    element_id: str,
    cascade: bool = Query(False, description="Also delete usages of a deleted definition"),
    coordinator: QueryCoordinator = Depends(get_query_coordinator),
):
    """
    Delete an element; it is removed from the store and the selection in one step.
    """
    removed = await coordinator.delete_entities([element_id], cascade=cascade)
    return ElementDeleteResponse(success=True, removed=list(removed))
