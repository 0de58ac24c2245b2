from fastapi import APIRouter, Depends
from typing import Any, Dict

from triview.application.projection_engine import ProjectionEngine
from triview.dependencies import get_projection_engine
from triview.domain.strategies import OrderingStrategyFactory
from triview.schemas.api_schemas import OrderingRequest

router = APIRouter()

@router.get("/views/tree")
async def get_tree_view(engine: ProjectionEngine = Depends(get_projection_engine)) -> Dict[str, Any]:
    """
    Definitions with their usages; usages without a loaded definition sit under the unassigned root.
    """
    return engine.get_tree_view().to_dict()

@router.put("/views/tree/ordering")
async def set_tree_ordering(
    request: OrderingRequest,
    engine: ProjectionEngine = Depends(get_projection_engine),
) -> Dict[str, Any]:
    """
    Change how tree roots and children are ordered and return the reordered tree.
    """
    engine.set_ordering(OrderingStrategyFactory.get_strategy(request.name, request.direction))
    return engine.get_tree_view().to_dict()

@router.get("/views/table")
async def get_table_view(engine: ProjectionEngine = Depends(get_projection_engine)) -> Dict[str, Any]:
    """
    One row per entity with a fixed column set.
    """
    return engine.get_table_view().to_dict()

@router.get("/views/graph")
async def get_graph_view(engine: ProjectionEngine = Depends(get_projection_engine)) -> Dict[str, Any]:
    """
    One node per entity and one edge per relation; dangling edges are flagged unresolved.
    """
    return engine.get_graph_view().to_dict()
