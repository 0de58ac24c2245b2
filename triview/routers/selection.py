from fastapi import APIRouter, Depends

from triview.application.selection_coordinator import SelectionCoordinator
from triview.dependencies import get_selection
from triview.schemas.api_schemas import SelectionRequest, SelectionResponse

router = APIRouter()

def _snapshot(selection: SelectionCoordinator) -> SelectionResponse:
    return SelectionResponse(
        selected=selection.ordered(),
        count=selection.count(),
        last_selected=selection.last_selected(),
        version=selection.version,
    )

@router.get("/selection", response_model=SelectionResponse)
async def get_selection_state(selection: SelectionCoordinator = Depends(get_selection)):
    """
    Current selection shared by all views.
    """
    return _snapshot(selection)

@router.post("/selection", response_model=SelectionResponse)
async def select(request: SelectionRequest, selection: SelectionCoordinator = Depends(get_selection)):
    """
    Select an entity; ids not present in the store are ignored.
    """
    selection.select(request.id, request.mode)
    return _snapshot(selection)

@router.delete("/selection", response_model=SelectionResponse)
async def clear_selection(selection: SelectionCoordinator = Depends(get_selection)):
    """
    Clear the selection.
    """
    selection.clear()
    return _snapshot(selection)
