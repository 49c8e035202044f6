"""
api/routes/v1/boards.py -- Board routes.

Routes:
  POST   /workspaces/{workspace_id}/boards  -- create (member)
  GET    /workspaces/{workspace_id}/boards  -- list, creation order (member)
  GET    /boards/{board_id}                 -- detail (member)
  PUT    /boards/{board_id}                 -- rename (board creator only)
  DELETE /boards/{board_id}                 -- delete (creator or workspace owner)
"""

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import READ_LIMIT, WRITE_LIMIT, limiter
from api.models import BoardCreate, BoardRename, BoardResponse
from auth.dependencies import get_current_user
from auth.models import User
from kanban.service import KanbanService

router = APIRouter(dependencies=[Depends(get_current_user)])


@limiter.limit(WRITE_LIMIT)
@router.post("/workspaces/{workspace_id}/boards", response_model=BoardResponse, status_code=201)
def create_board(
    request: Request,
    workspace_id: str,
    body: BoardCreate,
    current_user: User = Depends(get_current_user),
) -> BoardResponse:
    service: KanbanService = request.app.state.service
    return BoardResponse.from_domain(service.create_board(workspace_id, body.title, current_user.id))


@limiter.limit(READ_LIMIT)
@router.get("/workspaces/{workspace_id}/boards", response_model=list[BoardResponse])
def list_boards(
    request: Request,
    workspace_id: str,
    current_user: User = Depends(get_current_user),
) -> list[BoardResponse]:
    service: KanbanService = request.app.state.service
    return [BoardResponse.from_domain(b) for b in service.list_boards(workspace_id, current_user.id)]


@limiter.limit(READ_LIMIT)
@router.get("/boards/{board_id}", response_model=BoardResponse)
def get_board(request: Request, board_id: str, current_user: User = Depends(get_current_user)) -> BoardResponse:
    service: KanbanService = request.app.state.service
    return BoardResponse.from_domain(service.get_board(board_id, current_user.id))


@limiter.limit(WRITE_LIMIT)
@router.put("/boards/{board_id}", response_model=BoardResponse)
def rename_board(
    request: Request,
    board_id: str,
    body: BoardRename,
    current_user: User = Depends(get_current_user),
) -> BoardResponse:
    service: KanbanService = request.app.state.service
    return BoardResponse.from_domain(service.rename_board(board_id, body.title, current_user.id))


@limiter.limit(WRITE_LIMIT)
@router.delete("/boards/{board_id}", status_code=204)
def delete_board(request: Request, board_id: str, current_user: User = Depends(get_current_user)) -> Response:
    """Delete a board. Its columns and cards are only removed when CASCADE_DELETES is on."""
    service: KanbanService = request.app.state.service
    service.delete_board(board_id, current_user.id)
    return Response(status_code=204)
