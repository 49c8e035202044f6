"""
api/routes/v1/workspaces.py -- Workspace and membership routes.

Routes:
  POST   /workspaces                          -- create (caller becomes owner)
  GET    /workspaces                          -- workspaces the caller belongs to
  GET    /workspaces/{workspace_id}           -- detail (member)
  PUT    /workspaces/{workspace_id}           -- rename (owner)
  DELETE /workspaces/{workspace_id}           -- delete (owner)
  POST   /workspaces/{workspace_id}/members   -- add member by user_id or email (owner)
  DELETE /workspaces/{workspace_id}/members/{member_id}  -- remove member (owner)

Authorization and validation happen in KanbanService; handlers only map
HTTP bodies to service calls and domain objects to response models.
KanbanError subclasses propagate to the handler in api/main.py.
"""

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import READ_LIMIT, WRITE_LIMIT, limiter
from api.models import MemberAdd, WorkspaceCreate, WorkspaceRename, WorkspaceResponse
from auth.dependencies import get_current_user
from auth.models import User
from auth.store import UserStore
from kanban.errors import NotFound
from kanban.service import KanbanService

router = APIRouter(dependencies=[Depends(get_current_user)])


@limiter.limit(WRITE_LIMIT)
@router.post("/workspaces", response_model=WorkspaceResponse, status_code=201)
def create_workspace(
    request: Request,
    body: WorkspaceCreate,
    current_user: User = Depends(get_current_user),
) -> WorkspaceResponse:
    service: KanbanService = request.app.state.service
    return WorkspaceResponse.from_domain(service.create_workspace(body.name, current_user.id))


@limiter.limit(READ_LIMIT)
@router.get("/workspaces", response_model=list[WorkspaceResponse])
def list_workspaces(request: Request, current_user: User = Depends(get_current_user)) -> list[WorkspaceResponse]:
    service: KanbanService = request.app.state.service
    return [WorkspaceResponse.from_domain(ws) for ws in service.list_workspaces_for_user(current_user.id)]


@limiter.limit(READ_LIMIT)
@router.get("/workspaces/{workspace_id}", response_model=WorkspaceResponse)
def get_workspace(
    request: Request,
    workspace_id: str,
    current_user: User = Depends(get_current_user),
) -> WorkspaceResponse:
    service: KanbanService = request.app.state.service
    return WorkspaceResponse.from_domain(service.get_workspace(workspace_id, current_user.id))


@limiter.limit(WRITE_LIMIT)
@router.put("/workspaces/{workspace_id}", response_model=WorkspaceResponse)
def rename_workspace(
    request: Request,
    workspace_id: str,
    body: WorkspaceRename,
    current_user: User = Depends(get_current_user),
) -> WorkspaceResponse:
    service: KanbanService = request.app.state.service
    return WorkspaceResponse.from_domain(service.rename_workspace(workspace_id, body.name, current_user.id))


@limiter.limit(WRITE_LIMIT)
@router.delete("/workspaces/{workspace_id}", status_code=204)
def delete_workspace(
    request: Request,
    workspace_id: str,
    current_user: User = Depends(get_current_user),
) -> Response:
    service: KanbanService = request.app.state.service
    service.delete_workspace(workspace_id, current_user.id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------


@limiter.limit(WRITE_LIMIT)
@router.post("/workspaces/{workspace_id}/members", response_model=WorkspaceResponse)
def add_member(
    request: Request,
    workspace_id: str,
    body: MemberAdd,
    current_user: User = Depends(get_current_user),
) -> WorkspaceResponse:
    """Add a registered user to the workspace. Adding an existing member is a no-op."""
    service: KanbanService = request.app.state.service
    user_store: UserStore = request.app.state.user_store
    if body.email is not None:
        member = user_store.get_by_email(body.email)
        missing = body.email
    else:
        member = user_store.get_by_id(body.user_id)
        missing = body.user_id
    if member is None:
        raise NotFound("No registered user matches this identifier.", code="user_not_found", entity=missing)
    return WorkspaceResponse.from_domain(service.add_member(workspace_id, member.id, current_user.id))


@limiter.limit(WRITE_LIMIT)
@router.delete("/workspaces/{workspace_id}/members/{member_id}", response_model=WorkspaceResponse)
def remove_member(
    request: Request,
    workspace_id: str,
    member_id: str,
    current_user: User = Depends(get_current_user),
) -> WorkspaceResponse:
    service: KanbanService = request.app.state.service
    return WorkspaceResponse.from_domain(service.remove_member(workspace_id, member_id, current_user.id))
