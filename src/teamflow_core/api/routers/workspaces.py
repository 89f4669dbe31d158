"""Workspace creation and invitation endpoints."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from teamflow_core import membership, schemas
from teamflow_core.database import get_db
from teamflow_core.exceptions import TeamflowError

from ..dependencies import get_current_user_id, to_http_exception

logger = logging.getLogger("teamflow-core.api.workspaces")

router = APIRouter(tags=["workspaces"])


@router.post("/", response_model=schemas.WorkspaceResponse, status_code=201)
def create_workspace(
    workspace: schemas.WorkspaceCreate,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Create a workspace.

    The caller becomes its owner.
    """
    try:
        return membership.create_workspace(db, user_id, workspace.name, workspace.description)
    except TeamflowError as e:
        raise to_http_exception(e)


@router.post("/{workspace_id}/members", response_model=schemas.WorkspaceMemberResponse, status_code=201)
def add_member(
    workspace_id: UUID,
    member: schemas.MemberAdd,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Add a user to a workspace.

    The new member's role must rank below the caller's.
    """
    try:
        return membership.add_member(db, user_id, workspace_id, member.user_id, member.role)
    except TeamflowError as e:
        raise to_http_exception(e)
