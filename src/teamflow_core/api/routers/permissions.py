"""Capability override endpoints."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from teamflow_core import membership, schemas
from teamflow_core.database import get_db
from teamflow_core.exceptions import TeamflowError

from ..dependencies import get_current_user_id, to_http_exception

logger = logging.getLogger("teamflow-core.api.permissions")

router = APIRouter(tags=["permissions"])


@router.get("/{workspace_id}", response_model=schemas.WorkspacePermissionsResponse)
def list_workspace_permissions(
    workspace_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """List the effective capabilities of every member. Owners and directors only."""
    try:
        return membership.list_workspace_permissions(db, user_id, workspace_id)
    except TeamflowError as e:
        raise to_http_exception(e)


@router.get("/{workspace_id}/me", response_model=schemas.MemberPermissionsResponse)
def get_my_permissions(
    workspace_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Get the caller's own effective capabilities."""
    try:
        return membership.get_my_permissions(db, user_id, workspace_id)
    except TeamflowError as e:
        raise to_http_exception(e)


@router.get("/{workspace_id}/members/{member_id}", response_model=schemas.MemberPermissionsResponse)
def get_member_permissions(
    workspace_id: UUID,
    member_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Get a member's effective capabilities."""
    try:
        return membership.get_member_permissions(db, user_id, workspace_id, member_id)
    except TeamflowError as e:
        raise to_http_exception(e)


@router.put("/{workspace_id}/members/{member_id}", response_model=schemas.MemberPermissionsResponse)
def update_member_permissions(
    workspace_id: UUID,
    member_id: UUID,
    update: schemas.PermissionUpdate,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Replace a member's capability overrides. Owner only.

    Overrides only add to the role's defaults; they cannot take any away.
    """
    try:
        return membership.update_member_permissions(db, user_id, workspace_id, member_id, update.permissions)
    except TeamflowError as e:
        raise to_http_exception(e)
