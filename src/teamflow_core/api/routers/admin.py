"""Membership and reporting-line administration endpoints."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from teamflow_core import membership, reporting, schemas
from teamflow_core.database import get_db
from teamflow_core.exceptions import TeamflowError

from ..dependencies import get_current_user_id, to_http_exception

logger = logging.getLogger("teamflow-core.api.admin")

router = APIRouter(tags=["admin"])


@router.patch(
    "/workspaces/{workspace_id}/members/{member_id}/role",
    response_model=schemas.WorkspaceMemberResponse,
)
def change_member_role(
    workspace_id: UUID,
    member_id: UUID,
    update: schemas.MemberRoleUpdate,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Change a member's role.

    - Owners and directors only; nobody can change their own role
    - The owner's role is never changed and owner cannot be granted
    - Directors cannot touch other directors or grant roles above director
    """
    try:
        return membership.change_member_role(db, user_id, workspace_id, member_id, update.role)
    except TeamflowError as e:
        raise to_http_exception(e)


@router.delete("/workspaces/{workspace_id}/members/{member_id}", status_code=204)
def remove_member(
    workspace_id: UUID,
    member_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Remove a member from a workspace."""
    try:
        membership.remove_member(db, user_id, workspace_id, member_id)
    except TeamflowError as e:
        raise to_http_exception(e)
    return None


@router.put("/projects/{project_id}/members", response_model=schemas.ProjectMemberResponse)
def set_project_member(
    project_id: UUID,
    member: schemas.ProjectMemberUpsert,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Add a workspace member to a project or update their leader flag and manager."""
    try:
        return reporting.set_project_member(
            db,
            user_id,
            project_id,
            member.user_id,
            is_leader=member.is_leader,
            manager_id=member.manager_id,
        )
    except TeamflowError as e:
        raise to_http_exception(e)


@router.post("/projects/{project_id}/reporting", response_model=schemas.ReportingRelationResult)
def set_reporting_relation(
    project_id: UUID,
    relation: schemas.ReportingRelationRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Make several project members report to one manager.

    Send ``manager_id: null`` to clear their reporting line. The request is
    rejected as a whole if any id is not a project member.
    """
    try:
        return reporting.set_reporting_relation(
            db, user_id, project_id, relation.subordinate_ids, relation.manager_id
        )
    except TeamflowError as e:
        raise to_http_exception(e)


@router.get(
    "/projects/{project_id}/subordinates/{manager_id}",
    response_model=schemas.SubordinatesResponse,
)
def get_all_subordinates(
    project_id: UUID,
    manager_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Get everyone reporting to a manager, directly or indirectly."""
    try:
        subordinate_ids = reporting.get_all_subordinates(db, user_id, project_id, manager_id)
    except TeamflowError as e:
        raise to_http_exception(e)
    return schemas.SubordinatesResponse(
        project_id=project_id,
        manager_id=manager_id,
        subordinate_ids=subordinate_ids,
    )
