"""Hierarchy view endpoints: member tree, reporting tree, project tree."""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from teamflow_core import schemas, tree
from teamflow_core.database import get_db
from teamflow_core.exceptions import TeamflowError

from ..dependencies import get_current_user_id, to_http_exception

logger = logging.getLogger("teamflow-core.api.tree")

router = APIRouter(tags=["tree"])


@router.get("/projects/{project_id}/members", response_model=schemas.MemberTreeResponse)
def get_member_tree(
    project_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Get the member tree of a project.

    Task data is hidden from observers; managers and members only see
    themselves and the people reporting to them.
    """
    try:
        return tree.get_member_tree(db, user_id, project_id)
    except TeamflowError as e:
        raise to_http_exception(e)


@router.get("/projects/{project_id}/reporting", response_model=schemas.ReportingTreeResponse)
def get_reporting_tree(
    project_id: UUID,
    root_id: Optional[UUID] = Query(None, description="Root user (defaults to the project leader)"),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Get the nested reporting tree of a project."""
    try:
        return tree.get_reporting_tree(db, user_id, project_id, root_id)
    except TeamflowError as e:
        raise to_http_exception(e)


@router.get("/workspaces/{workspace_id}/projects", response_model=schemas.ProjectTreeResponse)
def get_project_tree(
    workspace_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Get every project of a workspace with progress and roster.

    Directors and owners only. Lowest progress first.
    """
    try:
        return tree.get_project_tree(db, user_id, workspace_id)
    except TeamflowError as e:
        raise to_http_exception(e)
