"""Authorization gates applied at the top of every engine operation.

Two tenant-level primitives (role set and minimum rank) and one project-level
gate. Missing membership is always checked first and reported as
AccessDeniedError, before any role comparison happens.
"""
import logging
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from . import crud, models
from .exceptions import AccessDeniedError, InsufficientPermissionError, ProjectNotFoundError
from .roles import RoleLike, WorkspaceRole, is_at_least, is_one_of, resolve_alias

logger = logging.getLogger("teamflow-core.authorization")

# Tenant roles that may administer any project in the workspace
PROJECT_ADMIN_ROLES = (WorkspaceRole.OWNER, WorkspaceRole.DIRECTOR, WorkspaceRole.MANAGER)


def _role_label(role: RoleLike) -> str:
    resolved = resolve_alias(role)
    return resolved.value if isinstance(resolved, WorkspaceRole) else str(resolved)


def require_membership(db: Session, workspace_id: UUID, user_id: UUID) -> models.WorkspaceMember:
    """
    Load a user's membership or fail.

    Raises:
        AccessDeniedError: If the user is not a member of the workspace
    """
    membership = crud.get_membership(db, workspace_id, user_id)
    if membership is None:
        logger.info(f"Access denied: user {user_id} is not a member of workspace {workspace_id}")
        raise AccessDeniedError(workspace_id, user_id)
    return membership


def require_role(
    db: Session,
    workspace_id: UUID,
    user_id: UUID,
    allowed_roles: Iterable[RoleLike],
) -> models.WorkspaceMember:
    """
    Require the user's role to be one of allowed_roles.

    Args:
        db: Database session
        workspace_id: Workspace UUID
        user_id: Acting user UUID
        allowed_roles: Roles that pass the gate

    Returns:
        The user's membership (callers need the role for follow-up rules)

    Raises:
        AccessDeniedError: If the user has no membership
        InsufficientPermissionError: If the role is not allowed
    """
    allowed = list(allowed_roles)
    membership = require_membership(db, workspace_id, user_id)
    if not is_one_of(membership.role, allowed):
        required = [_role_label(role) for role in allowed]
        logger.info(
            f"Insufficient permission: user {user_id} has role {membership.role} "
            f"in workspace {workspace_id}, requires one of {required}"
        )
        raise InsufficientPermissionError(
            f"This action requires one of the roles: {', '.join(required)}",
            actual_role=_role_label(membership.role),
            required=required,
        )
    return membership


def require_min_rank(
    db: Session,
    workspace_id: UUID,
    user_id: UUID,
    min_role: RoleLike,
) -> models.WorkspaceMember:
    """
    Require the user's role to be at least as privileged as min_role.

    Raises:
        AccessDeniedError: If the user has no membership
        InsufficientPermissionError: If the role ranks below min_role
    """
    membership = require_membership(db, workspace_id, user_id)
    if not is_at_least(membership.role, min_role):
        required = _role_label(min_role)
        logger.info(
            f"Insufficient permission: user {user_id} has role {membership.role} "
            f"in workspace {workspace_id}, requires at least {required}"
        )
        raise InsufficientPermissionError(
            f"This action requires at least the {required} role",
            actual_role=_role_label(membership.role),
            required=[required],
        )
    return membership


def is_project_leader(
    project: models.Project,
    user_id: UUID,
    project_membership: Optional[models.ProjectMember] = None,
) -> bool:
    """True if the user is the project's leader, by either leadership marker."""
    if project.leader_id == user_id:
        return True
    return bool(project_membership is not None and project_membership.is_leader)


def require_project_leadership(
    db: Session,
    project_id: UUID,
    user_id: UUID,
) -> tuple[models.Project, models.WorkspaceMember]:
    """
    Require the user to administer a project.

    Any one of these is enough: a tenant role in PROJECT_ADMIN_ROLES, being
    the project's denormalized leader, or holding ProjectMember.is_leader.

    Args:
        db: Database session
        project_id: Project UUID
        user_id: Acting user UUID

    Returns:
        Tuple of (project, acting user's workspace membership)

    Raises:
        ProjectNotFoundError: If the project does not exist
        AccessDeniedError: If the user is not a member of the project's workspace
        InsufficientPermissionError: If none of the alternatives hold
    """
    project = crud.get_project(db, project_id)
    if project is None:
        raise ProjectNotFoundError(project_id)

    membership = require_membership(db, project.workspace_id, user_id)
    if is_one_of(membership.role, PROJECT_ADMIN_ROLES):
        return project, membership

    project_membership = crud.get_project_membership(db, project_id, user_id)
    if is_project_leader(project, user_id, project_membership):
        return project, membership

    logger.info(f"Insufficient permission: user {user_id} cannot administer project {project_id}")
    raise InsufficientPermissionError(
        "Only workspace administrators or the project leader can manage this project",
        actual_role=_role_label(membership.role),
        required=[_role_label(role) for role in PROJECT_ADMIN_ROLES] + ["project_leader"],
    )
