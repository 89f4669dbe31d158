"""CRUD operations for workspaces, memberships, projects and tasks.

These functions are the storage collaborator of the authorization and
hierarchy engine. They perform no authorization of their own.
"""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import and_, case
from sqlalchemy.orm import Session, joinedload

from . import models
from .roles import ROLE_ALIASES, ROLE_RANKS, UNKNOWN_RANK, WorkspaceRole, canonical_role_value

logger = logging.getLogger("teamflow-core.crud")

# Task list ordering: critical first
PRIORITY_SORT_ORDER = {
    models.TaskPriority.CRITICAL.value: 0,
    models.TaskPriority.HIGH.value: 1,
    models.TaskPriority.MEDIUM.value: 2,
    models.TaskPriority.LOW.value: 3,
}


def _role_sort_expression():
    """Build SQLAlchemy CASE expression for role-based sorting.

    Alias spellings sort with their canonical role; unknown roles sort last.
    """
    whens = [(models.WorkspaceMember.role == role.value, order) for role, order in ROLE_RANKS.items()]
    whens += [(models.WorkspaceMember.role == alias, ROLE_RANKS[role]) for alias, role in ROLE_ALIASES.items()]
    return case(*whens, else_=UNKNOWN_RANK)


def _priority_sort_expression():
    """Build SQLAlchemy CASE expression for priority-based sorting."""
    return case(
        *[(models.Task.priority == priority, order)
          for priority, order in PRIORITY_SORT_ORDER.items()],
        else_=99
    )


# ============================================================================
# Workspace and membership operations
# ============================================================================

def get_workspace(db: Session, workspace_id: UUID) -> Optional[models.Workspace]:
    """
    Get a workspace by ID.

    Args:
        db: Database session
        workspace_id: Workspace UUID

    Returns:
        Workspace instance or None if not found
    """
    return db.query(models.Workspace).filter(models.Workspace.id == workspace_id).first()


def get_user(db: Session, user_id: UUID) -> Optional[models.User]:
    """Get a user by ID."""
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_users(db: Session, user_ids: list[UUID]) -> dict[UUID, models.User]:
    """Get users by ID, keyed by ID. Missing IDs are absent from the result."""
    if not user_ids:
        return {}
    users = db.query(models.User).filter(models.User.id.in_(user_ids)).all()
    return {user.id: user for user in users}


def create_workspace(
    db: Session,
    creator_id: UUID,
    name: str,
    description: Optional[str] = None,
) -> models.Workspace:
    """
    Create a workspace and make its creator the owner.

    The workspace and the owner membership are written in one commit, so a
    workspace never exists without its owner.

    Args:
        db: Database session
        creator_id: User UUID of the creator
        name: Workspace name
        description: Optional description

    Returns:
        Created workspace instance
    """
    db_workspace = models.Workspace(name=name, description=description)
    db.add(db_workspace)
    db.flush()

    db.add(models.WorkspaceMember(
        workspace_id=db_workspace.id,
        user_id=creator_id,
        role=WorkspaceRole.OWNER.value,
        permissions=[],
    ))
    db.commit()
    db.refresh(db_workspace)
    logger.debug(f"Created workspace {db_workspace.id} owned by {creator_id}")
    return db_workspace


def get_membership(
    db: Session,
    workspace_id: UUID,
    user_id: UUID,
) -> Optional[models.WorkspaceMember]:
    """
    Get a user's membership in a workspace.

    Args:
        db: Database session
        workspace_id: Workspace UUID
        user_id: User UUID

    Returns:
        Membership instance or None if the user is not a member
    """
    return (
        db.query(models.WorkspaceMember)
        .filter(
            and_(
                models.WorkspaceMember.workspace_id == workspace_id,
                models.WorkspaceMember.user_id == user_id,
            )
        )
        .first()
    )


def list_memberships(db: Session, workspace_id: UUID) -> list[models.WorkspaceMember]:
    """
    Get all members of a workspace.

    Ordered by role (most privileged first), then by join date.

    Args:
        db: Database session
        workspace_id: Workspace UUID

    Returns:
        List of workspace members with their users loaded
    """
    return (
        db.query(models.WorkspaceMember)
        .options(joinedload(models.WorkspaceMember.user))
        .filter(models.WorkspaceMember.workspace_id == workspace_id)
        .order_by(_role_sort_expression(), models.WorkspaceMember.joined_at)
        .all()
    )


def add_membership(
    db: Session,
    workspace_id: UUID,
    user_id: UUID,
    role: str,
) -> models.WorkspaceMember:
    """
    Add a user to a workspace.

    Args:
        db: Database session
        workspace_id: Workspace UUID
        user_id: User UUID
        role: Role to store (written in canonical spelling)

    Returns:
        Created membership instance
    """
    db_member = models.WorkspaceMember(
        workspace_id=workspace_id,
        user_id=user_id,
        role=canonical_role_value(role),
        permissions=[],
    )
    db.add(db_member)
    db.commit()
    db.refresh(db_member)
    logger.debug(f"Added user {user_id} to workspace {workspace_id} as {db_member.role}")
    return db_member


def update_member_role(
    db: Session,
    membership: models.WorkspaceMember,
    role: str,
) -> models.WorkspaceMember:
    """Store a new role on a membership, in canonical spelling."""
    membership.role = canonical_role_value(role)
    db.commit()
    db.refresh(membership)
    return membership


def update_member_permissions(
    db: Session,
    membership: models.WorkspaceMember,
    permissions: list[str],
) -> models.WorkspaceMember:
    """Replace the capability overrides stored on a membership."""
    membership.permissions = list(permissions)
    db.commit()
    db.refresh(membership)
    return membership


def delete_membership(db: Session, membership: models.WorkspaceMember) -> None:
    """
    Remove a membership and the user's project memberships in that workspace.

    Reports-to edges pointing at the removed user are cleared as well so no
    dangling manager reference survives, and any project they lead loses its
    leader.
    """
    project_ids = [
        row.id for row in
        db.query(models.Project.id).filter(models.Project.workspace_id == membership.workspace_id).all()
    ]
    if project_ids:
        (
            db.query(models.ProjectMember)
            .filter(
                models.ProjectMember.project_id.in_(project_ids),
                models.ProjectMember.manager_id == membership.user_id,
            )
            .update({models.ProjectMember.manager_id: None}, synchronize_session=False)
        )
        (
            db.query(models.ProjectMember)
            .filter(
                models.ProjectMember.project_id.in_(project_ids),
                models.ProjectMember.user_id == membership.user_id,
            )
            .delete(synchronize_session=False)
        )
        (
            db.query(models.Project)
            .filter(
                models.Project.workspace_id == membership.workspace_id,
                models.Project.leader_id == membership.user_id,
            )
            .update({models.Project.leader_id: None}, synchronize_session=False)
        )
    db.delete(membership)
    db.commit()
    logger.debug(f"Removed user {membership.user_id} from workspace {membership.workspace_id}")


# ============================================================================
# Project operations
# ============================================================================

def get_project(db: Session, project_id: UUID) -> Optional[models.Project]:
    """Get a project by ID."""
    return db.query(models.Project).filter(models.Project.id == project_id).first()


def get_project_with_leader_and_members(db: Session, project_id: UUID) -> Optional[models.Project]:
    """
    Get a project with its workspace, leader and member users eagerly loaded.

    Args:
        db: Database session
        project_id: Project UUID

    Returns:
        Project instance or None if not found
    """
    return (
        db.query(models.Project)
        .options(
            joinedload(models.Project.workspace),
            joinedload(models.Project.leader),
            joinedload(models.Project.members).joinedload(models.ProjectMember.user),
        )
        .filter(models.Project.id == project_id)
        .first()
    )


def list_projects(db: Session, workspace_id: UUID) -> list[models.Project]:
    """
    Get all projects in a workspace, newest first.

    Leader and member users are eagerly loaded for roster building.
    """
    return (
        db.query(models.Project)
        .options(
            joinedload(models.Project.leader),
            joinedload(models.Project.members).joinedload(models.ProjectMember.user),
        )
        .filter(models.Project.workspace_id == workspace_id)
        .order_by(models.Project.created_at.desc())
        .all()
    )


def get_project_membership(
    db: Session,
    project_id: UUID,
    user_id: UUID,
) -> Optional[models.ProjectMember]:
    """Get a user's membership in a project."""
    return (
        db.query(models.ProjectMember)
        .filter(
            and_(
                models.ProjectMember.project_id == project_id,
                models.ProjectMember.user_id == user_id,
            )
        )
        .first()
    )


def list_project_memberships(db: Session, project_id: UUID) -> list[models.ProjectMember]:
    """
    Get all members of a project.

    Ordered leader first, then by the date they joined the project.

    Args:
        db: Database session
        project_id: Project UUID

    Returns:
        List of project members with their users loaded
    """
    return (
        db.query(models.ProjectMember)
        .options(joinedload(models.ProjectMember.user))
        .filter(models.ProjectMember.project_id == project_id)
        .order_by(models.ProjectMember.is_leader.desc(), models.ProjectMember.created_at)
        .all()
    )


def list_direct_reports(db: Session, project_id: UUID, manager_id: UUID) -> list[UUID]:
    """
    Get the users whose direct manager in a project is manager_id.

    Args:
        db: Database session
        project_id: Project UUID
        manager_id: Manager's user UUID

    Returns:
        User UUIDs in the order they joined the project
    """
    rows = (
        db.query(models.ProjectMember.user_id)
        .filter(
            and_(
                models.ProjectMember.project_id == project_id,
                models.ProjectMember.manager_id == manager_id,
            )
        )
        .order_by(models.ProjectMember.created_at)
        .all()
    )
    return [row.user_id for row in rows]


def upsert_project_membership(
    db: Session,
    project: models.Project,
    user_id: UUID,
    is_leader: bool = False,
    manager_id: Optional[UUID] = None,
) -> models.ProjectMember:
    """
    Create or update a project membership.

    Keeps Project.leader_id consistent with the is_leader flags: marking a
    member as leader moves the project leader to them and clears the flag on
    everyone else; unflagging the current leader clears Project.leader_id.

    Args:
        db: Database session
        project: Project instance
        user_id: User UUID
        is_leader: Whether the user leads the project
        manager_id: Direct manager's user UUID, if any

    Returns:
        Created or updated project membership
    """
    db_member = get_project_membership(db, project.id, user_id)
    if not db_member:
        db_member = models.ProjectMember(project_id=project.id, user_id=user_id)
        db.add(db_member)

    if is_leader:
        (
            db.query(models.ProjectMember)
            .filter(
                models.ProjectMember.project_id == project.id,
                models.ProjectMember.user_id != user_id,
                models.ProjectMember.is_leader.is_(True),
            )
            .update({models.ProjectMember.is_leader: False}, synchronize_session=False)
        )
        project.leader_id = user_id
    elif project.leader_id == user_id:
        project.leader_id = None

    db_member.is_leader = is_leader
    db_member.manager_id = manager_id
    db.commit()
    db.refresh(db_member)
    logger.debug(f"Upserted project member {user_id} in project {project.id} (leader={is_leader})")
    return db_member


def set_manager(
    db: Session,
    project_id: UUID,
    user_ids: list[UUID],
    manager_id: Optional[UUID],
) -> int:
    """
    Point the reports-to edge of several project members at one manager.

    Args:
        db: Database session
        project_id: Project UUID
        user_ids: Subordinate user UUIDs
        manager_id: New manager's user UUID, or None to clear

    Returns:
        Number of memberships updated
    """
    if not user_ids:
        return 0

    count = (
        db.query(models.ProjectMember)
        .filter(
            models.ProjectMember.project_id == project_id,
            models.ProjectMember.user_id.in_(user_ids),
        )
        .update({models.ProjectMember.manager_id: manager_id}, synchronize_session=False)
    )
    db.commit()
    logger.debug(f"Set manager {manager_id} for {count} member(s) of project {project_id}")
    return count


# ============================================================================
# Task operations
# ============================================================================

def list_tasks(
    db: Session,
    project_id: UUID,
    assignee_id: Optional[UUID] = None,
    top_level_only: bool = True,
    status: Optional[str] = None,
) -> list[models.Task]:
    """
    Get tasks of a project matching a filter.

    Ordered by priority (critical first), then newest first.

    Args:
        db: Database session
        project_id: Project UUID
        assignee_id: Only tasks assigned to this user
        top_level_only: Only tasks without a parent task
        status: Only tasks in this status

    Returns:
        List of tasks
    """
    query = db.query(models.Task).filter(models.Task.project_id == project_id)

    if assignee_id is not None:
        query = query.filter(models.Task.assignee_id == assignee_id)
    if top_level_only:
        query = query.filter(models.Task.parent_id.is_(None))
    if status is not None:
        query = query.filter(models.Task.status == status)

    return query.order_by(_priority_sort_expression(), models.Task.created_at.desc()).all()
