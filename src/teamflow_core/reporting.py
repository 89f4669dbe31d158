"""Reporting lines and project membership writes."""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from . import crud, models, schemas
from .authorization import require_membership, require_project_leadership
from .exceptions import InvalidRelationError, ProjectNotFoundError
from .subordinates import all_subordinates, find_reporting_cycle

logger = logging.getLogger("teamflow-core.reporting")


def set_reporting_relation(
    db: Session,
    actor_id: UUID,
    project_id: UUID,
    subordinate_ids: list[UUID],
    manager_id: Optional[UUID],
) -> schemas.ReportingRelationResult:
    """
    Make several project members report to one manager.

    Every id is validated before anything is written; a single bad
    reference rejects the whole request.

    Args:
        db: Database session
        actor_id: Acting user UUID
        project_id: Project UUID
        subordinate_ids: Members whose manager changes
        manager_id: New manager, or None to clear the reporting line

    Returns:
        Number of memberships updated

    Raises:
        ProjectNotFoundError: If the project does not exist
        AccessDeniedError: If the actor is not in the project's workspace
        InsufficientPermissionError: If the actor cannot administer the project
        InvalidRelationError: If any reference is invalid or the change would close a cycle
    """
    require_project_leadership(db, project_id, actor_id)

    # Preserve request order, drop repeats
    subordinate_ids = list(dict.fromkeys(subordinate_ids))
    if not subordinate_ids:
        raise InvalidRelationError("At least one subordinate is required")

    member_ids = {m.user_id for m in crud.list_project_memberships(db, project_id)}

    missing = [user_id for user_id in subordinate_ids if user_id not in member_ids]
    if missing:
        raise InvalidRelationError("Some users are not members of this project", missing)

    if manager_id is not None:
        if manager_id not in member_ids:
            raise InvalidRelationError("Manager is not a member of this project", [manager_id])
        if manager_id in subordinate_ids:
            raise InvalidRelationError("A member cannot report to themselves", [manager_id])

        cycle = find_reporting_cycle(db, project_id, subordinate_ids, manager_id)
        if cycle:
            raise InvalidRelationError("This change would create a circular reporting line", cycle)

    updated = crud.set_manager(db, project_id, subordinate_ids, manager_id)
    logger.info(
        f"User {actor_id} set manager {manager_id} for {updated} member(s) of project {project_id}"
    )
    return schemas.ReportingRelationResult(updated=updated)


def get_all_subordinates(
    db: Session,
    actor_id: UUID,
    project_id: UUID,
    manager_id: UUID,
) -> list[UUID]:
    """
    Get the full subordinate closure of a manager, breadth-first.

    Raises:
        ProjectNotFoundError: If the project does not exist
        AccessDeniedError: If the actor is not in the project's workspace
    """
    project = crud.get_project(db, project_id)
    if project is None:
        raise ProjectNotFoundError(project_id)
    require_membership(db, project.workspace_id, actor_id)

    return all_subordinates(db, project_id, manager_id)


def set_project_member(
    db: Session,
    actor_id: UUID,
    project_id: UUID,
    user_id: UUID,
    is_leader: bool = False,
    manager_id: Optional[UUID] = None,
) -> models.ProjectMember:
    """
    Add a workspace member to a project, or update their project membership.

    Raises:
        ProjectNotFoundError: If the project does not exist
        AccessDeniedError: If the actor is not in the project's workspace
        InsufficientPermissionError: If the actor cannot administer the project
        InvalidRelationError: If the user is not a workspace member, or the
            manager is not a valid project member for them
    """
    project, _ = require_project_leadership(db, project_id, actor_id)

    if crud.get_membership(db, project.workspace_id, user_id) is None:
        raise InvalidRelationError("User is not a member of this workspace", [user_id])

    if manager_id is not None:
        if manager_id == user_id:
            raise InvalidRelationError("A member cannot report to themselves", [user_id])
        if crud.get_project_membership(db, project_id, manager_id) is None:
            raise InvalidRelationError("Manager is not a member of this project", [manager_id])
        if manager_id in all_subordinates(db, project_id, user_id):
            raise InvalidRelationError(
                "This change would create a circular reporting line",
                [user_id, manager_id, user_id],
            )

    membership = crud.upsert_project_membership(db, project, user_id, is_leader, manager_id)
    logger.info(
        f"User {actor_id} set project membership of {user_id} in project {project_id} "
        f"(leader={is_leader}, manager={manager_id})"
    )
    return membership
