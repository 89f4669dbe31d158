"""Traversal of the reports-to graph inside one project.

Edges run from a subordinate to its manager (ProjectMember.manager_id).
Writes elsewhere may leave cycles in stored data, so every traversal here
terminates on cyclic input:

- all_subordinates keeps a global seen-set and silently skips revisits
- build_subtree keeps a path-scoped visited set and raises
  CircularReportingError when a node reappears on its own path
"""
import logging
from collections import deque
from typing import Callable, Optional, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from . import crud
from .exceptions import CircularReportingError

logger = logging.getLogger("teamflow-core.subordinates")

NodeT = TypeVar("NodeT")


def direct_subordinates(db: Session, project_id: UUID, manager_id: UUID) -> set[UUID]:
    """Get the users who report directly to manager_id in a project."""
    return set(crud.list_direct_reports(db, project_id, manager_id))


def all_subordinates(db: Session, project_id: UUID, manager_id: UUID) -> list[UUID]:
    """
    Get every direct and indirect report of a manager.

    Breadth-first, so the result is in level order. Each user appears at
    most once and the manager never appears in their own closure, even when
    stored edges loop back to them.

    Args:
        db: Database session
        project_id: Project UUID
        manager_id: Manager's user UUID

    Returns:
        Subordinate user UUIDs in BFS order
    """
    result: list[UUID] = []
    seen = {manager_id}
    queue = deque([manager_id])

    while queue:
        current = queue.popleft()
        for user_id in crud.list_direct_reports(db, project_id, current):
            if user_id in seen:
                logger.warning(
                    f"Reports-to cycle in project {project_id}: {user_id} reached again via {current}"
                )
                continue
            seen.add(user_id)
            result.append(user_id)
            queue.append(user_id)

    return result


def find_reporting_cycle(
    db: Session,
    project_id: UUID,
    subordinate_ids: list[UUID],
    manager_id: Optional[UUID],
) -> Optional[list[UUID]]:
    """
    Check whether pointing subordinates at manager_id would close a cycle.

    A cycle appears when the manager already reports, directly or not, to one
    of the subordinates.

    Returns:
        The offending path (subordinate, ..., manager, subordinate) or None
    """
    if manager_id is None:
        return None

    for sub_id in subordinate_ids:
        if manager_id == sub_id:
            return [sub_id, sub_id]
        if manager_id in all_subordinates(db, project_id, sub_id):
            return [sub_id, manager_id, sub_id]
    return None


def build_subtree(
    db: Session,
    project_id: UUID,
    user_id: UUID,
    make_node: Callable[[UUID], NodeT],
    visited_path: frozenset = frozenset(),
    path: tuple = (),
) -> NodeT:
    """
    Build the reporting subtree rooted at user_id.

    The visited set is scoped to the current root-to-node path and passed by
    value, so siblings never see each other's visits; only ancestors count.

    Args:
        db: Database session
        project_id: Project UUID
        user_id: Root of this subtree
        make_node: Builds a childless node for a user; must expose a
            ``children`` list
        visited_path: Users already on the path from the tree root
        path: Same users, in order, for error reporting

    Returns:
        Node with its children filled in recursively

    Raises:
        CircularReportingError: If user_id is already on the path
    """
    if user_id in visited_path:
        cycle = list(path) + [user_id]
        logger.error(f"Circular reporting in project {project_id}: {' -> '.join(map(str, cycle))}")
        raise CircularReportingError(cycle)

    node = make_node(user_id)
    child_path = visited_path | {user_id}
    child_trail = path + (user_id,)
    for child_id in crud.list_direct_reports(db, project_id, user_id):
        node.children.append(
            build_subtree(db, project_id, child_id, make_node, child_path, child_trail)
        )
    return node
