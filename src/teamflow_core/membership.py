"""Workspace membership administration: roles and capability overrides.

Role rules enforced here:

- only owners and directors change roles or remove members
- nobody changes or removes themselves
- the owner is never changed or removed, and owner is never assignable
- a non-owner cannot act on someone ranked at or above themselves and
  cannot grant a role above their own
"""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from . import crud, models, schemas
from .authorization import require_membership, require_role
from .exceptions import (
    DuplicateMemberError,
    InsufficientPermissionError,
    InvalidRoleError,
    MemberNotFoundError,
)
from .permissions import (
    Capability,
    default_capabilities_for,
    effective_capabilities,
    validate_capability_codes,
)
from .roles import WorkspaceRole, canonical_role_value, rank, resolve_alias

logger = logging.getLogger("teamflow-core.membership")

ROLE_ADMIN_ROLES = (WorkspaceRole.OWNER, WorkspaceRole.DIRECTOR)
INVITER_ROLES = (WorkspaceRole.OWNER, WorkspaceRole.DIRECTOR, WorkspaceRole.MANAGER)


def _resolve_assignable_role(role: str) -> WorkspaceRole:
    """Resolve a requested role, rejecting unknown codes and owner."""
    resolved = resolve_alias(role)
    if not isinstance(resolved, WorkspaceRole):
        raise InvalidRoleError(role)
    if resolved == WorkspaceRole.OWNER:
        raise InsufficientPermissionError(
            "The owner role cannot be assigned",
            required=[WorkspaceRole.OWNER.value],
        )
    return resolved


def _get_target(db: Session, workspace_id: UUID, target_id: UUID) -> models.WorkspaceMember:
    target = crud.get_membership(db, workspace_id, target_id)
    if target is None:
        raise MemberNotFoundError(target_id)
    return target


def _check_can_manage(actor: models.WorkspaceMember, target: models.WorkspaceMember) -> None:
    """Raise unless actor may modify target's membership."""
    if actor.user_id == target.user_id:
        raise InsufficientPermissionError("You cannot modify your own membership")
    if resolve_alias(target.role) == WorkspaceRole.OWNER:
        raise InsufficientPermissionError("The workspace owner cannot be modified")
    if resolve_alias(actor.role) != WorkspaceRole.OWNER and rank(target.role) <= rank(actor.role):
        raise InsufficientPermissionError(
            "You cannot modify a member whose role is equal to or above your own",
            actual_role=canonical_role_value(actor.role),
        )


def create_workspace(
    db: Session,
    creator_id: UUID,
    name: str,
    description: Optional[str] = None,
) -> models.Workspace:
    """Create a workspace owned by creator_id."""
    if crud.get_user(db, creator_id) is None:
        raise MemberNotFoundError(creator_id)
    workspace = crud.create_workspace(db, creator_id, name, description)
    logger.info(f"Workspace {workspace.id} created by {creator_id}")
    return workspace


def add_member(
    db: Session,
    actor_id: UUID,
    workspace_id: UUID,
    user_id: UUID,
    role: str = WorkspaceRole.MEMBER.value,
) -> models.WorkspaceMember:
    """
    Add a user to a workspace.

    The invited role must be strictly less privileged than the inviter's.

    Raises:
        AccessDeniedError: If the actor is not a member
        InsufficientPermissionError: If the actor cannot invite, or the role is too high
        MemberNotFoundError: If the user does not exist
        InvalidRoleError: If the role is unknown
        DuplicateMemberError: If the user is already a member
    """
    actor = require_role(db, workspace_id, actor_id, INVITER_ROLES)
    new_role = _resolve_assignable_role(role)

    if rank(new_role) <= rank(actor.role):
        raise InsufficientPermissionError(
            "You can only invite members with a role below your own",
            actual_role=canonical_role_value(actor.role),
        )
    if crud.get_user(db, user_id) is None:
        raise MemberNotFoundError(user_id)
    if crud.get_membership(db, workspace_id, user_id) is not None:
        raise DuplicateMemberError(workspace_id, user_id)

    membership = crud.add_membership(db, workspace_id, user_id, new_role.value)
    logger.info(f"User {actor_id} added {user_id} to workspace {workspace_id} as {new_role.value}")
    return membership


def change_member_role(
    db: Session,
    actor_id: UUID,
    workspace_id: UUID,
    target_id: UUID,
    new_role: str,
) -> models.WorkspaceMember:
    """
    Change a member's role.

    Args:
        db: Database session
        actor_id: Acting user UUID
        workspace_id: Workspace UUID
        target_id: User whose role changes
        new_role: Requested role (canonical or legacy spelling)

    Returns:
        Updated membership with the role stored canonically

    Raises:
        AccessDeniedError: If the actor is not a member
        InsufficientPermissionError: If any role rule is violated
        MemberNotFoundError: If the target is not a member
        InvalidRoleError: If new_role is unknown
    """
    actor = require_role(db, workspace_id, actor_id, ROLE_ADMIN_ROLES)
    target = _get_target(db, workspace_id, target_id)
    _check_can_manage(actor, target)

    resolved = _resolve_assignable_role(new_role)
    if resolve_alias(actor.role) != WorkspaceRole.OWNER and rank(resolved) < rank(actor.role):
        raise InsufficientPermissionError(
            "You cannot grant a role above your own",
            actual_role=canonical_role_value(actor.role),
        )

    previous = target.role
    updated = crud.update_member_role(db, target, resolved.value)
    logger.info(
        f"User {actor_id} changed role of {target_id} in workspace {workspace_id}: "
        f"{previous} -> {resolved.value}"
    )
    return updated


def remove_member(db: Session, actor_id: UUID, workspace_id: UUID, target_id: UUID) -> None:
    """
    Remove a member from a workspace.

    Raises:
        AccessDeniedError: If the actor is not a member
        InsufficientPermissionError: If the role rules forbid the removal
        MemberNotFoundError: If the target is not a member
    """
    actor = require_role(db, workspace_id, actor_id, ROLE_ADMIN_ROLES)
    target = _get_target(db, workspace_id, target_id)
    _check_can_manage(actor, target)

    crud.delete_membership(db, target)
    logger.info(f"User {actor_id} removed {target_id} from workspace {workspace_id}")


# ============================================================================
# Capability overrides
# ============================================================================

def _permissions_view(membership: models.WorkspaceMember) -> schemas.MemberPermissionsResponse:
    resolved = resolve_alias(membership.role)
    is_owner = resolved == WorkspaceRole.OWNER
    effective = effective_capabilities(membership.role, membership.permissions)
    defaults = default_capabilities_for(membership.role)
    return schemas.MemberPermissionsResponse(
        user_id=membership.user_id,
        role=canonical_role_value(membership.role),
        is_owner=is_owner,
        permissions=[] if is_owner else list(membership.permissions or []),
        role_defaults=[cap.value for cap in Capability if cap in defaults],
        effective=[cap.value for cap in Capability if cap in effective],
    )


def get_my_permissions(db: Session, user_id: UUID, workspace_id: UUID) -> schemas.MemberPermissionsResponse:
    """Resolve the calling user's own capabilities."""
    membership = require_membership(db, workspace_id, user_id)
    return _permissions_view(membership)


def get_member_permissions(
    db: Session,
    requester_id: UUID,
    workspace_id: UUID,
    target_id: UUID,
) -> schemas.MemberPermissionsResponse:
    """Resolve another member's capabilities. Owners and directors only, or self."""
    if requester_id == target_id:
        return get_my_permissions(db, requester_id, workspace_id)

    require_role(db, workspace_id, requester_id, ROLE_ADMIN_ROLES)
    target = _get_target(db, workspace_id, target_id)
    return _permissions_view(target)


def list_workspace_permissions(
    db: Session,
    requester_id: UUID,
    workspace_id: UUID,
) -> schemas.WorkspacePermissionsResponse:
    """Resolve capabilities of every member. Owners and directors only."""
    require_role(db, workspace_id, requester_id, ROLE_ADMIN_ROLES)
    return schemas.WorkspacePermissionsResponse(
        workspace_id=workspace_id,
        available_permissions=[cap.value for cap in Capability],
        members=[_permissions_view(m) for m in crud.list_memberships(db, workspace_id)],
    )


def update_member_permissions(
    db: Session,
    operator_id: UUID,
    workspace_id: UUID,
    target_id: UUID,
    permissions: list[str],
) -> schemas.MemberPermissionsResponse:
    """
    Replace a member's capability overrides.

    Only the owner may grant overrides, and the owner's own set is never
    stored. Unknown codes reject the whole update.

    Raises:
        AccessDeniedError: If the operator is not a member
        InsufficientPermissionError: If the operator is not the owner, or targets the owner
        MemberNotFoundError: If the target is not a member
        InvalidPermissionError: If any code is not a known capability
    """
    require_role(db, workspace_id, operator_id, [WorkspaceRole.OWNER])
    target = _get_target(db, workspace_id, target_id)
    if resolve_alias(target.role) == WorkspaceRole.OWNER:
        raise InsufficientPermissionError("The owner's permissions cannot be modified")

    codes = validate_capability_codes(permissions)
    updated = crud.update_member_permissions(db, target, codes)
    logger.info(f"User {operator_id} set permissions of {target_id} in workspace {workspace_id}: {codes}")
    return _permissions_view(updated)
