"""Tenant role registry: canonical roles, ranking and legacy aliases.

Roles form a strict total order, highest privilege first:

    owner > director > manager > member > observer

Stored membership rows may still carry spellings from older naming schemes
(``admin``, ``leader``, ``guest``...). Every role read from storage must go
through :func:`resolve_alias` before it is compared.
"""
import enum
from types import MappingProxyType
from typing import Iterable, Union


class WorkspaceRole(str, enum.Enum):
    """Canonical tenant roles."""
    OWNER = "owner"
    DIRECTOR = "director"
    MANAGER = "manager"
    MEMBER = "member"
    OBSERVER = "observer"


RoleLike = Union[WorkspaceRole, str, None]

# Lower value = more privileged
ROLE_RANKS: MappingProxyType = MappingProxyType({
    WorkspaceRole.OWNER: 0,
    WorkspaceRole.DIRECTOR: 1,
    WorkspaceRole.MANAGER: 2,
    WorkspaceRole.MEMBER: 3,
    WorkspaceRole.OBSERVER: 4,
})

# Unrecognized roles rank below every defined role
UNKNOWN_RANK = max(ROLE_RANKS.values()) + 1

# Historical spellings -> canonical role
ROLE_ALIASES: MappingProxyType = MappingProxyType({
    "admin": WorkspaceRole.DIRECTOR,
    "super_admin": WorkspaceRole.DIRECTOR,
    "leader": WorkspaceRole.MANAGER,
    "guest": WorkspaceRole.OBSERVER,
})


def resolve_alias(code: RoleLike) -> Union[WorkspaceRole, str, None]:
    """
    Resolve a stored role code to its canonical role.

    Canonical codes resolve to themselves and aliases resolve through
    ROLE_ALIASES. Unknown codes are returned unchanged and never raise, so
    the function is idempotent for every input.

    Args:
        code: Role as stored (enum member, string or None)

    Returns:
        WorkspaceRole for known codes, otherwise the input unchanged
    """
    if isinstance(code, WorkspaceRole) or code is None:
        return code

    key = code.strip().lower()
    try:
        return WorkspaceRole(key)
    except ValueError:
        pass
    return ROLE_ALIASES.get(key, code)


def is_known_role(code: RoleLike) -> bool:
    """Check whether a code resolves to a canonical role."""
    return isinstance(resolve_alias(code), WorkspaceRole)


def rank(role: RoleLike) -> int:
    """Return the privilege rank of a role (lower is more privileged)."""
    resolved = resolve_alias(role)
    if isinstance(resolved, WorkspaceRole):
        return ROLE_RANKS[resolved]
    return UNKNOWN_RANK


def is_at_least(actual_role: RoleLike, required_role: RoleLike) -> bool:
    """Check that actual_role is at least as privileged as required_role."""
    return rank(actual_role) <= rank(required_role)


def is_one_of(actual_role: RoleLike, allowed_roles: Iterable[RoleLike]) -> bool:
    """Check membership of a role in an allowed set after alias resolution."""
    resolved = resolve_alias(actual_role)
    if not isinstance(resolved, WorkspaceRole):
        return False
    return any(resolve_alias(allowed) == resolved for allowed in allowed_roles)


def canonical_role_value(role: RoleLike) -> str:
    """Return the string to persist for a role (canonical value when known)."""
    resolved = resolve_alias(role)
    if isinstance(resolved, WorkspaceRole):
        return resolved.value
    return resolved or ""
