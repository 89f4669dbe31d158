"""Capability evaluation for tenant members.

A member's effective capability set is resolved in one fixed order:

- the owner holds every capability; stored overrides are never consulted
- everyone else gets the role's default set plus any granted overrides

Overrides are additive only. There is no way to revoke a capability that the
role grants by default.
"""
import enum
import logging
from types import MappingProxyType
from typing import Iterable, Optional

from .exceptions import InvalidPermissionError
from .roles import RoleLike, WorkspaceRole, resolve_alias

logger = logging.getLogger("teamflow-core.permissions")


class Capability(str, enum.Enum):
    """Named permission flags checked independently of role rank."""
    VIEW_WORKSPACE = "VIEW_WORKSPACE"
    VIEW_ALL_REPORTS = "VIEW_ALL_REPORTS"
    MANAGE_PROJECTS = "MANAGE_PROJECTS"
    MANAGE_MEMBERS = "MANAGE_MEMBERS"
    MANAGE_TASKS = "MANAGE_TASKS"
    MANAGE_SETTINGS = "MANAGE_SETTINGS"
    EXPORT_DATA = "EXPORT_DATA"
    AI_ANALYSIS = "AI_ANALYSIS"
    BROADCAST_MESSAGES = "BROADCAST_MESSAGES"
    COFFEE_LOTTERY = "COFFEE_LOTTERY"


ALL_CAPABILITIES: frozenset[Capability] = frozenset(Capability)
CAPABILITY_CODES: frozenset[str] = frozenset(cap.value for cap in Capability)

# Default capability sets keyed by canonical role. Owner is absent;
# it short-circuits to ALL_CAPABILITIES in effective_capabilities().
DEFAULT_ROLE_CAPABILITIES: MappingProxyType = MappingProxyType({
    WorkspaceRole.DIRECTOR: frozenset({
        Capability.VIEW_WORKSPACE,
        Capability.MANAGE_PROJECTS,
        Capability.MANAGE_MEMBERS,
        Capability.MANAGE_TASKS,
        Capability.VIEW_ALL_REPORTS,
        Capability.MANAGE_SETTINGS,
        Capability.EXPORT_DATA,
        Capability.AI_ANALYSIS,
        Capability.BROADCAST_MESSAGES,
        Capability.COFFEE_LOTTERY,
    }),
    WorkspaceRole.MANAGER: frozenset({
        Capability.VIEW_WORKSPACE,
        Capability.VIEW_ALL_REPORTS,
        Capability.AI_ANALYSIS,
        Capability.COFFEE_LOTTERY,
    }),
    WorkspaceRole.MEMBER: frozenset({
        Capability.VIEW_WORKSPACE,
        Capability.COFFEE_LOTTERY,
    }),
    WorkspaceRole.OBSERVER: frozenset({
        Capability.VIEW_WORKSPACE,
    }),
})


def default_capabilities_for(role: RoleLike) -> frozenset[Capability]:
    """Return the default capability set for a role.

    Unknown roles get no defaults.
    """
    resolved = resolve_alias(role)
    if resolved == WorkspaceRole.OWNER:
        return ALL_CAPABILITIES
    return DEFAULT_ROLE_CAPABILITIES.get(resolved, frozenset())


def normalize_overrides(overrides: Optional[Iterable[str]]) -> frozenset[Capability]:
    """
    Convert stored override codes to capabilities.

    Codes that are no longer part of the catalogue (retired capabilities)
    are skipped rather than rejected, since stored data may predate the
    current catalogue.

    Args:
        overrides: Capability codes as stored on the membership

    Returns:
        Set of recognised capabilities
    """
    result = set()
    for code in overrides or ():
        try:
            result.add(Capability(code))
        except ValueError:
            logger.debug(f"Ignoring unknown capability override: {code!r}")
    return frozenset(result)


def effective_capabilities(
    role: RoleLike,
    overrides: Optional[Iterable[str]] = None,
) -> frozenset[Capability]:
    """
    Resolve the full capability set for a role plus overrides.

    Callers must check tenant membership first; this function assumes the
    role comes from an existing membership.

    Args:
        role: Stored or canonical role
        overrides: Explicitly granted capability codes

    Returns:
        Effective capabilities
    """
    if resolve_alias(role) == WorkspaceRole.OWNER:
        return ALL_CAPABILITIES
    return default_capabilities_for(role) | normalize_overrides(overrides)


def has_capability(
    role: RoleLike,
    overrides: Optional[Iterable[str]],
    capability: Capability,
) -> bool:
    """
    Check whether a role plus overrides grants a capability.

    Raises:
        InvalidPermissionError: If capability is not a known code and the
            role is not owner
    """
    if resolve_alias(role) == WorkspaceRole.OWNER:
        return True
    if capability not in CAPABILITY_CODES:
        raise InvalidPermissionError([str(capability)])
    return Capability(capability) in effective_capabilities(role, overrides)


def validate_capability_codes(codes: Iterable[str]) -> list[str]:
    """
    Validate capability codes for a write.

    Args:
        codes: Requested capability codes

    Returns:
        Deduplicated codes in catalogue order

    Raises:
        InvalidPermissionError: If any code is not a known capability
    """
    requested = list(codes)
    invalid = sorted({code for code in requested if code not in CAPABILITY_CODES})
    if invalid:
        raise InvalidPermissionError(invalid)

    wanted = set(requested)
    return [cap.value for cap in Capability if cap.value in wanted]
