"""Error types raised by the authorization and hierarchy engine.

Every error carries a stable ``code`` so the HTTP layer can map it to a
status without string matching on messages.
"""
from typing import Iterable, Optional
from uuid import UUID


class TeamflowError(Exception):
    """Base class for engine errors."""

    code = "TEAMFLOW_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AccessDeniedError(TeamflowError):
    """Raised when the principal has no membership in the tenant."""

    code = "ACCESS_DENIED"

    def __init__(self, workspace_id: Optional[UUID], user_id: Optional[UUID]):
        super().__init__("You do not have access to this workspace")
        self.workspace_id = workspace_id
        self.user_id = user_id


class InsufficientPermissionError(TeamflowError):
    """Raised when a membership exists but its role or capability is not enough."""

    code = "INSUFFICIENT_PERMISSION"

    def __init__(self, message: str, actual_role: Optional[str] = None, required: Optional[Iterable] = None):
        super().__init__(message)
        self.actual_role = actual_role
        self.required = list(required) if required is not None else []


class NotFoundError(TeamflowError):
    """Raised when a tenant, project or member does not exist."""

    code = "NOT_FOUND"
    entity = "Resource"

    def __init__(self, entity_id: Optional[UUID] = None):
        super().__init__(f"{self.entity} not found")
        self.entity_id = entity_id


class WorkspaceNotFoundError(NotFoundError):
    code = "WORKSPACE_NOT_FOUND"
    entity = "Workspace"


class ProjectNotFoundError(NotFoundError):
    code = "PROJECT_NOT_FOUND"
    entity = "Project"


class MemberNotFoundError(NotFoundError):
    code = "MEMBER_NOT_FOUND"
    entity = "Member"


class CircularReportingError(TeamflowError):
    """Raised when traversal of the reports-to graph revisits a node on the current path."""

    code = "CIRCULAR_REPORTING"

    def __init__(self, path: list[UUID]):
        chain = " -> ".join(str(node) for node in path)
        super().__init__(f"Circular reporting line detected: {chain}")
        self.path = path


class InvalidRelationError(TeamflowError):
    """Raised when a manager or subordinate reference is not a valid project member."""

    code = "INVALID_RELATION"

    def __init__(self, message: str, user_ids: Optional[Iterable[UUID]] = None):
        super().__init__(message)
        self.user_ids = list(user_ids) if user_ids is not None else []


class InvalidRoleError(TeamflowError):
    """Raised when a role change names a role that cannot be assigned."""

    code = "INVALID_ROLE"

    def __init__(self, role: str, message: Optional[str] = None):
        super().__init__(message or f"Invalid role: {role}")
        self.role = role


class InvalidPermissionError(TeamflowError):
    """Raised when a permission update contains unknown capability codes."""

    code = "INVALID_PERMISSION"

    def __init__(self, invalid_codes: list[str]):
        super().__init__(f"Invalid permissions: {', '.join(invalid_codes)}")
        self.invalid_codes = invalid_codes


class DuplicateMemberError(TeamflowError):
    """Raised when adding a principal that already belongs to the tenant."""

    code = "ALREADY_MEMBER"

    def __init__(self, workspace_id: UUID, user_id: UUID):
        super().__init__("User is already a member of this workspace")
        self.workspace_id = workspace_id
        self.user_id = user_id
