"""Pydantic schemas for request/response validation."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict

from .stats import TaskStats


# ============================================================================
# Workspace and Membership Schemas
# ============================================================================

class WorkspaceCreate(BaseModel):
    """Schema for creating a workspace. The caller becomes its owner."""

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None


class WorkspaceResponse(BaseModel):
    """Schema for workspace responses."""

    id: UUID
    name: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MemberAdd(BaseModel):
    """Schema for adding a user to a workspace."""

    user_id: UUID
    role: str = Field("member", min_length=1, max_length=50)


class MemberRoleUpdate(BaseModel):
    """Schema for changing a member's role. Legacy spellings are accepted."""

    role: str = Field(..., min_length=1, max_length=50)


class WorkspaceMemberResponse(BaseModel):
    """Schema for workspace membership responses."""

    id: UUID
    workspace_id: UUID
    user_id: UUID
    role: str
    permissions: list[str] = Field(default_factory=list)
    joined_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Permission Schemas
# ============================================================================

class PermissionUpdate(BaseModel):
    """Schema for replacing a member's capability overrides."""

    permissions: list[str] = Field(default_factory=list)


class MemberPermissionsResponse(BaseModel):
    """Resolved capabilities of one workspace member."""

    user_id: UUID
    role: str
    is_owner: bool
    permissions: list[str] = Field(default_factory=list, description="Stored overrides")
    role_defaults: list[str] = Field(default_factory=list)
    effective: list[str] = Field(default_factory=list)


class WorkspacePermissionsResponse(BaseModel):
    """Capabilities of every member of a workspace."""

    workspace_id: UUID
    available_permissions: list[str]
    members: list[MemberPermissionsResponse]


# ============================================================================
# Project Member and Reporting Schemas
# ============================================================================

class ProjectMemberUpsert(BaseModel):
    """Schema for creating or updating a project membership."""

    user_id: UUID
    is_leader: bool = False
    manager_id: Optional[UUID] = None


class ProjectMemberResponse(BaseModel):
    """Schema for project membership responses."""

    id: UUID
    project_id: UUID
    user_id: UUID
    is_leader: bool
    manager_id: Optional[UUID] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReportingRelationRequest(BaseModel):
    """Point several project members at one manager (or clear it with null)."""

    subordinate_ids: list[UUID] = Field(..., min_length=1)
    manager_id: Optional[UUID] = None


class ReportingRelationResult(BaseModel):
    """Result of a reporting relation update."""

    updated: int


class SubordinatesResponse(BaseModel):
    """Full subordinate closure of a manager, in breadth-first order."""

    project_id: UUID
    manager_id: UUID
    subordinate_ids: list[UUID]


# ============================================================================
# Tree Schemas
# ============================================================================

class TaskStatsResponse(BaseModel):
    """Task counters by status."""

    total: int = 0
    todo: int = 0
    in_progress: int = 0
    review: int = 0
    blocked: int = 0
    done: int = 0

    @classmethod
    def from_stats(cls, stats: TaskStats) -> "TaskStatsResponse":
        return cls(**stats.to_dict())


class TaskBrief(BaseModel):
    """Task summary shown on a member node."""

    id: UUID
    title: str
    status: str
    priority: str
    due_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class MemberNode(BaseModel):
    """
    One node of a member or reporting tree.

    The synthetic team root has ``node_type="team"`` and no user_id.
    """

    node_type: str = "member"
    user_id: Optional[UUID] = None
    name: str
    email: Optional[str] = None
    avatar: Optional[str] = None
    role: str
    is_leader: bool = False
    task_stats: TaskStatsResponse = Field(default_factory=TaskStatsResponse)
    tasks: list[TaskBrief] = Field(default_factory=list)
    children: list["MemberNode"] = Field(default_factory=list)


MemberNode.model_rebuild()


class LeaderInfo(BaseModel):
    """Identity of a project's leader."""

    id: UUID
    name: str
    email: str
    avatar: Optional[str] = None


class TeamMemberInfo(BaseModel):
    """Identity fields of one roster entry."""

    user_id: UUID
    name: str
    email: str
    avatar: Optional[str] = None
    role: str
    is_leader: bool = False


class MemberTreeResponse(BaseModel):
    """Per-project member tree."""

    workspace_id: UUID
    workspace_name: str
    project_id: UUID
    project_name: str
    project_description: Optional[str] = None
    visibility: str
    leader: Optional[LeaderInfo] = None
    team_members: list[TeamMemberInfo]
    tree: MemberNode


class ReportingTreeResponse(BaseModel):
    """Reporting subtree of one project, rooted at root_id."""

    project_id: UUID
    project_name: str
    root_id: UUID
    visibility: str
    tree: MemberNode


class ProjectRosterEntry(BaseModel):
    """Roster entry on a project node."""

    user_id: UUID
    name: str
    role: str = Field(description="'leader' for the project leader, otherwise 'member'")
    task_count: int = 0


class ProjectNode(BaseModel):
    """One project in the workspace project tree."""

    id: UUID
    name: str
    description: Optional[str] = None
    progress: int
    task_stats: TaskStatsResponse
    members: list[ProjectRosterEntry]
    recent_activity: Optional[datetime] = None


class ProjectTreeResponse(BaseModel):
    """Workspace-wide project tree, lowest progress first."""

    workspace_id: UUID
    workspace_name: str
    total_projects: int
    overall_stats: TaskStatsResponse
    projects: list[ProjectNode]
