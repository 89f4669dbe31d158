"""Member tree, reporting tree and project tree views.

What a viewer sees depends on their tenant role:

    FULL           owner, director, or the project's own leader
    SCOPED         manager and member: themselves plus their subordinate closure
    IDENTITY_ONLY  observer (and unrecognized roles): identities, no task data

SCOPED viewers do not get redacted nodes for other branches; those branches
are left out of the response entirely.
"""
import enum
import logging
from collections import Counter
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from . import crud, models, schemas
from .authorization import is_project_leader, require_membership, require_min_rank
from .exceptions import InvalidRelationError, ProjectNotFoundError, WorkspaceNotFoundError
from .roles import WorkspaceRole, canonical_role_value, resolve_alias
from .stats import EMPTY_STATS, TaskStats, calculate_task_stats, progress_percent, sum_task_stats
from .subordinates import all_subordinates, build_subtree

logger = logging.getLogger("teamflow-core.tree")

TEAM_NODE_TYPE = "team"
ROSTER_LEADER_LABEL = "leader"
ROSTER_MEMBER_LABEL = "member"


class TreeVisibility(str, enum.Enum):
    """How much of a tree a viewer may see."""
    FULL = "full"
    SCOPED = "scoped"
    IDENTITY_ONLY = "identity_only"


def resolve_visibility(role: Optional[str], is_leader: bool = False) -> TreeVisibility:
    """Map a viewer's tenant role (and project leadership) to a visibility level."""
    if is_leader:
        return TreeVisibility.FULL
    resolved = resolve_alias(role)
    if resolved in (WorkspaceRole.OWNER, WorkspaceRole.DIRECTOR):
        return TreeVisibility.FULL
    if resolved in (WorkspaceRole.MANAGER, WorkspaceRole.MEMBER):
        return TreeVisibility.SCOPED
    return TreeVisibility.IDENTITY_ONLY


class _RosterEntry:
    """A user on a project's team, with the fields every node needs."""

    __slots__ = ("user", "is_leader", "role")

    def __init__(self, user: models.User, is_leader: bool, role: str):
        self.user = user
        self.is_leader = is_leader
        self.role = role


class _ProjectContext:
    """Per-request view of one project: roster data and the viewer's visibility."""

    def __init__(self, db: Session, project: models.Project, viewer_id: UUID):
        self.db = db
        self.project = project
        self.viewer_id = viewer_id

        self.viewer_membership = require_membership(db, project.workspace_id, viewer_id)
        self.memberships = {m.user_id: m for m in crud.list_memberships(db, project.workspace_id)}
        self.project_members = crud.list_project_memberships(db, project.id)
        self.project_member_by_user = {m.user_id: m for m in self.project_members}

        viewer_is_leader = is_project_leader(project, viewer_id, self.project_member_by_user.get(viewer_id))
        self.visibility = resolve_visibility(self.viewer_membership.role, viewer_is_leader)
        self._visible_ids: Optional[set[UUID]] = None

    @property
    def redact_tasks(self) -> bool:
        return self.visibility == TreeVisibility.IDENTITY_ONLY

    def visible_ids(self) -> Optional[set[UUID]]:
        """Users a SCOPED viewer may see, or None when nothing is filtered."""
        if self.visibility != TreeVisibility.SCOPED:
            return None
        if self._visible_ids is None:
            self._visible_ids = {self.viewer_id, *all_subordinates(self.db, self.project.id, self.viewer_id)}
        return self._visible_ids

    def workspace_role(self, user_id: UUID) -> str:
        membership = self.memberships.get(user_id)
        if membership is None:
            return ""
        return canonical_role_value(membership.role)

    def is_leader(self, user_id: UUID) -> bool:
        return is_project_leader(self.project, user_id, self.project_member_by_user.get(user_id))

    def roster(self) -> list[_RosterEntry]:
        """
        Leader first, then the other project members, each user once.

        Falls back to every workspace member when the project has nobody.
        """
        entries: list[_RosterEntry] = []
        seen: set[UUID] = set()

        if self.project.leader is not None:
            entries.append(_RosterEntry(self.project.leader, True, self.workspace_role(self.project.leader_id)))
            seen.add(self.project.leader_id)

        for pm in self.project_members:
            if pm.user_id in seen or pm.user is None:
                continue
            seen.add(pm.user_id)
            entries.append(_RosterEntry(pm.user, pm.is_leader, self.workspace_role(pm.user_id)))

        if not entries:
            logger.debug(f"Project {self.project.id} has no members, using workspace roster")
            entries = [
                _RosterEntry(m.user, False, canonical_role_value(m.role))
                for m in self.memberships.values()
                if m.user is not None
            ]

        visible = self.visible_ids()
        if visible is not None:
            entries = [entry for entry in entries if entry.user.id in visible]
        return entries

    def member_node(self, user: models.User, is_leader: bool, role: str) -> schemas.MemberNode:
        """Node for one user with their top-level tasks, redacted when required."""
        node = schemas.MemberNode(
            user_id=user.id,
            name=user.display_name,
            email=user.email,
            avatar=user.avatar,
            role=role,
            is_leader=is_leader,
        )
        if self.redact_tasks:
            return node

        tasks = crud.list_tasks(self.db, self.project.id, assignee_id=user.id)
        node.tasks = [schemas.TaskBrief.model_validate(task) for task in tasks]
        node.task_stats = schemas.TaskStatsResponse.from_stats(
            calculate_task_stats(task.status for task in tasks)
        )
        return node


def _load_project(db: Session, project_id: UUID) -> models.Project:
    project = crud.get_project_with_leader_and_members(db, project_id)
    if project is None:
        raise ProjectNotFoundError(project_id)
    return project


def get_member_tree(db: Session, viewer_id: UUID, project_id: UUID) -> schemas.MemberTreeResponse:
    """
    Build the member tree of a project.

    The root is a synthetic team node whose children are the roster members.
    Only top-level tasks are counted, both per member and for the team total.

    Args:
        db: Database session
        viewer_id: Requesting user UUID
        project_id: Project UUID

    Returns:
        Member tree, redacted for the viewer's role

    Raises:
        ProjectNotFoundError: If the project does not exist
        AccessDeniedError: If the viewer is not in the project's workspace
    """
    project = _load_project(db, project_id)
    ctx = _ProjectContext(db, project, viewer_id)
    roster = ctx.roster()

    children = [ctx.member_node(entry.user, entry.is_leader, entry.role) for entry in roster]

    overall = EMPTY_STATS
    if not ctx.redact_tasks:
        overall = calculate_task_stats(task.status for task in crud.list_tasks(db, project.id))

    root = schemas.MemberNode(
        node_type=TEAM_NODE_TYPE,
        name=f"{project.name} Team",
        role=TEAM_NODE_TYPE,
        task_stats=schemas.TaskStatsResponse.from_stats(overall),
        children=children,
    )

    leader = None
    if project.leader is not None:
        leader = schemas.LeaderInfo(
            id=project.leader.id,
            name=project.leader.display_name,
            email=project.leader.email,
            avatar=project.leader.avatar,
        )

    logger.debug(
        f"Built member tree for project {project_id}: {len(children)} member(s), "
        f"visibility={ctx.visibility.value}"
    )
    return schemas.MemberTreeResponse(
        workspace_id=project.workspace_id,
        workspace_name=project.workspace.name,
        project_id=project.id,
        project_name=project.name,
        project_description=project.description,
        visibility=ctx.visibility.value,
        leader=leader,
        team_members=[
            schemas.TeamMemberInfo(
                user_id=entry.user.id,
                name=entry.user.display_name,
                email=entry.user.email,
                avatar=entry.user.avatar,
                role=entry.role,
                is_leader=entry.is_leader,
            )
            for entry in roster
        ],
        tree=root,
    )


def get_reporting_tree(
    db: Session,
    viewer_id: UUID,
    project_id: UUID,
    root_id: Optional[UUID] = None,
) -> schemas.ReportingTreeResponse:
    """
    Build the nested reporting tree of a project.

    FULL and IDENTITY_ONLY viewers may pick the root (default: the project
    leader, else themselves). SCOPED viewers are always rooted at themselves.

    Raises:
        ProjectNotFoundError: If the project does not exist
        AccessDeniedError: If the viewer is not in the project's workspace
        InvalidRelationError: If the root is not a member of the project
        CircularReportingError: If the stored reporting lines contain a cycle
    """
    project = _load_project(db, project_id)
    ctx = _ProjectContext(db, project, viewer_id)

    if ctx.visibility == TreeVisibility.SCOPED:
        root_id = viewer_id
    elif root_id is None:
        root_id = project.leader_id or viewer_id

    users = crud.get_users(db, [root_id, *ctx.project_member_by_user])

    def make_node(user_id: UUID) -> schemas.MemberNode:
        user = users.get(user_id) or crud.get_user(db, user_id)
        if user is None:
            raise InvalidRelationError("Reporting line references an unknown user", [user_id])
        return ctx.member_node(user, ctx.is_leader(user_id), ctx.workspace_role(user_id))

    if root_id not in ctx.project_member_by_user and root_id != project.leader_id:
        if ctx.visibility != TreeVisibility.SCOPED:
            raise InvalidRelationError("Root user is not a member of this project", [root_id])
        # Nobody reports to a non-member, so the closure is the viewer alone
        tree = make_node(root_id)
    else:
        tree = build_subtree(db, project.id, root_id, make_node)

    return schemas.ReportingTreeResponse(
        project_id=project.id,
        project_name=project.name,
        root_id=root_id,
        visibility=ctx.visibility.value,
        tree=tree,
    )


def _project_node(db: Session, project: models.Project) -> tuple[schemas.ProjectNode, TaskStats]:
    tasks = crud.list_tasks(db, project.id)
    stats = calculate_task_stats(task.status for task in tasks)
    task_counts = Counter(task.assignee_id for task in tasks)

    roster: list[schemas.ProjectRosterEntry] = []
    seen: set[UUID] = set()

    def add(user: Optional[models.User], is_leader: bool) -> None:
        if user is None or user.id in seen:
            return
        seen.add(user.id)
        roster.append(schemas.ProjectRosterEntry(
            user_id=user.id,
            name=user.display_name,
            role=ROSTER_LEADER_LABEL if is_leader else ROSTER_MEMBER_LABEL,
            task_count=task_counts.get(user.id, 0),
        ))

    add(project.leader, True)
    for pm in project.members:
        add(pm.user, pm.is_leader)

    node = schemas.ProjectNode(
        id=project.id,
        name=project.name,
        description=project.description,
        progress=progress_percent(stats),
        task_stats=schemas.TaskStatsResponse.from_stats(stats),
        members=roster,
        recent_activity=max((task.updated_at for task in tasks), default=None),
    )
    return node, stats


def get_project_tree(db: Session, viewer_id: UUID, workspace_id: UUID) -> schemas.ProjectTreeResponse:
    """
    Build the workspace-wide project tree.

    Requires at least the director role; project leadership does not count.
    Projects are ordered by ascending progress so lagging work comes first.

    Args:
        db: Database session
        viewer_id: Requesting user UUID
        workspace_id: Workspace UUID

    Returns:
        Project tree with per-project and overall stats

    Raises:
        WorkspaceNotFoundError: If the workspace does not exist
        AccessDeniedError: If the viewer is not a member
        InsufficientPermissionError: If the viewer ranks below director
    """
    workspace = crud.get_workspace(db, workspace_id)
    if workspace is None:
        raise WorkspaceNotFoundError(workspace_id)
    require_min_rank(db, workspace_id, viewer_id, WorkspaceRole.DIRECTOR)

    built = [_project_node(db, project) for project in crud.list_projects(db, workspace_id)]
    # Stable sort: equal progress keeps newest-first order
    built.sort(key=lambda item: item[0].progress)

    return schemas.ProjectTreeResponse(
        workspace_id=workspace.id,
        workspace_name=workspace.name,
        total_projects=len(built),
        overall_stats=schemas.TaskStatsResponse.from_stats(sum_task_stats(stats for _, stats in built)),
        projects=[node for node, _ in built],
    )
