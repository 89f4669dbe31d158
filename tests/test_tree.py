"""Tests for the member, reporting and project tree views."""
import uuid

import pytest

from teamflow_core import tree
from teamflow_core.exceptions import (
    AccessDeniedError,
    CircularReportingError,
    InsufficientPermissionError,
    InvalidRelationError,
    ProjectNotFoundError,
    WorkspaceNotFoundError,
)
from teamflow_core.tree import TreeVisibility, resolve_visibility


@pytest.fixture
def tasks(factory, org):
    """Top-level tasks for several members, plus one sub-task."""
    p = org.project
    parent = factory.task(p, org.member, "in_progress", "high", title="Build lander")
    factory.task(p, org.member, "done", "low")
    factory.task(p, org.member2, "blocked", "critical")
    factory.task(p, org.manager, "review")
    factory.task(p, org.leader, "done")
    factory.task(p, None, "todo")  # unassigned
    factory.task(p, org.member, "todo", parent=parent, title="Sub-task")
    return parent


def _children(response):
    return {node.user_id: node for node in response.tree.children}


class TestResolveVisibility:
    """Test viewer role to visibility mapping."""

    def test_mapping(self):
        """Test every canonical role and the leader override."""
        assert resolve_visibility("owner") == TreeVisibility.FULL
        assert resolve_visibility("admin") == TreeVisibility.FULL
        assert resolve_visibility("manager") == TreeVisibility.SCOPED
        assert resolve_visibility("member") == TreeVisibility.SCOPED
        assert resolve_visibility("guest") == TreeVisibility.IDENTITY_ONLY
        assert resolve_visibility("wizard") == TreeVisibility.IDENTITY_ONLY
        assert resolve_visibility("observer", is_leader=True) == TreeVisibility.FULL


class TestMemberTree:
    """Test the per-project member tree."""

    def test_director_sees_full_tree(self, db, org, tasks):
        """Test real counts for a director, top-level tasks only."""
        response = tree.get_member_tree(db, org.director.id, org.project.id)

        assert response.visibility == "full"
        assert response.tree.node_type == "team"
        assert response.tree.name == "Apollo Team"
        assert response.tree.task_stats.total == 6
        assert response.tree.task_stats.done == 2

        nodes = _children(response)
        assert set(nodes) == {org.leader.id, org.manager.id, org.member.id, org.member2.id, org.observer.id}
        assert nodes[org.member.id].task_stats.total == 2
        assert "Sub-task" not in [t.title for t in nodes[org.member.id].tasks]

    def test_leader_listed_first_and_once(self, db, org, tasks):
        """Test roster order and leader deduplication."""
        response = tree.get_member_tree(db, org.owner.id, org.project.id)
        ids = [n.user_id for n in response.tree.children]
        assert ids[0] == org.leader.id
        assert ids.count(org.leader.id) == 1
        assert response.tree.children[0].is_leader
        assert response.leader.id == org.leader.id
        assert response.workspace_name == "Acme"
        assert response.project_description == "Moonshot"

    def test_tasks_ordered_by_priority(self, db, org, tasks):
        """Test that a member's tasks are listed highest priority first."""
        response = tree.get_member_tree(db, org.owner.id, org.project.id)
        priorities = [t.priority for t in _children(response)[org.member.id].tasks]
        assert priorities == ["high", "low"]

    def test_observer_gets_identities_only(self, db, org, tasks):
        """Test zeroed stats and no tasks for an observer."""
        response = tree.get_member_tree(db, org.observer.id, org.project.id)

        assert response.visibility == "identity_only"
        assert response.tree.task_stats.total == 0
        assert len(response.tree.children) == 5
        for node in response.tree.children:
            assert node.task_stats.total == 0
            assert node.tasks == []
            assert node.name

    def test_member_sees_only_own_branch(self, db, org, tasks):
        """Test that a member gets themselves and nobody else."""
        response = tree.get_member_tree(db, org.member.id, org.project.id)

        assert response.visibility == "scoped"
        assert list(_children(response)) == [org.member.id]
        assert [m.user_id for m in response.team_members] == [org.member.id]
        assert _children(response)[org.member.id].task_stats.total == 2

    def test_manager_sees_own_closure(self, db, org, tasks):
        """Test that a manager sees themselves and their reports."""
        response = tree.get_member_tree(db, org.manager.id, org.project.id)
        assert set(_children(response)) == {org.manager.id, org.member.id, org.member2.id}

    def test_project_leader_sees_full_tree(self, db, org, tasks):
        """Test that leadership overrides a member tenant role."""
        response = tree.get_member_tree(db, org.leader.id, org.project.id)
        assert response.visibility == "full"
        assert len(response.tree.children) == 5

    def test_falls_back_to_workspace_members(self, db, factory, org):
        """Test that an empty project shows the whole workspace."""
        empty = factory.project(org.ws, "Empty")
        response = tree.get_member_tree(db, org.owner.id, empty.id)
        ids = [n.user_id for n in response.tree.children]
        assert len(ids) == 7
        assert ids[0] == org.owner.id
        assert response.leader is None

    def test_member_without_tenant_role_has_blank_role(self, db, factory, org):
        """Test that a stale project member with no workspace membership gets no role label."""
        stray = factory.user("Sam Stray")
        factory.project_member(org.project, stray)

        response = tree.get_member_tree(db, org.owner.id, org.project.id)
        assert _children(response)[stray.id].role == ""
        assert _children(response)[org.member.id].role == "member"

    def test_outsider_denied(self, db, factory, org):
        """Test that non-members get AccessDeniedError."""
        with pytest.raises(AccessDeniedError):
            tree.get_member_tree(db, factory.user().id, org.project.id)

    def test_missing_project(self, db, org):
        """Test that an unknown project raises ProjectNotFoundError."""
        with pytest.raises(ProjectNotFoundError):
            tree.get_member_tree(db, org.owner.id, uuid.uuid4())


class TestReportingTree:
    """Test the nested reporting tree."""

    def test_defaults_to_leader_root(self, db, org):
        """Test that the leader roots the tree when no root is given."""
        response = tree.get_reporting_tree(db, org.owner.id, org.project.id)
        assert response.root_id == org.leader.id
        assert response.tree.user_id == org.leader.id

    def test_explicit_root(self, db, org, tasks):
        """Test a subtree rooted at a manager."""
        response = tree.get_reporting_tree(db, org.director.id, org.project.id, org.manager.id)
        assert [n.user_id for n in response.tree.children] == [org.member.id, org.member2.id]
        assert response.tree.children[0].task_stats.total == 2

    def test_scoped_viewer_is_rooted_at_self(self, db, org):
        """Test that a member cannot pick someone else's subtree."""
        response = tree.get_reporting_tree(db, org.member.id, org.project.id, org.manager.id)
        assert response.root_id == org.member.id
        assert response.tree.children == []

    def test_scoped_viewer_outside_project_gets_self_node(self, db, factory, org):
        """Test that a member who is not on the project sees only their own node."""
        outsider = factory.user("Nina Newcomer")
        factory.member(org.ws, outsider, "member")

        response = tree.get_reporting_tree(db, outsider.id, org.project.id)
        assert response.root_id == outsider.id
        assert response.tree.user_id == outsider.id
        assert response.tree.role == "member"
        assert response.tree.children == []

    def test_root_must_be_project_member(self, db, org):
        """Test that a root outside the project is rejected."""
        with pytest.raises(InvalidRelationError):
            tree.get_reporting_tree(db, org.owner.id, org.project.id, org.director.id)

    def test_cycle_raises(self, db, factory, org):
        """Test that a stored cycle surfaces as CircularReportingError."""
        factory.report(org.project, org.manager, org.member)
        with pytest.raises(CircularReportingError):
            tree.get_reporting_tree(db, org.owner.id, org.project.id, org.manager.id)


class TestProjectTree:
    """Test the workspace project tree."""

    @pytest.fixture
    def portfolio(self, factory, org):
        """Three extra projects at 80%, 10% and 45% progress."""
        def make(name, done, total):
            project = factory.project(org.ws, name, leader=org.manager)
            factory.project_member(project, org.manager, is_leader=True)
            factory.project_member(project, org.member)
            for i in range(total):
                factory.task(project, org.member, "done" if i < done else "todo")
            return project

        return make("Eighty", 8, 10), make("Ten", 1, 10), make("FortyFive", 9, 20)

    def test_sorted_by_ascending_progress(self, db, org, portfolio):
        """Test that lagging projects come first."""
        response = tree.get_project_tree(db, org.director.id, org.ws.id)
        by_name = {p.name: p.progress for p in response.projects}
        assert by_name["Eighty"] == 80
        assert by_name["Ten"] == 10
        assert by_name["FortyFive"] == 45
        progresses = [p.progress for p in response.projects]
        assert progresses == sorted(progresses)
        assert [p.name for p in response.projects if p.name != "Apollo"] == ["Ten", "FortyFive", "Eighty"]

    def test_roster_dedup_and_counts(self, db, org, portfolio):
        """Test that the leader appears once with a leader label."""
        response = tree.get_project_tree(db, org.owner.id, org.ws.id)
        ten = next(p for p in response.projects if p.name == "Ten")
        assert [(m.user_id, m.role) for m in ten.members] == [
            (org.manager.id, "leader"),
            (org.member.id, "member"),
        ]
        assert ten.members[1].task_count == 10
        assert ten.recent_activity is not None

    def test_overall_stats_sum_projects(self, db, org, portfolio):
        """Test that overall stats add up every project."""
        response = tree.get_project_tree(db, org.owner.id, org.ws.id)
        assert response.total_projects == 4
        assert response.overall_stats.total == 40
        assert response.overall_stats.done == 18

    def test_empty_project_has_zero_progress(self, db, org):
        """Test progress 0 for a project without tasks."""
        response = tree.get_project_tree(db, org.owner.id, org.ws.id)
        assert response.projects[0].progress == 0
        assert response.projects[0].recent_activity is None

    def test_requires_director(self, db, org):
        """Test that a manager is rejected even when leading projects."""
        with pytest.raises(InsufficientPermissionError):
            tree.get_project_tree(db, org.manager.id, org.ws.id)

    def test_project_leader_is_not_enough(self, db, org):
        """Test that project leadership grants nothing here."""
        with pytest.raises(InsufficientPermissionError):
            tree.get_project_tree(db, org.leader.id, org.ws.id)

    def test_missing_workspace(self, db, org):
        """Test that an unknown workspace is not found."""
        with pytest.raises(WorkspaceNotFoundError):
            tree.get_project_tree(db, org.owner.id, uuid.uuid4())
