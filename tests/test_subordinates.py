"""Tests for reports-to graph traversal."""
import pytest

from teamflow_core import schemas
from teamflow_core.exceptions import CircularReportingError
from teamflow_core.subordinates import (
    all_subordinates,
    build_subtree,
    direct_subordinates,
    find_reporting_cycle,
)


def _node(user_id):
    return schemas.MemberNode(user_id=user_id, name=str(user_id), role="member")


@pytest.fixture
def chain(factory):
    """Project with edges C -> B -> A (C reports to B, B reports to A)."""
    a, b, c = factory.user("A"), factory.user("B"), factory.user("C")
    ws = factory.workspace(a)
    factory.member(ws, b)
    factory.member(ws, c)
    project = factory.project(ws)
    factory.project_member(project, a)
    factory.project_member(project, b, manager=a)
    factory.project_member(project, c, manager=b)
    return project, a, b, c


class TestAllSubordinates:
    """Test the BFS closure."""

    def test_direct_subordinates(self, db, chain):
        """Test single-level lookup."""
        project, a, b, c = chain
        assert direct_subordinates(db, project.id, a.id) == {b.id}
        assert direct_subordinates(db, project.id, c.id) == set()

    def test_closure_in_level_order(self, db, factory, chain):
        """Test that nearer reports come before deeper ones."""
        project, a, b, c = chain
        d = factory.user("D")
        factory.project_member(project, d, manager=a)
        assert all_subordinates(db, project.id, a.id) == [b.id, d.id, c.id]

    def test_cycle_back_to_root_terminates(self, db, factory, chain):
        """Test C->B->A plus a stray A->C edge: closure of A is {B, C} once each."""
        project, a, b, c = chain
        factory.report(project, a, c)

        result = all_subordinates(db, project.id, a.id)

        assert result == [b.id, c.id]

    def test_cycle_not_through_root_terminates(self, db, factory, chain):
        """Test a loop between B and C below A."""
        project, a, b, c = chain
        factory.report(project, b, c)  # B now reports to C, C reports to B
        assert all_subordinates(db, project.id, c.id) == [b.id]

    def test_leaf_has_empty_closure(self, db, chain):
        """Test that a user with no reports gets an empty list."""
        project, a, b, c = chain
        assert all_subordinates(db, project.id, c.id) == []

    def test_scoped_to_project(self, db, factory, chain):
        """Test that edges in other projects are not followed."""
        project, a, b, c = chain
        other = factory.project(project.workspace, "Other")
        factory.project_member(other, a)
        factory.project_member(other, c, manager=a)
        assert all_subordinates(db, other.id, a.id) == [c.id]


class TestBuildSubtree:
    """Test recursive tree construction."""

    def test_builds_nested_nodes(self, db, chain):
        """Test that the tree mirrors the reporting chain."""
        project, a, b, c = chain
        root = build_subtree(db, project.id, a.id, _node)
        assert root.user_id == a.id
        assert [n.user_id for n in root.children] == [b.id]
        assert [n.user_id for n in root.children[0].children] == [c.id]
        assert root.children[0].children[0].children == []

    def test_cycle_raises(self, db, factory, chain):
        """Test that a cycle reachable from the root fails loudly."""
        project, a, b, c = chain
        factory.report(project, a, c)

        with pytest.raises(CircularReportingError) as exc_info:
            build_subtree(db, project.id, a.id, _node)

        assert exc_info.value.path == [a.id, b.id, c.id, a.id]
        assert exc_info.value.code == "CIRCULAR_REPORTING"

    def test_siblings_do_not_share_visited_set(self, db, factory, chain):
        """Test that two siblings with the same shape both get built."""
        project, a, b, c = chain
        d, e = factory.user("D"), factory.user("E")
        factory.project_member(project, d, manager=a)
        factory.project_member(project, e, manager=d)

        root = build_subtree(db, project.id, a.id, _node)

        assert [n.user_id for n in root.children] == [b.id, d.id]
        assert [n.user_id for n in root.children[1].children] == [e.id]


class TestFindReportingCycle:
    """Test write-time cycle detection."""

    def test_detects_manager_below_subordinate(self, db, chain):
        """Test that making A report to C is flagged."""
        project, a, b, c = chain
        assert find_reporting_cycle(db, project.id, [a.id], c.id) == [a.id, c.id, a.id]

    def test_accepts_acyclic_change(self, db, chain):
        """Test that re-pointing C at A is fine."""
        project, a, b, c = chain
        assert find_reporting_cycle(db, project.id, [c.id], a.id) is None
        assert find_reporting_cycle(db, project.id, [c.id], None) is None
