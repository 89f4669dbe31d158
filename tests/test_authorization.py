"""Tests for authorization gates."""
import uuid

import pytest

from teamflow_core.authorization import (
    require_membership,
    require_min_rank,
    require_project_leadership,
    require_role,
)
from teamflow_core.exceptions import (
    AccessDeniedError,
    InsufficientPermissionError,
    ProjectNotFoundError,
)
from teamflow_core.roles import WorkspaceRole


class TestRequireRole:
    """Test the role-set gate."""

    def test_non_member_is_access_denied(self, db, factory, org):
        """Test that a stranger fails before any role check."""
        stranger = factory.user()
        with pytest.raises(AccessDeniedError):
            require_role(db, org.ws.id, stranger.id, [WorkspaceRole.OBSERVER])

    def test_role_not_in_set_is_insufficient(self, db, org):
        """Test that a member without an allowed role is rejected."""
        with pytest.raises(InsufficientPermissionError) as exc_info:
            require_role(db, org.ws.id, org.member.id, [WorkspaceRole.OWNER, WorkspaceRole.DIRECTOR])
        assert exc_info.value.actual_role == "member"
        assert exc_info.value.required == ["owner", "director"]

    def test_returns_membership(self, db, org):
        """Test that a passing check hands back the membership."""
        membership = require_role(db, org.ws.id, org.director.id, [WorkspaceRole.DIRECTOR])
        assert membership.user_id == org.director.id

    def test_legacy_role_passes_canonical_gate(self, db, factory, org):
        """Test that a stored 'admin' satisfies a director gate."""
        legacy = factory.user()
        factory.member(org.ws, legacy, "admin")
        require_role(db, org.ws.id, legacy.id, [WorkspaceRole.DIRECTOR])


class TestRequireMinRank:
    """Test the rank gate."""

    def test_higher_role_passes(self, db, org):
        """Test that the owner passes a director minimum."""
        require_min_rank(db, org.ws.id, org.owner.id, WorkspaceRole.DIRECTOR)

    def test_lower_role_fails(self, db, org):
        """Test that a manager fails a director minimum."""
        with pytest.raises(InsufficientPermissionError):
            require_min_rank(db, org.ws.id, org.manager.id, WorkspaceRole.DIRECTOR)

    def test_unknown_role_fails(self, db, factory, org):
        """Test that an unrecognized stored role ranks lowest."""
        odd = factory.user()
        factory.member(org.ws, odd, "wizard")
        with pytest.raises(InsufficientPermissionError):
            require_min_rank(db, org.ws.id, odd.id, WorkspaceRole.OBSERVER)

    def test_missing_workspace_is_access_denied(self, db, org):
        """Test that an absent workspace looks like no membership."""
        with pytest.raises(AccessDeniedError):
            require_membership(db, uuid.uuid4(), org.owner.id)


class TestRequireProjectLeadership:
    """Test the project-level gate and its alternatives."""

    def test_tenant_role_alternative(self, db, org):
        """Test that a manager administers any project via tenant role."""
        project, membership = require_project_leadership(db, org.project.id, org.manager.id)
        assert project.id == org.project.id
        assert membership.user_id == org.manager.id

    def test_denormalized_leader_alternative(self, db, factory, org):
        """Test that Project.leader_id alone is enough."""
        other = factory.project(org.ws, "Zeus", leader=org.member2)
        require_project_leadership(db, other.id, org.member2.id)

    def test_is_leader_flag_alternative(self, db, factory, org):
        """Test that ProjectMember.is_leader alone is enough."""
        other = factory.project(org.ws, "Hera")
        factory.project_member(other, org.member2, is_leader=True)
        require_project_leadership(db, other.id, org.member2.id)

    def test_plain_member_is_rejected(self, db, org):
        """Test that a member with no leadership marker is rejected."""
        with pytest.raises(InsufficientPermissionError):
            require_project_leadership(db, org.project.id, org.member.id)

    def test_outsider_is_access_denied(self, db, factory, org):
        """Test that a non-member of the workspace is denied."""
        with pytest.raises(AccessDeniedError):
            require_project_leadership(db, org.project.id, factory.user().id)

    def test_missing_project(self, db, org):
        """Test that an unknown project raises ProjectNotFoundError."""
        with pytest.raises(ProjectNotFoundError):
            require_project_leadership(db, uuid.uuid4(), org.owner.id)
