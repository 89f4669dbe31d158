"""Shared fixtures: in-memory database and entity factories."""
from datetime import datetime, timedelta
from itertools import count
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from teamflow_core import models


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


class Factory:
    """Creates committed rows with sensible defaults."""

    def __init__(self, db):
        self.db = db
        self._seq = count(1)
        self._clock = datetime(2025, 6, 1, 9, 0, 0)

    def _tick(self) -> datetime:
        self._clock += timedelta(minutes=1)
        return self._clock

    def user(self, name=None, email=None):
        n = next(self._seq)
        user = models.User(name=name or f"User {n}", email=email or f"user{n}@example.com")
        self.db.add(user)
        self.db.commit()
        return user

    def workspace(self, owner, name="Acme"):
        workspace = models.Workspace(name=name)
        self.db.add(workspace)
        self.db.flush()
        self.db.add(models.WorkspaceMember(
            workspace_id=workspace.id, user_id=owner.id, role="owner", permissions=[], joined_at=self._tick(),
        ))
        self.db.commit()
        return workspace

    def member(self, workspace, user, role="member", permissions=None):
        membership = models.WorkspaceMember(
            workspace_id=workspace.id,
            user_id=user.id,
            role=role,
            permissions=permissions or [],
            joined_at=self._tick(),
        )
        self.db.add(membership)
        self.db.commit()
        return membership

    def project(self, workspace, name="Apollo", leader=None, description=None):
        project = models.Project(
            workspace_id=workspace.id,
            name=name,
            description=description,
            leader_id=leader.id if leader else None,
            created_at=self._tick(),
        )
        self.db.add(project)
        self.db.commit()
        return project

    def project_member(self, project, user, is_leader=False, manager=None):
        pm = models.ProjectMember(
            project_id=project.id,
            user_id=user.id,
            is_leader=is_leader,
            manager_id=manager.id if manager else None,
            created_at=self._tick(),
        )
        self.db.add(pm)
        self.db.commit()
        return pm

    def task(self, project, assignee=None, status="todo", priority="medium", parent=None, title=None):
        now = self._tick()
        task = models.Task(
            project_id=project.id,
            assignee_id=assignee.id if assignee else None,
            parent_id=parent.id if parent else None,
            title=title or f"Task {next(self._seq)}",
            status=status,
            priority=priority,
            created_at=now,
            updated_at=now,
        )
        self.db.add(task)
        self.db.commit()
        return task

    def report(self, project, subordinate, manager):
        """Write a reports-to edge directly, bypassing validation."""
        pm = (
            self.db.query(models.ProjectMember)
            .filter_by(project_id=project.id, user_id=subordinate.id)
            .one()
        )
        pm.manager_id = manager.id if manager else None
        self.db.commit()
        return pm


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def org(factory):
    """Workspace with one user per canonical role plus a project.

    Project members: leader (is_leader), manager, member, member2, observer.
    member and member2 report to manager.
    """
    owner = factory.user("Olive Owner")
    director = factory.user("Dana Director")
    manager = factory.user("Max Manager")
    member = factory.user("Mia Member")
    member2 = factory.user("Milo Member")
    observer = factory.user("Oscar Observer")
    leader = factory.user("Lena Leader")

    ws = factory.workspace(owner)
    factory.member(ws, director, "director")
    factory.member(ws, manager, "manager")
    factory.member(ws, member, "member")
    factory.member(ws, member2, "member")
    factory.member(ws, observer, "observer")
    factory.member(ws, leader, "member")

    project = factory.project(ws, "Apollo", leader=leader, description="Moonshot")
    factory.project_member(project, leader, is_leader=True)
    factory.project_member(project, manager)
    factory.project_member(project, member, manager=manager)
    factory.project_member(project, member2, manager=manager)
    factory.project_member(project, observer)

    return SimpleNamespace(
        ws=ws, project=project,
        owner=owner, director=director, manager=manager,
        member=member, member2=member2, observer=observer, leader=leader,
    )
