"""Pytest configuration for linear-engine tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install (`pip install -e .`), and provides an
in-memory tracker so no test talks to Linear.
"""

from __future__ import annotations

import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from linear_engine.env_auth import reset_auth_manager  # noqa: E402
from linear_engine.models import (  # noqa: E402
    RemoteIssue,
    RemoteMilestone,
    RemoteProject,
    RemoteTeam,
    RemoteUser,
    RemoteWorkflowState,
)
from linear_engine.tracker import TrackerCapabilities, match_user  # noqa: E402

_ENV_VARS = (
    "LINEAR_API_KEY",
    "LINEAR_API_URL",
    "LINEAR_TEAM_ID",
    "EXEC_SECRET",
    "LINEAR_ENGINE_LOG_LEVEL",
    "LINEAR_ENGINE_LOG_JSON",
    "LINEAR_ENGINE_QUIET",
)


class FakeTracker:
    """In-memory ``TrackerPort``.

    Returns copies of stored entities so callers cannot mutate remote state
    without going through a port method. Every call is appended to ``calls``.
    """

    def __init__(self) -> None:
        self.capabilities = TrackerCapabilities()
        self.current_user = RemoteUser(id="u1", name="me", display_name="Me", email="me@example.com")
        self.users: list[RemoteUser] = [
            self.current_user,
            RemoteUser(id="u2", name="alice", display_name="Alice", email="alice@example.com"),
            RemoteUser(id="u9", name="bob", display_name="Bob", email="bob@example.com"),
        ]
        self.teams: list[RemoteTeam] = [RemoteTeam(id="t1", key="COG", name="Cognition")]
        self.projects: list[RemoteProject] = []
        self.issues: list[RemoteIssue] = []
        self.milestones: dict[str, list[RemoteMilestone]] = {}
        self.project_team_ids: dict[str, list[str]] = {}
        self.comments: list[tuple[str, str]] = []
        self.states: dict[str, list[RemoteWorkflowState]] = {
            "t1": [
                RemoteWorkflowState(id="s-backlog", name="Backlog", type="backlog", position=0),
                RemoteWorkflowState(id="s-todo", name="Todo", type="unstarted", position=1),
                RemoteWorkflowState(id="s-progress", name="In Progress", type="started", position=2),
                RemoteWorkflowState(id="s-done", name="Done", type="completed", position=3),
                RemoteWorkflowState(id="s-canceled", name="Canceled", type="canceled", position=4),
            ]
        }
        self.calls: list[tuple[str, Any]] = []
        self._seq = 0

    # ---- helpers for tests ---------------------------------------------
    def _next(self, prefix: str) -> str:
        self._seq += 1
        return f"{prefix}-{self._seq}"

    def add_project(self, name: str, description: str = "", **kw: Any) -> RemoteProject:
        project = RemoteProject(id=kw.pop("id", None) or self._next("project"), name=name, description=description, **kw)
        self.projects.append(project)
        return project

    def add_issue(self, title: str, **kw: Any) -> RemoteIssue:
        issue = RemoteIssue(id=kw.pop("id", None) or self._next("issue"), title=title, **kw)
        self.issues.append(issue)
        return issue

    def add_milestone(self, project_id: str, name: str) -> RemoteMilestone:
        milestone = RemoteMilestone(id=self._next("ms"), name=name)
        self.milestones.setdefault(project_id, []).append(milestone)
        return milestone

    def issue(self, issue_id: str) -> RemoteIssue:
        return next(i for i in self.issues if i.id == issue_id)

    def issue_titled(self, title: str) -> RemoteIssue:
        return next(i for i in self.issues if i.title == title)

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def mutations(self) -> list[tuple[str, Any]]:
        return [c for c in self.calls if c[0].startswith(("create_", "update_"))]

    # ---- TrackerPort -----------------------------------------------------
    def get_current_user(self) -> RemoteUser:
        self.calls.append(("get_current_user", None))
        return replace(self.current_user)

    def list_users(self) -> list[RemoteUser]:
        self.calls.append(("list_users", None))
        return [replace(u) for u in self.users]

    def find_user_by_identifier(self, identifier: str) -> RemoteUser | None:
        self.calls.append(("find_user_by_identifier", identifier))
        return match_user(self.users, identifier)

    def list_teams(self) -> list[RemoteTeam]:
        self.calls.append(("list_teams", None))
        return [replace(t) for t in self.teams]

    def list_projects(self) -> list[RemoteProject]:
        self.calls.append(("list_projects", None))
        return [replace(p) for p in self.projects]

    def find_project_by_name(self, name: str) -> RemoteProject | None:
        self.calls.append(("find_project_by_name", name))
        needle = name.strip().lower()
        for project in self.projects:
            if project.name.strip().lower() == needle:
                return replace(project)
        return None

    def list_project_team_ids(self, project_id: str) -> list[str]:
        self.calls.append(("list_project_team_ids", project_id))
        return list(self.project_team_ids.get(project_id, []))

    def list_issues(self, project_id: str) -> list[RemoteIssue]:
        self.calls.append(("list_issues", project_id))
        return [replace(i) for i in self.issues if i.project_id == project_id]

    def find_issue_by_key(self, key: str) -> RemoteIssue | None:
        self.calls.append(("find_issue_by_key", key))
        for issue in self.issues:
            if issue.identifier == key:
                return replace(issue)
        return None

    def find_issues_by_title(self, title: str) -> list[RemoteIssue]:
        self.calls.append(("find_issues_by_title", title))
        return [replace(i) for i in self.issues if i.title == title]

    def get_workflow_states(self, team_id: str) -> list[RemoteWorkflowState]:
        self.calls.append(("get_workflow_states", team_id))
        return [replace(s) for s in self.states.get(team_id, [])]

    def list_milestones(self, project_id: str) -> list[RemoteMilestone]:
        self.calls.append(("list_milestones", project_id))
        return [replace(m) for m in self.milestones.get(project_id, [])]

    def create_project(self, name: str, description: str) -> RemoteProject:
        self.calls.append(("create_project", {"name": name, "description": description}))
        return replace(self.add_project(name, description))

    def update_project(self, project_id: str, **fields: Any) -> None:
        self.calls.append(("update_project", {"id": project_id, **fields}))
        project = next(p for p in self.projects if p.id == project_id)
        for key, value in fields.items():
            setattr(project, key, value)

    def create_issue(self, **fields: Any) -> RemoteIssue:
        self.calls.append(("create_issue", dict(fields)))
        fields.setdefault("assignee_id", self.current_user.id)
        number = len(self.issues) + 100
        issue = self.add_issue(identifier=f"COG-{number}", **fields)
        return replace(issue)

    def update_issue(self, issue_id: str, **fields: Any) -> None:
        self.calls.append(("update_issue", {"id": issue_id, **fields}))
        issue = self.issue(issue_id)
        for key, value in fields.items():
            setattr(issue, key, value)

    def create_comment(self, issue_id: str, body: str) -> None:
        self.calls.append(("create_comment", {"id": issue_id, "body": body}))
        self.comments.append((issue_id, body))

    def create_milestone(self, project_id: str, name: str) -> None:
        self.calls.append(("create_milestone", {"project_id": project_id, "name": name}))
        self.add_milestone(project_id, name)


@pytest.fixture
def fake_tracker() -> FakeTracker:
    return FakeTracker()


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> Any:
    for var in _ENV_VARS:
        # setenv first so teardown also drops values a dotenv load added
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)
    reset_auth_manager()
    yield
    reset_auth_manager()
