"""Remote access port.

Every operation in ``issues``, ``projects`` and ``sync`` talks to the
tracker exclusively through ``TrackerPort``; ``LinearClient`` is the
production implementation and tests supply an in-memory fake.

Optional tracker features are declared up front through
``TrackerCapabilities`` instead of being discovered at call time.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from .models import (
    RemoteIssue,
    RemoteMilestone,
    RemoteProject,
    RemoteTeam,
    RemoteUser,
    RemoteWorkflowState,
)


@dataclass(frozen=True)
class TrackerCapabilities:
    milestones: bool = True  # list_milestones / create_milestone available
    project_teams: bool = True  # list_project_team_ids available


@runtime_checkable
class TrackerPort(Protocol):  # pragma: no cover - interface only
    capabilities: TrackerCapabilities

    def get_current_user(self) -> RemoteUser: ...

    def list_users(self) -> list[RemoteUser]: ...

    def find_user_by_identifier(self, identifier: str) -> RemoteUser | None: ...

    def list_teams(self) -> list[RemoteTeam]: ...

    def list_projects(self) -> list[RemoteProject]: ...

    def find_project_by_name(self, name: str) -> RemoteProject | None: ...

    def list_project_team_ids(self, project_id: str) -> list[str]: ...

    def list_issues(self, project_id: str) -> list[RemoteIssue]: ...

    def find_issue_by_key(self, key: str) -> RemoteIssue | None: ...

    def find_issues_by_title(self, title: str) -> list[RemoteIssue]: ...

    def get_workflow_states(self, team_id: str) -> list[RemoteWorkflowState]: ...

    def list_milestones(self, project_id: str) -> list[RemoteMilestone]: ...

    def create_project(self, name: str, description: str) -> RemoteProject: ...

    def update_project(self, project_id: str, **fields: Any) -> None: ...

    def create_issue(self, **fields: Any) -> RemoteIssue: ...

    def update_issue(self, issue_id: str, **fields: Any) -> None: ...

    def create_comment(self, issue_id: str, body: str) -> None: ...

    def create_milestone(self, project_id: str, name: str) -> None: ...


def match_user(users: list[RemoteUser], identifier: str) -> RemoteUser | None:
    """Exact id first, then case-insensitive name / display name / email.

    First match wins; duplicates are not reported.
    """
    needle = identifier.strip()
    for user in users:
        if user.id == needle:
            return user
    lowered = needle.lower()
    for user in users:
        for candidate in (user.name, user.display_name, user.email):
            if (candidate or "").lower() == lowered:
                return user
    return None


__all__ = ["TrackerCapabilities", "TrackerPort", "match_user"]
