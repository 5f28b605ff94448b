from __future__ import annotations

import re
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeVar

import requests

from .errors import ConfigurationError, LinearEngineError, RemoteOperationError, ValidationError
from .logging import get_logger
from .models import (
    RemoteIssue,
    RemoteMilestone,
    RemoteProject,
    RemoteTeam,
    RemoteUser,
    RemoteWorkflowState,
)
from .tracker import TrackerCapabilities, match_user

DEFAULT_API_URL = "https://api.linear.app/graphql"
USER_AGENT = "linear-engine/0.1.0"
HTTP_ERROR_STATUS = 400
PAGE_SIZE = 100

T = TypeVar("T")

_ISSUE_KEY_RE = re.compile(r"^([A-Za-z][A-Za-z0-9_]*)-(\d+)$")

# snake_case port field -> Linear input field
_ISSUE_FIELDS = {
    "team_id": "teamId",
    "project_id": "projectId",
    "parent_id": "parentId",
    "title": "title",
    "description": "description",
    "assignee_id": "assigneeId",
    "state_id": "stateId",
    "milestone_id": "projectMilestoneId",
}
_PROJECT_FIELDS = {"name": "name", "description": "description"}

_USER_FIELDS = "id name displayName email"
_ISSUE_FIELDS_GQL = """
id identifier title description createdAt updatedAt
team { id } state { id } project { id } projectMilestone { id }
parent { id } assignee { id }
"""
_PROJECT_FIELDS_GQL = """
id name description state progress startDate targetDate createdAt updatedAt
lead { displayName } teams { nodes { id } }
"""

Q_VIEWER = f"query Viewer {{ viewer {{ {_USER_FIELDS} }} }}"
Q_USERS = f"""
query Users($first: Int!, $after: String) {{
  users(first: $first, after: $after) {{
    nodes {{ {_USER_FIELDS} }}
    pageInfo {{ hasNextPage endCursor }}
  }}
}}
"""
Q_TEAMS = """
query Teams($first: Int!, $after: String) {
  teams(first: $first, after: $after) {
    nodes { id key name }
    pageInfo { hasNextPage endCursor }
  }
}
"""
Q_PROJECTS = f"""
query Projects($first: Int!, $after: String) {{
  projects(first: $first, after: $after) {{
    nodes {{ {_PROJECT_FIELDS_GQL} }}
    pageInfo {{ hasNextPage endCursor }}
  }}
}}
"""
Q_PROJECT_TEAMS = """
query ProjectTeams($id: String!, $first: Int!, $after: String) {
  project(id: $id) {
    teams(first: $first, after: $after) {
      nodes { id }
      pageInfo { hasNextPage endCursor }
    }
  }
}
"""
Q_PROJECT_MILESTONES = """
query ProjectMilestones($id: String!, $first: Int!, $after: String) {
  project(id: $id) {
    projectMilestones(first: $first, after: $after) {
      nodes { id name }
      pageInfo { hasNextPage endCursor }
    }
  }
}
"""
Q_ISSUES = f"""
query Issues($first: Int!, $after: String, $filter: IssueFilter) {{
  issues(first: $first, after: $after, filter: $filter) {{
    nodes {{ {_ISSUE_FIELDS_GQL} }}
    pageInfo {{ hasNextPage endCursor }}
  }}
}}
"""
Q_TEAM_STATES = """
query TeamStates($id: String!, $first: Int!, $after: String) {
  team(id: $id) {
    states(first: $first, after: $after) {
      nodes { id name type position }
      pageInfo { hasNextPage endCursor }
    }
  }
}
"""
M_PROJECT_CREATE = f"""
mutation ProjectCreate($input: ProjectCreateInput!) {{
  projectCreate(input: $input) {{ success project {{ {_PROJECT_FIELDS_GQL} }} }}
}}
"""
M_PROJECT_UPDATE = """
mutation ProjectUpdate($id: String!, $input: ProjectUpdateInput!) {
  projectUpdate(id: $id, input: $input) { success }
}
"""
M_ISSUE_CREATE = f"""
mutation IssueCreate($input: IssueCreateInput!) {{
  issueCreate(input: $input) {{ success issue {{ {_ISSUE_FIELDS_GQL} }} }}
}}
"""
M_ISSUE_UPDATE = """
mutation IssueUpdate($id: String!, $input: IssueUpdateInput!) {
  issueUpdate(id: $id, input: $input) { success }
}
"""
M_COMMENT_CREATE = """
mutation CommentCreate($input: CommentCreateInput!) {
  commentCreate(input: $input) { success }
}
"""
M_MILESTONE_CREATE = """
mutation ProjectMilestoneCreate($input: ProjectMilestoneCreateInput!) {
  projectMilestoneCreate(input: $input) { success }
}
"""


class LinearAPIError(RuntimeError):
    """Raised when the Linear GraphQL endpoint returns an error."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        response_text: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.response_text = response_text


def _ref_id(payload: Mapping[str, Any], key: str) -> str | None:
    ref = payload.get(key)
    if isinstance(ref, Mapping):
        value = ref.get("id")
        if isinstance(value, str):
            return value
    return None


def _issue_from_payload(payload: Mapping[str, Any]) -> RemoteIssue:
    return RemoteIssue(
        id=str(payload.get("id")),
        identifier=payload.get("identifier"),
        title=str(payload.get("title") or ""),
        description=payload.get("description"),
        team_id=_ref_id(payload, "team"),
        state_id=_ref_id(payload, "state"),
        project_id=_ref_id(payload, "project"),
        milestone_id=_ref_id(payload, "projectMilestone"),
        parent_id=_ref_id(payload, "parent"),
        assignee_id=_ref_id(payload, "assignee"),
        created_at=payload.get("createdAt"),
        updated_at=payload.get("updatedAt"),
    )


def _project_from_payload(payload: Mapping[str, Any]) -> RemoteProject:
    teams = payload.get("teams")
    team_ids: list[str] = []
    if isinstance(teams, Mapping):
        for node in teams.get("nodes") or []:
            if isinstance(node, Mapping) and isinstance(node.get("id"), str):
                team_ids.append(node["id"])
    lead = payload.get("lead")
    lead_name = lead.get("displayName") if isinstance(lead, Mapping) else None
    return RemoteProject(
        id=str(payload.get("id")),
        name=str(payload.get("name") or ""),
        description=payload.get("description") or "",
        team_ids=team_ids,
        state=payload.get("state"),
        progress=payload.get("progress"),
        start_date=payload.get("startDate"),
        target_date=payload.get("targetDate"),
        lead_name=lead_name,
        created_at=payload.get("createdAt"),
        updated_at=payload.get("updatedAt"),
    )


def _user_from_payload(payload: Mapping[str, Any]) -> RemoteUser:
    return RemoteUser(
        id=str(payload.get("id")),
        name=payload.get("name"),
        display_name=payload.get("displayName"),
        email=payload.get("email"),
    )


def _map_fields(fields: Mapping[str, Any], mapping: Mapping[str, str]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in fields.items():
        if key not in mapping:
            raise ValidationError(f"Unsupported field: {key}")
        out[mapping[key]] = value
    return out


def _require(value: str, what: str) -> str:
    normalized = (value or "").strip()
    if not normalized:
        raise ValidationError(f"{what} is required and cannot be empty.")
    return normalized


@dataclass
class LinearClient:
    """Linear GraphQL implementation of ``TrackerPort``.

    The current user is fetched once per instance. Every public method wraps
    transport and GraphQL failures into ``RemoteOperationError``.
    """

    api_key: str
    api_url: str = DEFAULT_API_URL
    default_team_id: str | None = None
    timeout: float = 30.0
    capabilities: TrackerCapabilities = field(default_factory=TrackerCapabilities)
    session: requests.Session | None = None
    _session: requests.Session = field(init=False, repr=False)
    _current_user: RemoteUser | None = field(init=False, default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.api_key:
            raise ConfigurationError(
                "LINEAR_API_KEY is missing. Set LINEAR_API_KEY or pass api_key in config."
            )
        self._session = self.session or requests.Session()
        # Linear expects the raw key, not "Bearer <key>"
        self._session.headers.setdefault("Authorization", self.api_key)
        self._session.headers.setdefault("Content-Type", "application/json")
        self._session.headers.setdefault("User-Agent", USER_AGENT)
        self._logger = get_logger()

    # ---- transport -----------------------------------------------------
    def _execute(self, operation: str, action: Callable[[], T]) -> T:
        start = time.perf_counter()
        try:
            return action()
        except LinearEngineError:
            raise
        except Exception as exc:
            raise RemoteOperationError(
                operation,
                f"Linear API operation failed ({operation}): {exc}",
                exc,
            ) from exc
        finally:
            self._logger.log_remote_call(operation, (time.perf_counter() - start) * 1000)

    def graphql(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        payload = {"query": query, "variables": variables or {}}
        response = self._session.request(
            "POST",
            self.api_url,
            json=payload,
            headers=self._session.headers,
            timeout=self.timeout,
        )
        if response.status_code >= HTTP_ERROR_STATUS:
            raise LinearAPIError(
                f"Linear API request failed with {response.status_code}",
                status=response.status_code,
                response_text=response.text,
            )
        data = response.json()
        if not isinstance(data, dict):
            raise LinearAPIError("Unexpected GraphQL response shape")
        if data.get("errors"):
            messages = [
                str(err.get("message")) if isinstance(err, Mapping) else str(err)
                for err in data["errors"]
            ]
            raise LinearAPIError(f"GraphQL query failed: {'; '.join(messages)}")
        result = data.get("data")
        return result if isinstance(result, dict) else {}

    def _paginate(
        self,
        query: str,
        root: str,
        variables: dict[str, Any] | None = None,
        parent: str | None = None,
    ) -> list[dict[str, Any]]:
        """Collect every node of a connection, following ``pageInfo`` cursors.

        ``parent`` names the object the connection hangs off (``project``,
        ``team``) when it is not a root field.
        """
        params: dict[str, Any] = dict(variables or {})
        params["first"] = PAGE_SIZE
        params["after"] = None
        results: list[dict[str, Any]] = []
        while True:
            data = self.graphql(query, params)
            if parent is not None:
                data = data.get(parent) or {}
            connection = data.get(root) if isinstance(data, dict) else None
            if not isinstance(connection, dict):
                break
            results.extend(n for n in connection.get("nodes") or [] if isinstance(n, dict))
            page = connection.get("pageInfo") or {}
            if not page.get("hasNextPage") or not page.get("endCursor"):
                break
            params["after"] = page["endCursor"]
        return results

    def _mutate(self, query: str, root: str, variables: dict[str, Any]) -> dict[str, Any]:
        data = self.graphql(query, variables)
        result = data.get(root)
        if not isinstance(result, dict) or not result.get("success"):
            raise LinearAPIError(f"{root} did not report success")
        return result

    # ---- users & teams -----------------------------------------------------
    def get_current_user(self) -> RemoteUser:
        def _run() -> RemoteUser:
            if self._current_user is None:
                viewer = self.graphql(Q_VIEWER).get("viewer")
                if not isinstance(viewer, dict):
                    raise LinearAPIError("viewer query returned no user")
                self._current_user = _user_from_payload(viewer)
            return self._current_user

        return self._execute("get-current-user", _run)

    def list_users(self) -> list[RemoteUser]:
        return self._execute(
            "get-users",
            lambda: [_user_from_payload(u) for u in self._paginate(Q_USERS, "users")],
        )

    def find_user_by_identifier(self, identifier: str) -> RemoteUser | None:
        def _run() -> RemoteUser | None:
            needle = _require(identifier, "User identifier")
            return match_user(self.list_users(), needle)

        return self._execute("find-user-by-identifier", _run)

    def list_teams(self) -> list[RemoteTeam]:
        def _run() -> list[RemoteTeam]:
            return [
                RemoteTeam(id=str(t.get("id")), key=t.get("key") or "", name=t.get("name") or "")
                for t in self._paginate(Q_TEAMS, "teams")
            ]

        return self._execute("get-teams", _run)

    # ---- projects & milestones ---------------------------------------------
    def list_projects(self) -> list[RemoteProject]:
        return self._execute(
            "get-projects",
            lambda: [_project_from_payload(p) for p in self._paginate(Q_PROJECTS, "projects")],
        )

    def find_project_by_name(self, name: str) -> RemoteProject | None:
        def _run() -> RemoteProject | None:
            needle = _require(name, "Project name").lower()
            for project in self.list_projects():
                if project.name.lower() == needle:
                    return project
            return None

        return self._execute("get-project-by-name", _run)

    def list_project_team_ids(self, project_id: str) -> list[str]:
        def _run() -> list[str]:
            nodes = self._paginate(
                Q_PROJECT_TEAMS, "teams", {"id": _require(project_id, "Project ID")}, parent="project"
            )
            return [str(n["id"]) for n in nodes if isinstance(n, dict) and n.get("id")]

        return self._execute("get-project-teams", _run)

    def list_milestones(self, project_id: str) -> list[RemoteMilestone]:
        def _run() -> list[RemoteMilestone]:
            nodes = self._paginate(
                Q_PROJECT_MILESTONES,
                "projectMilestones",
                {"id": _require(project_id, "Project ID")},
                parent="project",
            )
            return [
                RemoteMilestone(id=str(n.get("id")), name=str(n.get("name") or ""))
                for n in nodes
                if isinstance(n, dict)
            ]

        return self._execute("get-project-milestones", _run)

    def create_project(self, name: str, description: str) -> RemoteProject:
        def _run() -> RemoteProject:
            team_id = self.default_team_id
            if not team_id:
                teams = self.list_teams()
                team_id = teams[0].id if teams else None
            payload: dict[str, Any] = {"name": _require(name, "Project name"), "description": description}
            if team_id:
                payload["teamIds"] = [team_id]
            result = self._mutate(M_PROJECT_CREATE, "projectCreate", {"input": payload})
            project = result.get("project")
            if not isinstance(project, dict):
                raise LinearAPIError(f'Failed to create project "{name}".')
            return _project_from_payload(project)

        return self._execute("create-project", _run)

    def update_project(self, project_id: str, **fields: Any) -> None:
        def _run() -> None:
            self._mutate(
                M_PROJECT_UPDATE,
                "projectUpdate",
                {"id": project_id, "input": _map_fields(fields, _PROJECT_FIELDS)},
            )

        self._execute("update-project", _run)

    def create_milestone(self, project_id: str, name: str) -> None:
        def _run() -> None:
            self._mutate(
                M_MILESTONE_CREATE,
                "projectMilestoneCreate",
                {"input": {"projectId": project_id, "name": _require(name, "Milestone name")}},
            )

        self._execute("create-milestone", _run)

    # ---- issues ------------------------------------------------------------
    def list_issues(self, project_id: str) -> list[RemoteIssue]:
        def _run() -> list[RemoteIssue]:
            flt = {"project": {"id": {"eq": _require(project_id, "Project ID")}}}
            nodes = self._paginate(Q_ISSUES, "issues", {"filter": flt})
            return [_issue_from_payload(n) for n in nodes]

        return self._execute("get-issues-by-project", _run)

    def find_issues_by_title(self, title: str) -> list[RemoteIssue]:
        def _run() -> list[RemoteIssue]:
            flt = {"title": {"eq": _require(title, "Issue title")}}
            return [_issue_from_payload(n) for n in self._paginate(Q_ISSUES, "issues", {"filter": flt})]

        return self._execute("get-issues-by-title", _run)

    def find_issue_by_key(self, key: str) -> RemoteIssue | None:
        def _run() -> RemoteIssue | None:
            m = _ISSUE_KEY_RE.match(_require(key, "Issue key"))
            if not m:
                return None
            flt = {
                "team": {"key": {"eq": m.group(1).upper()}},
                "number": {"eq": int(m.group(2))},
            }
            data = self.graphql(Q_ISSUES, {"first": 1, "after": None, "filter": flt})
            nodes = (data.get("issues") or {}).get("nodes") or []
            return _issue_from_payload(nodes[0]) if nodes else None

        return self._execute("get-issue-by-key", _run)

    def get_workflow_states(self, team_id: str) -> list[RemoteWorkflowState]:
        def _run() -> list[RemoteWorkflowState]:
            nodes = self._paginate(
                Q_TEAM_STATES, "states", {"id": _require(team_id, "Team ID")}, parent="team"
            )
            return [
                RemoteWorkflowState(
                    id=str(n.get("id")),
                    name=str(n.get("name") or ""),
                    type=n.get("type"),
                    position=n.get("position"),
                )
                for n in nodes
                if isinstance(n, dict)
            ]

        return self._execute("get-workflow-states-by-team", _run)

    def create_issue(self, **fields: Any) -> RemoteIssue:
        def _run() -> RemoteIssue:
            payload = _map_fields(fields, _ISSUE_FIELDS)
            if not payload.get("assigneeId"):
                payload["assigneeId"] = self.get_current_user().id
            result = self._mutate(M_ISSUE_CREATE, "issueCreate", {"input": payload})
            issue = result.get("issue")
            if not isinstance(issue, dict):
                raise LinearAPIError(f'Failed to create issue "{fields.get("title")}".')
            return _issue_from_payload(issue)

        return self._execute("create-issue", _run)

    def update_issue(self, issue_id: str, **fields: Any) -> None:
        def _run() -> None:
            self._mutate(
                M_ISSUE_UPDATE,
                "issueUpdate",
                {"id": issue_id, "input": _map_fields(fields, _ISSUE_FIELDS)},
            )

        self._execute("update-issue", _run)

    def create_comment(self, issue_id: str, body: str) -> None:
        def _run() -> None:
            self._mutate(
                M_COMMENT_CREATE, "commentCreate", {"input": {"issueId": issue_id, "body": body}}
            )

        self._execute("create-comment", _run)


__all__ = ["DEFAULT_API_URL", "LinearAPIError", "LinearClient"]
