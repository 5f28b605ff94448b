"""Single-issue operations: status, move, comment, assign, start.

Each operation resolves the issue, resolves its target (state or user),
mutates only when something would change, and returns a small result record.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import (
    IssueNotFoundError,
    StateNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from .logging import get_logger
from .models import RemoteIssue, RemoteUser
from .tracker import TrackerPort
from .workflow import find_state_by_name, first_active_state, state_name_by_id

UNASSIGNED = "Unassigned"


@dataclass
class IssueStatus:
    issue_key: str
    title: str
    state: str
    assignee: str
    project: str


@dataclass
class MoveResult:
    issue_key: str
    previous_state: str
    new_state: str


@dataclass
class CommentResult:
    issue_key: str


@dataclass
class AssignResult:
    issue_key: str
    assignee: str


def _required(value: str, what: str) -> str:
    normalized = (value or "").strip()
    if not normalized:
        raise ValidationError(f"{what} is required.")
    return normalized


def get_required_issue(tracker: TrackerPort, issue_key: str) -> RemoteIssue:
    key = _required(issue_key, "Issue key")
    issue = tracker.find_issue_by_key(key)
    if issue is None:
        raise IssueNotFoundError(key)
    return issue


def _require_team(issue: RemoteIssue, key: str, action: str) -> str:
    if not issue.team_id:
        raise ValidationError(f'Issue "{issue.identifier or key}" has no team and {action}.')
    return issue.team_id


def assignee_label(assignee_id: str | None, users: list[RemoteUser]) -> str:
    if not assignee_id:
        return UNASSIGNED
    for user in users:
        if user.id == assignee_id:
            return user.label
    return assignee_id


def get_issue_status(tracker: TrackerPort, issue_key: str) -> IssueStatus:
    issue = get_required_issue(tracker, issue_key)
    team_id = _require_team(issue, issue_key, "cannot resolve status")
    states = tracker.get_workflow_states(team_id)
    project_name = "Unknown"
    if issue.project_id:
        for project in tracker.list_projects():
            if project.id == issue.project_id:
                project_name = project.name
                break
    return IssueStatus(
        issue_key=issue.identifier or issue_key,
        title=issue.title,
        state=state_name_by_id(states, issue.state_id),
        assignee=assignee_label(issue.assignee_id, tracker.list_users()),
        project=project_name,
    )


def _move(tracker: TrackerPort, issue: RemoteIssue, state_name: str, fallback_key: str) -> MoveResult:
    name = _required(state_name, "State name")
    team_id = _require_team(issue, fallback_key, "cannot be moved")
    states = tracker.get_workflow_states(team_id)
    target = find_state_by_name(states, name)
    if target is None:
        raise StateNotFoundError(name)
    previous = state_name_by_id(states, issue.state_id)
    key = issue.identifier or fallback_key
    if issue.state_id != target.id:
        tracker.update_issue(issue.id, state_id=target.id)
        get_logger().log_operation("issue_move", issue_key=key, state_from=previous, state_to=target.name)
    return MoveResult(issue_key=key, previous_state=previous, new_state=target.name)


def move_issue(tracker: TrackerPort, issue_key: str, state_name: str) -> MoveResult:
    issue = get_required_issue(tracker, issue_key)
    return _move(tracker, issue, state_name, issue_key)


def move_issue_by_title(tracker: TrackerPort, title: str, state_name: str) -> MoveResult:
    needle = _required(title, "Issue title")
    matches = [i for i in tracker.find_issues_by_title(needle) if i.title == needle]
    if not matches:
        raise IssueNotFoundError(needle)
    if len(matches) > 1:
        raise ValidationError(f"Multiple issues found with title: {needle}")
    return _move(tracker, matches[0], state_name, needle)


def comment_on_issue(tracker: TrackerPort, issue_key: str, text: str) -> CommentResult:
    body = _required(text, "Comment text")
    issue = get_required_issue(tracker, issue_key)
    tracker.create_comment(issue.id, body)
    key = issue.identifier or issue_key
    get_logger().log_operation("issue_comment", issue_key=key)
    return CommentResult(issue_key=key)


def assign_issue(tracker: TrackerPort, issue_key: str, user_identifier: str) -> AssignResult:
    issue = get_required_issue(tracker, issue_key)
    identifier = _required(user_identifier, "User identifier")
    user = tracker.find_user_by_identifier(identifier)
    if user is None:
        raise UserNotFoundError(identifier)
    tracker.update_issue(issue.id, assignee_id=user.id)
    key = issue.identifier or issue_key
    get_logger().log_operation("issue_assign", issue_key=key, assignee_id=user.id)
    return AssignResult(issue_key=key, assignee=user.label)


def start_issue(tracker: TrackerPort, issue_key: str) -> MoveResult:
    issue = get_required_issue(tracker, issue_key)
    team_id = _require_team(issue, issue_key, "cannot be started")
    states = tracker.get_workflow_states(team_id)
    target = first_active_state(states)
    if target is None:
        raise StateNotFoundError("active", "No active workflow state found for issue team.")
    previous = state_name_by_id(states, issue.state_id)
    key = issue.identifier or issue_key
    if issue.state_id != target.id:
        tracker.update_issue(issue.id, state_id=target.id)
        get_logger().log_operation("issue_start", issue_key=key, state_to=target.name)
    return MoveResult(issue_key=key, previous_state=previous, new_state=target.name)


__all__ = [
    "AssignResult",
    "CommentResult",
    "IssueStatus",
    "MoveResult",
    "assign_issue",
    "assignee_label",
    "comment_on_issue",
    "get_issue_status",
    "get_required_issue",
    "move_issue",
    "move_issue_by_title",
    "start_issue",
]
