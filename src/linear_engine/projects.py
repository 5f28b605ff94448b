"""Project-level operations: lookup, listings and bulk assignment."""

from __future__ import annotations

from dataclasses import dataclass

from .errors import ProjectNotFoundError, ValidationError
from .logging import get_logger
from .models import RemoteProject, RemoteWorkflowState
from .tracker import TrackerPort
from .workflow import state_name_by_id


@dataclass
class AssignProjectResult:
    total_issues: int
    assigned_count: int
    skipped_count: int


@dataclass
class IssueRecord:
    id: str
    issue_key: str | None
    title: str
    state: str
    assignee_id: str | None
    parent_id: str | None
    milestone_id: str | None
    created_at: str | None
    updated_at: str | None


@dataclass
class ProjectRecord:
    id: str
    name: str
    state: str | None
    progress: float | None
    start_date: str | None
    target_date: str | None
    lead: str | None
    created_at: str | None
    updated_at: str | None


def get_required_project(tracker: TrackerPort, project_name: str) -> RemoteProject:
    name = (project_name or "").strip()
    if not name:
        raise ValidationError("Project name is required.")
    project = tracker.find_project_by_name(name)
    if project is None:
        raise ProjectNotFoundError(name)
    return project


def assign_project_issues(
    tracker: TrackerPort, project_name: str, force: bool = False
) -> AssignProjectResult:
    """Assign project issues to the current user, one update per issue.

    Not transactional: a failure part-way leaves earlier issues assigned.
    """
    project = get_required_project(tracker, project_name)
    current_user = tracker.get_current_user()
    issues = tracker.list_issues(project.id)
    assigned = skipped = 0
    for issue in issues:
        if not force and issue.assignee_id:
            skipped += 1
            continue
        tracker.update_issue(issue.id, assignee_id=current_user.id)
        assigned += 1
    get_logger().log_operation(
        "assign_project",
        project=project.name,
        assigned=assigned,
        skipped=skipped,
        force=force,
    )
    return AssignProjectResult(
        total_issues=len(issues), assigned_count=assigned, skipped_count=skipped
    )


def list_project_issues(tracker: TrackerPort, project_name: str) -> list[IssueRecord]:
    project = get_required_project(tracker, project_name)
    issues = tracker.list_issues(project.id)
    states_by_team: dict[str, list[RemoteWorkflowState]] = {}
    records: list[IssueRecord] = []
    for issue in issues:
        states: list[RemoteWorkflowState] = []
        if issue.team_id:
            if issue.team_id not in states_by_team:
                states_by_team[issue.team_id] = tracker.get_workflow_states(issue.team_id)
            states = states_by_team[issue.team_id]
        records.append(
            IssueRecord(
                id=issue.id,
                issue_key=issue.identifier,
                title=issue.title,
                state=state_name_by_id(states, issue.state_id),
                assignee_id=issue.assignee_id,
                parent_id=issue.parent_id,
                milestone_id=issue.milestone_id,
                created_at=issue.created_at,
                updated_at=issue.updated_at,
            )
        )
    records.sort(key=lambda r: (r.created_at or "", r.id))
    return records


def list_projects(tracker: TrackerPort) -> list[ProjectRecord]:
    records = [
        ProjectRecord(
            id=p.id,
            name=p.name,
            state=p.state,
            progress=p.progress,
            start_date=p.start_date,
            target_date=p.target_date,
            lead=p.lead_name,
            created_at=p.created_at,
            updated_at=p.updated_at,
        )
        for p in tracker.list_projects()
    ]
    records.sort(key=lambda r: (r.name, r.id))
    return records


__all__ = [
    "AssignProjectResult",
    "IssueRecord",
    "ProjectRecord",
    "assign_project_issues",
    "get_required_project",
    "list_project_issues",
    "list_projects",
]
