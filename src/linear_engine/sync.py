"""Sync reconciliation engine.

``sync_project`` diffs a ``ProjectSpec`` against the tracker and applies the
smallest set of mutations that brings the remote side in line:

1. project      - create, or update the description when it differs
2. milestones   - create every milestone the project spec refers to, then verify
3. epics/stories - create by title, sync assignee, description, milestone

Matching is by exact title (stories additionally by parent epic). Nothing is
ever deleted or renamed, and workflow state is never read or written. Each
mutation is recorded as a ``SyncAction`` in the returned ``SyncReport``.

Runs are not atomic: a failure mid-way leaves earlier mutations applied and
the next run picks up from there.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from .errors import SyncError, ValidationError
from .logging import get_logger
from .metadata import ensure_managed_metadata, semantic_description
from .models import EpicSpec, ProjectSpec, RemoteIssue, RemoteMilestone, RemoteProject
from .tracker import TrackerPort

CREATED = "Created"
UPDATED = "Updated"
SKIPPED = "Skipped"


@dataclass
class SyncAction:
    status: str  # Created | Updated | Skipped
    entity: str  # project | milestone | epic | story | milestone-assignment
    name: str
    reason: str | None = None


@dataclass
class SyncReport:
    actions: list[SyncAction] = field(default_factory=list)

    def add(self, status: str, entity: str, name: str, reason: str | None = None) -> None:
        self.actions.append(SyncAction(status, entity, name, reason))
        get_logger().log_sync_action(status, entity, name, reason)

    def by_status(self, status: str) -> list[SyncAction]:
        return [a for a in self.actions if a.status == status]

    def summary(self) -> dict[str, int]:
        return {s: len(self.by_status(s)) for s in (CREATED, UPDATED, SKIPPED)}

    def to_dict(self) -> dict[str, Any]:
        actions = []
        for action in self.actions:
            data = asdict(action)
            if data["reason"] is None:
                del data["reason"]
            actions.append(data)
        return {"actions": actions, "summary": self.summary()}


def _clean(value: str | None) -> str | None:
    text = (value or "").strip()
    return text or None


def resolve_epic_milestone_name(spec: ProjectSpec, epic: EpicSpec) -> str | None:
    explicit = _clean(epic.milestone)
    if explicit:
        return explicit
    title = epic.title.strip()
    for milestone in spec.milestones:
        name = milestone.name.strip()
        if name and name == title:
            return name
    return None


def resolve_story_milestone_name(epic_milestone: str | None, story_milestone: str | None) -> str | None:
    return _clean(story_milestone) or _clean(epic_milestone)


def collect_desired_milestone_names(spec: ProjectSpec) -> list[str]:
    """Every milestone the project spec refers to, trimmed, in first-seen order."""
    names: dict[str, None] = {}
    for milestone in spec.milestones:
        name = _clean(milestone.name)
        if name:
            names[name] = None
    for epic in spec.epics:
        epic_name = resolve_epic_milestone_name(spec, epic)
        if epic_name:
            names[epic_name] = None
        for story in epic.stories:
            story_name = resolve_story_milestone_name(epic_name, story.milestone)
            if story_name:
                names[story_name] = None
    return list(names)


def resolve_desired_assignee_id(tracker: TrackerPort, reference: str | None, fallback_id: str) -> str:
    """Turn an assignee reference into a user id.

    The reference may name a user (id, name, display name, email) or an issue
    key, in which case that issue's assignee is used. Blank means ``fallback_id``.
    """
    ref = _clean(reference)
    if ref is None:
        return fallback_id
    user = tracker.find_user_by_identifier(ref)
    if user is not None:
        return user.id
    issue = tracker.find_issue_by_key(ref)
    if issue is not None:
        if issue.assignee_id:
            return issue.assignee_id
        raise SyncError(f"Assignee reference {ref} points to an issue without an assignee.")
    raise SyncError(f"Unable to resolve assignee reference: {ref}")


def resolve_team_id(tracker: TrackerPort, project: RemoteProject, issues: list[RemoteIssue]) -> str:
    if project.team_id:
        return project.team_id
    if project.team_ids:
        return project.team_ids[0]
    for issue in issues:
        if issue.team_id:
            return issue.team_id
    if tracker.capabilities.project_teams:
        team_ids = tracker.list_project_team_ids(project.id)
        if team_ids:
            return team_ids[0]
    teams = tracker.list_teams()
    if teams:
        return teams[0].id
    raise SyncError("Unable to resolve teamId for creating issues.")


def sync_issue_assignee(
    tracker: TrackerPort,
    issue: RemoteIssue,
    desired_id: str,
    explicit: bool,
    report: SyncReport,
    entity: str,
    name: str,
) -> None:
    if explicit:
        if issue.assignee_id != desired_id:
            tracker.update_issue(issue.id, assignee_id=desired_id)
            issue.assignee_id = desired_id
            report.add(UPDATED, entity, name, "assignee set from spec")
        return
    if not issue.assignee_id:
        tracker.update_issue(issue.id, assignee_id=desired_id)
        issue.assignee_id = desired_id
        report.add(UPDATED, entity, name, "Assigned issue to current user")


def _find_issue(issues: list[RemoteIssue], title: str, parent_id: str | None) -> RemoteIssue | None:
    for issue in issues:
        if issue.title == title and (issue.parent_id or None) == parent_id:
            return issue
    return None


class _ProjectSync:
    """State for one ``sync_project`` call."""

    def __init__(self, spec: ProjectSpec, tracker: TrackerPort) -> None:
        self.spec = spec
        self.tracker = tracker
        self.report = SyncReport()
        self.milestones: list[RemoteMilestone] = []
        self.issues: list[RemoteIssue] = []
        self.project_id = ""
        self.current_user_id = ""
        self.team_id = ""

    def run(self) -> SyncReport:
        project = self.ensure_project()
        self.ensure_milestones(project)
        self.ensure_epics_and_stories(project)
        return self.report

    def ensure_project(self) -> RemoteProject:
        name = self.spec.project.name.strip()
        if not name:
            raise ValidationError("Project name is required.")
        desired = self.spec.project.description or ""
        existing = self.tracker.find_project_by_name(name)
        if existing is None:
            created = self.tracker.create_project(name, desired)
            self.report.add(CREATED, "project", name)
            return created
        if (existing.description or "") != desired:
            self.tracker.update_project(existing.id, description=desired)
            existing.description = desired
            self.report.add(UPDATED, "project", name)
        else:
            self.report.add(SKIPPED, "project", name, "description unchanged")
        return existing

    def ensure_milestones(self, project: RemoteProject) -> None:
        desired = collect_desired_milestone_names(self.spec)
        if not desired:
            return
        if not self.tracker.capabilities.milestones:
            raise SyncError("Unable to query project milestones for this project.")
        existing = {m.name for m in self.tracker.list_milestones(project.id)}
        for name in desired:
            if name in existing:
                self.report.add(SKIPPED, "milestone", name, "already exists")
                continue
            self.tracker.create_milestone(project.id, name)
            self.report.add(CREATED, "milestone", name)
        self.milestones = self.tracker.list_milestones(project.id)
        resolved = {m.name for m in self.milestones}
        for name in desired:
            if name not in resolved:
                raise SyncError(f"Milestone exists in spec but could not be resolved: {name}")

    def attach_milestone(self, issue: RemoteIssue, milestone_name: str | None, entity: str, name: str) -> None:
        if not milestone_name:
            return
        found = next((m for m in self.milestones if m.name == milestone_name), None)
        if found is None or issue.milestone_id == found.id:
            return
        self.tracker.update_issue(issue.id, milestone_id=found.id)
        issue.milestone_id = found.id
        self.report.add(UPDATED, entity, name, "milestone assigned")
        self.report.add(UPDATED, "milestone-assignment", name, f"milestone assigned: {milestone_name}")

    def ensure_issue(
        self,
        *,
        entity: str,
        title: str,
        description: str,
        assignee: str | None,
        parent_id: str | None,
    ) -> RemoteIssue:
        desired_assignee = resolve_desired_assignee_id(self.tracker, assignee, self.current_user_id)
        issue = _find_issue(self.issues, title, parent_id)
        if issue is None:
            fields: dict[str, Any] = {
                "team_id": self.team_id,
                "project_id": self.project_id,
                "title": title,
                "description": ensure_managed_metadata(description),
                "assignee_id": desired_assignee,
            }
            if parent_id:
                fields["parent_id"] = parent_id
            issue = self.tracker.create_issue(**fields)
            self.issues.append(issue)
            self.report.add(CREATED, entity, title)
            return issue
        sync_issue_assignee(
            self.tracker, issue, desired_assignee, _clean(assignee) is not None, self.report, entity, title
        )
        wanted = ensure_managed_metadata(description)
        if semantic_description(issue.description) != semantic_description(wanted):
            self.tracker.update_issue(issue.id, description=wanted)
            issue.description = wanted
            self.report.add(UPDATED, entity, title, "description synchronized")
        else:
            self.report.add(SKIPPED, entity, title, "description unchanged")
        return issue

    def ensure_epics_and_stories(self, project: RemoteProject) -> None:
        if not self.spec.epics:
            return
        self.project_id = project.id
        self.issues = self.tracker.list_issues(project.id)
        self.current_user_id = self.tracker.get_current_user().id
        self.team_id = resolve_team_id(self.tracker, project, self.issues)

        for epic in self.spec.epics:
            epic_milestone = resolve_epic_milestone_name(self.spec, epic)
            epic_issue = self.ensure_issue(
                entity="epic",
                title=epic.title,
                description=epic.description,
                assignee=epic.assignee,
                parent_id=None,
            )
            self.attach_milestone(epic_issue, epic_milestone, "epic", epic.title)
            for story in epic.stories:
                story_milestone = resolve_story_milestone_name(epic_milestone, story.milestone)
                story_issue = self.ensure_issue(
                    entity="story",
                    title=story.title,
                    description=story.description,
                    assignee=story.assignee,
                    parent_id=epic_issue.id,
                )
                self.attach_milestone(story_issue, story_milestone, "story", story.title)


def sync_project(spec: ProjectSpec, tracker: TrackerPort) -> SyncReport:
    """Reconcile ``spec`` against the tracker and report what changed."""
    logger = get_logger()
    with logger.timed_operation("sync_project", project=spec.project.name):
        report = _ProjectSync(spec, tracker).run()
    logger.log_operation("sync_summary", project=spec.project.name, **report.summary())
    return report


__all__ = [
    "CREATED",
    "SKIPPED",
    "UPDATED",
    "SyncAction",
    "SyncReport",
    "collect_desired_milestone_names",
    "resolve_desired_assignee_id",
    "resolve_epic_milestone_name",
    "resolve_story_milestone_name",
    "resolve_team_id",
    "sync_issue_assignee",
    "sync_project",
]
