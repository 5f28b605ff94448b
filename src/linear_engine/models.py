from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class StorySpec:
    title: str
    description: str
    assignee: str | None = None
    milestone: str | None = None


@dataclass
class EpicSpec:
    title: str
    description: str
    assignee: str | None = None
    milestone: str | None = None
    stories: list[StorySpec] = field(default_factory=list)


@dataclass
class MilestoneSpec:
    name: str


@dataclass
class ProjectInfo:
    name: str
    description: str


@dataclass
class ProjectSpec:
    """Desired-state document for one project.

    Built per invocation by ``parser.load_project_spec`` (or directly in
    tests); never persisted.
    """

    project: ProjectInfo
    milestones: list[MilestoneSpec] = field(default_factory=list)
    epics: list[EpicSpec] = field(default_factory=list)


# --- remote entities ----------------------------------------------------


@dataclass
class RemoteTeam:
    id: str
    key: str = ""
    name: str = ""


@dataclass
class RemoteProject:
    id: str
    name: str
    description: str = ""
    team_id: str | None = None
    team_ids: list[str] = field(default_factory=list)
    state: str | None = None
    progress: float | None = None
    start_date: str | None = None
    target_date: str | None = None
    lead_name: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class RemoteIssue:
    """A tracker issue. ``parent_id`` is ``None`` for epics."""

    id: str
    title: str
    identifier: str | None = None
    description: str | None = None
    team_id: str | None = None
    state_id: str | None = None
    project_id: str | None = None
    milestone_id: str | None = None
    parent_id: str | None = None
    assignee_id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class RemoteMilestone:
    id: str
    name: str


@dataclass
class RemoteUser:
    id: str
    name: str | None = None
    display_name: str | None = None
    email: str | None = None

    @property
    def label(self) -> str:
        """First non-empty of display name, name, email, then the id."""
        for candidate in (self.display_name, self.name, self.email):
            text = (candidate or "").strip()
            if text:
                return text
        return self.id


@dataclass
class RemoteWorkflowState:
    id: str
    name: str
    type: str | None = None
    position: float | None = None


__all__ = [
    "EpicSpec",
    "MilestoneSpec",
    "ProjectInfo",
    "ProjectSpec",
    "RemoteIssue",
    "RemoteMilestone",
    "RemoteProject",
    "RemoteTeam",
    "RemoteUser",
    "RemoteWorkflowState",
    "StorySpec",
]
