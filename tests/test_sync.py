from __future__ import annotations

import pytest

from linear_engine.errors import SyncError
from linear_engine.models import EpicSpec, MilestoneSpec, ProjectInfo, ProjectSpec, StorySpec
from linear_engine.sync import (
    collect_desired_milestone_names,
    resolve_epic_milestone_name,
    sync_project,
)
from linear_engine.tracker import TrackerCapabilities


def _spec(*epics: EpicSpec, milestones: list[str] | None = None, description: str = "Desc") -> ProjectSpec:
    return ProjectSpec(
        project=ProjectInfo(name="Engine", description=description),
        milestones=[MilestoneSpec(name=m) for m in milestones or []],
        epics=list(epics),
    )


def _triples(report):
    return [(a.status, a.entity, a.name) for a in report.actions]


def test_end_to_end_creates_project_and_epic(fake_tracker):
    report = sync_project(_spec(EpicSpec(title="Epic A", description="Build it")), fake_tracker)

    assert _triples(report) == [
        ("Created", "project", "Engine"),
        ("Created", "epic", "Epic A"),
    ]
    epic = fake_tracker.issue_titled("Epic A")
    assert epic.description == "managedBy: linear-engine\n\nBuild it"
    assert epic.assignee_id == "u1"
    assert epic.team_id == "t1"
    assert epic.parent_id is None
    created = [c for c in fake_tracker.calls if c[0] == "create_issue"]
    assert created[0][1]["assignee_id"] == "u1"
    assert "state_id" not in created[0][1]


def test_project_only_spec_touches_only_project(fake_tracker):
    fake_tracker.add_project("Engine", "Desc")
    report = sync_project(_spec(), fake_tracker)

    assert [(a.status, a.entity, a.reason) for a in report.actions] == [
        ("Skipped", "project", "description unchanged")
    ]
    assert fake_tracker.mutations() == []
    assert fake_tracker.call_names() == ["find_project_by_name"]


def test_project_description_compared_raw(fake_tracker):
    project = fake_tracker.add_project("engine", "Old")
    report = sync_project(_spec(description="New"), fake_tracker)

    assert _triples(report) == [("Updated", "project", "Engine")]
    assert fake_tracker.mutations() == [("update_project", {"id": project.id, "description": "New"})]


def _full_spec() -> ProjectSpec:
    return _spec(
        EpicSpec(
            title="Epic A",
            description="Build it",
            milestone="M1",
            stories=[
                StorySpec(title="Story 1", description="First"),
                StorySpec(title="Story 2", description="", milestone="M2"),
            ],
        ),
        EpicSpec(title="Epic B", description="Later"),
        milestones=["M0"],
    )


def test_full_sync_then_second_run_is_idempotent(fake_tracker):
    first = sync_project(_full_spec(), fake_tracker)
    statuses = _triples(first)
    assert ("Created", "milestone", "M0") in statuses
    assert ("Created", "milestone", "M1") in statuses
    assert ("Created", "milestone", "M2") in statuses
    assert ("Updated", "milestone-assignment", "Epic A") in statuses
    assert ("Updated", "milestone-assignment", "Story 1") in statuses

    fake_tracker.calls.clear()
    second = sync_project(_full_spec(), fake_tracker)

    assert [a for a in second.actions if a.status == "Created"] == []
    assert [a for a in second.actions if a.entity == "milestone-assignment"] == []
    assert fake_tracker.mutations() == []
    assert {a.status for a in second.actions} == {"Skipped"}


def test_milestone_names_collected_in_first_seen_order():
    assert collect_desired_milestone_names(_full_spec()) == ["M0", "M1", "M2"]


def test_story_inherits_epic_milestone(fake_tracker):
    sync_project(_full_spec(), fake_tracker)
    by_name = {m.name: m.id for m in fake_tracker.milestones[fake_tracker.projects[0].id]}
    assert fake_tracker.issue_titled("Epic A").milestone_id == by_name["M1"]
    assert fake_tracker.issue_titled("Story 1").milestone_id == by_name["M1"]
    assert fake_tracker.issue_titled("Story 2").milestone_id == by_name["M2"]
    assert fake_tracker.issue_titled("Epic B").milestone_id is None


def test_epic_milestone_from_top_level_title_match(fake_tracker):
    spec = _spec(EpicSpec(title="Epic A", description=""), milestones=["Epic A"])
    assert resolve_epic_milestone_name(spec, spec.epics[0]) == "Epic A"
    report = sync_project(spec, fake_tracker)
    assert [a.reason for a in report.actions if a.entity == "milestone-assignment"] == [
        "milestone assigned: Epic A"
    ]


def test_story_inherits_title_matched_epic_milestone(fake_tracker):
    spec = _spec(
        EpicSpec(title="Epic A", description="", stories=[StorySpec(title="S1", description="")]),
        milestones=["Epic A"],
    )
    assert collect_desired_milestone_names(spec) == ["Epic A"]

    report = sync_project(spec, fake_tracker)

    milestone_id = fake_tracker.milestones[fake_tracker.projects[0].id][0].id
    assert fake_tracker.issue_titled("Epic A").milestone_id == milestone_id
    assert fake_tracker.issue_titled("S1").milestone_id == milestone_id
    assert ("Updated", "milestone-assignment", "S1") in _triples(report)


def test_milestones_unsupported_fails_hard(fake_tracker):
    fake_tracker.capabilities = TrackerCapabilities(milestones=False)
    with pytest.raises(SyncError):
        sync_project(_full_spec(), fake_tracker)
    # project step already ran; nothing past it did
    assert [c[0] for c in fake_tracker.mutations()] == ["create_project"]


def test_milestone_not_resolvable_after_create(fake_tracker):
    fake_tracker.create_milestone = lambda project_id, name: None
    with pytest.raises(SyncError, match="could not be resolved: M0"):
        sync_project(_spec(milestones=["M0"]), fake_tracker)


def test_existing_assignee_kept_when_spec_has_none(fake_tracker):
    project = fake_tracker.add_project("Engine", "Desc", team_id="t1")
    fake_tracker.add_issue(
        "Epic A",
        id="e1",
        project_id=project.id,
        team_id="t1",
        assignee_id="u2",
        description="managedBy: linear-engine\n\nBuild it",
    )
    report = sync_project(_spec(EpicSpec(title="Epic A", description="Build it")), fake_tracker)

    assert [(a.status, a.entity, a.reason) for a in report.actions] == [
        ("Skipped", "project", "description unchanged"),
        ("Skipped", "epic", "description unchanged"),
    ]
    assert fake_tracker.issue("e1").assignee_id == "u2"
    assert fake_tracker.mutations() == []


def test_unassigned_existing_issue_gets_current_user(fake_tracker):
    project = fake_tracker.add_project("Engine", "Desc", team_id="t1")
    fake_tracker.add_issue("Epic A", id="e1", project_id=project.id, team_id="t1", description="Old body")
    report = sync_project(_spec(EpicSpec(title="Epic A", description="Build it")), fake_tracker)

    reasons = [a.reason for a in report.actions if a.entity == "epic"]
    assert reasons == ["Assigned issue to current user", "description synchronized"]
    epic = fake_tracker.issue("e1")
    assert epic.assignee_id == "u1"
    assert epic.description == "managedBy: linear-engine\n\nBuild it"


def test_explicit_assignee_overrides_existing(fake_tracker):
    project = fake_tracker.add_project("Engine", "Desc", team_id="t1")
    fake_tracker.add_issue("Epic A", id="e1", project_id=project.id, team_id="t1", assignee_id="u1",
                           description="managedBy: linear-engine\n\nBuild it")
    spec = _spec(EpicSpec(title="Epic A", description="Build it", assignee="alice"))
    report = sync_project(spec, fake_tracker)

    assert ("Updated", "epic", "Epic A") in _triples(report)
    assert [a.reason for a in report.actions if a.status == "Updated"] == ["assignee set from spec"]
    assert fake_tracker.issue("e1").assignee_id == "u2"

    fake_tracker.calls.clear()
    again = sync_project(spec, fake_tracker)
    assert [a for a in again.actions if a.status == "Updated"] == []


def test_assignee_reference_by_issue_key(fake_tracker):
    fake_tracker.add_issue("Elsewhere", id="x99", identifier="COG-99", assignee_id="u9")
    spec = _spec(EpicSpec(title="Epic A", description="", assignee="COG-99"))
    sync_project(spec, fake_tracker)
    assert fake_tracker.issue_titled("Epic A").assignee_id == "u9"


def test_assignee_reference_failures(fake_tracker):
    fake_tracker.add_issue("Orphan", id="x98", identifier="COG-98")
    with pytest.raises(SyncError, match="without an assignee"):
        sync_project(_spec(EpicSpec(title="Epic A", description="", assignee="COG-98")), fake_tracker)
    with pytest.raises(SyncError, match="Unable to resolve assignee reference: nobody"):
        sync_project(_spec(EpicSpec(title="Epic A", description="", assignee="nobody")), fake_tracker)


def test_stories_scoped_to_parent_epic(fake_tracker):
    project = fake_tracker.add_project("Engine", "Desc", team_id="t1")
    fake_tracker.add_issue("Other epic", id="e0", project_id=project.id, team_id="t1", assignee_id="u1")
    fake_tracker.add_issue("Story 1", id="s0", project_id=project.id, team_id="t1", parent_id="e0",
                           assignee_id="u1")
    spec = _spec(EpicSpec(title="Epic A", description="", stories=[StorySpec(title="Story 1", description="")]))
    report = sync_project(spec, fake_tracker)

    assert ("Created", "story", "Story 1") in _triples(report)
    stories = [i for i in fake_tracker.issues if i.title == "Story 1"]
    epic = fake_tracker.issue_titled("Epic A")
    assert sorted(s.parent_id for s in stories) == sorted(["e0", epic.id])


def test_legacy_fenced_description_counts_as_unchanged(fake_tracker):
    project = fake_tracker.add_project("Engine", "Desc", team_id="t1")
    fake_tracker.add_issue("Epic A", id="e1", project_id=project.id, team_id="t1", assignee_id="u1",
                           description="---\nmanagedBy: linear-engine\n---\nBuild it")
    report = sync_project(_spec(EpicSpec(title="Epic A", description="Build it")), fake_tracker)
    assert report.actions[-1].reason == "description unchanged"
    assert fake_tracker.mutations() == []


def test_sync_never_touches_workflow_state(fake_tracker):
    sync_project(_full_spec(), fake_tracker)
    assert "get_workflow_states" not in fake_tracker.call_names()
    for _, fields in fake_tracker.mutations():
        assert "state_id" not in fields


def test_team_resolution_order(fake_tracker):
    project = fake_tracker.add_project("Engine", "Desc", team_ids=["t7", "t8"])
    sync_project(_spec(EpicSpec(title="Epic A", description="")), fake_tracker)
    assert fake_tracker.issue_titled("Epic A").team_id == "t7"

    fake_tracker.projects.clear()
    fake_tracker.issues.clear()
    project = fake_tracker.add_project("Engine", "Desc")
    fake_tracker.project_team_ids[project.id] = ["t5"]
    sync_project(_spec(EpicSpec(title="Epic A", description="")), fake_tracker)
    assert fake_tracker.issue_titled("Epic A").team_id == "t5"


def test_team_resolution_skips_project_teams_without_capability(fake_tracker):
    project = fake_tracker.add_project("Engine", "Desc")
    fake_tracker.project_team_ids[project.id] = ["t5"]
    fake_tracker.capabilities = TrackerCapabilities(project_teams=False)
    sync_project(_spec(EpicSpec(title="Epic A", description="")), fake_tracker)
    assert fake_tracker.issue_titled("Epic A").team_id == "t1"
    assert "list_project_team_ids" not in fake_tracker.call_names()


def test_team_resolution_failure(fake_tracker):
    fake_tracker.teams.clear()
    with pytest.raises(SyncError, match="Unable to resolve teamId"):
        sync_project(_spec(EpicSpec(title="Epic A", description="")), fake_tracker)


def test_report_to_dict(fake_tracker):
    fake_tracker.add_project("Engine", "Desc")
    data = sync_project(_spec(), fake_tracker).to_dict()
    assert data == {
        "actions": [
            {"status": "Skipped", "entity": "project", "name": "Engine", "reason": "description unchanged"}
        ],
        "summary": {"Created": 0, "Updated": 0, "Skipped": 1},
    }
