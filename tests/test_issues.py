from __future__ import annotations

import pytest

from linear_engine.errors import (
    IssueNotFoundError,
    StateNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from linear_engine.issues import (
    assign_issue,
    comment_on_issue,
    get_issue_status,
    move_issue,
    move_issue_by_title,
    start_issue,
)
from linear_engine.models import RemoteWorkflowState


@pytest.fixture
def tracker(fake_tracker):
    project = fake_tracker.add_project("Engine")
    fake_tracker.add_issue(
        "Wire the pump",
        id="i12",
        identifier="COG-12",
        team_id="t1",
        state_id="s-todo",
        project_id=project.id,
    )
    return fake_tracker


def test_status_reports_unassigned_and_project(tracker):
    status = get_issue_status(tracker, "COG-12")
    assert status.issue_key == "COG-12"
    assert status.title == "Wire the pump"
    assert status.state == "Todo"
    assert status.assignee == "Unassigned"
    assert status.project == "Engine"


def test_status_assignee_label_falls_back_to_raw_id(tracker):
    tracker.issue("i12").assignee_id = "ghost"
    assert get_issue_status(tracker, "COG-12").assignee == "ghost"
    tracker.issue("i12").assignee_id = "u2"
    assert get_issue_status(tracker, "COG-12").assignee == "Alice"


def test_status_unknown_project(tracker):
    tracker.issue("i12").project_id = None
    assert get_issue_status(tracker, "COG-12").project == "Unknown"


def test_status_requires_team(tracker):
    tracker.issue("i12").team_id = None
    with pytest.raises(ValidationError, match="has no team"):
        get_issue_status(tracker, "COG-12")


def test_move_issues_exactly_one_update(tracker):
    result = move_issue(tracker, "COG-12", "in progress")
    assert (result.issue_key, result.previous_state, result.new_state) == (
        "COG-12",
        "Todo",
        "In Progress",
    )
    updates = [c for c in tracker.calls if c[0] == "update_issue"]
    assert updates == [("update_issue", {"id": "i12", "state_id": "s-progress"})]


def test_move_to_same_state_is_noop(tracker):
    result = move_issue(tracker, "COG-12", "TODO")
    assert result.previous_state == result.new_state == "Todo"
    assert tracker.mutations() == []


def test_move_unknown_issue_and_state(tracker):
    with pytest.raises(IssueNotFoundError):
        move_issue(tracker, "COG-404", "Done")
    with pytest.raises(StateNotFoundError):
        move_issue(tracker, "COG-12", "Shipped")
    with pytest.raises(ValidationError):
        move_issue(tracker, "  ", "Done")
    with pytest.raises(ValidationError):
        move_issue(tracker, "COG-12", " ")
    assert tracker.mutations() == []


def test_move_by_title(tracker):
    result = move_issue_by_title(tracker, "Wire the pump", "Done")
    assert result.new_state == "Done"
    assert tracker.issue("i12").state_id == "s-done"


def test_move_by_title_ambiguous_or_missing(tracker):
    tracker.add_issue("Wire the pump", identifier="COG-13", team_id="t1")
    with pytest.raises(ValidationError, match="Multiple issues"):
        move_issue_by_title(tracker, "Wire the pump", "Done")
    with pytest.raises(IssueNotFoundError):
        move_issue_by_title(tracker, "Nothing like it", "Done")


def test_comment_requires_text(tracker):
    with pytest.raises(ValidationError):
        comment_on_issue(tracker, "COG-12", "   ")
    result = comment_on_issue(tracker, "COG-12", "  Looks good  ")
    assert result.issue_key == "COG-12"
    assert tracker.comments == [("i12", "Looks good")]


def test_assign_resolves_user_by_email_case_insensitively(tracker):
    result = assign_issue(tracker, "COG-12", "ALICE@example.com")
    assert result.assignee == "Alice"
    assert tracker.issue("i12").assignee_id == "u2"


def test_assign_unknown_user(tracker):
    with pytest.raises(UserNotFoundError):
        assign_issue(tracker, "COG-12", "nobody")
    assert tracker.mutations() == []


def test_start_moves_to_first_active_state(tracker):
    result = start_issue(tracker, "COG-12")
    assert (result.previous_state, result.new_state) == ("Todo", "In Progress")
    assert tracker.issue("i12").state_id == "s-progress"


def test_start_already_active_is_noop(tracker):
    tracker.issue("i12").state_id = "s-progress"
    result = start_issue(tracker, "COG-12")
    assert result.previous_state == result.new_state == "In Progress"
    assert tracker.mutations() == []


def test_start_without_active_state(tracker):
    tracker.states["t1"] = [RemoteWorkflowState(id="s-done", name="Done", type="completed", position=0)]
    with pytest.raises(StateNotFoundError, match="No active workflow state"):
        start_issue(tracker, "COG-12")
