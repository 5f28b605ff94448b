"""linear-engine - declarative Linear project orchestration.

High-level public API (stable):

from linear_engine import load_config, build_tracker, load_project_spec, sync_project

cfg = load_config()                      # linear_engine.config.yaml + environment
tracker = build_tracker(cfg)             # LinearClient implementing TrackerPort
report = sync_project(load_project_spec('project.yaml'), tracker)
for action in report.actions:
    print(action.status, action.entity, action.name, action.reason)

Single-issue operations (move_issue, start_issue, ...) and listings live in
``linear_engine.issues`` and ``linear_engine.projects``; the CLI and the HTTP
API (``linear_engine.api``) delegate to them.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .config import EngineConfig, load_config
from .errors import LinearEngineError
from .issues import (
    assign_issue,
    comment_on_issue,
    get_issue_status,
    move_issue,
    move_issue_by_title,
    start_issue,
)
from .models import EpicSpec, MilestoneSpec, ProjectInfo, ProjectSpec, StorySpec
from .parser import load_project_spec
from .projects import assign_project_issues, list_project_issues, list_projects
from .runtime import build_tracker
from .sync import SyncAction, SyncReport, sync_project
from .tracker import TrackerCapabilities, TrackerPort

__all__ = [
    "EngineConfig",
    "EpicSpec",
    "LinearEngineError",
    "MilestoneSpec",
    "ProjectInfo",
    "ProjectSpec",
    "StorySpec",
    "SyncAction",
    "SyncReport",
    "TrackerCapabilities",
    "TrackerPort",
    "__version__",
    "assign_issue",
    "assign_project_issues",
    "build_tracker",
    "comment_on_issue",
    "get_issue_status",
    "list_project_issues",
    "list_projects",
    "load_config",
    "load_project_spec",
    "move_issue",
    "move_issue_by_title",
    "start_issue",
    "sync_project",
]
