"""linear-engine CLI.

Subcommands:
  sync            -> reconcile a project spec file against Linear
  assign-project  -> assign a project's issues to the current user
  status          -> show one issue (key, title, state, assignee, project)
  move            -> move an issue (by key or exact title) to a workflow state
  comment         -> add a comment to an issue
  assign          -> assign an issue to a user
  start           -> move an issue to its team's first active state
  list            -> list a project's issues
  projects        -> list projects
  serve           -> run the HTTP API

``--json`` switches every command (errors included) to indented JSON.
Logs go to stderr; command output goes to stdout.
"""

from __future__ import annotations

import argparse
import os
from dataclasses import asdict
from typing import Any

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
from .logging import configure_logging
from .parser import load_project_spec
from .projects import assign_project_issues, list_project_issues, list_projects
from .runtime import build_tracker, execute_command
from .sync import sync_project
from .ux import print_error, print_json, print_lines, print_sync_actions, print_table

_MAX_HELP_WIDTH = 100
ISSUE_KEY_HELP = "Issue key (e.g. COG-12)"


class _HelpFormatter(argparse.HelpFormatter):
    def __init__(self, prog: str) -> None:
        super().__init__(prog, max_help_position=30, width=_MAX_HELP_WIDTH)


class _FormatterArgumentParser(argparse.ArgumentParser):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("formatter_class", _HelpFormatter)
        super().__init__(*args, **kwargs)


def _build_parser() -> argparse.ArgumentParser:
    """Construct top-level CLI parser with subcommands.

    Keep ordering stable for help output readability.
    """
    p = _FormatterArgumentParser(
        prog="linear-engine", description="Declarative Linear project orchestration"
    )
    p.add_argument("--json", action="store_true", help="Print JSON output")
    p.add_argument(
        "--config",
        default=None,
        help="Path to YAML config (default: linear_engine.config.yaml if present)",
    )
    p.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress informational logging (env: LINEAR_ENGINE_QUIET=1)",
    )
    sub = p.add_subparsers(
        dest="cmd",
        required=True,
        parser_class=_FormatterArgumentParser,
        metavar="<command>",
    )

    ps = sub.add_parser("sync", help="Sync project state to Linear")
    ps.add_argument("--file", required=True, help="Path to ProjectSpec YAML/JSON file")

    pap = sub.add_parser("assign-project", help="Assign issues in a project to the current user")
    pap.add_argument("--project", required=True, help="Project name")
    pap.add_argument(
        "--force",
        action="store_true",
        help="Reassign all issues even if already assigned",
    )

    pst = sub.add_parser("status", help="Show issue status by issue key")
    pst.add_argument("--id", required=True, help=ISSUE_KEY_HELP)

    pm = sub.add_parser("move", help="Move issue to a workflow state")
    target = pm.add_mutually_exclusive_group(required=True)
    target.add_argument("--id", help=ISSUE_KEY_HELP)
    target.add_argument("--issue", help="Exact issue title")
    pm.add_argument("--state", required=True, help="Workflow state name")

    pc = sub.add_parser("comment", help="Add a comment to an issue by key")
    pc.add_argument("--id", required=True, help=ISSUE_KEY_HELP)
    pc.add_argument("--text", required=True, help="Comment text")

    pa = sub.add_parser("assign", help="Assign an issue to a user")
    pa.add_argument("--id", required=True, help=ISSUE_KEY_HELP)
    pa.add_argument("--user", required=True, help="User ID, username, display name, or email")

    pss = sub.add_parser("start", help="Move an issue to the first active workflow state")
    pss.add_argument("--id", required=True, help=ISSUE_KEY_HELP)

    pl = sub.add_parser("list", help="List issues in a project")
    pl.add_argument("--project", required=True, help="Project name")

    sub.add_parser("projects", help="List projects")

    pserve = sub.add_parser("serve", help="Run the HTTP API")
    pserve.add_argument("--host", help="Bind address (default from config)")
    pserve.add_argument("--port", type=int, help="Bind port (default from config)")
    return p


def _emit(args: argparse.Namespace, payload: Any, lines: list[str]) -> int:
    if args.json:
        print_json(payload)
    else:
        print_lines(lines)
    return 0


def _cmd_sync(cfg: EngineConfig, args: argparse.Namespace) -> int:
    spec = load_project_spec(args.file)
    report = sync_project(spec, build_tracker(cfg))
    if args.json:
        print_json(report.to_dict())
    else:
        print_sync_actions(report.actions)
    return 0


def _cmd_assign_project(cfg: EngineConfig, args: argparse.Namespace) -> int:
    result = assign_project_issues(build_tracker(cfg), args.project, force=args.force)
    return _emit(
        args,
        {**asdict(result), "forced": args.force},
        [
            f"Total issues: {result.total_issues}",
            f"Assigned count: {result.assigned_count}",
            f"Skipped count: {result.skipped_count}",
        ],
    )


def _cmd_status(cfg: EngineConfig, args: argparse.Namespace) -> int:
    status = get_issue_status(build_tracker(cfg), args.id)
    return _emit(
        args,
        asdict(status),
        [
            f"Issue key: {status.issue_key}",
            f"Title: {status.title}",
            f"State: {status.state}",
            f"Assignee: {status.assignee}",
            f"Project: {status.project}",
        ],
    )


def _cmd_move(cfg: EngineConfig, args: argparse.Namespace) -> int:
    tracker = build_tracker(cfg)
    if args.id is not None:
        result = move_issue(tracker, args.id, args.state)
    else:
        result = move_issue_by_title(tracker, args.issue, args.state)
    return _emit(
        args,
        asdict(result),
        [f"Moved {result.issue_key} from {result.previous_state} to {result.new_state}"],
    )


def _cmd_comment(cfg: EngineConfig, args: argparse.Namespace) -> int:
    result = comment_on_issue(build_tracker(cfg), args.id, args.text)
    return _emit(
        args,
        {**asdict(result), "success": True},
        [f"Comment added to {result.issue_key}"],
    )


def _cmd_assign(cfg: EngineConfig, args: argparse.Namespace) -> int:
    result = assign_issue(build_tracker(cfg), args.id, args.user)
    return _emit(
        args,
        {**asdict(result), "success": True},
        [f"Assigned {result.issue_key} to {result.assignee}"],
    )


def _cmd_start(cfg: EngineConfig, args: argparse.Namespace) -> int:
    result = start_issue(build_tracker(cfg), args.id)
    return _emit(
        args,
        asdict(result),
        [f"Started {result.issue_key}: {result.previous_state} -> {result.new_state}"],
    )


def _cmd_list(cfg: EngineConfig, args: argparse.Namespace) -> int:
    records = list_project_issues(build_tracker(cfg), args.project)
    if args.json:
        print_json([asdict(r) for r in records])
        return 0
    print_table(
        [[r.issue_key or r.id, r.state, r.title] for r in records],
        headers=["KEY", "STATE", "TITLE"],
    )
    return 0


def _cmd_projects(cfg: EngineConfig, args: argparse.Namespace) -> int:
    records = list_projects(build_tracker(cfg))
    if args.json:
        print_json([asdict(r) for r in records])
        return 0
    print_table(
        [
            [
                r.name,
                r.state or "-",
                f"{r.progress:.0%}" if r.progress is not None else "-",
                r.lead or "-",
            ]
            for r in records
        ],
        headers=["NAME", "STATE", "PROGRESS", "LEAD"],
    )
    return 0


def _cmd_serve(cfg: EngineConfig, args: argparse.Namespace) -> int:
    import uvicorn  # noqa: PLC0415

    from .api import create_app  # noqa: PLC0415

    app = create_app(cfg)
    uvicorn.run(
        app,
        host=args.host or cfg.server_host,
        port=args.port or cfg.server_port,
        log_level=cfg.logging_level.lower(),
    )
    return 0


def _build_handlers(args: argparse.Namespace, cfg: EngineConfig) -> dict[str, Any]:
    return {
        "sync": lambda: _cmd_sync(cfg, args),
        "assign-project": lambda: _cmd_assign_project(cfg, args),
        "status": lambda: _cmd_status(cfg, args),
        "move": lambda: _cmd_move(cfg, args),
        "comment": lambda: _cmd_comment(cfg, args),
        "assign": lambda: _cmd_assign(cfg, args),
        "start": lambda: _cmd_start(cfg, args),
        "list": lambda: _cmd_list(cfg, args),
        "projects": lambda: _cmd_projects(cfg, args),
        "serve": lambda: _cmd_serve(cfg, args),
    }


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.quiet and os.environ.get("LINEAR_ENGINE_QUIET") == "1":
        args.quiet = True
    try:
        cfg = load_config(args.config)
    except LinearEngineError as exc:
        print_error(str(exc), as_json=args.json)
        return 1
    configure_logging(
        json_logging=cfg.logging_json_enabled,
        level="WARNING" if args.quiet else cfg.logging_level,
    )
    handlers = _build_handlers(args, cfg)
    handler = handlers.get(args.cmd)
    if handler is None:  # pragma: no cover - argparse enforces valid choices
        parser.print_help()
        return 1
    return execute_command(
        handler, args.cmd, on_error=lambda exc: print_error(str(exc), as_json=args.json)
    )


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
