"""FastAPI HTTP surface for linear-engine.

Every route except ``/health`` requires an ``x-exec-secret`` header equal to
the configured exec secret. Responses use one envelope:

- success: ``{"ok": true, "data": ...}``
- domain failure: ``{"ok": false, "error": "..."}`` with status 400
- unknown route: ``{"ok": false, "error": "Not found"}`` with status 404
"""

from __future__ import annotations

import hmac
import time
from collections.abc import Awaitable, Callable
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .config import EngineConfig
from .errors import LinearEngineError, ValidationError, classify_error, redact
from .issues import assign_issue, comment_on_issue, get_issue_status, move_issue, start_issue
from .logging import get_logger
from .parser import build_project_spec, load_project_spec
from .projects import assign_project_issues, list_project_issues, list_projects
from .runtime import build_tracker
from .sync import sync_project
from .tracker import TrackerPort

SECRET_HEADER = "x-exec-secret"
PUBLIC_PATHS = frozenset({"/health"})

TrackerFactory = Callable[[], TrackerPort]


class MoveRequest(BaseModel):
    """Move payload: issue key plus target state name."""
    id: str
    state: str


class AssignRequest(BaseModel):
    """Assign payload: issue key plus user identifier."""
    id: str
    user: str


class StartRequest(BaseModel):
    """Start payload: issue key."""
    id: str


class CommentRequest(BaseModel):
    """Comment payload: issue key plus comment text."""
    id: str
    text: str


class SyncRequest(BaseModel):
    """Either a path readable by the server or an inline project spec."""
    file_path: str | None = None
    spec: dict[str, Any] | None = None


class AssignProjectRequest(BaseModel):
    """Bulk assignment payload for one project."""
    project: str
    force: bool = False


def _ok(data: Any) -> dict[str, Any]:
    return {"ok": True, "data": data}


def _fail(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"ok": False, "error": redact(message)}, status_code=status_code)


def create_app(
    cfg: EngineConfig | None = None, tracker_factory: TrackerFactory | None = None
) -> FastAPI:
    """Build the API app; ``tracker_factory`` defaults to ``build_tracker(cfg)``."""
    config = cfg or EngineConfig()
    factory: TrackerFactory = tracker_factory or (lambda: build_tracker(config))
    logger = get_logger()

    app = FastAPI(
        title="linear-engine",
        description="Linear project orchestration API",
        version=__version__,
    )

    @app.middleware("http")
    async def require_exec_secret(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if request.url.path in PUBLIC_PATHS:
            return await call_next(request)
        expected = config.exec_secret
        if not expected:
            return JSONResponse(
                {"ok": False, "error": "Server misconfigured: EXEC_SECRET is missing."},
                status_code=500,
            )
        provided = request.headers.get(SECRET_HEADER) or ""
        if not hmac.compare_digest(provided.encode(), expected.encode()):
            return JSONResponse({"ok": False, "error": "Unauthorized"}, status_code=401)
        return await call_next(request)

    @app.middleware("http")
    async def log_requests(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"{request.method} {request.url.path} {response.status_code} {duration_ms:.0f}ms",
            operation="http_request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        return response

    @app.exception_handler(LinearEngineError)
    async def _domain_error(request: Request, exc: LinearEngineError) -> JSONResponse:
        info = classify_error(exc)
        logger.log_error(
            f"request {request.url.path} failed", error=info.message, category=info.category
        )
        return _fail(info.message, 400)

    @app.exception_handler(RequestValidationError)
    async def _bad_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
        )
        return _fail(f"Invalid request: {problems}", 400)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return _fail("Not found", 404)
        return _fail(str(exc.detail), exc.status_code)

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"ok": True}

    @app.get("/status/{key}")
    def status(key: str) -> dict[str, Any]:
        return _ok(asdict(get_issue_status(factory(), key)))

    @app.post("/move")
    def move(body: MoveRequest) -> dict[str, Any]:
        return _ok(asdict(move_issue(factory(), body.id, body.state)))

    @app.post("/assign")
    def assign(body: AssignRequest) -> dict[str, Any]:
        return _ok(asdict(assign_issue(factory(), body.id, body.user)))

    @app.post("/start")
    def start(body: StartRequest) -> dict[str, Any]:
        return _ok(asdict(start_issue(factory(), body.id)))

    @app.post("/comment")
    def comment(body: CommentRequest) -> dict[str, Any]:
        return _ok(asdict(comment_on_issue(factory(), body.id, body.text)))

    @app.post("/sync")
    def sync(body: SyncRequest) -> dict[str, Any]:
        if (body.file_path is None) == (body.spec is None):
            raise ValidationError('Provide exactly one of "file_path" or "spec".')
        spec = load_project_spec(body.file_path) if body.file_path else build_project_spec(body.spec)
        return _ok(sync_project(spec, factory()).to_dict())

    @app.get("/list")
    def list_issues(project: str | None = Query(default=None)) -> dict[str, Any]:
        if not project:
            raise ValidationError("Query parameter 'project' is required.")
        return _ok([asdict(r) for r in list_project_issues(factory(), project)])

    @app.get("/projects")
    def projects() -> dict[str, Any]:
        return _ok([asdict(r) for r in list_projects(factory())])

    @app.post("/assign-project")
    def assign_project(body: AssignProjectRequest) -> dict[str, Any]:
        result = assign_project_issues(factory(), body.project, force=body.force)
        return _ok({**asdict(result), "forced": body.force})

    return app


__all__ = ["SECRET_HEADER", "create_app"]
