"""HTTP surface over the planboard stores."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from fastapi import APIRouter, FastAPI, HTTPException, Query, WebSocket
from fastapi.responses import Response
from pydantic import BaseModel, Field

from . import __version__
from .container import Planboard
from .exporters import ExportFormat
from .models import (
    BacklogCategory,
    BacklogFilter,
    BacklogStatus,
    ModuleName,
    Priority,
    TaskFilter,
    TaskStatus,
)
from .utils import coerce_enum
from .ws import SnapshotHub

MEDIA_TYPES = {
    ExportFormat.JSON: "application/json",
    ExportFormat.CSV: "text/csv",
    ExportFormat.KANBAN: "application/json",
}


class CreateTaskRequest(BaseModel):
    title: str
    module: str
    priority: str = "medium"
    status: str = "pending"
    detail: str = ""
    ai_suggestion: Optional[str] = None
    progress: int = 0
    assignee: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    estimate_hours: Optional[float] = None


class UpdateTaskRequest(BaseModel):
    title: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    detail: Optional[str] = None
    ai_suggestion: Optional[str] = None
    progress: Optional[int] = None
    assignee: Optional[str] = None
    tags: Optional[list[str]] = None
    estimate_hours: Optional[float] = None


class AnalysisRequest(BaseModel):
    kind: str = "performance"
    scope: str = "global"


class VersionRequest(BaseModel):
    summary: str
    actor: str = "user"


class ChecklistEntry(BaseModel):
    text: str
    done: bool = False


class CreateItemRequest(BaseModel):
    title: str
    description: str = ""
    category: str = "UX"
    impacted_module: str = ""
    priority: str = "medium"
    status: str = "draft"
    column: str = "ideas"
    creator: str = "user"
    tags: list[str] = Field(default_factory=list)
    checklist: list[ChecklistEntry] = Field(default_factory=list)
    estimate_hours: Optional[float] = None
    progress: int = 0
    roi_estimate: Optional[str] = None


class UpdateItemRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    impacted_module: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    column: Optional[str] = None
    tags: Optional[list[str]] = None
    checklist: Optional[list[ChecklistEntry]] = None
    estimate_hours: Optional[float] = None
    progress: Optional[int] = None
    roi_estimate: Optional[str] = None
    actor: str = "user"


class MoveItemRequest(BaseModel):
    column: str
    actor: str = "user"
    reason: Optional[str] = None


class CommentRequest(BaseModel):
    author: str
    content: str


def _enum_list(enum_cls: type[Enum], values: Optional[list[str]]) -> Optional[list[Any]]:
    if not values:
        return None
    return [coerce_enum(enum_cls, v) for v in values]


def _bad_request(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=400, detail=str(exc))


def create_router(board: Planboard) -> APIRouter:
    router = APIRouter(prefix="/api", tags=["planboard"])

    # -- action plan --------------------------------------------------------

    @router.get("/action-plan")
    async def action_plan_snapshot() -> dict[str, Any]:
        return board.action_plan.snapshot()

    @router.get("/action-plan/statistics")
    async def action_plan_statistics() -> dict[str, Any]:
        return board.action_plan.statistics()

    @router.get("/action-plan/modules/{name}")
    async def get_module(name: str) -> dict[str, Any]:
        module = board.action_plan.get_module(name)
        if module is None:
            raise HTTPException(status_code=404, detail="Module not found")
        return {"module": module.to_dict()}

    @router.get("/action-plan/tasks")
    async def list_tasks(
        module: Optional[list[str]] = Query(None),
        status: Optional[list[str]] = Query(None),
        priority: Optional[list[str]] = Query(None),
        assignee: Optional[list[str]] = Query(None),
        tag: Optional[list[str]] = Query(None),
        ai_only: bool = Query(False),
        created_from: Optional[str] = Query(None),
        created_to: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        try:
            criteria = TaskFilter(
                modules=_enum_list(ModuleName, module),
                statuses=_enum_list(TaskStatus, status),
                priorities=_enum_list(Priority, priority),
                assignees=assignee or None,
                tags=tag or None,
                ai_suggested_only=ai_only,
                created_from=created_from,
                created_to=created_to,
            )
        except ValueError as exc:
            raise _bad_request(exc) from exc
        tasks = board.action_plan.filter_tasks(criteria)
        return {"tasks": [t.to_dict() for t in tasks], "total": len(tasks)}

    @router.post("/action-plan/tasks")
    async def create_task(body: CreateTaskRequest) -> dict[str, Any]:
        try:
            task = board.action_plan.add_task(body.model_dump())
        except ValueError as exc:
            raise _bad_request(exc) from exc
        if task is None:
            raise HTTPException(status_code=404, detail=f"Module not found: {body.module}")
        return {"task": task.to_dict()}

    @router.get("/action-plan/tasks/{task_id}")
    async def get_task(task_id: str) -> dict[str, Any]:
        task = board.action_plan.get_task(task_id)
        if task is None:
            raise HTTPException(status_code=404, detail="Task not found")
        return {"task": task.to_dict()}

    @router.patch("/action-plan/tasks/{task_id}")
    async def update_task(task_id: str, body: UpdateTaskRequest) -> dict[str, Any]:
        try:
            ok = board.action_plan.update_task(task_id, body.model_dump(exclude_none=True))
        except ValueError as exc:
            raise _bad_request(exc) from exc
        if not ok:
            raise HTTPException(status_code=404, detail="Task not found")
        task = board.action_plan.get_task(task_id)
        return {"task": task.to_dict() if task else None}

    @router.delete("/action-plan/tasks/{task_id}")
    async def delete_task(task_id: str) -> dict[str, Any]:
        if not board.action_plan.delete_task(task_id):
            raise HTTPException(status_code=404, detail="Task not found")
        return {"deleted": task_id}

    @router.post("/action-plan/analysis")
    async def run_analysis(body: AnalysisRequest) -> dict[str, Any]:
        try:
            result = await board.action_plan.run_ai_analysis(body.kind, body.scope)
        except ValueError as exc:
            raise _bad_request(exc) from exc
        return {"analysis": result.to_dict()}

    @router.get("/action-plan/analyses")
    async def list_analyses() -> dict[str, Any]:
        return {"analyses": [a.to_dict() for a in board.action_plan.analyses()]}

    @router.post("/action-plan/versions")
    async def create_version(body: VersionRequest) -> dict[str, Any]:
        version = board.action_plan.create_version(body.summary, body.actor)
        return {"version": version.to_dict()}

    @router.get("/action-plan/logs")
    async def list_logs(limit: int = Query(50, ge=1, le=1000)) -> dict[str, Any]:
        entries = board.action_plan.logs(limit)
        return {"logs": [e.to_dict() for e in entries], "total": board.action_plan.log_size()}

    @router.get("/action-plan/export")
    async def export_action_plan(
        format: str = Query("json"),
        include_logs: bool = Query(False),
        include_history: bool = Query(False),
        include_analyses: bool = Query(False),
    ) -> Response:
        try:
            body = board.action_plan.export(
                format,
                include_logs=include_logs,
                include_history=include_history,
                include_analyses=include_analyses,
            )
        except ValueError as exc:
            raise _bad_request(exc) from exc
        return Response(content=body, media_type=MEDIA_TYPES[ExportFormat(format.lower())])

    # -- backlog ------------------------------------------------------------

    @router.get("/backlog")
    async def backlog_snapshot() -> dict[str, Any]:
        return board.backlog.snapshot()

    @router.get("/backlog/items")
    async def list_items(
        category: Optional[list[str]] = Query(None),
        priority: Optional[list[str]] = Query(None),
        status: Optional[list[str]] = Query(None),
        module: Optional[list[str]] = Query(None),
        creator: Optional[list[str]] = Query(None),
        search: Optional[str] = Query(None),
        analyzed_only: bool = Query(False),
        approved_only: bool = Query(False),
        tag: Optional[list[str]] = Query(None),
        created_from: Optional[str] = Query(None),
        created_to: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        try:
            criteria = BacklogFilter(
                categories=_enum_list(BacklogCategory, category),
                priorities=_enum_list(Priority, priority),
                statuses=_enum_list(BacklogStatus, status),
                modules=module or None,
                creators=creator or None,
                search=search,
                ai_analyzed_only=analyzed_only,
                approved_only=approved_only,
                tags=tag or None,
                created_from=created_from,
                created_to=created_to,
            )
        except ValueError as exc:
            raise _bad_request(exc) from exc
        items = board.backlog.filter_items(criteria)
        return {"items": [i.to_dict() for i in items], "total": len(items)}

    @router.post("/backlog/items")
    async def create_item(body: CreateItemRequest) -> dict[str, Any]:
        try:
            item = board.backlog.create_item(body.model_dump())
        except ValueError as exc:
            raise _bad_request(exc) from exc
        return {"item": item.to_dict()}

    @router.get("/backlog/items/{item_id}")
    async def get_item(item_id: str) -> dict[str, Any]:
        item = board.backlog.get_item(item_id)
        if item is None:
            raise HTTPException(status_code=404, detail="Item not found")
        return {"item": item.to_dict()}

    @router.patch("/backlog/items/{item_id}")
    async def update_item(item_id: str, body: UpdateItemRequest) -> dict[str, Any]:
        changes = body.model_dump(exclude_none=True)
        actor = changes.pop("actor", "user")
        try:
            ok = board.backlog.update_item(item_id, changes, actor=actor)
        except ValueError as exc:
            raise _bad_request(exc) from exc
        if not ok:
            raise HTTPException(status_code=404, detail="Item not found")
        item = board.backlog.get_item(item_id)
        return {"item": item.to_dict() if item else None}

    @router.post("/backlog/items/{item_id}/move")
    async def move_item(item_id: str, body: MoveItemRequest) -> dict[str, Any]:
        try:
            ok = board.backlog.move_item(item_id, body.column, body.actor, reason=body.reason)
        except ValueError as exc:
            raise _bad_request(exc) from exc
        if not ok:
            raise HTTPException(status_code=404, detail="Item not found")
        item = board.backlog.get_item(item_id)
        return {"item": item.to_dict() if item else None}

    @router.post("/backlog/items/{item_id}/comments")
    async def add_comment(item_id: str, body: CommentRequest) -> dict[str, Any]:
        try:
            comment = board.backlog.add_comment(item_id, body.author, body.content)
        except ValueError as exc:
            raise _bad_request(exc) from exc
        if comment is None:
            raise HTTPException(status_code=404, detail="Item not found")
        return {"comment": comment.to_dict()}

    @router.delete("/backlog/items/{item_id}")
    async def delete_item(item_id: str) -> dict[str, Any]:
        if not board.backlog.delete_item(item_id):
            raise HTTPException(status_code=404, detail="Item not found")
        return {"deleted": item_id}

    @router.patch("/backlog/config")
    async def update_backlog_config(body: dict[str, Any]) -> dict[str, Any]:
        try:
            config = board.backlog.update_config(**body)
        except ValueError as exc:
            raise _bad_request(exc) from exc
        return {"config": config.model_dump()}

    @router.get("/backlog/export")
    async def export_backlog(format: str = Query("json")) -> Response:
        try:
            body = board.backlog.export(format)
        except ValueError as exc:
            raise _bad_request(exc) from exc
        return Response(content=body, media_type=MEDIA_TYPES[ExportFormat(format.lower())])

    # -- pipeline -----------------------------------------------------------

    @router.post("/pipeline/run")
    async def run_pipeline() -> dict[str, Any]:
        record = await board.pipeline.run_batch()
        if record is None:
            raise HTTPException(status_code=409, detail="Pipeline already processing")
        return {"run": record.to_dict()}

    @router.get("/pipeline/status")
    async def pipeline_status() -> dict[str, Any]:
        return board.pipeline.status()

    @router.get("/pipeline/history")
    async def pipeline_history() -> dict[str, Any]:
        return {"history": [r.to_dict() for r in board.backlog.processing_history()]}

    # -- notifications ------------------------------------------------------

    @router.get("/notifications")
    async def list_notifications(unread_only: bool = Query(False), limit: int = Query(50, ge=1, le=200)) -> dict[str, Any]:
        notes = board.notifications.list(unread_only=unread_only, limit=limit)
        return {
            "notifications": [n.to_dict() for n in notes],
            "unread": board.notifications.unread_count(),
        }

    @router.post("/notifications/{notification_id}/read")
    async def mark_notification_read(notification_id: str) -> dict[str, Any]:
        if not board.notifications.mark_read(notification_id):
            raise HTTPException(status_code=404, detail="Notification not found")
        return {"read": notification_id}

    return router


def create_app(board: Optional[Planboard] = None) -> FastAPI:
    """Create the FastAPI app and wire store snapshots to the WebSocket hub.

    Args:
        board: Application object; a default one is built when omitted.

    Returns:
        Configured FastAPI app.
    """
    board = board or Planboard()
    hub = SnapshotHub()
    board.action_plan.subscribe(hub.forwarder("action_plan"))
    board.backlog.subscribe(hub.forwarder("backlog"))
    board.pipeline.subscribers.subscribe(hub.forwarder("pipeline", "status"))

    app = FastAPI(
        title="Planboard",
        description="Action plan and strategic backlog orchestration",
        version=__version__,
    )
    app.state.board = board
    app.state.hub = hub
    app.include_router(create_router(board))

    @app.get("/")
    async def root() -> dict[str, Any]:
        return {"name": "Planboard", "version": __version__, "status": "running"}

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        await hub.handle_connection(websocket)

    return app
