from __future__ import annotations
import json, asyncio
from pathlib import Path
from typing import List, Optional
from fastapi import FastAPI, Request, Query, HTTPException
from fastapi.responses import HTMLResponse, StreamingResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, Field
from ..config import Settings, default_settings
from ..core.errors import PlanError
from ..core.orchestrator import plan_goal
from ..core.planner import build_plan, plan_to_dict, subtask_from_dict
from ..core.types import ContextArtifact
from ..memory.db import MemoryDB
from ..security.kill import engage, is_engaged
from ..tools.logs import tail

class PlanRequest(BaseModel):
    goal: str
    requirements: List[str] = Field(default_factory=list)
    artifacts: List[str] = Field(default_factory=list)
    # sous-tâches explicites (dépendances déclarées), prioritaires sur requirements
    subtasks: Optional[List[dict]] = None

def create_app(db_path: str, log_dir: str, *, settings: Settings | None = None, kill_switch_path: str | None = None) -> FastAPI:
    app = FastAPI(title="Orchestria Dashboard", docs_url=None, redoc_url=None)
    templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))

    app.state.settings = settings or default_settings()
    app.state.db_path = db_path
    app.state.log_dir = log_dir
    app.state.kill_switch_path = kill_switch_path

    def _with_db() -> MemoryDB:
        return MemoryDB(app.state.db_path)

    def _stats(db: MemoryDB) -> dict:
        return {"events": db.count("events"), "runs": db.count("runs"), "tasks": db.count("task_results")}

    @app.get("/api/health")
    def health() -> dict:
        return {"status": "ok", "kill_switch": is_engaged(app.state.kill_switch_path)}

    @app.post("/api/kill")
    def kill() -> dict:
        if not app.state.kill_switch_path:
            raise HTTPException(status_code=400, detail="Kill-switch file path non configuré")
        p = engage(app.state.kill_switch_path)
        return {"status": "engaged", "path": str(p)}

    @app.get("/api/stats")
    def stats() -> dict:
        db = _with_db()
        try:
            return _stats(db)
        finally:
            db.close()

    @app.get("/api/runs")
    def list_runs(limit: int = 50) -> list[dict]:
        db = _with_db()
        try:
            return db.list_runs(limit=max(1, min(500, limit)))
        finally:
            db.close()

    @app.get("/api/runs/{run_id}")
    def get_run(run_id: int) -> dict:
        db = _with_db()
        try:
            run = db.get_run(run_id)
        finally:
            db.close()
        if run is None:
            raise HTTPException(status_code=404, detail="Run introuvable")
        return run

    @app.get("/api/events")
    def list_events(limit: int = 50, kind: Optional[str] = None) -> list[dict]:
        db = _with_db()
        try:
            return db.list_events(kind=kind, limit=max(1, min(500, limit)))
        finally:
            db.close()

    @app.get("/api/logs")
    def logs(lines: int = 50) -> dict:
        return {"lines": tail(app.state.log_dir, lines=max(1, min(1000, lines)))}

    @app.post("/api/plan")
    def preview_plan(req: PlanRequest) -> dict:
        try:
            if req.subtasks:
                plan = build_plan(req.goal, [subtask_from_dict(s) for s in req.subtasks])
            else:
                if not req.requirements:
                    raise HTTPException(status_code=422, detail="requirements ou subtasks requis")
                arts = [ContextArtifact(path=p) for p in req.artifacts]
                plan = plan_goal(app.state.settings, req.goal, req.requirements, arts)
        except PlanError as e:
            raise HTTPException(status_code=422, detail=str(e))
        except (KeyError, ValueError, TypeError) as e:
            raise HTTPException(status_code=422, detail=f"Sous-tâche invalide: {e}")
        return plan_to_dict(plan)

    async def _sse_generator(last_id: int | None, once: bool = False):
        poll_interval = 1.0
        _last = last_id or 0
        while True:
            db = _with_db()
            try:
                rows = db.events_after(_last, limit=100)
            finally:
                db.close()
            for r in rows:
                _last = int(r["id"])
                yield f"id: {_last}\ndata: {json.dumps(r, ensure_ascii=False)}\n\n".encode("utf-8")
            if once:
                break
            if not rows:
                await asyncio.sleep(poll_interval)

    @app.get("/api/events/stream")
    async def events_stream(last_id: int | None = Query(default=None), once: bool = Query(default=False)) -> StreamingResponse:
        gen = _sse_generator(last_id=last_id, once=once)
        return StreamingResponse(gen, media_type="text/event-stream", headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"})

    @app.get("/", response_class=HTMLResponse)
    def home(request: Request):
        db = _with_db()
        try:
            st = _stats(db)
            runs = db.list_runs(limit=10)
            latest = db.list_events(limit=10)
        finally:
            db.close()
        return templates.TemplateResponse(
            request,
            "index.html",
            {
                "title": "Orchestria Dashboard",
                "profile": app.state.settings.general.profile,
                "stats": st,
                "runs": runs,
                "latest": latest,
                "killed": is_engaged(app.state.kill_switch_path),
            },
        )

    return app
