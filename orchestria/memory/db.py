from __future__ import annotations
import sqlite3, json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, List, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from ..core.types import OrchestrationResult

ISO = lambda: datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")

SCHEMA = [
    """CREATE TABLE IF NOT EXISTS events (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        ts TEXT NOT NULL,
        kind TEXT NOT NULL,
        level TEXT NOT NULL,
        message TEXT NOT NULL,
        data TEXT
    );""",
    """CREATE TABLE IF NOT EXISTS runs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        ts TEXT NOT NULL,
        goal TEXT NOT NULL,
        success INTEGER NOT NULL,
        duration_ms REAL NOT NULL,
        errors TEXT,
        warnings TEXT,
        plan TEXT
    );""",
    """CREATE TABLE IF NOT EXISTS task_results (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        run_id INTEGER NOT NULL REFERENCES runs(id),
        subtask_id TEXT NOT NULL,
        name TEXT NOT NULL,
        worker_id TEXT NOT NULL,
        phase_id INTEGER,
        status TEXT NOT NULL,
        attempt INTEGER NOT NULL,
        duration_ms REAL NOT NULL,
        output TEXT,
        error TEXT
    );""",
]

def _dumps(obj) -> str:
    return json.dumps(obj, ensure_ascii=False, default=str)

def _loads(text: Optional[str]):
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return None

class MemoryDB:
    def __init__(self, path: str | Path):
        self.path = str(path)
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.path)
        self.conn.execute("PRAGMA journal_mode=WAL;")
        self._init_schema()

    def _init_schema(self) -> None:
        cur = self.conn.cursor()
        for stmt in SCHEMA:
            cur.execute(stmt)
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    def count(self, table: str) -> int:
        if table not in ("events", "runs", "task_results"):
            raise ValueError(f"table inconnue: {table}")
        return int(self.conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0])

    # ---------------- Events ----------------
    def add_event(self, kind: str, level: str, message: str, data: Optional[dict] = None) -> int:
        cur = self.conn.cursor()
        cur.execute(
            "INSERT INTO events(ts, kind, level, message, data) VALUES (?, ?, ?, ?, ?)",
            (ISO(), kind, level, message, _dumps(data or {})),
        )
        self.conn.commit()
        return int(cur.lastrowid)

    def list_events(self, kind: Optional[str] = None, limit: int = 100) -> List[dict]:
        cur = self.conn.cursor()
        if kind:
            cur.execute("SELECT id, ts, kind, level, message, data FROM events WHERE kind=? ORDER BY id DESC LIMIT ?", (kind, limit))
        else:
            cur.execute("SELECT id, ts, kind, level, message, data FROM events ORDER BY id DESC LIMIT ?", (limit,))
        return [
            {"id": r[0], "ts": r[1], "kind": r[2], "level": r[3], "message": r[4], "data": _loads(r[5])}
            for r in cur.fetchall()
        ]

    def events_after(self, last_id: int, limit: int = 100) -> List[dict]:
        cur = self.conn.cursor()
        cur.execute("SELECT id, ts, kind, level, message, data FROM events WHERE id>? ORDER BY id ASC LIMIT ?", (last_id, limit))
        return [
            {"id": r[0], "ts": r[1], "kind": r[2], "level": r[3], "message": r[4], "data": _loads(r[5])}
            for r in cur.fetchall()
        ]

    # ---------------- Runs ----------------
    def add_run(self, goal: str, success: bool, duration_ms: float, errors: list[str], warnings: list[str], plan: dict) -> int:
        cur = self.conn.cursor()
        cur.execute(
            "INSERT INTO runs(ts, goal, success, duration_ms, errors, warnings, plan) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (ISO(), goal, int(bool(success)), float(duration_ms), _dumps(errors), _dumps(warnings), _dumps(plan)),
        )
        self.conn.commit()
        return int(cur.lastrowid)

    def add_task_result(self, run_id: int, *, subtask_id: str, name: str, worker_id: str, phase_id: int | None,
                        status: str, attempt: int, duration_ms: float, output=None, error: str | None = None) -> int:
        cur = self.conn.cursor()
        cur.execute(
            "INSERT INTO task_results(run_id, subtask_id, name, worker_id, phase_id, status, attempt, duration_ms, output, error) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (run_id, subtask_id, name, worker_id, phase_id, status, attempt, float(duration_ms), _dumps(output), error),
        )
        self.conn.commit()
        return int(cur.lastrowid)

    def list_runs(self, limit: int = 50) -> List[dict]:
        cur = self.conn.cursor()
        cur.execute("SELECT id, ts, goal, success, duration_ms, errors FROM runs ORDER BY id DESC LIMIT ?", (limit,))
        return [
            {"id": r[0], "ts": r[1], "goal": r[2], "success": bool(r[3]), "duration_ms": r[4], "errors": _loads(r[5]) or []}
            for r in cur.fetchall()
        ]

    def get_run(self, run_id: int) -> Optional[dict]:
        cur = self.conn.cursor()
        cur.execute("SELECT id, ts, goal, success, duration_ms, errors, warnings, plan FROM runs WHERE id=?", (run_id,))
        r = cur.fetchone()
        if r is None:
            return None
        run = {
            "id": r[0], "ts": r[1], "goal": r[2], "success": bool(r[3]), "duration_ms": r[4],
            "errors": _loads(r[5]) or [], "warnings": _loads(r[6]) or [], "plan": _loads(r[7]),
        }
        cur.execute(
            "SELECT subtask_id, name, worker_id, phase_id, status, attempt, duration_ms, output, error "
            "FROM task_results WHERE run_id=? ORDER BY id ASC",
            (run_id,),
        )
        run["tasks"] = [
            {"subtask_id": t[0], "name": t[1], "worker_id": t[2], "phase_id": t[3], "status": t[4],
             "attempt": t[5], "duration_ms": t[6], "output": _loads(t[7]), "error": t[8]}
            for t in cur.fetchall()
        ]
        return run

def persist_result(db: MemoryDB, result: "OrchestrationResult") -> int:
    from ..core.planner import phase_assignments, plan_to_dict
    plan = result.plan
    run_id = db.add_run(plan.goal, result.success, result.duration_ms, result.errors, result.warnings, plan_to_dict(plan))
    phases = phase_assignments(plan)
    for sub in plan.subtasks.values():
        r = sub.result
        db.add_task_result(
            run_id,
            subtask_id=sub.id,
            name=sub.name,
            worker_id=sub.assigned_worker,
            phase_id=phases.get(sub.id),
            status=sub.status.value,
            attempt=r.attempt if r else 0,
            duration_ms=r.duration_ms if r else 0.0,
            output=r.output if r else None,
            error=r.error if r else None,
        )
    db.add_event("run", "info" if result.success else "error", f"goal={plan.goal}",
                 {"run_id": run_id, "success": result.success, "errors": len(result.errors)})
    return run_id
