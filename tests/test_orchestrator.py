from pathlib import Path
import threading
import time
import pytest
from orchestria.config import load_settings
from orchestria.core.errors import CycleError
from orchestria.core import events
from orchestria.core.events import EventRecorder
from orchestria.core.orchestrator import load_artifacts, plan_goal, run_goal
from orchestria.core.planner import build_plan
from orchestria.core.types import DependencyKind
from orchestria.memory.db import MemoryDB
from orchestria.tools.chainlog import ChainLogger
from orchestria.workers.base import CallableWorker, WorkerPool

REST = [
    "Design REST API for users",
    "Implement backend using the API design",
    "Write tests for the backend",
]

def _settings(tmp_path: Path, profile: str = "balanced"):
    s = load_settings(config="config", profile=profile)
    s.general.log_dir = str(tmp_path / "logs")
    s.general.kill_switch_path = str(tmp_path / "kill.switch")
    s.memory.db_path = str(tmp_path / "mem.db")
    return s

def test_run_goal_end_to_end(tmp_path: Path):
    s = _settings(tmp_path)
    result = run_goal(s, "API utilisateurs", REST, persist=True)
    assert result.success
    assert [p.subtask_ids for p in result.plan.phases] == [["task-1"], ["task-2"], ["task-3"]]
    assert set(result.aggregated) == set(REST)
    assert result.aggregated[REST[0]]["worker_id"] == "architect"

    log = (tmp_path / "logs" / "orchestria.log").read_text(encoding="utf-8")
    assert "plan_finished" in log
    assert ChainLogger.verify(tmp_path / "logs" / "audit.jsonl") is True

    db = MemoryDB(s.memory.db_path)
    try:
        runs = db.list_runs()
        assert len(runs) == 1 and runs[0]["success"] is True
        run = db.get_run(runs[0]["id"])
        assert [t["subtask_id"] for t in run["tasks"]] == ["task-1", "task-2", "task-3"]
        assert [t["phase_id"] for t in run["tasks"]] == [0, 1, 2]
        assert db.list_events(kind="task_succeeded")
    finally:
        db.close()

def test_safe_profile_is_dry_run(tmp_path: Path):
    rec = EventRecorder()
    result = run_goal(_settings(tmp_path, "safe"), "x", ["Write the guide"], observers=[rec])
    assert result.success
    assert result.aggregated["Write the guide"]["output"].startswith("[dry-run]")
    assert not (tmp_path / "logs").exists()

def test_plan_goal_uses_artifacts(tmp_path: Path):
    spec = tmp_path / "users_schema.md"
    spec.write_text("table users(id, email)", encoding="utf-8")
    arts = load_artifacts([str(spec), str(tmp_path / "missing_users.txt")])
    assert arts[0].content.startswith("table users")
    assert arts[1].content == ""
    plan = plan_goal(_settings(tmp_path), "API", ["Design REST API for users"], arts)
    assert "table users(id, email)" in plan.subtasks["task-1"].brief

def test_hand_edited_dependencies_are_revalidated(tmp_path: Path):
    plan = plan_goal(_settings(tmp_path), "API", REST)
    subs = list(plan.subtasks.values())
    subs[0].add_dependency("task-3", DependencyKind.ORDERING)
    with pytest.raises(CycleError):
        build_plan("API", subs)

def test_abandoned_sync_worker_does_not_hold_the_run(tmp_path: Path):
    s = _settings(tmp_path)
    s.engine.timeout_sec = 0.1
    s.engine.max_attempts = 1
    release = threading.Event()

    def stuck(req):
        release.wait(3.0)
        return "trop tard"

    t0 = time.perf_counter()
    try:
        result = run_goal(s, "g", ["Write the guide"], workers=WorkerPool(fallback=CallableWorker(stuck)))
        elapsed = time.perf_counter() - t0
    finally:
        release.set()
    assert elapsed < 1.0
    assert result.success is False
    assert "Timeout after 0.1s" in result.errors[0]

def test_memory_observer_uses_one_connection_per_run(tmp_path: Path, monkeypatch):
    opened = []

    class CountingDB(MemoryDB):
        def __init__(self, path):
            opened.append(path)
            super().__init__(path)

    monkeypatch.setattr(events, "MemoryDB", CountingDB)
    s = _settings(tmp_path)
    rec = EventRecorder()
    run_goal(s, "API", REST, observers=[rec, events.MemoryObserver(s.memory.db_path)], persist=False)
    assert opened == [s.memory.db_path]
    db = MemoryDB(s.memory.db_path)
    try:
        assert db.count("events") == len(rec.events)
    finally:
        db.close()
