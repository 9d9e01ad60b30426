from pathlib import Path
from starlette.testclient import TestClient
from orchestria.config import load_settings
from orchestria.memory.db import MemoryDB
from orchestria.web.app import create_app

def _client(tmp_path: Path) -> TestClient:
    s = load_settings(config="config", profile="balanced")
    app = create_app(str(tmp_path / "ui.db"), log_dir=str(tmp_path / "logs"), settings=s,
                     kill_switch_path=str(tmp_path / "kill.switch"))
    return TestClient(app)

def test_api_health_and_stats(tmp_path: Path):
    db = MemoryDB(tmp_path / "ui.db")
    try:
        db.add_event("unit", "info", "hello")
        db.add_run("g", True, 1.5, [], [], {"goal": "g"})
    finally:
        db.close()

    client = _client(tmp_path)
    r = client.get("/api/health")
    assert r.status_code == 200 and r.json()["status"] == "ok"

    js = client.get("/api/stats").json()
    assert js["events"] >= 1 and js["runs"] == 1

    runs = client.get("/api/runs").json()
    assert runs[0]["goal"] == "g"
    assert client.get(f"/api/runs/{runs[0]['id']}").json()["tasks"] == []
    assert client.get("/api/runs/999").status_code == 404

    r = client.get("/")
    assert r.status_code == 200
    assert "Orchestria" in r.text

def test_plan_preview_from_requirements(tmp_path: Path):
    client = _client(tmp_path)
    r = client.post("/api/plan", json={
        "goal": "API",
        "requirements": ["Design REST API for users", "Implement backend using the API design"],
    })
    assert r.status_code == 200
    js = r.json()
    assert [p["subtask_ids"] for p in js["phases"]] == [["task-1"], ["task-2"]]
    assert js["subtasks"][1]["dependency_kinds"] == {"task-1": "data"}

def test_plan_preview_rejects_cycle(tmp_path: Path):
    client = _client(tmp_path)
    r = client.post("/api/plan", json={
        "goal": "g",
        "subtasks": [
            {"id": "a", "depends_on": ["b"]},
            {"id": "b", "depends_on": ["a"]},
        ],
    })
    assert r.status_code == 422
    assert "Cycle" in r.json()["detail"]

def test_plan_preview_explicit_subtasks(tmp_path: Path):
    client = _client(tmp_path)
    r = client.post("/api/plan", json={
        "goal": "g",
        "subtasks": [
            {"id": "a"},
            {"id": "b"},
            {"id": "c", "depends_on": ["a", "b"], "dependency_kinds": {"a": "ordering", "b": "soft"}},
        ],
    })
    assert r.status_code == 200
    assert [p["mode"] for p in r.json()["phases"]] == ["parallel", "sequential"]
    assert client.post("/api/plan", json={"goal": "g"}).status_code == 422
