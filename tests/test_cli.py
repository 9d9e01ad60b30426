import json
import subprocess
import sys
from pathlib import Path
from orchestria.cli import main

CONFIG = str(Path("config").resolve())

def run_cli(*args: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "orchestria", *args],
        text=True,
        capture_output=True,
        check=False,
    )

def test_help_works():
    p = run_cli("--help")
    assert p.returncode == 0
    assert "Orchestria" in p.stdout

def test_plan_only_subprocess():
    p = run_cli("--goal", "API", "-r", "Design REST API for users", "-r", "Implement backend using the API design",
                "--config", "config", "--plan-only")
    assert p.returncode == 0
    assert "=== PLAN ===" in p.stdout
    assert "Phase 1 [sequential]" in p.stdout
    assert "dépend de: task-1 (data)" in p.stdout

def test_missing_requirements_exit_code(capsys):
    assert main(["--goal", "x", "--config", CONFIG]) == 2
    assert "requis" in capsys.readouterr().err

def test_version(capsys):
    assert main(["--version"]) == 0
    assert capsys.readouterr().out.strip().count(".") == 2

def test_run_json_and_persist(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    reqs = tmp_path / "reqs.txt"
    reqs.write_text("# exigences\nDesign the logo palette\n\nConfigure docker deployment\n", encoding="utf-8")
    code = main([
        "--goal", "Lancement", "--requirements-file", str(reqs), "--config", CONFIG,
        "--profile", "balanced", "--json", "--persist-run", "--memory-db", str(tmp_path / "m.db"),
    ])
    assert code == 0
    js = json.loads(capsys.readouterr().out)
    assert js["success"] is True
    assert [p["mode"] for p in js["plan"]["phases"]] == ["parallel"]
    assert js["aggregated"]["Design the logo palette"]["worker_id"] == "brand-designer"
    assert (tmp_path / "m.db").exists()
    assert (tmp_path / "data" / "logs" / "audit.jsonl").exists()

def test_safe_profile_text_output(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    code = main(["--goal", "Docs", "-r", "Write the guide", "--config", CONFIG])
    out = capsys.readouterr().out
    assert code == 0
    assert "profil safe" in out
    assert "STATUS: ok" in out
