from pathlib import Path
from orchestria.config import load_settings

def test_safe_defaults():
    s = load_settings(config=str(Path("config")), profile="safe")
    assert s.general.profile == "safe"
    assert s.general.dry_run is True
    assert s.engine.concurrency == 1
    assert s.engine.max_attempts == 3
    assert s.decomposer.default_worker == "generalist"
    assert s.memory.persist_runs is False

def test_danger_profile_overrides_engine():
    s = load_settings(config=str(Path("config")), profile="danger")
    assert s.engine.concurrency == 10
    assert s.engine.max_attempts == 2
    assert s.engine.initial_backoff_sec == 0.25
    # les clés non surchargées restent celles de defaults.toml
    assert s.engine.backoff_multiplier == 2.0
    assert s.memory.persist_runs is True

def test_workers_keep_declaration_order():
    s = load_settings(config="config", profile="balanced")
    ids = list(s.workers)
    assert ids[0] == "architect"
    assert ids.index("test-engineer") < ids.index("backend-engineer")
    assert "rest" in s.workers["architect"]

def test_cli_overrides_apply():
    s = load_settings(config="config", profile="safe", overrides={"dry_run": False, "concurrency": 7, "log_dir": None})
    assert s.general.dry_run is False
    assert s.engine.concurrency == 7
    assert s.general.log_dir == "data/logs"

def test_env_secret(monkeypatch):
    monkeypatch.setenv("ORCHESTRIA_CHAIN_SECRET", "s3cret")
    s = load_settings(config="config", profile="balanced")
    assert s.security.chain_secret == "s3cret"

def test_explicit_toml_file_and_unknown_keys(tmp_path: Path):
    cfg = tmp_path / "custom.toml"
    cfg.write_text(
        '[engine]\nconcurrency = 3\nunknown_key = 1\n[workers.solo]\nkeywords = ["Alpha"]\n',
        encoding="utf-8",
    )
    s = load_settings(config=str(cfg), profile="balanced")
    assert s.engine.concurrency == 3
    assert s.workers == {"solo": ["alpha"]}
    assert s.general.profile == "balanced"
