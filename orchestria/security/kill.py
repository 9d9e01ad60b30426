from __future__ import annotations
from pathlib import Path

class KillSwitchEngaged(Exception):
    """Raised when kill-switch is engaged."""

def is_engaged(kill_switch_path: str | None) -> bool:
    return bool(kill_switch_path) and Path(kill_switch_path).exists()

def check_kill(kill_switch_path: str | None) -> None:
    """Raise if the kill-switch file exists."""
    if is_engaged(kill_switch_path):
        raise KillSwitchEngaged(f"Kill-switch engaged: {kill_switch_path}")

def engage(kill_switch_path: str) -> Path:
    p = Path(kill_switch_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text("KILLED", encoding="utf-8")
    return p

def release(kill_switch_path: str) -> bool:
    p = Path(kill_switch_path)
    if p.exists():
        p.unlink()
        return True
    return False
