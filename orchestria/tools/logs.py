from __future__ import annotations
from datetime import datetime, timezone
from pathlib import Path

LOG_NAME = "orchestria.log"

def log_event(log_dir: str | Path, message: str) -> Path:
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    path = log_dir / LOG_NAME
    ts = datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")
    with path.open("a", encoding="utf-8") as f:
        f.write(f"{ts} | {message}\n")
    return path

def tail(log_dir: str | Path, lines: int = 50) -> list[str]:
    path = Path(log_dir) / LOG_NAME
    if not path.exists():
        return []
    return path.read_text(encoding="utf-8").splitlines()[-max(1, lines):]
