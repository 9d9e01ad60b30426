from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from ..memory.db import MemoryDB
from ..tools.logs import log_event

PLAN_STARTED = "plan_started"
PHASE_STARTED = "phase_started"
TASK_STARTED = "task_started"
TASK_RETRY = "task_retry"
TASK_SUCCEEDED = "task_succeeded"
TASK_FAILED = "task_failed"
TASK_SKIPPED = "task_skipped"
PHASE_FINISHED = "phase_finished"
PLAN_FINISHED = "plan_finished"

_LEVELS = {TASK_FAILED: "error", TASK_RETRY: "warn", TASK_SKIPPED: "warn"}

def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

@dataclass
class ProgressEvent:
    kind: str
    message: str
    phase_id: Optional[int] = None
    subtask_id: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    ts: str = field(default_factory=_now)

    @property
    def level(self) -> str:
        if self.kind == PLAN_FINISHED and not self.data.get("success", True):
            return "error"
        return _LEVELS.get(self.kind, "info")

    def payload(self) -> Dict[str, Any]:
        out = dict(self.data)
        if self.phase_id is not None:
            out["phase_id"] = self.phase_id
        if self.subtask_id is not None:
            out["subtask_id"] = self.subtask_id
        return out

class Observer:
    def notify(self, event: ProgressEvent) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def close(self) -> None:
        pass

class EventRecorder(Observer):
    """Garde les événements en mémoire (tests, affichage CLI)."""
    def __init__(self) -> None:
        self.events: List[ProgressEvent] = []

    def notify(self, event: ProgressEvent) -> None:
        self.events.append(event)

    def kinds(self) -> List[str]:
        return [e.kind for e in self.events]

    def for_subtask(self, subtask_id: str) -> List[ProgressEvent]:
        return [e for e in self.events if e.subtask_id == subtask_id]

class TextLogObserver(Observer):
    def __init__(self, log_dir: str) -> None:
        self.log_dir = log_dir

    def notify(self, event: ProgressEvent) -> None:
        log_event(self.log_dir, f"{event.level.upper():5} {event.kind} {event.message}")

class ChainObserver(Observer):
    """Piste d'audit chaînée (JSONL + HMAC optionnel)."""
    def __init__(self, chain) -> None:
        self.chain = chain

    def notify(self, event: ProgressEvent) -> None:
        self.chain.log(event.kind, event.level, event.message, event.payload())

class MemoryObserver(Observer):
    """Écrit chaque événement dans la table events (lue par le dashboard)."""
    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._db: Optional[MemoryDB] = None

    def notify(self, event: ProgressEvent) -> None:
        # une connexion pour tout le run, ouverte au premier événement
        if self._db is None:
            self._db = MemoryDB(self.db_path)
        self._db.add_event(event.kind, event.level, event.message, event.payload())

    def close(self) -> None:
        if self._db is not None:
            self._db.close()
            self._db = None
