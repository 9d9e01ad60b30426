from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

class TaskStatus(str, Enum):
    PENDING = "pending"
    READY = "ready"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

class DependencyKind(str, Enum):
    DATA = "data"          # consomme la sortie de la dépendance
    ORDERING = "ordering"  # doit passer après, sans consommer la sortie
    SOFT = "soft"          # utile mais non bloquant

    @property
    def hard(self) -> bool:
        return self is not DependencyKind.SOFT

class PhaseMode(str, Enum):
    PARALLEL = "parallel"
    SEQUENTIAL = "sequential"

@dataclass
class RetryPolicy:
    max_attempts: int = 3
    initial_backoff: float = 1.0  # secondes
    backoff_multiplier: float = 2.0

@dataclass
class TaskResult:
    success: bool
    output: Any = None
    duration_ms: float = 0.0
    attempt: int = 0
    error: Optional[str] = None
    worker_id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "output": self.output,
            "duration_ms": self.duration_ms,
            "attempt": self.attempt,
            "error": self.error,
            "worker_id": self.worker_id,
        }

@dataclass
class Subtask:
    id: str
    name: str
    assigned_worker: str
    brief: str = ""
    depends_on: List[str] = field(default_factory=list)
    dependency_kinds: Dict[str, DependencyKind] = field(default_factory=dict)
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    timeout: float = 300.0  # secondes, par tentative
    status: TaskStatus = TaskStatus.PENDING
    result: Optional[TaskResult] = None

    def kind_of(self, dep_id: str) -> DependencyKind:
        # une dépendance déclarée sans type est considérée bloquante
        return self.dependency_kinds.get(dep_id, DependencyKind.DATA)

    def hard_dependencies(self) -> List[str]:
        return [d for d in self.depends_on if self.kind_of(d).hard]

    def soft_dependencies(self) -> List[str]:
        return [d for d in self.depends_on if not self.kind_of(d).hard]

    def add_dependency(self, dep_id: str, kind: DependencyKind = DependencyKind.DATA) -> None:
        if dep_id not in self.depends_on:
            self.depends_on.append(dep_id)
        self.dependency_kinds[dep_id] = kind

@dataclass
class ContextArtifact:
    path: str
    content: str = ""

@dataclass
class WorkerRequest:
    worker_id: str
    brief: str
    timeout_ms: float
    subtask_id: str = ""
    name: str = ""

@dataclass
class ExecutionPhase:
    id: int
    subtask_ids: List[str] = field(default_factory=list)

    @property
    def mode(self) -> PhaseMode:
        return PhaseMode.PARALLEL if len(self.subtask_ids) > 1 else PhaseMode.SEQUENTIAL

@dataclass
class OrchestrationPlan:
    goal: str
    phases: List[ExecutionPhase] = field(default_factory=list)
    subtasks: Dict[str, Subtask] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def phase_of(self, subtask_id: str) -> int:
        for phase in self.phases:
            if subtask_id in phase.subtask_ids:
                return phase.id
        raise KeyError(subtask_id)

@dataclass
class OrchestrationResult:
    plan: OrchestrationPlan
    phase_results: Dict[int, List[TaskResult]] = field(default_factory=dict)
    aggregated: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    duration_ms: float = 0.0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def counts(self) -> Dict[str, int]:
        out = {s.value: 0 for s in TaskStatus}
        for t in self.plan.subtasks.values():
            out[t.status.value] += 1
        return out
