from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, Sequence
from .errors import PlanValidationError
from .graph import DependencyGraph
from .types import (
    DependencyKind, ExecutionPhase, OrchestrationPlan, RetryPolicy, Subtask, TaskResult, TaskStatus,
)

def validate_subtasks(subtasks: Sequence[Subtask]) -> None:
    seen: set[str] = set()
    for sub in subtasks:
        if sub.id in seen:
            raise PlanValidationError(f"Identifiant de sous-tâche dupliqué: {sub.id}")
        seen.add(sub.id)
    for sub in subtasks:
        unknown = [d for d in sub.depends_on if d not in seen]
        if unknown:
            raise PlanValidationError(f"{sub.id} dépend d'identifiants inconnus: {', '.join(unknown)}")

def build_graph(subtasks: Sequence[Subtask], *, order_soft: bool = True) -> DependencyGraph:
    """Arêtes dures, puis arêtes souples si order_soft (préférence de placement)."""
    graph = DependencyGraph()
    for sub in subtasks:
        graph.add_node(sub.id)
    for sub in subtasks:
        for dep in sub.hard_dependencies():
            graph.add_edge(dep, sub.id)
    if order_soft:
        for sub in subtasks:
            for dep in sub.soft_dependencies():
                graph.add_edge(dep, sub.id)
    return graph

def check_acyclic(subtasks: Sequence[Subtask]) -> None:
    """Toutes les arêtes de depends_on comptent, souples comprises: un cycle lève CycleError."""
    build_graph(subtasks, order_soft=True).to_phases()

def build_plan(goal: str, subtasks: Sequence[Subtask], *, order_soft: bool = True) -> OrchestrationPlan:
    validate_subtasks(subtasks)
    check_acyclic(subtasks)
    phases = build_graph(subtasks, order_soft=order_soft).to_phases()
    return OrchestrationPlan(
        goal=goal,
        phases=[ExecutionPhase(id=i, subtask_ids=list(ids)) for i, ids in enumerate(phases)],
        subtasks={s.id: s for s in subtasks},
    )

def phase_assignments(plan: OrchestrationPlan) -> Dict[str, int]:
    return {sid: phase.id for phase in plan.phases for sid in phase.subtask_ids}

# ---------------- Sérialisation ----------------
def subtask_to_dict(sub: Subtask) -> Dict[str, Any]:
    return {
        "id": sub.id,
        "name": sub.name,
        "assigned_worker": sub.assigned_worker,
        "brief": sub.brief,
        "depends_on": list(sub.depends_on),
        "dependency_kinds": {k: v.value for k, v in sub.dependency_kinds.items()},
        "retry_policy": {
            "max_attempts": sub.retry_policy.max_attempts,
            "initial_backoff": sub.retry_policy.initial_backoff,
            "backoff_multiplier": sub.retry_policy.backoff_multiplier,
        },
        "timeout": sub.timeout,
        "status": sub.status.value,
        "result": sub.result.to_dict() if sub.result else None,
    }

def subtask_from_dict(data: Dict[str, Any]) -> Subtask:
    rp = data.get("retry_policy") or {}
    res = data.get("result")
    return Subtask(
        id=str(data["id"]),
        name=str(data.get("name") or data["id"]),
        assigned_worker=str(data.get("assigned_worker") or "generalist"),
        brief=str(data.get("brief") or ""),
        depends_on=list(data.get("depends_on") or []),
        dependency_kinds={k: DependencyKind(v) for k, v in (data.get("dependency_kinds") or {}).items()},
        retry_policy=RetryPolicy(**rp) if rp else RetryPolicy(),
        timeout=float(data.get("timeout", 300.0)),
        status=TaskStatus(data.get("status", "pending")),
        result=TaskResult(**res) if res else None,
    )

def plan_to_dict(plan: OrchestrationPlan) -> Dict[str, Any]:
    return {
        "goal": plan.goal,
        "created_at": plan.created_at.isoformat(),
        "phases": [{"id": p.id, "mode": p.mode.value, "subtask_ids": list(p.subtask_ids)} for p in plan.phases],
        "subtasks": [subtask_to_dict(s) for s in plan.subtasks.values()],
    }

def plan_from_dict(data: Dict[str, Any]) -> OrchestrationPlan:
    """Reconstruit un plan; les phases sont recalculées puis comparées à celles enregistrées."""
    subtasks: List[Subtask] = [subtask_from_dict(s) for s in data.get("subtasks") or []]
    plan = build_plan(str(data.get("goal") or ""), subtasks)
    stored = [list(p.get("subtask_ids") or []) for p in data.get("phases") or []]
    if stored and stored != [p.subtask_ids for p in plan.phases]:
        raise PlanValidationError("Les phases enregistrées ne correspondent pas aux dépendances")
    if data.get("created_at"):
        plan.created_at = datetime.fromisoformat(data["created_at"])
    return plan
