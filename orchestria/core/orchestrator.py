from __future__ import annotations
import asyncio
from pathlib import Path
from typing import List, Optional, Sequence
from ..config import Settings
from ..memory.db import MemoryDB, persist_result
from ..tools.chainlog import ChainLogger
from ..workers.base import WorkerPool, EchoWorker
from .decomposer import DependencyInference, TaskDecomposer
from .engine import ExecutionEngine
from .events import ChainObserver, MemoryObserver, Observer, TextLogObserver
from .planner import build_plan
from .policies import load_constraints
from .types import ContextArtifact, OrchestrationPlan, OrchestrationResult

def load_artifacts(paths: Sequence[str], *, max_chars: int = 2000) -> List[ContextArtifact]:
    out: List[ContextArtifact] = []
    for raw in paths:
        p = Path(raw)
        content = ""
        if p.is_file():
            content = p.read_text(encoding="utf-8", errors="replace")[:max_chars]
        out.append(ContextArtifact(path=p.as_posix(), content=content))
    return out

def plan_goal(
    settings: Settings,
    goal: str,
    requirements: Sequence[str],
    artifacts: Sequence[ContextArtifact] = (),
    *,
    inference: Optional[DependencyInference] = None,
) -> OrchestrationPlan:
    """Décompose puis planifie; lève CycleError/PlanValidationError sans rien exécuter."""
    decomposer = TaskDecomposer.from_settings(
        settings,
        inference=inference,
        constraints=load_constraints(settings.decomposer.constraints),
    )
    return build_plan(goal, decomposer.decompose(goal, requirements, artifacts))

def default_observers(settings: Settings, *, persist: bool = False) -> List[Observer]:
    observers: List[Observer] = [
        TextLogObserver(settings.general.log_dir),
        ChainObserver(ChainLogger.from_settings(settings)),
    ]
    if persist:
        observers.append(MemoryObserver(settings.memory.db_path))
    return observers

async def execute_plan(
    settings: Settings,
    plan: OrchestrationPlan,
    *,
    workers: Optional[WorkerPool] = None,
    observers: Optional[Sequence[Observer]] = None,
    persist: Optional[bool] = None,
) -> OrchestrationResult:
    persist = settings.memory.persist_runs if persist is None else persist
    if observers is None:
        observers = default_observers(settings, persist=persist)
    pool = workers or WorkerPool(fallback=EchoWorker())
    engine = ExecutionEngine.from_settings(settings, pool, observers=observers)
    try:
        result = await engine.execute(plan)
    finally:
        # les appels abandonnés sur timeout ne bloquent pas le retour
        pool.shutdown()
        for obs in observers:
            close = getattr(obs, "close", None)
            if close is not None:
                close()
    if persist:
        db = MemoryDB(settings.memory.db_path)
        try:
            persist_result(db, result)
        finally:
            db.close()
    return result

def run_goal(
    settings: Settings,
    goal: str,
    requirements: Sequence[str],
    artifacts: Sequence[ContextArtifact] = (),
    *,
    workers: Optional[WorkerPool] = None,
    observers: Optional[Sequence[Observer]] = None,
    persist: Optional[bool] = None,
) -> OrchestrationResult:
    plan = plan_goal(settings, goal, requirements, artifacts)
    return asyncio.run(execute_plan(settings, plan, workers=workers, observers=observers, persist=persist))
