from __future__ import annotations
import asyncio
import time
from collections import deque
from typing import Any, Awaitable, Callable, List, Optional, Sequence
from ..security.kill import KillSwitchEngaged, check_kill
from ..workers.base import WorkerPool
from . import events as ev
from .errors import WorkerTimeoutError
from .events import Observer, ProgressEvent
from .types import (
    OrchestrationPlan, OrchestrationResult, PhaseMode, Subtask, TaskResult, TaskStatus, WorkerRequest,
)

DEFAULT_CONCURRENCY = 5

class ExecutionEngine:
    """
    Exécute un plan phase par phase.

    - phase parallèle: pool borné de `concurrency` coroutines qui tirent la
      prochaine sous-tâche non réclamée;
    - phase séquentielle: une sous-tâche à la fois, dans l'ordre;
    - retry avec backoff exponentiel dans execute_with_retry (seul point de retry);
    - après chaque phase, les sous-tâches dont une dépendance dure a échoué
      (ou a été sautée) passent en `skipped`, jusqu'au point fixe.

    execute() ne lève jamais pour l'échec d'une sous-tâche: tout est dans
    OrchestrationResult.errors.
    """

    def __init__(
        self,
        workers: WorkerPool,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        observers: Sequence[Observer] = (),
        dry_run: bool = False,
        kill_switch_path: Optional[str] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.workers = workers
        self.concurrency = max(1, int(concurrency))
        self.observers = list(observers)
        self.dry_run = dry_run
        self.kill_switch_path = kill_switch_path
        self.sleep = sleep
        self.clock = clock
        self._observer_errors: List[str] = []

    @classmethod
    def from_settings(cls, settings, workers: WorkerPool, *, observers: Sequence[Observer] = ()) -> "ExecutionEngine":
        return cls(
            workers,
            concurrency=settings.engine.concurrency,
            observers=observers,
            dry_run=settings.general.dry_run,
            kill_switch_path=settings.general.kill_switch_path,
        )

    # ---------------- Événements ----------------
    def _emit(self, kind: str, message: str, *, phase_id: int | None = None, subtask_id: str | None = None, **data: Any) -> None:
        event = ProgressEvent(kind, message, phase_id=phase_id, subtask_id=subtask_id, data=data)
        for obs in self.observers:
            try:
                obs.notify(event)
            except Exception as e:
                # un observateur défaillant ne doit pas interrompre l'exécution
                self._observer_errors.append(f"observer {obs.__class__.__name__}: {e}")

    # ---------------- Plan ----------------
    async def execute(self, plan: OrchestrationPlan) -> OrchestrationResult:
        self._observer_errors = []
        result = OrchestrationResult(plan=plan)
        started = self.clock()
        self._emit(ev.PLAN_STARTED, plan.goal, phases=len(plan.phases), subtasks=len(plan.subtasks))

        for phase in plan.phases:
            self._check_kill(result)
            runnable = [plan.subtasks[sid] for sid in phase.subtask_ids if plan.subtasks[sid].status is TaskStatus.PENDING]
            self._emit(ev.PHASE_STARTED, f"phase {phase.id} ({phase.mode.value}, {len(runnable)} tâche(s))",
                       phase_id=phase.id, mode=phase.mode.value, subtask_ids=list(phase.subtask_ids))
            for sub in runnable:
                self._warn_soft_failures(plan, sub, result)

            if phase.mode is PhaseMode.PARALLEL:
                await self._run_pool(runnable, result)
            else:
                for sub in runnable:
                    await self._dispatch(sub, result)

            result.phase_results[phase.id] = [plan.subtasks[sid].result for sid in phase.subtask_ids]
            for sid in phase.subtask_ids:
                sub = plan.subtasks[sid]
                if sub.status is TaskStatus.FAILED:
                    result.errors.append(f"{sub.id} ({sub.name}): {sub.result.error}")
            self._propagate_skips(plan)
            self._emit(ev.PHASE_FINISHED, f"phase {phase.id} terminée", phase_id=phase.id,
                       statuses={sid: plan.subtasks[sid].status.value for sid in phase.subtask_ids})

        result.aggregated = aggregate(plan)
        result.duration_ms = (self.clock() - started) * 1000.0
        result.warnings.extend(self._observer_errors)
        self._emit(ev.PLAN_FINISHED, plan.goal, success=result.success, errors=len(result.errors),
                   duration_ms=round(result.duration_ms, 3), counts=result.counts())
        return result

    async def _run_pool(self, subtasks: List[Subtask], result: OrchestrationResult) -> None:
        queue = deque(subtasks)

        async def slot() -> None:
            # boucle d'événements unique: popleft n'est jamais concurrent
            while queue:
                await self._dispatch(queue.popleft(), result)

        size = min(self.concurrency, len(subtasks))
        await asyncio.gather(*(slot() for _ in range(size)))

    async def _dispatch(self, sub: Subtask, result: OrchestrationResult) -> None:
        # _check_kill saute déjà toutes les sous-tâches encore pending
        if sub.status is not TaskStatus.PENDING or self._check_kill(result):
            return
        sub.status = TaskStatus.READY
        if self.dry_run:
            sub.status = TaskStatus.SUCCEEDED
            sub.result = TaskResult(True, f"[dry-run] {sub.assigned_worker}: {sub.name}", 0.0, 1, worker_id=sub.assigned_worker)
            self._emit(ev.TASK_SUCCEEDED, sub.name, subtask_id=sub.id, attempt=1, dry_run=True)
            return
        await self.execute_with_retry(sub)

    def _check_kill(self, result: OrchestrationResult) -> bool:
        try:
            check_kill(self.kill_switch_path)
        except KillSwitchEngaged as e:
            msg = str(e)
            if msg not in result.errors:
                result.errors.append(msg)
            for sub in result.plan.subtasks.values():
                if sub.status is TaskStatus.PENDING:
                    self._skip(sub, msg)
            return True
        return False

    # ---------------- Tâche ----------------
    async def execute_with_retry(self, sub: Subtask) -> TaskResult:
        policy = sub.retry_policy
        attempts = max(1, int(policy.max_attempts))
        backoff = policy.initial_backoff
        last_error = ""
        for attempt in range(1, attempts + 1):
            sub.status = TaskStatus.RUNNING
            self._emit(ev.TASK_STARTED, sub.name, subtask_id=sub.id, worker_id=sub.assigned_worker, attempt=attempt)
            t0 = self.clock()
            try:
                output = await self.delegate_to_worker(sub)
            except Exception as e:
                last_error = str(e) or e.__class__.__name__
                if attempt < attempts:
                    self._emit(ev.TASK_RETRY, f"{sub.name}: {last_error}", subtask_id=sub.id,
                               attempt=attempt, backoff=backoff, error=last_error)
                    await self.sleep(backoff)
                    backoff *= policy.backoff_multiplier
                continue
            duration = (self.clock() - t0) * 1000.0
            sub.status = TaskStatus.SUCCEEDED
            sub.result = TaskResult(True, output, duration, attempt, worker_id=sub.assigned_worker)
            self._emit(ev.TASK_SUCCEEDED, sub.name, subtask_id=sub.id, attempt=attempt, duration_ms=round(duration, 3))
            return sub.result

        sub.status = TaskStatus.FAILED
        sub.result = TaskResult(
            False, None, 0.0, attempts,
            error=f"Failed after {attempts} attempts: {last_error}",
            worker_id=sub.assigned_worker,
        )
        self._emit(ev.TASK_FAILED, f"{sub.name}: {sub.result.error}", subtask_id=sub.id, attempt=attempts, error=sub.result.error)
        return sub.result

    async def delegate_to_worker(self, sub: Subtask) -> Any:
        """Seule frontière avec l'extérieur: un délai dépassé compte comme un échec de tentative."""
        worker = self.workers.get(sub.assigned_worker)
        request = WorkerRequest(
            worker_id=sub.assigned_worker,
            brief=sub.brief,
            timeout_ms=sub.timeout * 1000.0,
            subtask_id=sub.id,
            name=sub.name,
        )
        timeout = sub.timeout if sub.timeout and sub.timeout > 0 else None
        try:
            return await asyncio.wait_for(worker.run(request), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise WorkerTimeoutError(f"Timeout after {sub.timeout}s", subtask_id=sub.id) from e

    # ---------------- Propagation ----------------
    def _skip(self, sub: Subtask, reason: str) -> None:
        sub.status = TaskStatus.SKIPPED
        sub.result = TaskResult(False, None, 0.0, 0, error=reason, worker_id=sub.assigned_worker)
        self._emit(ev.TASK_SKIPPED, f"{sub.name}: {reason}", subtask_id=sub.id, reason=reason)

    def _propagate_skips(self, plan: OrchestrationPlan) -> None:
        blocked = (TaskStatus.FAILED, TaskStatus.SKIPPED)
        changed = True
        while changed:
            changed = False
            for sub in plan.subtasks.values():
                if sub.status is not TaskStatus.PENDING:
                    continue
                for dep in sub.hard_dependencies():
                    dep_task = plan.subtasks[dep]
                    if dep_task.status in blocked:
                        self._skip(sub, f"Skipped: dependency {dep} {dep_task.status.value}")
                        changed = True
                        break

    def _warn_soft_failures(self, plan: OrchestrationPlan, sub: Subtask, result: OrchestrationResult) -> None:
        for dep in sub.soft_dependencies():
            dep_task = plan.subtasks[dep]
            if dep_task.status in (TaskStatus.FAILED, TaskStatus.SKIPPED):
                result.warnings.append(f"{sub.id}: dépendance souple {dep} {dep_task.status.value}, exécution maintenue")

def aggregate(plan: OrchestrationPlan) -> dict:
    out: dict = {}
    for phase in plan.phases:
        for sid in phase.subtask_ids:
            sub = plan.subtasks[sid]
            r = sub.result
            out[sub.name] = {
                "worker_id": sub.assigned_worker,
                "success": bool(r and r.success),
                "status": sub.status.value,
                "output": r.output if r else None,
                "duration_ms": r.duration_ms if r else 0.0,
            }
    return out
