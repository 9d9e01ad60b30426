from __future__ import annotations
import asyncio
import functools
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional
from ..core.errors import UnknownWorkerError
from ..core.types import WorkerRequest
from ..llm.base import LLM, LLMRequest

class Worker:
    """Collaborateur externe: reçoit un brief, rend une sortie ou lève une erreur."""
    async def run(self, request: WorkerRequest) -> Any:  # pragma: no cover - interface
        raise NotImplementedError

    def shutdown(self) -> None:
        pass

class EchoWorker(Worker):
    """Worker déterministe pour démo/tests: décrit la requête reçue."""
    async def run(self, request: WorkerRequest) -> Any:
        return {"worker": request.worker_id, "subtask": request.subtask_id, "summary": f"{request.worker_id}: {request.name}"}

class ThreadedWorker(Worker):
    """
    Base des workers bloquants: les appels partent dans un pool de threads
    propre au worker. shutdown() n'attend pas les appels encore en cours
    (un appel abandonné sur timeout ne retient pas la fin du run).
    """
    def __init__(self, max_threads: Optional[int] = None) -> None:
        self.max_threads = max_threads
        self._executor: Optional[ThreadPoolExecutor] = None

    async def _call(self, fn: Callable[..., Any], *args: Any) -> Any:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.max_threads, thread_name_prefix="orchestria-worker")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(fn, *args))

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

class CallableWorker(ThreadedWorker):
    """Adapte une fonction (sync ou async) prenant une WorkerRequest."""
    def __init__(self, fn: Callable[[WorkerRequest], Any], *, max_threads: Optional[int] = None) -> None:
        super().__init__(max_threads)
        self.fn = fn

    async def run(self, request: WorkerRequest) -> Any:
        if asyncio.iscoroutinefunction(self.fn):
            return await self.fn(request)
        return await self._call(self.fn, request)

class LLMWorker(ThreadedWorker):
    """Envoie le brief à un LLM local; l'appel bloquant part dans un thread."""
    def __init__(self, llm: LLM, *, max_tokens: int = 512, temperature: float = 0.2, max_threads: Optional[int] = None) -> None:
        super().__init__(max_threads)
        self.llm = llm
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def run(self, request: WorkerRequest) -> Any:
        req = LLMRequest(
            prompt=request.brief,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            timeout=request.timeout_ms / 1000.0 if request.timeout_ms else None,
        )
        return (await self._call(self.llm.generate, req)).strip()

class WorkerPool:
    """worker_id -> Worker, avec un worker de repli optionnel pour les ids non enregistrés."""
    def __init__(self, workers: Optional[Dict[str, Worker]] = None, *, fallback: Optional[Worker] = None) -> None:
        self.workers: Dict[str, Worker] = dict(workers or {})
        self.fallback = fallback

    def register(self, worker_id: str, worker: Worker) -> None:
        self.workers[worker_id] = worker

    def get(self, worker_id: str) -> Worker:
        worker = self.workers.get(worker_id) or self.fallback
        if worker is None:
            raise UnknownWorkerError(f"Aucun worker pour: {worker_id}")
        return worker

    def shutdown(self) -> None:
        """Libère les pools de threads; un worker réutilisé en recrée un au besoin."""
        for worker in {id(w): w for w in [*self.workers.values(), self.fallback] if w is not None}.values():
            worker.shutdown()
