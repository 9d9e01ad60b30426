import asyncio
import pytest
from orchestria.core.errors import UnknownWorkerError
from orchestria.core.types import WorkerRequest
from orchestria.llm.base import LLMRequest
from orchestria.llm.dummy import DummyLLM
from orchestria.workers import CallableWorker, EchoWorker, LLMWorker, WorkerPool, build_workers

def test_dummy_llm_generates_numbered_plan():
    out = DummyLLM().generate(LLMRequest(prompt="## Objectif\nAPI\n\n## Sous-tâche\nWrite the guide\n"))
    lines = [l.strip() for l in out.strip().splitlines() if l.strip()]
    assert len(lines) == 3
    assert lines[0] == "1. Analyser: Write the guide"
    assert lines[2].startswith("3.")

def test_llm_worker_uses_brief():
    req = WorkerRequest(worker_id="w", brief="Construire un plan minimal", timeout_ms=1000)
    out = asyncio.run(LLMWorker(DummyLLM()).run(req))
    assert out.startswith("1. Analyser: Construire un plan minimal")

def test_worker_pool_lookup():
    echo = EchoWorker()
    pool = WorkerPool({"a": echo})
    assert pool.get("a") is echo
    with pytest.raises(UnknownWorkerError):
        pool.get("b")
    pool.register("b", echo)
    assert pool.get("b") is echo

def test_build_workers():
    assert isinstance(build_workers("echo").get("anything"), EchoWorker)
    assert isinstance(build_workers("dummy").get("anything"), LLMWorker)
    out = asyncio.run(build_workers("echo").get("x").run(WorkerRequest("arch", "b", 10, subtask_id="task-1", name="N")))
    assert out == {"worker": "arch", "subtask": "task-1", "summary": "arch: N"}

def test_pool_shutdown_releases_threads_and_allows_reuse():
    worker = CallableWorker(lambda req: req.name)
    pool = WorkerPool({"a": worker}, fallback=worker)
    req = WorkerRequest("a", "b", 10, name="N")
    assert asyncio.run(pool.get("a").run(req)) == "N"
    assert worker._executor is not None
    pool.shutdown()
    assert worker._executor is None
    assert asyncio.run(pool.get("zzz").run(req)) == "N"
    pool.shutdown()
