from __future__ import annotations
from .base import Worker, EchoWorker, ThreadedWorker, CallableWorker, LLMWorker, WorkerPool
from ..llm import DummyLLM, OllamaCLI, has_ollama

def build_workers(model: str = "echo") -> WorkerPool:
    """echo | dummy | <tag ollama> : un seul backend sert tous les worker_id."""
    name = (model or "echo").lower()
    if name == "echo":
        return WorkerPool(fallback=EchoWorker())
    if name == "dummy":
        return WorkerPool(fallback=LLMWorker(DummyLLM()))
    if not has_ollama():
        raise RuntimeError("Ollama non disponible. Installez-le ou utilisez --worker echo|dummy.")
    return WorkerPool(fallback=LLMWorker(OllamaCLI(model)))

__all__ = ["Worker", "EchoWorker", "ThreadedWorker", "CallableWorker", "LLMWorker", "WorkerPool", "build_workers"]
