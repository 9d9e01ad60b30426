from __future__ import annotations
from typing import Iterable

class OrchestriaError(Exception):
    """Base des erreurs Orchestria."""

class PlanError(OrchestriaError):
    """Le plan ne peut pas être construit."""

class CycleError(PlanError):
    """Le graphe de dépendances contient au moins un cycle."""

    def __init__(self, nodes: Iterable[str]) -> None:
        self.nodes = list(nodes)
        super().__init__(f"Cycle de dépendances entre: {', '.join(self.nodes)}")

class PlanValidationError(PlanError):
    """Identifiants dupliqués ou dépendances inconnues."""

class TaskFailure(OrchestriaError):
    """Échec d'une tentative de délégation à un worker."""

    def __init__(self, message: str, *, subtask_id: str = "", attempt: int = 0) -> None:
        super().__init__(message)
        self.subtask_id = subtask_id
        self.attempt = attempt

class WorkerTimeoutError(TaskFailure):
    """La tentative a dépassé son délai."""

class UnknownWorkerError(TaskFailure):
    """Aucun worker enregistré pour cet identifiant."""
