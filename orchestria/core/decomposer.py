from __future__ import annotations
import re
from typing import Iterable, List, Optional, Sequence, Tuple
from .registry import WorkerRegistry, tokenize
from .types import ContextArtifact, DependencyKind, RetryPolicy, Subtask

DATA_MARKERS = ("using output", "using", "based on", "from the output", "consumes")
ORDERING_MARKERS = ("after", "then", "once")

def _has_phrase(text: str, phrase: str) -> bool:
    return re.search(rf"\b{re.escape(phrase)}\b", text.lower()) is not None

def classify_kind(requirement: str) -> DependencyKind:
    if any(_has_phrase(requirement, p) for p in DATA_MARKERS):
        return DependencyKind.DATA
    if any(_has_phrase(requirement, p) for p in ORDERING_MARKERS):
        return DependencyKind.ORDERING
    return DependencyKind.SOFT

def _stem(word: str) -> str:
    return word[:-1] if len(word) > 5 and word.endswith("s") else word

def significant_words(text: str, min_len: int = 5) -> List[str]:
    return [w for w in tokenize(text) if len(w) >= min_len]

class DependencyInference:
    """Stratégie d'inférence des dépendances entre sous-tâches."""

    def infer(self, requirement: str, previous: Sequence[Subtask]) -> List[Tuple[str, DependencyKind]]:  # pragma: no cover - interface
        raise NotImplementedError

class NoDependencyInference(DependencyInference):
    """Aucune dépendance implicite: seules les déclarations explicites comptent."""

    def infer(self, requirement: str, previous: Sequence[Subtask]) -> List[Tuple[str, DependencyKind]]:
        return []

class KeywordDependencyInference(DependencyInference):
    """
    Heuristique par vocabulaire partagé: un mot significatif (plus de 4
    caractères) du nom d'une sous-tâche précédente présent dans l'exigence
    courante crée une arête. Le type dépend de la formulation de l'exigence.
    """

    def infer(self, requirement: str, previous: Sequence[Subtask]) -> List[Tuple[str, DependencyKind]]:
        current = {_stem(w) for w in tokenize(requirement)}
        kind = classify_kind(requirement)
        edges: List[Tuple[str, DependencyKind]] = []
        for sub in previous:
            if any(_stem(w) in current for w in significant_words(sub.name)):
                edges.append((sub.id, kind))
        return edges

class TaskDecomposer:
    def __init__(
        self,
        registry: WorkerRegistry,
        *,
        inference: Optional[DependencyInference] = None,
        constraints: Sequence[str] = (),
        deliverable: str = "Livrer un résultat autonome.",
        retry_policy: Optional[RetryPolicy] = None,
        timeout: float = 300.0,
    ) -> None:
        self.registry = registry
        self.inference = inference or KeywordDependencyInference()
        self.constraints = list(constraints)
        self.deliverable = deliverable
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings, *, inference: Optional[DependencyInference] = None, constraints: Optional[Sequence[str]] = None) -> "TaskDecomposer":
        e = settings.engine
        return cls(
            WorkerRegistry.from_settings(settings),
            inference=inference,
            constraints=settings.decomposer.constraints if constraints is None else constraints,
            deliverable=settings.decomposer.deliverable,
            retry_policy=RetryPolicy(e.max_attempts, e.initial_backoff_sec, e.backoff_multiplier),
            timeout=e.timeout_sec,
        )

    def relevant_artifacts(self, requirement: str, artifacts: Iterable[ContextArtifact]) -> List[ContextArtifact]:
        req_tokens = {t for t in tokenize(requirement) if len(t) > 3}
        out = []
        for art in artifacts:
            if req_tokens & {t for t in tokenize(art.path) if len(t) > 3}:
                out.append(art)
        return out

    def build_brief(self, goal: str, requirement: str, artifacts: Sequence[ContextArtifact]) -> str:
        lines = ["## Objectif", goal.strip(), "", "## Sous-tâche", requirement.strip(), "", "## Contexte"]
        for art in artifacts:
            excerpt = art.content.strip().replace("\n", " ")
            if len(excerpt) > 200:
                excerpt = excerpt[:197] + "..."
            lines.append(f"- {art.path}: {excerpt}" if excerpt else f"- {art.path}")
        lines += ["", "## Contraintes"]
        lines += [f"- {c}" for c in self.constraints]
        lines += ["", "## Livrable", self.deliverable]
        return "\n".join(lines)

    def decompose(self, goal: str, requirements: Sequence[str], context_artifacts: Sequence[ContextArtifact] = ()) -> List[Subtask]:
        subtasks: List[Subtask] = []
        for requirement in requirements:
            requirement = requirement.strip()
            if not requirement:
                continue
            sub = Subtask(
                id=f"task-{len(subtasks) + 1}",
                name=requirement,
                assigned_worker=self.registry.select(requirement),
                brief=self.build_brief(goal, requirement, self.relevant_artifacts(requirement, context_artifacts)),
                retry_policy=RetryPolicy(
                    self.retry_policy.max_attempts,
                    self.retry_policy.initial_backoff,
                    self.retry_policy.backoff_multiplier,
                ),
                timeout=self.timeout,
            )
            # seules les sous-tâches déjà produites sont candidates: pas de cycle possible ici
            for dep_id, kind in self.inference.infer(requirement, subtasks):
                sub.add_dependency(dep_id, kind)
            subtasks.append(sub)
        return subtasks
