from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

_WORD = re.compile(r"[a-z0-9]+")

def tokenize(text: str) -> List[str]:
    return _WORD.findall(text.lower())

@dataclass
class WorkerRegistry:
    """Table worker -> mots-clés, passée explicitement au décomposeur."""
    keywords: Dict[str, List[str]] = field(default_factory=dict)
    default_worker: str = "generalist"

    @classmethod
    def from_settings(cls, settings) -> "WorkerRegistry":
        return cls(keywords=dict(settings.workers), default_worker=settings.decomposer.default_worker)

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[str, Iterable[str]]], default_worker: str = "generalist") -> "WorkerRegistry":
        return cls(keywords={w: [k.lower() for k in kws] for w, kws in pairs}, default_worker=default_worker)

    def score(self, worker_id: str, text: str) -> int:
        words = tokenize(text)
        hits = 0
        for kw in self.keywords.get(worker_id, []):
            # mot entier ou préfixe ("test" compte pour "tests")
            if any(w == kw or w.startswith(kw) for w in words):
                hits += 1
        return hits

    def select(self, text: str) -> str:
        best, best_score = self.default_worker, 0
        for worker_id in self.keywords:
            s = self.score(worker_id, text)
            if s > best_score:
                best, best_score = worker_id, s
        return best
