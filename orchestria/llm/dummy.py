from __future__ import annotations
from .base import LLM, LLMRequest

class DummyLLM(LLM):
    """
    LLM déterministe pour tests/démo.
    Reprend la sous-tâche du brief et annonce un livrable en 3 points.
    """
    def generate(self, req: LLMRequest) -> str:
        lines = [l.strip() for l in req.prompt.strip().splitlines()]
        task = lines[0] if lines else ""
        if "## Sous-tâche" in lines:
            idx = lines.index("## Sous-tâche") + 1
            if idx < len(lines):
                task = lines[idx]
        task = task[:200]
        return (
            f"1. Analyser: {task}\n"
            f"2. Produire le livrable\n"
            f"3. Vérifier le livrable contre les contraintes\n"
        )
