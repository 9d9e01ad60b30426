from __future__ import annotations
import shutil, subprocess
from .base import LLM, LLMRequest

def has_ollama() -> bool:
    return bool(shutil.which("ollama"))

class OllamaCLI(LLM):
    """
    Appelle 'ollama run <model>' en local (pas d'HTTP).
    Nécessite que le binaire 'ollama' soit sur le PATH.
    """
    def __init__(self, model: str, *, extra: list[str] | None = None):
        self.model = model
        self.extra = list(extra or [])

    def generate(self, req: LLMRequest) -> str:
        if not has_ollama():
            raise RuntimeError("Ollama non disponible (binaire 'ollama' introuvable sur PATH).")
        cmd = ["ollama", "run", self.model, *self.extra, req.prompt]
        try:
            p = subprocess.run(
                cmd,
                text=True,
                encoding="utf-8",
                errors="replace",
                capture_output=True,
                timeout=req.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise RuntimeError(f"ollama run a dépassé {req.timeout}s") from e
        if p.returncode != 0:
            raise RuntimeError(f"ollama run a échoué: {p.stderr.strip() or p.stdout.strip()}")
        return p.stdout.strip() or "(réponse vide)"
