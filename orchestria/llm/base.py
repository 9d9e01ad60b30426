from __future__ import annotations
from dataclasses import dataclass

@dataclass
class LLMRequest:
    prompt: str
    max_tokens: int = 512
    temperature: float = 0.2
    timeout: float | None = None  # secondes

class LLM:
    def generate(self, req: LLMRequest) -> str:  # pragma: no cover - interface
        raise NotImplementedError
