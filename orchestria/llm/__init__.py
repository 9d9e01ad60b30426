from .base import LLM, LLMRequest
from .dummy import DummyLLM
from .ollama import OllamaCLI, has_ollama

__all__ = ["LLM", "LLMRequest", "DummyLLM", "OllamaCLI", "has_ollama"]
