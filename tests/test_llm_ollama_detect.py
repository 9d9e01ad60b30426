import pytest
from orchestria.llm.base import LLMRequest
from orchestria.llm.ollama import OllamaCLI, has_ollama
from orchestria.workers import build_workers

def test_has_ollama_returns_bool():
    assert isinstance(has_ollama(), bool)

@pytest.mark.skipif(has_ollama(), reason="ollama installé")
def test_missing_ollama_is_reported():
    with pytest.raises(RuntimeError):
        OllamaCLI("llama3").generate(LLMRequest(prompt="x"))
    with pytest.raises(RuntimeError):
        build_workers("llama3.1:8b-instruct")
