"""
shared fixtures for the quickcase tests
the gemini client is replaced by scripted responses, no network access is needed
"""

import sys
from pathlib import Path

import pytest

# add the project root to python path so we can import src.quickcase modules
sys.path.insert(0, str(Path(__file__).parent))

from src.quickcase.config import reset_settings
from src.quickcase.llm_service import GenerationResult, reset_llm_service


# stands in for GeminiLLMService; replies come from a list or a responder function
class FakeLLMService:
    def __init__(self, responses=None, responder=None):
        self.responses = list(responses or [])
        self.responder = responder
        self.calls = []
        self.gen_model = "gemini-3-pro-preview"
        self.search_model = "gemini-2.5-flash"

    def generate_with_retry(self, contents, **kwargs):
        self.calls.append({"contents": contents, **kwargs})
        if self.responder is not None:
            reply = self.responder(contents, kwargs)
        else:
            if not self.responses:
                raise AssertionError("unexpected model call")
            reply = self.responses.pop(0)

        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, str):
            reply = GenerationResult(text=reply)
        return reply

    def test_connection(self):
        return True


def prompt_text(call) -> str:
    """Flatten the text parts of a recorded call"""
    contents = call["contents"]
    if isinstance(contents, str):
        return contents
    texts = []
    for turn in contents:
        for part in turn.get("parts", []):
            texts.append(part.get("text", ""))
    return "\n".join(texts)


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch, tmp_path):
    """Every test starts from default settings and writes into tmp_path"""
    for name in ("QUICKCASE_ACCESS_CODE", "QUICKCASE_GEN_MODEL", "QUICKCASE_SEARCH_MODEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("QUICKCASE_GEMINI_API_KEY", "test-key")
    monkeypatch.setenv("QUICKCASE_OUTPUT_DIR", str(tmp_path / "outputs"))
    reset_settings()
    reset_llm_service()
    yield
    reset_settings()
    reset_llm_service()


@pytest.fixture
def fake_llm():
    return FakeLLMService()
