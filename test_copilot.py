"""
tests for the copilot chat editor
"""

from conftest import FakeLLMService
from src.quickcase.copilot import (
    ACTION_ACKNOWLEDGEMENT, CHAT_FAILURE_REPLY, CaseCopilot, build_chat_history
)
from src.quickcase.llm_service import GenerationResult, LLMServiceError
from src.quickcase.models import ChatMessage


def test_history_drops_action_notices():
    messages = [
        ChatMessage(role="user", text="hi"),
        ChatMessage(role="model", text="⚙️ working", is_action=True),
        ChatMessage(role="model", text="hello"),
    ]
    assert build_chat_history(messages) == [
        {"role": "user", "parts": [{"text": "hi"}]},
        {"role": "model", "parts": [{"text": "hello"}]},
    ]


def test_plain_answer():
    llm = FakeLLMService(responses=["案例的核心冲突是现金流。"])
    response = CaseCopilot(llm).chat_with_editor("case body", "notes body", [], "核心冲突是什么？")

    assert response.text == "案例的核心冲突是现金流。"
    assert response.refinement_request is None

    call = llm.calls[0]
    assert "case body" in call["system_instruction"]
    assert "notes body" in call["system_instruction"]
    assert call["tools"][0]["functionDeclarations"][0]["name"] == "request_refinement"


def test_tool_call_without_text_gets_acknowledgement():
    llm = FakeLLMService(responses=[GenerationResult(
        function_calls=[{"name": "request_refinement", "args": {"target": "case_content", "instruction": "加表格"}}]
    )])
    response = CaseCopilot(llm).chat_with_editor("c", "n", [], "加一个表格")

    assert response.text == ACTION_ACKNOWLEDGEMENT
    assert response.refinement_request.target == "case_content"
    assert response.refinement_request.instruction == "加表格"


def test_tool_call_keeps_model_text():
    llm = FakeLLMService(responses=[GenerationResult(
        text="好的，我来修改。",
        function_calls=[{"name": "request_refinement", "args": {"target": "teaching_notes", "instruction": "x"}}],
    )])
    response = CaseCopilot(llm).chat_with_editor("c", "n", [], "改一下")
    assert response.text == "好的，我来修改。"


def test_malformed_tool_call_is_ignored():
    llm = FakeLLMService(responses=[GenerationResult(
        text="嗯",
        function_calls=[{"name": "request_refinement", "args": {"target": "appendix", "instruction": "x"}}],
    )])
    response = CaseCopilot(llm).chat_with_editor("c", "n", [], "改附录")

    assert response.refinement_request is None
    assert response.text == "嗯"


def test_api_failure_becomes_apology():
    llm = FakeLLMService(responses=[LLMServiceError("down", status_code=503)])
    response = CaseCopilot(llm).chat_with_editor("c", "n", [], "hi")

    assert response.text == CHAT_FAILURE_REPLY
    assert response.refinement_request is None
