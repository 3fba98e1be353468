# chat editor that answers questions and turns edit requests into tool calls
from typing import List, Dict, Any
import logging

from .llm_service import get_llm_service
from .models import ChatMessage, ChatResponse, RefinementRequest
from .prompts import COPILOT_SYSTEM_PROMPT, REQUEST_REFINEMENT_TOOL

logger = logging.getLogger(__name__)

ACTION_ACKNOWLEDGEMENT = "收到，正在调动深度编辑引擎进行修改..."
CHAT_FAILURE_REPLY = "抱歉，编辑器遇到了一些问题，请稍后再试。"


def build_chat_history(messages: List[ChatMessage]) -> List[Dict[str, Any]]:
    """Conversation turns for the model, without action notices"""
    return [
        {"role": message.role, "parts": [{"text": message.text}]}
        for message in messages
        if not message.is_action
    ]


class CaseCopilot:
    def __init__(self, llm_service=None):
        self.llm_service = llm_service or get_llm_service()

    def chat_with_editor(
        self,
        case_content: str,
        teaching_notes: str,
        chat_history: List[Dict[str, Any]],
        user_message: str,
    ) -> ChatResponse:
        system_prompt = COPILOT_SYSTEM_PROMPT.format(
            case_content=case_content,
            teaching_notes=teaching_notes,
        )
        contents = chat_history + [{"role": "user", "parts": [{"text": user_message}]}]

        try:
            result = self.llm_service.generate_with_retry(
                contents,
                system_instruction=system_prompt,
                tools=[{"functionDeclarations": [REQUEST_REFINEMENT_TOOL]}],
            )
        except Exception as e:
            logger.error(f"Chat error: {str(e)}", exc_info=True)
            return ChatResponse(text=CHAT_FAILURE_REPLY)

        response = ChatResponse(text=result.text or "")

        for call in result.function_calls:
            if call.get("name") != "request_refinement":
                continue
            args = call.get("args") or {}
            try:
                response.refinement_request = RefinementRequest(
                    target=args.get("target"),
                    instruction=args.get("instruction", ""),
                )
            except ValueError as e:
                logger.warning(f"Ignoring malformed refinement request {args}: {e}")
                continue
            if not response.text:
                response.text = ACTION_ACKNOWLEDGEMENT

        return response
