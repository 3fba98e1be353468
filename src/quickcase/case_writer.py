# writes the framework, the case narrative and the teaching guide
import re
import logging
from typing import Optional, Callable

from .config import get_settings
from .llm_service import get_llm_service
from .refinement import RefinementPipeline
from .prompts import (
    FRAMEWORK_SYSTEM_PROMPT,
    WRITING_SYSTEM_PROMPT,
    TEACHING_SYSTEM_PROMPT,
    POLISH_SYSTEM_PROMPT,
    TEACHING_POLISH_SYSTEM_PROMPT,
)

logger = logging.getLogger(__name__)

# how much of the case is quoted back when writing and polishing the guide
TEACHING_CASE_CHAR_LIMIT = 50_000
TEACHING_POLISH_CHAR_LIMIT = 60_000

TITLE_PATTERN = re.compile(r"^#\s+(.+)$", re.MULTILINE)


def extract_title(markdown: str, fallback: str) -> str:
    """First H1 heading of the document, or fallback"""
    match = TITLE_PATTERN.search(markdown or "")
    return match.group(1).strip() if match else fallback


# wraps the writing prompts; polishing delegates to the refinement pipeline
class CaseWriter:
    def __init__(self, llm_service=None, refinement: Optional[RefinementPipeline] = None):
        self.llm_service = llm_service or get_llm_service()
        self.refinement = refinement or RefinementPipeline(self.llm_service)
        self.settings = get_settings()

    def _context(self, context: str) -> str:
        return context[:self.settings.context_char_limit]

    # outline the case; revise the current outline when feedback is given
    def generate_framework(
        self,
        context: str,
        objective: str,
        feedback: Optional[str] = None,
        current_framework: Optional[str] = None,
    ) -> str:
        user_prompt = f"""
  **Input Data for Architect:**
  - **Core Dilemma / Theme (Provided by User):** {objective}
  - **Raw Information Dossier (Background Context):**
  {self._context(context)}
  """

        if feedback and current_framework:
            user_prompt += (
                f"\n\n**Current Draft Framework:**\n{current_framework}\n\n"
                f"**User Feedback / Adjustments:** {feedback}\n\n"
                "Please modify the framework based on the user's feedback while maintaining the \"Quick Case\" structure."
            )
            logger.info(f"Revising framework with feedback: {feedback[:80]}")
        else:
            user_prompt += "\n\nPlease generate the \"Quick Case\" Framework Outline."

        result = self.llm_service.generate_with_retry(user_prompt, system_instruction=FRAMEWORK_SYSTEM_PROMPT)
        return result.text

    def generate_case_content(self, context: str, objective: str, framework: str) -> str:
        """Write the full case from the approved framework"""
        prompt = f"""
    Please write the full "Quick Case" narrative based on the approved framework.

    【Approved Framework】:
    {framework}

    【Core Dilemma / Objective】:
    {objective}

    【Raw Information Dossier】:
    {self._context(context)}
  """
        result = self.llm_service.generate_with_retry(prompt, system_instruction=WRITING_SYSTEM_PROMPT)
        return result.text

    # quality editor rewrite, then the firewall
    def polish_case_content(self, draft: str, on_status: Optional[Callable[[str], None]] = None) -> str:
        prompt = f"""
    请作为【阅读编辑 (Quality Assurance Editor)】严格审查并重写以下草稿。
    {draft[:self.settings.document_char_limit]}
  """
        polished = self.llm_service.generate_with_retry(prompt, system_instruction=POLISH_SYSTEM_PROMPT).text
        return self.refinement.run_strict_firewall(polished, on_status)

    def generate_teaching_notes(self, context: str, objective: str, case_draft: str) -> str:
        prompt = f"""
    请为以下案例撰写教学指南 (Teaching Note)。
    【案例正文】：{case_draft[:TEACHING_CASE_CHAR_LIMIT]}
    【学习目标】：{objective}
  """
        result = self.llm_service.generate_with_retry(prompt, system_instruction=TEACHING_SYSTEM_PROMPT)
        return result.text

    def polish_teaching_notes(self, draft: str, on_status: Optional[Callable[[str], None]] = None) -> str:
        prompt = f"""
      请润色以下教学指南，确保格式清晰，板书计划结构合理。
      {draft[:TEACHING_POLISH_CHAR_LIMIT]}
    """
        polished = self.llm_service.generate_with_retry(prompt, system_instruction=TEACHING_POLISH_SYSTEM_PROMPT).text
        return self.refinement.run_strict_firewall(polished, on_status)
