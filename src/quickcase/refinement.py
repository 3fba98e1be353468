"""
Inspect-then-fix refinement loops.

Both polishing passes share one control flow: ask an inspector prompt for a
JSON list of error codes, hand the codes to a fixer prompt that rewrites the
document, and repeat until the inspector reports nothing or the attempt
ceiling is hit.

- firewall: formatting defects (numbering, chat filler, citations, language...)
- visual audit: data that should be, but is not, a well formed Markdown table

Callers may pass `check_stop`; it is polled before every model call and a
truthy result raises PipelineStopped.
"""
import json
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from .config import get_settings
from .llm_service import get_llm_service, parse_string_array
from .prompts import (
    FIREWALL_INSPECTOR_PROMPT,
    FIREWALL_FIXER_PROMPT,
    VISUAL_AUDITOR_PROMPT,
    VISUAL_FIXER_PROMPT,
    STRING_ARRAY_SCHEMA,
)

logger = logging.getLogger(__name__)

StatusCallback = Optional[Callable[[str], None]]
StopCheck = Optional[Callable[[], bool]]


class PipelineStopped(Exception):
    """Raised when the user asked to stop a running pipeline"""

    def __init__(self):
        super().__init__("STOPPED")


def raise_if_stopped(check_stop: StopCheck):
    if check_stop and check_stop():
        raise PipelineStopped()


@dataclass(frozen=True)
class LoopMessages:
    checking: str  # formatted with attempt
    passed: str
    fixing: str  # formatted with count and codes


FIREWALL_MESSAGES = LoopMessages(
    checking="防火墙审查中 (第 {attempt} 轮)...",
    passed="审查通过，格式完美。",
    fixing="发现 {count} 个问题 ({codes})，正在修复...",
)

VISUAL_MESSAGES = LoopMessages(
    checking="图表与数据可视化构建中 (第 {attempt} 轮)...",
    passed="所有图表构建完成，数据展示完美。",
    fixing="发现 {count} 处数据可视化优化点，正在重新绘图...",
)


class InspectFixLoop:
    """Bounded inspect -> fix loop"""

    def __init__(
        self,
        name: str,
        inspect: Callable[[str], List[str]],
        fix: Callable[[str, List[str]], str],
        max_attempts: int,
        messages: LoopMessages,
    ):
        self.name = name
        self.inspect = inspect
        self.fix = fix
        self.max_attempts = max_attempts
        self.messages = messages

    def run(self, text: str, on_status: StatusCallback = None, check_stop: StopCheck = None) -> str:
        current_text = text

        for attempt in range(1, self.max_attempts + 1):
            raise_if_stopped(check_stop)

            if on_status:
                on_status(self.messages.checking.format(attempt=attempt))

            errors = self.inspect(current_text)
            if not errors:
                logger.info(f"{self.name}: clean after {attempt} inspection(s)")
                if on_status:
                    on_status(self.messages.passed)
                return current_text

            raise_if_stopped(check_stop)

            logger.info(f"{self.name}: attempt {attempt}/{self.max_attempts} found {errors}")
            if on_status:
                on_status(self.messages.fixing.format(count=len(errors), codes=", ".join(errors)))
            current_text = self.fix(current_text, errors)

        # the last fix is not re-inspected
        logger.warning(f"{self.name}: attempt ceiling ({self.max_attempts}) reached")
        return current_text


# runs the firewall, visual audit and free-form rewrites against the model
class RefinementPipeline:
    def __init__(self, llm_service=None):
        self.llm_service = llm_service or get_llm_service()
        settings = get_settings()
        self.document_char_limit = settings.document_char_limit
        self.firewall_max_attempts = settings.firewall_max_attempts
        self.visual_max_attempts = settings.visual_max_attempts

    # ------------------------------------------------------------------
    # inspectors and fixers
    # ------------------------------------------------------------------

    def _inspect(self, prompt: str, text: str) -> List[str]:
        result = self.llm_service.generate_with_retry(
            prompt + f"\n{text[:self.document_char_limit]}",
            response_schema=STRING_ARRAY_SCHEMA,
        )
        # an unreadable report counts as a clean one
        return parse_string_array(result.text) or []

    def firewall_inspect(self, text: str) -> List[str]:
        return self._inspect(FIREWALL_INSPECTOR_PROMPT, text)

    def firewall_fix(self, text: str, errors: List[str]) -> str:
        prompt = (
            f"{FIREWALL_FIXER_PROMPT}\n\n【发现的错误】：{json.dumps(errors, ensure_ascii=False)}"
            f"\n\n【待修复文档】：\n{text[:self.document_char_limit]}"
        )
        return self.llm_service.generate_with_retry(prompt).text

    def audit_visuals(self, text: str) -> List[str]:
        return self._inspect(VISUAL_AUDITOR_PROMPT, text)

    def fix_visuals(self, text: str, errors: List[str]) -> str:
        prompt = (
            f"{VISUAL_FIXER_PROMPT}\n\n【发现的视觉问题】：{json.dumps(errors, ensure_ascii=False)}"
            f"\n\n【文档内容】：\n{text[:self.document_char_limit]}"
        )
        return self.llm_service.generate_with_retry(prompt).text

    # ------------------------------------------------------------------
    # loops
    # ------------------------------------------------------------------

    def firewall_loop(self) -> InspectFixLoop:
        return InspectFixLoop(
            "firewall",
            self.firewall_inspect,
            self.firewall_fix,
            self.firewall_max_attempts,
            FIREWALL_MESSAGES,
        )

    def visual_loop(self) -> InspectFixLoop:
        return InspectFixLoop(
            "visual audit",
            self.audit_visuals,
            self.fix_visuals,
            self.visual_max_attempts,
            VISUAL_MESSAGES,
        )

    def run_strict_firewall(self, draft: str, on_status: StatusCallback = None, check_stop: StopCheck = None) -> str:
        return self.firewall_loop().run(draft, on_status, check_stop)

    def generate_and_audit_visuals(self, text: str, on_status: StatusCallback = None, check_stop: StopCheck = None) -> str:
        return self.visual_loop().run(text, on_status, check_stop)

    def run_final_polish(self, content: str, on_progress: StatusCallback = None, check_stop: StopCheck = None) -> str:
        """Firewall followed by the visual audit"""
        if on_progress:
            on_progress("正在进行格式合规审查...")
        firewalled = self.run_strict_firewall(content, on_progress, check_stop)

        if on_progress:
            on_progress("正在检查并修复图表数据...")
        return self.generate_and_audit_visuals(firewalled, on_progress, check_stop)

    # ------------------------------------------------------------------
    # free-form rewrites
    # ------------------------------------------------------------------

    def refine_text_by_selection(self, full_text: str, selection: str, instruction: str) -> str:
        """Rewrite only the selected passage of full_text"""
        prompt = f"""
    Role: Document Editor.
    Task: The user wants to modify a specific part of the document based on a selection.

    [Document Content]:
    {full_text[:self.document_char_limit]}

    [User Selected Text]:
    "{selection}"

    [User Instruction]:
    "{instruction}"

    Directives:
    1. Locate the section in the [Document Content] that corresponds to the [User Selected Text].
    2. Rewrite ONLY that specific section to satisfy the [User Instruction].
    3. Keep the rest of the document EXACTLY unchanged.
    4. Output the COMPLETE, updated document.
    5. Maintain Simplified Chinese.
  """
        return self.llm_service.generate_with_retry(prompt).text

    def refine_content(
        self,
        full_markdown: str,
        instruction: str,
        selected_text: Optional[str] = None,
        on_progress: StatusCallback = None,
        check_stop: StopCheck = None,
    ) -> str:
        """Partial rewrite when selected_text is given, global rewrite otherwise.

        The firewall is not run here; users trigger it separately.
        """
        if on_progress:
            on_progress("正在根据意见重写内容...")

        if selected_text:
            prompt = f"""
      Role: Document Editor.
      Task: The user wants to modify a specific part of the document based on a selection.

      [Document Content (Markdown)]:
      {full_markdown}

      [User Selected Text (Visual Representation)]:
      "{selected_text}"

      [User Instruction]:
      "{instruction}"

      Directives:
      1. Locate the section in the [Document Content] that corresponds to the [User Selected Text].
      2. Rewrite ONLY that specific section to satisfy the [User Instruction].
      3. Keep the rest of the document EXACTLY unchanged.
      4. Output the COMPLETE, updated Markdown document.
      5. Maintain Simplified Chinese.
    """
        else:
            prompt = f"""
      Role: Senior Editor.
      Task: The user wants to GLOBALLY refine the entire document.

      [Document Content (Markdown)]:
      {full_markdown}

      [Global Instruction]:
      "{instruction}"

      Directives:
      1. Rewrite the document to fully implement the [Global Instruction].
      2. Ensure all data tables and key facts are preserved unless the instruction says to remove them.
      3. Maintain professional structure (Headers, Tables).
      4. Output the COMPLETE, updated Markdown document.
      5. Maintain Simplified Chinese.
    """

        raise_if_stopped(check_stop)
        return self.llm_service.generate_with_retry(prompt).text
