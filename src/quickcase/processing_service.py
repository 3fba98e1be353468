import time
import logging
from typing import Optional, List

from .case_writer import CaseWriter, extract_title
from .config import get_settings
from .copilot import CaseCopilot, build_chat_history
from .document_exporter import DocumentExporter
from .llm_service import get_llm_service
from .models import (
    GenerationStep, GenerationState, UploadedFile, ChatMessage, ChatResponse
)
from .objective_generator import ObjectiveGenerator
from .refinement import RefinementPipeline, PipelineStopped
from .research import Researcher
from .session_store import CaseSession

logger = logging.getLogger(__name__)

# progress reported while each research dimension runs
RESEARCH_PROGRESS = {"量化": 20, "人文": 35}
RESEARCH_DEFAULT_PROGRESS = 10

REFINE_FAILED_NOTICE = "修改遇到问题，请重试。"
FIREWALL_DONE_NOTICE = "防火墙审查与图表修复已完成！"
FIREWALL_FAILED_NOTICE = "审查过程中断或出错。"
COPILOT_ACTION_MESSAGE = "⚙️ 正在启动深度重构引擎，请稍候..."


# case processing service orchestrates research, objectives, framework, drafting and polishing
class CaseProcessingService:
    def __init__(self, llm_service=None, save_outputs: bool = True):
        self.llm_service = llm_service or get_llm_service()
        self.researcher = Researcher(self.llm_service)
        self.objective_generator = ObjectiveGenerator(self.llm_service)
        self.refinement = RefinementPipeline(self.llm_service)
        self.case_writer = CaseWriter(self.llm_service, self.refinement)
        self.copilot = CaseCopilot(self.llm_service)
        self.exporter = DocumentExporter()
        self.save_outputs = save_outputs

    def _set_state(self, session: CaseSession, step: GenerationStep, progress: int, message: str):
        session.state = GenerationState(step=step, progress=progress, message=message)

    # ------------------------------------------------------------------
    # step 1: research
    # ------------------------------------------------------------------

    def start_research(self, session: CaseSession, topic: str, uploaded_files: Optional[List[UploadedFile]] = None):
        """Research the topic, then propose learning objectives"""
        if not topic or not topic.strip():
            return
        topic = topic.strip()
        uploaded_files = session.files if uploaded_files is None else uploaded_files
        start_time = time.time()

        logger.info(f"Starting research: {topic}")
        logger.info("=" * 60)
        self._set_state(session, GenerationStep.RESEARCHING, 5, "正在启动全维深度研究...")

        def on_progress(message: str):
            progress = RESEARCH_DEFAULT_PROGRESS
            for label, value in RESEARCH_PROGRESS.items():
                if label in message:
                    progress = value
            session.state.message = message
            session.state.progress = progress

        try:
            result = self.researcher.gather_information(topic, uploaded_files, on_progress)
            session.data.topic = topic
            session.data.context = result.context
            session.data.sources = result.sources
            logger.info(f"  ✓ Dossier: {len(result.context)} chars, {len(result.sources)} sources")

            self._set_state(session, GenerationStep.RESEARCHING, 45, "正在提炼核心教学价值...")
            session.data.objectives = self.objective_generator.generate_learning_objectives(result.context)
            logger.info(f"  ✓ Objectives: {len(session.data.objectives)}")

            self._set_state(session, GenerationStep.SELECTING_OBJECTIVE, 50, "等待用户决策...")
            logger.info(f"✓ Research completed in {time.time() - start_time:.2f} seconds")

        except Exception as e:
            logger.error(f"✗ Research failed: {str(e)}", exc_info=True)
            self._set_state(session, GenerationStep.ERROR, 0, "研究阶段遇到问题，请重试。")

    # ------------------------------------------------------------------
    # step 2: objectives
    # ------------------------------------------------------------------

    def refine_objectives(self, session: CaseSession, direction: str):
        try:
            session.data.objectives = self.objective_generator.refine_learning_objectives(
                session.data.context, direction
            )
        except Exception as e:
            logger.error(f"Objective refinement failed: {str(e)}", exc_info=True)

    def select_objective(self, session: CaseSession, objective: str):
        """Pick an objective and build the first framework"""
        session.data.selected_objective = objective
        session.data.framework = ""
        self._set_state(session, GenerationStep.REVIEW_FRAMEWORK, 55, "正在构建案例叙事框架...")

        try:
            session.data.framework = self.case_writer.generate_framework(session.data.context, objective)
        except Exception as e:
            logger.error(f"Framework generation failed: {str(e)}", exc_info=True)
            self._set_state(session, GenerationStep.ERROR, 0, "框架生成失败。")

    # ------------------------------------------------------------------
    # step 3: framework review
    # ------------------------------------------------------------------

    def refine_framework(self, session: CaseSession, feedback: str):
        try:
            session.data.framework = self.case_writer.generate_framework(
                session.data.context,
                session.data.selected_objective,
                feedback,
                session.data.framework,
            )
        except Exception as e:
            logger.error(f"Framework refinement failed: {str(e)}", exc_info=True)

    def update_framework(self, session: CaseSession, framework: str):
        session.data.framework = framework

    def refine_framework_selection(self, session: CaseSession, selection: str, instruction: str):
        if not selection or not session.data.framework:
            return
        try:
            session.data.framework = self.refinement.refine_text_by_selection(
                session.data.framework, selection, instruction
            )
        except Exception as e:
            logger.error(f"Framework selection edit failed: {str(e)}", exc_info=True)

    # ------------------------------------------------------------------
    # step 4: drafting
    # ------------------------------------------------------------------

    def approve_framework(self, session: CaseSession):
        """Draft, polish and audit the case and its teaching guide"""
        data = session.data
        if not data.selected_objective or not data.framework:
            raise ValueError("An objective and a framework are required before drafting")

        start_time = time.time()
        logger.info(f"Drafting case for objective: {data.selected_objective[:80]}")
        logger.info("=" * 60)
        self._set_state(session, GenerationStep.DRAFTING, 60, "正在撰写案例初稿...")

        def prefixed(prefix: str):
            def on_status(message: str):
                session.state.message = f"{prefix}{message}"
            return on_status

        try:
            # Step 1: case content
            logger.info("Step 1: Writing case draft...")
            raw_case = self.case_writer.generate_case_content(data.context, data.selected_objective, data.framework)

            self._set_state(session, GenerationStep.DRAFTING, 70, "资深编辑正在进行深度润色与排版...")
            logger.info("Step 2: Polishing case...")
            polished_case = self.case_writer.polish_case_content(raw_case, prefixed("案例正文: "))

            final_title = extract_title(polished_case, data.topic)
            logger.info(f"  ✓ Title: {final_title}")

            # Step 3: teaching notes
            self._set_state(session, GenerationStep.DRAFTING, 85, "正在编制专业教学指南...")
            logger.info("Step 3: Writing teaching notes...")
            raw_notes = self.case_writer.generate_teaching_notes(data.context, data.selected_objective, polished_case)

            self._set_state(session, GenerationStep.DRAFTING, 90, "教学指南: 正在进行最终格式合规审查...")
            polished_notes = self.case_writer.polish_teaching_notes(raw_notes, prefixed("教学指南: "))

            # Step 4: visual audit
            self._set_state(session, GenerationStep.DRAFTING, 95, "正在构建商业图表与数据看板...")
            logger.info("Step 4: Auditing tables...")
            final_case = self.refinement.generate_and_audit_visuals(polished_case, prefixed("图表构建(正文): "))
            final_notes = self.refinement.generate_and_audit_visuals(polished_notes, prefixed("图表构建(教参): "))

            data.topic = final_title
            session.set_documents(case_content=final_case, teaching_notes=final_notes)
            self._set_state(session, GenerationStep.COMPLETED, 100, "生成完毕")

            if self.save_outputs:
                try:
                    self.exporter.save_outputs(data, get_settings().output_dir)
                except Exception as save_error:
                    logger.warning(f"  ! Error saving outputs (continuing anyway): {str(save_error)}")

            logger.info("=" * 60)
            logger.info(f"✓ SUCCESS! Completed in {time.time() - start_time:.2f} seconds")

        except Exception as e:
            logger.error(f"✗ ERROR: {str(e)}", exc_info=True)
            self._set_state(session, GenerationStep.ERROR, 0, "撰写过程中断。")

    # ------------------------------------------------------------------
    # step 5: editing the finished case
    # ------------------------------------------------------------------

    def refine_document(self, session: CaseSession, target: str, instruction: str, selected_text: Optional[str] = None):
        """Rewrite the case ("case") or the teaching guide ("notes")"""
        full_text = session.data.teaching_notes if target == "notes" else session.data.case_content
        if not full_text:
            return

        session.notice = None
        session.refine_status = "AI 正在初始化深度重构引擎..."

        def on_progress(message: str):
            session.refine_status = message

        try:
            new_text = self.refinement.refine_content(
                full_text, instruction, selected_text, on_progress, session.should_stop
            )
            if target == "notes":
                session.set_documents(teaching_notes=new_text)
            else:
                session.set_documents(case_content=new_text)
        except PipelineStopped:
            logger.info(f"Refinement stopped for session {session.session_id}")
        except Exception as e:
            logger.error(f"Refine failed: {str(e)}", exc_info=True)
            session.notice = REFINE_FAILED_NOTICE
        finally:
            session.refine_status = None

    def run_firewall_check(self, session: CaseSession):
        """Final polish of the case, then of the teaching guide"""
        session.notice = None
        session.refine_status = "正在启动人工防火墙审查..."

        def prefixed(prefix: str):
            def on_status(message: str):
                session.refine_status = f"{prefix}{message}"
            return on_status

        try:
            session.refine_status = "正在审查案例正文..."
            polished_case = self.refinement.run_final_polish(
                session.data.case_content, prefixed("正文: "), session.should_stop
            )
            session.set_documents(case_content=polished_case)

            session.refine_status = "正在审查教学指南..."
            polished_notes = self.refinement.run_final_polish(
                session.data.teaching_notes, prefixed("教参: "), session.should_stop
            )
            session.set_documents(teaching_notes=polished_notes)
            session.notice = FIREWALL_DONE_NOTICE

        except PipelineStopped:
            logger.info(f"Firewall check stopped for session {session.session_id}")
        except Exception as e:
            logger.error(f"Firewall check failed: {str(e)}", exc_info=True)
            session.notice = FIREWALL_FAILED_NOTICE
        finally:
            session.refine_status = None

    def chat(self, session: CaseSession, message: str) -> Optional[ChatResponse]:
        """One copilot turn; a refinement request is returned for the caller to run"""
        message = (message or "").strip()
        if not message:
            return None

        history = build_chat_history(session.messages)
        session.messages.append(ChatMessage(role="user", text=message))

        response = self.copilot.chat_with_editor(
            session.data.case_content,
            session.data.teaching_notes,
            history,
            message,
        )

        if response.refinement_request:
            session.messages.append(ChatMessage(role="model", text=COPILOT_ACTION_MESSAGE, is_action=True))
        if response.text:
            session.messages.append(ChatMessage(role="model", text=response.text))
        return response

    # ------------------------------------------------------------------
    # session controls
    # ------------------------------------------------------------------

    def stop(self, session: CaseSession):
        session.request_stop()

    def undo(self, session: CaseSession) -> bool:
        return session.undo()

    def redo(self, session: CaseSession) -> bool:
        return session.redo()

    def reset(self, session: CaseSession):
        session.reset()
