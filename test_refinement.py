"""
tests for the inspect -> fix loops and free-form rewrites
"""

import pytest

from conftest import FakeLLMService, prompt_text
from src.quickcase.prompts import STRING_ARRAY_SCHEMA
from src.quickcase.refinement import (
    InspectFixLoop, PipelineStopped, RefinementPipeline, FIREWALL_MESSAGES
)


def scripted_loop(reports, max_attempts=4):
    """Loop whose inspector returns the given reports in order and whose fixer appends a marker"""
    reports = list(reports)
    inspected = []
    fixed = []

    def inspect(text):
        inspected.append(text)
        return reports.pop(0)

    def fix(text, errors):
        fixed.append(list(errors))
        return text + "+fix"

    loop = InspectFixLoop("firewall", inspect, fix, max_attempts, FIREWALL_MESSAGES)
    return loop, inspected, fixed


class TestInspectFixLoop:
    def test_clean_document_is_returned_unchanged(self):
        loop, inspected, fixed = scripted_loop([[]])
        statuses = []

        assert loop.run("doc", statuses.append) == "doc"
        assert fixed == []
        assert statuses == ["防火墙审查中 (第 1 轮)...", "审查通过，格式完美。"]

    def test_converges_after_fix(self):
        loop, inspected, fixed = scripted_loop([["CHAT_FILLER", "CITATIONS"], []])
        statuses = []

        assert loop.run("doc", statuses.append) == "doc+fix"
        assert inspected == ["doc", "doc+fix"]
        assert fixed == [["CHAT_FILLER", "CITATIONS"]]
        assert "发现 2 个问题 (CHAT_FILLER, CITATIONS)，正在修复..." in statuses

    def test_ceiling_returns_last_fix_without_reinspecting(self):
        loop, inspected, fixed = scripted_loop([["E"]] * 4, max_attempts=4)

        assert loop.run("doc") == "doc+fix+fix+fix+fix"
        assert len(inspected) == 4
        assert len(fixed) == 4

    def test_stop_before_first_inspection(self):
        loop, inspected, fixed = scripted_loop([[]])

        with pytest.raises(PipelineStopped):
            loop.run("doc", check_stop=lambda: True)
        assert inspected == []

    def test_stop_between_inspection_and_fix(self):
        loop, inspected, fixed = scripted_loop([["E"], []])
        checks = iter([False, True])

        with pytest.raises(PipelineStopped) as excinfo:
            loop.run("doc", check_stop=lambda: next(checks))
        assert str(excinfo.value) == "STOPPED"
        assert inspected == ["doc"]
        assert fixed == []


class TestRefinementPipeline:
    def test_inspections_request_a_string_array(self):
        llm = FakeLLMService(responses=["[]"])
        pipeline = RefinementPipeline(llm)

        assert pipeline.run_strict_firewall("draft") == "draft"
        assert llm.calls[0]["response_schema"] == STRING_ARRAY_SCHEMA
        assert "draft" in prompt_text(llm.calls[0])

    def test_unreadable_inspector_reply_counts_as_clean(self):
        llm = FakeLLMService(responses=["I found a few problems"])
        pipeline = RefinementPipeline(llm)

        assert pipeline.generate_and_audit_visuals("draft") == "draft"
        assert len(llm.calls) == 1

    def test_fixer_receives_error_codes(self):
        llm = FakeLLMService(responses=['["MISSING_TABLE"]', "| a | b |\n|---|---|", "[]"])
        pipeline = RefinementPipeline(llm)

        assert pipeline.generate_and_audit_visuals("revenue grew 20%") == "| a | b |\n|---|---|"
        fix_prompt = prompt_text(llm.calls[1])
        assert '["MISSING_TABLE"]' in fix_prompt
        assert "revenue grew 20%" in fix_prompt
        assert "response_schema" not in llm.calls[1]

    def test_final_polish_runs_firewall_then_visuals(self):
        llm = FakeLLMService(responses=['["NUMBERING"]', "fixed", "[]", "[]"])
        pipeline = RefinementPipeline(llm)
        statuses = []

        assert pipeline.run_final_polish("doc", statuses.append) == "fixed"
        assert statuses[0] == "正在进行格式合规审查..."
        assert "正在检查并修复图表数据..." in statuses
        assert statuses[-1] == "所有图表构建完成，数据展示完美。"

    def test_firewall_ceiling_comes_from_settings(self):
        llm = FakeLLMService(responder=lambda contents, kwargs: '["E"]' if kwargs.get("response_schema") else "fixed")
        pipeline = RefinementPipeline(llm)

        pipeline.run_strict_firewall("doc")
        inspections = [call for call in llm.calls if call.get("response_schema")]
        assert len(inspections) == 4
        assert len(llm.calls) == 8

    def test_refine_content_with_selection(self):
        llm = FakeLLMService(responses=["new document"])
        pipeline = RefinementPipeline(llm)
        statuses = []

        result = pipeline.refine_content("full doc", "make it shorter", "selected passage", statuses.append)

        assert result == "new document"
        assert statuses == ["正在根据意见重写内容..."]
        text = prompt_text(llm.calls[0])
        assert "selected passage" in text
        assert "Rewrite ONLY that specific section" in text

    def test_refine_content_globally(self):
        llm = FakeLLMService(responses=["new document"])
        pipeline = RefinementPipeline(llm)

        pipeline.refine_content("full doc", "more formal")
        assert "GLOBALLY" in prompt_text(llm.calls[0])

    def test_refine_content_stopped_before_model_call(self):
        llm = FakeLLMService()
        pipeline = RefinementPipeline(llm)

        with pytest.raises(PipelineStopped):
            pipeline.refine_content("full doc", "x", check_stop=lambda: True)
        assert llm.calls == []

    def test_refine_text_by_selection(self):
        llm = FakeLLMService(responses=["outline v2"])
        pipeline = RefinementPipeline(llm)

        assert pipeline.refine_text_by_selection("outline v1", "section 2", "expand") == "outline v2"
        text = prompt_text(llm.calls[0])
        assert '"section 2"' in text
        assert '"expand"' in text
