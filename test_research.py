"""
tests for the research stage, uploaded sources and objective generation
"""

import base64

import fitz
import pytest

from conftest import FakeLLMService, prompt_text
from src.quickcase.llm_service import GenerationResult, LLMServiceError
from src.quickcase.models import SearchSource, UploadedFile
from src.quickcase.objective_generator import ObjectiveGenerator
from src.quickcase.research import RESEARCH_DIMENSIONS, Researcher, deduplicate_sources
from src.quickcase.source_loader import SourceLoader


def research_responder(contents, kwargs):
    text = prompt_text({"contents": contents})
    for index, dimension in enumerate(RESEARCH_DIMENSIONS):
        if dimension.role_prompt in text:
            return GenerationResult(
                text=f"{dimension.label} findings",
                sources=[
                    SearchSource(title="Shared", uri="https://example.com/shared"),
                    SearchSource(title=dimension.label, uri=f"https://example.com/{index}"),
                ],
            )
    raise AssertionError("unknown research prompt")


class TestResearcher:
    def test_gather_information_merges_dimensions_in_order(self):
        llm = FakeLLMService(responder=research_responder)
        progress = []

        result = Researcher(llm).gather_information("某公司", on_progress=progress.append)

        assert result.context.index("综合 原始情报档案") < result.context.index("量化 原始情报档案")
        assert result.context.index("量化 原始情报档案") < result.context.index("人文 原始情报档案")
        assert "量化 findings" in result.context
        assert progress == [
            "正在进行 综合 维度的深度研究...",
            "正在进行 量化 维度的深度研究...",
            "正在进行 人文 维度的深度研究...",
        ]
        uris = [source.uri for source in result.sources]
        assert uris.count("https://example.com/shared") == 1
        assert len(uris) == 4

    def test_research_uses_search_model_with_grounding(self):
        llm = FakeLLMService(responder=research_responder)
        Researcher(llm).gather_information("topic")

        assert len(llm.calls) == 3
        for call in llm.calls:
            assert call["model"] == "gemini-2.5-flash"
            assert call["tools"] == [{"googleSearch": {}}]
            assert "研究主题: topic" in prompt_text(call)

    def test_failed_dimension_leaves_an_empty_section(self):
        def responder(contents, kwargs):
            if RESEARCH_DIMENSIONS[1].role_prompt in prompt_text({"contents": contents}):
                raise LLMServiceError("quota", status_code=429)
            return research_responder(contents, kwargs)

        result = Researcher(FakeLLMService(responder=responder)).gather_information("topic")

        assert "综合 findings" in result.context
        assert "人文 findings" in result.context
        assert "量化" not in result.context

    def test_uploaded_files_become_priority_parts(self):
        files = [
            UploadedFile(name="notes.md", mime_type="text/plain", data="revenue 10bn", is_text=True),
            UploadedFile(name="report.pdf", mime_type="application/pdf", data="JVBERi0=", is_text=False),
        ]
        parts = Researcher(FakeLLMService()).build_parts(RESEARCH_DIMENSIONS[0], "topic", files)

        assert len(parts) == 3
        assert "PRIORITY SOURCE" in parts[0]["text"]
        assert "I have uploaded 2 local documents" in parts[0]["text"]
        assert "BEGIN UPLOADED DOCUMENT: notes.md" in parts[1]["text"]
        assert parts[2] == {"inlineData": {"mimeType": "application/pdf", "data": "JVBERi0="}}

    def test_without_files_there_is_no_priority_directive(self):
        parts = Researcher(FakeLLMService()).build_parts(RESEARCH_DIMENSIONS[0], "topic", [])
        assert len(parts) == 1
        assert "PRIORITY SOURCE" not in parts[0]["text"]


def test_deduplicate_sources_keeps_first_and_drops_empty_uris():
    sources = [
        SearchSource(title="first", uri="https://a"),
        SearchSource(title="", uri=""),
        SearchSource(title="second", uri="https://a"),
        SearchSource(title="b", uri="https://b"),
    ]
    unique = deduplicate_sources(sources)
    assert [(s.title, s.uri) for s in unique] == [("first", "https://a"), ("b", "https://b")]


class TestSourceLoader:
    def test_text_file(self):
        uploaded = SourceLoader().from_bytes("data.csv", "text/csv", "年份,收入\n2024,10".encode("utf-8"))
        assert uploaded.is_text
        assert uploaded.mime_type == "text/plain"
        assert "2024,10" in uploaded.data

    def test_small_pdf_is_inlined(self):
        content = b"%PDF-1.4 tiny"
        uploaded = SourceLoader(inline_pdf_max_bytes=1024).from_bytes("a.pdf", "application/pdf", content)
        assert not uploaded.is_text
        assert base64.b64decode(uploaded.data) == content

    def test_oversized_pdf_sends_its_text_layer(self):
        doc = fitz.open()
        doc.new_page().insert_text((72, 72), "Revenue grew")
        doc.new_page()
        content = doc.tobytes()
        doc.close()

        uploaded = SourceLoader(inline_pdf_max_bytes=10).from_bytes("big.pdf", "application/pdf", content)

        assert uploaded.is_text
        assert uploaded.data == "[Page 1]\nRevenue grew"
        assert uploaded.info["characters"] == len(uploaded.data)

    def test_pdf_details_are_recorded_on_upload(self):
        doc = fitz.open()
        doc.new_page()
        content = doc.tobytes()
        doc.close()

        loader = SourceLoader()
        uploaded = loader.from_bytes("report.pdf", "application/pdf", content)

        assert uploaded.info["page_count"] == 1
        assert uploaded.info["bytes"] == len(content)
        assert loader.describe(uploaded) == uploaded.info

    def test_load_file_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            SourceLoader().load_file(str(tmp_path / "missing.txt"))

    def test_load_file_and_describe(self, tmp_path):
        path = tmp_path / "brief.md"
        path.write_text("# Brief\nhello", encoding="utf-8")
        loader = SourceLoader()

        uploaded = loader.load_file(str(path))
        assert uploaded.name == "brief.md"
        assert loader.describe(uploaded) == {
            "name": "brief.md",
            "mime_type": "text/plain",
            "is_text": True,
            "characters": len("# Brief\nhello"),
        }


class TestObjectiveGenerator:
    def test_parses_objectives(self):
        llm = FakeLLMService(responses=['["目标一", "目标二", "目标三", "目标四", "目标五"]'])
        objectives = ObjectiveGenerator(llm).generate_learning_objectives("dossier")

        assert len(objectives) == 5
        assert llm.calls[0]["response_schema"] is not None
        assert "dossier" in prompt_text(llm.calls[0])

    def test_unparsable_reply_falls_back(self):
        llm = FakeLLMService(responses=["not json"])
        assert ObjectiveGenerator(llm).generate_learning_objectives("dossier") == ["无法解析目标，请重试。"]

    def test_refine_uses_direction(self):
        llm = FakeLLMService(responses=['["聚焦目标"]'])
        objectives = ObjectiveGenerator(llm).refine_learning_objectives("dossier", "公司治理")

        assert objectives == ["聚焦目标"]
        assert '"公司治理"' in prompt_text(llm.calls[0])

    def test_refine_unparsable_reply_falls_back(self):
        llm = FakeLLMService(responses=["{}"])
        assert ObjectiveGenerator(llm).refine_learning_objectives("dossier", "x") == ["生成失败，请重试"]

    def test_api_errors_propagate(self):
        llm = FakeLLMService(responses=[LLMServiceError("boom", status_code=500)])
        with pytest.raises(LLMServiceError):
            ObjectiveGenerator(llm).generate_learning_objectives("dossier")
