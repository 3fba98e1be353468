"""
tests for markdown export, saved outputs and document statistics
"""

from src.quickcase.case_writer import extract_title
from src.quickcase.document_exporter import DocumentExporter, find_tables, safe_filename
from src.quickcase.models import CaseStudyData, SearchSource

CASE = """# 抉择时刻

## 背景

**图表 1：营收对比（亿元）**
| 年份 | 营收 |
|:---|---:|
| 2023 | 80 |
| 2024 | 100 |

## 困境

| 选项 | 风险 |
|---|---|
| 扩张 | 高 |
"""


def make_case():
    return CaseStudyData(
        topic="抉择时刻",
        sources=[SearchSource(title="年报", uri="https://example.com/report")],
        objectives=["目标一", "目标二"],
        selected_objective="目标一",
        framework="框架",
        case_content=CASE,
        teaching_notes="## 教学目标\n\n讨论",
    )


def test_find_tables():
    tables = find_tables(CASE)

    assert len(tables) == 2
    assert tables[0].caption == "图表 1：营收对比（亿元）"
    assert tables[0].header == ["年份", "营收"]
    assert tables[0].rows == [["2023", "80"], ["2024", "100"]]
    assert tables[1].caption is None
    assert tables[1].rows == [["扩张", "高"]]


def test_text_without_tables():
    assert find_tables("no | separator here\njust text") == []


def test_text_statistics():
    stats = DocumentExporter().get_text_statistics(CASE)
    assert stats == {
        "characters": len(CASE),
        "headings": 3,
        "tables": 2,
        "captioned_tables": 1,
    }


def test_document_statistics():
    stats = DocumentExporter().get_document_statistics(make_case())

    assert stats["title"] == "抉择时刻"
    assert stats["objectives"] == 2
    assert stats["sources"] == 1
    assert stats["framework_characters"] == 2
    assert stats["teaching_notes"]["headings"] == 1


def test_export_markdown():
    markdown = DocumentExporter().export_markdown(make_case())

    sections = markdown.split("\n\n---\n\n")
    assert len(sections) == 3
    assert sections[0].startswith("# 抉择时刻")
    assert sections[1].startswith("# 教学指南")
    assert "- [年报](https://example.com/report)" in sections[2]


def test_save_outputs_and_reload(tmp_path):
    exporter = DocumentExporter()
    json_path, markdown_path = exporter.save_outputs(make_case(), str(tmp_path / "out"))

    assert json_path.name.startswith("抉择时刻_")
    assert markdown_path.read_text(encoding="utf-8").startswith("# 抉择时刻")
    assert exporter.load_from_json(str(json_path)) == make_case()


def test_safe_filename():
    assert safe_filename('a/b: "c"') == "a_b_c"
    assert safe_filename("   ") == "case"


def test_extract_title():
    assert extract_title("intro\n# 标题一\n# 标题二", "fallback") == "标题一"
    assert extract_title("## 二级标题", "fallback") == "fallback"
