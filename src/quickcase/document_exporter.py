# imports for type hints, json handling, logging, and file paths
from typing import List, Dict, Any, Optional, Tuple
from dataclasses import dataclass, field
import json
import logging
import re
from datetime import datetime
from pathlib import Path

from .models import CaseStudyData

logger = logging.getLogger(__name__)

TABLE_SEPARATOR = re.compile(r"^\|?[\s\-:|]+\|?$")
TABLE_CAPTION = re.compile(r"^\*\*(图表|Table|Figure|Exhibit).*\*\*$")
HEADING = re.compile(r"^(#{1,6})\s+\S")
UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|\s]+')


# a markdown table found in a document
@dataclass
class MarkdownTable:
    header: List[str]
    rows: List[List[str]] = field(default_factory=list)
    caption: Optional[str] = None
    line_number: int = 0


def split_row(row: str) -> List[str]:
    content = row.strip()
    if content.startswith("|"):
        content = content[1:]
    if content.endswith("|"):
        content = content[:-1]
    return [cell.strip() for cell in content.split("|")]


def find_tables(markdown: str) -> List[MarkdownTable]:
    """Tables are a row containing | directly followed by a |---| separator"""
    lines = (markdown or "").split("\n")
    tables = []
    i = 0
    while i < len(lines):
        line = lines[i].strip()
        if "|" in line and i + 1 < len(lines) and TABLE_SEPARATOR.match(lines[i + 1].strip()):
            caption = None
            previous = lines[i - 1].strip() if i > 0 else ""
            if TABLE_CAPTION.match(previous):
                caption = previous.replace("**", "")

            table = MarkdownTable(header=split_row(line), caption=caption, line_number=i + 1)
            i += 2
            while i < len(lines) and "|" in lines[i]:
                table.rows.append(split_row(lines[i]))
                i += 1
            tables.append(table)
            continue
        i += 1
    return tables


def safe_filename(name: str, default: str = "case") -> str:
    cleaned = UNSAFE_FILENAME_CHARS.sub("_", name or "").strip("._")
    return cleaned[:60] or default


# class that exports finished cases and reports on their shape
class DocumentExporter:

    # case, teaching guide and sources as one markdown document
    def export_markdown(self, data: CaseStudyData) -> str:
        parts = []
        if data.case_content:
            parts.append(data.case_content.strip())
        if data.teaching_notes:
            parts.append("# 教学指南\n\n" + data.teaching_notes.strip())
        if data.sources:
            lines = ["## 参考来源", ""]
            for source in data.sources:
                lines.append(f"- [{source.title or source.uri}]({source.uri})")
            parts.append("\n".join(lines))
        return "\n\n---\n\n".join(parts) + "\n"

    # save case data to a json file
    def export_to_json(self, data: CaseStudyData, filepath: str):
        """Export case data to JSON file"""
        try:
            with open(filepath, 'w', encoding='utf-8') as f:
                json.dump(data.model_dump(), f, indent=2, ensure_ascii=False)

            logger.info(f"Case exported to {filepath}")

        except Exception as e:
            logger.error(f"Error exporting case: {str(e)}")
            raise

    # load case data from a json file
    def load_from_json(self, filepath: str) -> CaseStudyData:
        """Load case data from JSON file"""
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                data = json.load(f)

            return CaseStudyData(**data)

        except Exception as e:
            logger.error(f"Error loading case: {str(e)}")
            raise

    def save_outputs(self, data: CaseStudyData, output_dir: str) -> Tuple[Path, Path]:
        """Write <title>.json and <title>.md into output_dir"""
        directory = Path(output_dir)
        directory.mkdir(parents=True, exist_ok=True)

        stem = f"{safe_filename(data.topic)}_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
        json_path = directory / f"{stem}.json"
        markdown_path = directory / f"{stem}.md"

        self.export_to_json(data, str(json_path))
        markdown_path.write_text(self.export_markdown(data), encoding="utf-8")
        logger.info(f"  ✓ Saved: {markdown_path}")
        return json_path, markdown_path

    # counts for a single markdown document
    def get_text_statistics(self, markdown: str) -> Dict[str, Any]:
        text = markdown or ""
        tables = find_tables(text)
        headings = [line for line in text.split("\n") if HEADING.match(line.strip())]
        return {
            "characters": len(text),
            "headings": len(headings),
            "tables": len(tables),
            "captioned_tables": len([t for t in tables if t.caption]),
        }

    # calculate statistics about the case
    def get_document_statistics(self, data: CaseStudyData) -> Dict[str, Any]:
        """Get statistics about the case and its teaching guide"""
        return {
            "title": data.topic,
            "objectives": len(data.objectives),
            "sources": len(data.sources),
            "framework_characters": len(data.framework),
            "case": self.get_text_statistics(data.case_content),
            "teaching_notes": self.get_text_statistics(data.teaching_notes),
        }
