# grounded research across three dimensions (general, quantitative, human)
from dataclasses import dataclass
from typing import List, Dict, Any, Callable, Optional
import logging

from .llm_service import get_llm_service
from .models import ResearchResult, SearchSource, UploadedFile
from .prompts import (
    RESEARCH_GENERAL_PROMPT,
    RESEARCH_QUANT_PROMPT,
    RESEARCH_HUMAN_PROMPT,
    RESEARCH_DOSSIER_DIRECTIVES,
    PRIORITY_SOURCE_DIRECTIVES,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResearchDimension:
    label: str
    role_prompt: str


RESEARCH_DIMENSIONS = [
    ResearchDimension("综合", RESEARCH_GENERAL_PROMPT),
    ResearchDimension("量化", RESEARCH_QUANT_PROMPT),
    ResearchDimension("人文", RESEARCH_HUMAN_PROMPT),
]


# keep the first occurrence of each uri, dropping sources without one
def deduplicate_sources(sources: List[SearchSource]) -> List[SearchSource]:
    seen = set()
    unique = []
    for source in sources:
        if source.uri and source.uri not in seen:
            seen.add(source.uri)
            unique.append(source)
    return unique


# researcher that builds the raw information dossier
class Researcher:
    def __init__(self, llm_service=None):
        self.llm_service = llm_service or get_llm_service()

    def build_parts(self, dimension: ResearchDimension, topic: str, uploaded_files: List[UploadedFile]) -> List[Dict[str, Any]]:
        """Prompt text followed by one part per uploaded file"""
        system_text = f"{dimension.role_prompt}\n\n研究主题: {topic}\n\n{RESEARCH_DOSSIER_DIRECTIVES}"

        # uploaded files take priority over web search
        if uploaded_files:
            system_text += "\n\n" + PRIORITY_SOURCE_DIRECTIVES.format(count=len(uploaded_files))

        parts: List[Dict[str, Any]] = [{"text": system_text}]
        for uploaded in uploaded_files:
            if uploaded.is_text:
                parts.append({
                    "text": f"\n\n--- BEGIN UPLOADED DOCUMENT: {uploaded.name} ---\n{uploaded.data}\n--- END UPLOADED DOCUMENT ---\n"
                })
            else:
                parts.append({"inlineData": {"mimeType": uploaded.mime_type, "data": uploaded.data}})
        return parts

    # run one dimension; failures yield an empty section instead of aborting
    def search_and_collect(
        self,
        dimension: ResearchDimension,
        topic: str,
        uploaded_files: List[UploadedFile],
        sources: List[SearchSource],
        on_progress: Optional[Callable[[str], None]] = None,
    ) -> str:
        if on_progress:
            on_progress(f"正在进行 {dimension.label} 维度的深度研究...")

        try:
            parts = self.build_parts(dimension, topic, uploaded_files)
            result = self.llm_service.generate_with_retry(
                [{"role": "user", "parts": parts}],
                model=self.llm_service.search_model,
                tools=[{"googleSearch": {}}],
            )
            sources.extend(result.sources)
            logger.info(f"  ✓ {dimension.label}: {len(result.text)} chars, {len(result.sources)} sources")
            return f"\n\n### 【{dimension.label} 原始情报档案】 ###\n{result.text}\n\n"
        except Exception as e:
            logger.error(f"Error in {dimension.label} research: {str(e)}", exc_info=True)
            return ""

    def gather_information(
        self,
        topic: str,
        uploaded_files: Optional[List[UploadedFile]] = None,
        on_progress: Optional[Callable[[str], None]] = None,
    ) -> ResearchResult:
        """Run all research dimensions in order and merge their dossiers"""
        uploaded_files = uploaded_files or []
        sources: List[SearchSource] = []
        logger.info(f"Researching '{topic}' with {len(uploaded_files)} uploaded files")

        sections = [
            self.search_and_collect(dimension, topic, uploaded_files, sources, on_progress)
            for dimension in RESEARCH_DIMENSIONS
        ]

        return ResearchResult(context="".join(sections), sources=deduplicate_sources(sources))
