# generates the five candidate learning objectives from the research dossier
from typing import List
import logging

from .config import get_settings
from .llm_service import get_llm_service, parse_string_array
from .prompts import OBJECTIVE_SYSTEM_PROMPT, STRING_ARRAY_SCHEMA

logger = logging.getLogger(__name__)

PARSE_FAILED_OBJECTIVES = ["无法解析目标，请重试。"]
REFINE_FAILED_OBJECTIVES = ["生成失败，请重试"]


# generates and refines learning objectives
class ObjectiveGenerator:
    # initialize with llm service
    def __init__(self, llm_service=None):
        self.llm_service = llm_service or get_llm_service()

    def _request_objectives(self, prompt: str) -> str:
        result = self.llm_service.generate_with_retry(
            prompt,
            system_instruction=OBJECTIVE_SYSTEM_PROMPT,
            response_schema=STRING_ARRAY_SCHEMA,
        )
        return result.text

    # first round of objectives straight from the dossier
    def generate_learning_objectives(self, context: str) -> List[str]:
        """Distil five learning objectives from the research context"""
        limit = get_settings().context_char_limit
        prompt = f"""
    基于以下【原始情报档案】，提炼 5 个核心学习目标。
    【情报档案】：{context[:limit]}
    请只返回一个 JSON 字符串数组。
  """
        objectives = parse_string_array(self._request_objectives(prompt))
        if objectives is None:
            logger.warning("Could not parse learning objectives")
            return list(PARSE_FAILED_OBJECTIVES)

        logger.info(f"Generated {len(objectives)} learning objectives")
        return objectives

    # regenerate objectives steered towards a user supplied direction
    def refine_learning_objectives(self, context: str, direction: str) -> List[str]:
        limit = get_settings().context_char_limit
        prompt = f"""
    用户希望学习目标聚焦于以下方向：
    "{direction}"
    基于这个方向和以下【原始情报档案】，请重新生成 5 个更具体的、符合该方向的中文学习目标。
    【情报档案】：{context[:limit]}
    请只返回一个 JSON 字符串数组。
  """
        objectives = parse_string_array(self._request_objectives(prompt))
        if objectives is None:
            logger.warning(f"Could not parse refined objectives for direction: {direction[:80]}")
            return list(REFINE_FAILED_OBJECTIVES)
        return objectives
