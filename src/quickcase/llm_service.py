# llm service using the gemini rest api for text generation
import requests
import json
import logging
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Callable, TypeVar, Union
import time
from tenacity import (
    Retrying, RetryCallState, stop_after_attempt, wait_exponential, retry_if_not_exception_type
)

from .config import Settings, get_settings
from .models import SearchSource

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LLMServiceError(Exception):
    """Raised when the model api cannot produce a response"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MissingAPIKeyError(LLMServiceError):
    pass


# parsed result of a generateContent call
@dataclass
class GenerationResult:
    text: str = ""
    sources: List[SearchSource] = field(default_factory=list)
    function_calls: List[Dict[str, Any]] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)


def _log_retry(retry_state: RetryCallState):
    logger.warning(
        f"API call failed (attempt {retry_state.attempt_number}). "
        f"Retrying in {retry_state.next_action.sleep:.0f}s: {retry_state.outcome.exception()}"
    )


# run fn, retrying with exponential backoff (2s, 4s, 8s... by default)
def call_with_retry(
    fn: Callable[[], T],
    retries: int = 3,
    base_delay: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call fn up to `retries` times, re-raising the last error"""
    retrying = Retrying(
        stop=stop_after_attempt(retries),
        wait=wait_exponential(multiplier=base_delay),
        retry=retry_if_not_exception_type(MissingAPIKeyError),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )
    try:
        return retrying(fn)
    except MissingAPIKeyError:
        raise
    except Exception as e:
        logger.error(f"API call failed after {retries} attempts: {e}")
        raise


# parse a json array of strings out of a model reply
def parse_string_array(text: Optional[str]) -> Optional[List[str]]:
    """Return the list of strings in text, or None if it is not a json array"""
    try:
        value = json.loads(text or "[]")
    except (json.JSONDecodeError, TypeError):
        return None
    if not isinstance(value, list):
        return None
    return [str(item) for item in value]


# service for interacting with the gemini generateContent endpoint
class GeminiLLMService:
    """Gemini LLM service over plain HTTPS"""

    # initialize service from settings
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.base_url = self.settings.gemini_base_url.rstrip("/")
        self.gen_model = self.settings.gen_model
        self.search_model = self.settings.search_model
        self.session = requests.Session()

    def _api_key(self) -> str:
        api_key = self.settings.gemini_api_key.strip()
        if not api_key:
            raise MissingAPIKeyError("请先输入您的 Google Gemini API Key")
        return api_key

    # turn a prompt string or a list of turns into gemini "contents"
    def _build_contents(self, contents: Union[str, List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        if isinstance(contents, str):
            return [{"role": "user", "parts": [{"text": contents}]}]
        return contents

    # generate content, optionally with a system prompt, tools and a json schema
    def generate_content(
        self,
        contents: Union[str, List[Dict[str, Any]]],
        model: Optional[str] = None,
        system_instruction: Optional[str] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> GenerationResult:
        """Single generateContent request (no retry)"""
        model = model or self.gen_model
        payload: Dict[str, Any] = {"contents": self._build_contents(contents)}

        if system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        if tools:
            payload["tools"] = tools
        if response_schema:
            payload["generationConfig"] = {
                "responseMimeType": "application/json",
                "responseSchema": response_schema,
            }

        url = f"{self.base_url}/models/{model}:generateContent"
        try:
            response = self.session.post(
                url,
                json=payload,
                headers={"x-goog-api-key": self._api_key()},
                timeout=self.settings.request_timeout,
            )
        except requests.exceptions.Timeout:
            raise LLMServiceError("Request timed out. The model might be too slow or overloaded.")
        except requests.exceptions.ConnectionError as e:
            raise LLMServiceError(f"Cannot connect to Gemini API: {e}")

        if response.status_code != 200:
            raise LLMServiceError(
                f"Gemini API error: {response.status_code} - {response.text[:500]}",
                status_code=response.status_code,
            )

        return self.parse_response(response.json())

    # extract text, grounding sources and function calls from a response body
    @staticmethod
    def parse_response(body: Dict[str, Any]) -> GenerationResult:
        result = GenerationResult(raw=body)
        candidates = body.get("candidates") or []
        if not candidates:
            return result

        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts") or []

        texts = []
        for part in parts:
            if "functionCall" in part:
                call = part["functionCall"]
                result.function_calls.append({"name": call.get("name", ""), "args": call.get("args") or {}})
            elif "text" in part and not part.get("thought"):
                texts.append(part["text"])
        result.text = "".join(texts)

        chunks = (candidate.get("groundingMetadata") or {}).get("groundingChunks") or []
        for chunk in chunks:
            web = chunk.get("web")
            if web:
                result.sources.append(SearchSource(title=web.get("title", ""), uri=web.get("uri", ""), snippet=""))

        return result

    # generate with the configured retry policy
    def generate_with_retry(self, contents, **kwargs) -> GenerationResult:
        """generate_content wrapped in call_with_retry"""
        return call_with_retry(
            lambda: self.generate_content(contents, **kwargs),
            retries=self.settings.retry_attempts,
            base_delay=self.settings.retry_base_delay,
        )

    # test if the gemini connection is working
    def test_connection(self) -> bool:
        """Test if the LLM service is working"""
        try:
            response = self.generate_content("Hello! Please respond with just 'OK' to confirm you're working.")
            logger.info(f"✓ LLM test successful. Response: {response.text.strip()}")
            return True
        except Exception as e:
            logger.error(f"✗ LLM test failed: {str(e)}")
            return False

# global instance for singleton pattern
llm_service = None

# get or create the global llm service instance
def get_llm_service() -> GeminiLLMService:
    """Get or create the global LLM service instance"""
    global llm_service
    if llm_service is None:
        llm_service = GeminiLLMService()
    return llm_service

# drop the global instance so the next call picks up new settings
def reset_llm_service():
    global llm_service
    llm_service = None
