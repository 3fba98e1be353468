# pydantic models for case study state, chat, and api payloads
from pydantic import BaseModel, Field
from typing import List, Dict, Any, Optional, Literal
from enum import Enum

# enum for the steps of the case generation workflow
class GenerationStep(str, Enum):
    IDLE = "IDLE"
    RESEARCHING = "RESEARCHING"
    SELECTING_OBJECTIVE = "SELECTING_OBJECTIVE"
    REVIEW_FRAMEWORK = "REVIEW_FRAMEWORK"
    DRAFTING = "DRAFTING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"

# model for a web source found while researching
class SearchSource(BaseModel):
    title: str = ""
    uri: str
    snippet: str = ""

# model for a reference document supplied by the user
class UploadedFile(BaseModel):
    name: str
    mime_type: str
    data: str  # plain text for text files, base64 for binary files
    is_text: bool
    info: Dict[str, Any] = {}  # listing details, filled once when the file is read

# model for everything produced along the workflow
class CaseStudyData(BaseModel):
    topic: str = ""
    sources: List[SearchSource] = []
    context: str = ""  # aggregated research dossier
    objectives: List[str] = []
    selected_objective: str = ""
    framework: str = ""
    case_content: str = ""
    teaching_notes: str = ""

# model for workflow progress shown to the user
class GenerationState(BaseModel):
    step: GenerationStep = GenerationStep.IDLE
    progress: int = Field(default=0, ge=0, le=100)
    message: str = ""

# model for one undo/redo snapshot
class HistoryItem(BaseModel):
    case_content: str = ""
    teaching_notes: str = ""

# model for a message in the copilot conversation
class ChatMessage(BaseModel):
    role: Literal["user", "model"]
    text: str
    is_action: bool = False

# model for an edit the copilot wants the rewrite pipeline to perform
class RefinementRequest(BaseModel):
    target: Literal["case_content", "teaching_notes"]
    instruction: str

# response model for a copilot turn
class ChatResponse(BaseModel):
    text: str = ""
    refinement_request: Optional[RefinementRequest] = None

# result of the research stage
class ResearchResult(BaseModel):
    context: str
    sources: List[SearchSource] = []

# ============================================================================
# API payloads
# ============================================================================

class SessionResponse(BaseModel):
    session_id: str
    data: CaseStudyData
    state: GenerationState
    files: List[Dict[str, Any]] = []
    messages: List[ChatMessage] = []
    refine_status: Optional[str] = None
    notice: Optional[str] = None
    busy: bool = False
    history_index: int = 0
    history_length: int = 0

class ResearchRequest(BaseModel):
    topic: str

class DirectionRequest(BaseModel):
    direction: str

class ObjectiveRequest(BaseModel):
    objective: str

class FeedbackRequest(BaseModel):
    feedback: str

class FrameworkUpdateRequest(BaseModel):
    framework: str

class SelectionRefineRequest(BaseModel):
    selection: str
    instruction: str

class RefineDocumentRequest(BaseModel):
    target: Literal["case", "notes"] = "case"
    instruction: str
    selected_text: Optional[str] = None

class ChatRequest(BaseModel):
    message: str

class SettingsUpdateRequest(BaseModel):
    gemini_api_key: Optional[str] = None
    gen_model: Optional[str] = None
    search_model: Optional[str] = None

class SettingsResponse(BaseModel):
    has_api_key: bool
    gen_model: str
    search_model: str
    gen_model_choices: List[str]
    search_model_choices: List[str]
