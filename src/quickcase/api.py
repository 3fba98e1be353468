# fastapi web api for the case study workflow
from fastapi import FastAPI, HTTPException, UploadFile, File, BackgroundTasks
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
import logging
from pathlib import Path
from typing import List

from .config import get_settings, update_settings, GEN_MODEL_CHOICES, SEARCH_MODEL_CHOICES
from .llm_service import get_llm_service, reset_llm_service
from .models import (
    SessionResponse, ResearchRequest, DirectionRequest, ObjectiveRequest,
    FeedbackRequest, FrameworkUpdateRequest, SelectionRefineRequest,
    RefineDocumentRequest, ChatRequest, SettingsUpdateRequest, SettingsResponse
)
from .processing_service import CaseProcessingService
from .session_store import SessionStore, CaseSession, SessionNotFoundError, SessionBusyError
from .source_loader import SourceLoader

# configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ACCESS_CODE_HEADER = "X-Access-Code"
OPEN_PATHS = ("/health",)

# initialize fastapi application
app = FastAPI(
    title="Quick Case API",
    description="Research, draft and polish business teaching cases using Gemini",
    version="1.0.0"
)

# add cors middleware to allow cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# rejects requests without the configured access code
class AccessCodeMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        access_code = get_settings().access_code
        if (
            access_code
            and request.method != "OPTIONS"
            and request.url.path not in OPEN_PATHS
            and request.headers.get(ACCESS_CODE_HEADER) != access_code
        ):
            return JSONResponse(status_code=401, content={"detail": "Invalid access code"})
        return await call_next(request)


app.add_middleware(AccessCodeMiddleware)

# sessions live in memory for the lifetime of the process
sessions = SessionStore()

# global processing service, rebuilt when settings change
processing_service = None


def get_processing_service() -> CaseProcessingService:
    global processing_service
    if processing_service is None:
        processing_service = CaseProcessingService()
    return processing_service


base_dir = Path(__file__).parent.parent.parent
public_dir = base_dir / "public"

# ============================================================================
# helpers
# ============================================================================

def _get_session(session_id: str) -> CaseSession:
    try:
        return sessions.get(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")


def _ensure_idle(session: CaseSession):
    if session.busy:
        raise HTTPException(status_code=409, detail="Session is busy, stop the running operation first")


def _session_response(session: CaseSession) -> SessionResponse:
    return SessionResponse(
        session_id=session.session_id,
        data=session.data,
        state=session.state,
        files=[uploaded.info for uploaded in session.files],
        messages=session.messages,
        refine_status=session.refine_status,
        notice=session.notice,
        busy=session.busy,
        history_index=session.history_index,
        history_length=len(session.history),
    )


# run a service operation in the worker pool, holding the session's busy flag
def _run_operation(session: CaseSession, operation, *args):
    try:
        operation(session, *args)
    except Exception as e:
        logger.error(f"Background operation failed for session {session.session_id}: {str(e)}", exc_info=True)
    finally:
        session.end_operation()


def _begin_operation(session: CaseSession):
    try:
        session.begin_operation()
    except SessionBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))


def _schedule(background_tasks: BackgroundTasks, session: CaseSession, operation, *args):
    _begin_operation(session)
    background_tasks.add_task(_run_operation, session, operation, *args)


def _accepted(session: CaseSession) -> JSONResponse:
    return JSONResponse(status_code=202, content=_session_response(session).model_dump(mode="json"))

# ============================================================================
# API ROUTES - Must be defined BEFORE static file mounts
# ============================================================================

@app.get("/health")
def health_check(deep: bool = False):
    """Health check endpoint; deep=true also pings the model"""
    result = {"status": "healthy", "service": "quickcase", "has_api_key": get_settings().has_api_key}
    if deep:
        result["llm"] = get_llm_service().test_connection()
    return result


@app.get("/settings", response_model=SettingsResponse)
def get_app_settings():
    current = get_settings()
    return SettingsResponse(
        has_api_key=current.has_api_key,
        gen_model=current.gen_model,
        search_model=current.search_model,
        gen_model_choices=GEN_MODEL_CHOICES,
        search_model_choices=SEARCH_MODEL_CHOICES,
    )


@app.put("/settings", response_model=SettingsResponse)
def put_app_settings(request: SettingsUpdateRequest):
    """Replace the API key or models used for new operations"""
    global processing_service
    try:
        update_settings(**request.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    reset_llm_service()
    processing_service = None
    return get_app_settings()


@app.post("/sessions", response_model=SessionResponse)
def create_session():
    session = sessions.create()
    return _session_response(session)


@app.get("/sessions/{session_id}", response_model=SessionResponse)
def get_session(session_id: str):
    """Poll the state of a session"""
    return _session_response(_get_session(session_id))


@app.delete("/sessions/{session_id}")
def delete_session(session_id: str):
    try:
        sessions.delete(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    return {"message": "Session deleted", "session_id": session_id}


# endpoint to upload reference documents
@app.post("/sessions/{session_id}/files", response_model=SessionResponse)
async def upload_files(session_id: str, files: List[UploadFile] = File(...)):
    """Attach reference documents (PDF, TXT, MD, CSV) to a session"""
    session = _get_session(session_id)
    _ensure_idle(session)

    loader = SourceLoader()
    try:
        for upload in files:
            content = await upload.read()
            session.files.append(loader.from_bytes(upload.filename, upload.content_type, content))
            logger.info(f"File uploaded: {upload.filename} ({len(content)} bytes)")
    except Exception as e:
        logger.error(f"Error uploading file: {str(e)}", exc_info=True)
        raise HTTPException(status_code=400, detail=f"Upload failed: {str(e)}")

    return _session_response(session)


@app.delete("/sessions/{session_id}/files/{index}", response_model=SessionResponse)
def remove_file(session_id: str, index: int):
    session = _get_session(session_id)
    _ensure_idle(session)
    if index < 0 or index >= len(session.files):
        raise HTTPException(status_code=404, detail=f"No file at index {index}")
    removed = session.files.pop(index)
    logger.info(f"File removed: {removed.name}")
    return _session_response(session)


@app.post("/sessions/{session_id}/research")
def start_research(session_id: str, request: ResearchRequest, background_tasks: BackgroundTasks):
    """Start research in the background; poll the session for progress"""
    session = _get_session(session_id)
    if not request.topic.strip():
        raise HTTPException(status_code=400, detail="Topic must not be empty")
    _schedule(background_tasks, session, get_processing_service().start_research, request.topic)
    return _accepted(session)


@app.post("/sessions/{session_id}/objectives/refine")
def refine_objectives(session_id: str, request: DirectionRequest, background_tasks: BackgroundTasks):
    session = _get_session(session_id)
    if not session.data.context:
        raise HTTPException(status_code=400, detail="Research has not been run for this session")
    _schedule(background_tasks, session, get_processing_service().refine_objectives, request.direction)
    return _accepted(session)


@app.post("/sessions/{session_id}/objectives/select")
def select_objective(session_id: str, request: ObjectiveRequest, background_tasks: BackgroundTasks):
    session = _get_session(session_id)
    if not request.objective.strip():
        raise HTTPException(status_code=400, detail="Objective must not be empty")
    _schedule(background_tasks, session, get_processing_service().select_objective, request.objective)
    return _accepted(session)


@app.post("/sessions/{session_id}/framework/refine")
def refine_framework(session_id: str, request: FeedbackRequest, background_tasks: BackgroundTasks):
    session = _get_session(session_id)
    if not session.data.framework:
        raise HTTPException(status_code=400, detail="No framework to refine")
    _schedule(background_tasks, session, get_processing_service().refine_framework, request.feedback)
    return _accepted(session)


@app.put("/sessions/{session_id}/framework", response_model=SessionResponse)
def update_framework(session_id: str, request: FrameworkUpdateRequest):
    """Save a manual edit of the framework"""
    session = _get_session(session_id)
    _ensure_idle(session)
    get_processing_service().update_framework(session, request.framework)
    return _session_response(session)


@app.post("/sessions/{session_id}/framework/selection")
def refine_framework_selection(session_id: str, request: SelectionRefineRequest, background_tasks: BackgroundTasks):
    session = _get_session(session_id)
    if not session.data.framework or not request.selection.strip():
        raise HTTPException(status_code=400, detail="A framework and a selection are required")
    _schedule(
        background_tasks, session,
        get_processing_service().refine_framework_selection, request.selection, request.instruction
    )
    return _accepted(session)


@app.post("/sessions/{session_id}/framework/approve")
def approve_framework(session_id: str, background_tasks: BackgroundTasks):
    """Draft the case and teaching guide from the approved framework"""
    session = _get_session(session_id)
    if not session.data.selected_objective or not session.data.framework:
        raise HTTPException(status_code=400, detail="An objective and a framework are required before drafting")
    _schedule(background_tasks, session, get_processing_service().approve_framework)
    return _accepted(session)


@app.post("/sessions/{session_id}/refine")
def refine_document(session_id: str, request: RefineDocumentRequest, background_tasks: BackgroundTasks):
    """Rewrite the case or the teaching guide, optionally only a selected passage"""
    session = _get_session(session_id)
    document = session.data.teaching_notes if request.target == "notes" else session.data.case_content
    if not document:
        raise HTTPException(status_code=400, detail=f"Nothing to refine for target '{request.target}'")
    if not request.instruction.strip():
        raise HTTPException(status_code=400, detail="Instruction must not be empty")
    _schedule(
        background_tasks, session,
        get_processing_service().refine_document, request.target, request.instruction, request.selected_text
    )
    return _accepted(session)


@app.post("/sessions/{session_id}/firewall")
def run_firewall(session_id: str, background_tasks: BackgroundTasks):
    session = _get_session(session_id)
    if not session.data.case_content:
        raise HTTPException(status_code=400, detail="No case content to review")
    _schedule(background_tasks, session, get_processing_service().run_firewall_check)
    return _accepted(session)


@app.post("/sessions/{session_id}/stop", response_model=SessionResponse)
def stop_operation(session_id: str):
    session = _get_session(session_id)
    get_processing_service().stop(session)
    return _session_response(session)


@app.post("/sessions/{session_id}/undo", response_model=SessionResponse)
def undo(session_id: str):
    session = _get_session(session_id)
    _ensure_idle(session)
    get_processing_service().undo(session)
    return _session_response(session)


@app.post("/sessions/{session_id}/redo", response_model=SessionResponse)
def redo(session_id: str):
    session = _get_session(session_id)
    _ensure_idle(session)
    get_processing_service().redo(session)
    return _session_response(session)


@app.post("/sessions/{session_id}/chat")
def chat(session_id: str, request: ChatRequest, background_tasks: BackgroundTasks):
    """One copilot turn; edit requests start a background rewrite"""
    session = _get_session(session_id)
    if not request.message.strip():
        raise HTTPException(status_code=400, detail="Message must not be empty")

    # the busy flag covers the model call and passes to the rewrite it requests
    _begin_operation(session)
    service = get_processing_service()
    handed_off = False
    try:
        response = service.chat(session, request.message)
        refinement = response.refinement_request if response else None
        if refinement:
            target = "notes" if refinement.target == "teaching_notes" else "case"
            background_tasks.add_task(
                _run_operation, session, service.refine_document, target, refinement.instruction, None
            )
            handed_off = True
    except Exception as e:
        logger.error(f"Chat failed: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Chat failed: {str(e)}")
    finally:
        if not handed_off:
            session.end_operation()

    return {
        "reply": response.model_dump() if response else None,
        "session": _session_response(session).model_dump(mode="json"),
    }


@app.post("/sessions/{session_id}/reset", response_model=SessionResponse)
def reset_session(session_id: str):
    session = _get_session(session_id)
    _ensure_idle(session)
    get_processing_service().reset(session)
    return _session_response(session)


@app.get("/sessions/{session_id}/export")
def export_session(session_id: str, format: str = "markdown"):
    """Export the finished case as markdown or json"""
    session = _get_session(session_id)
    exporter = get_processing_service().exporter

    if format == "markdown":
        return PlainTextResponse(exporter.export_markdown(session.data), media_type="text/markdown; charset=utf-8")
    if format == "json":
        return session.data.model_dump(mode="json")
    raise HTTPException(status_code=400, detail=f"Unsupported export format: {format}")


@app.get("/sessions/{session_id}/stats")
def get_session_stats(session_id: str):
    session = _get_session(session_id)
    return get_processing_service().exporter.get_document_statistics(session.data)

# ============================================================================
# STATIC FILE MOUNTS - Must be AFTER all API routes
# ============================================================================

# Mount public/ directory at root for the web front end
if public_dir.exists():
    app.mount("/", StaticFiles(directory=str(public_dir), html=True), name="public")
    logger.info(f"Mounted static files from {public_dir} at /")

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
