# in-memory sessions holding workflow state, stop flags and edit history
import threading
import uuid
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .models import (
    CaseStudyData, GenerationState, UploadedFile, ChatMessage, HistoryItem
)

logger = logging.getLogger(__name__)


class SessionNotFoundError(KeyError):
    pass


class SessionBusyError(RuntimeError):
    pass


# one user's case in progress
@dataclass
class CaseSession:
    session_id: str
    data: CaseStudyData = field(default_factory=CaseStudyData)
    state: GenerationState = field(default_factory=GenerationState)
    files: List[UploadedFile] = field(default_factory=list)
    messages: List[ChatMessage] = field(default_factory=list)
    history: List[HistoryItem] = field(default_factory=list)
    history_index: int = 0
    refine_status: Optional[str] = None
    notice: Optional[str] = None  # outcome of the last background edit
    stop_event: threading.Event = field(default_factory=threading.Event)
    lock: threading.Lock = field(default_factory=threading.Lock)
    busy: bool = False

    # ------------------------------------------------------------------
    # long running operations
    # ------------------------------------------------------------------

    def begin_operation(self):
        """Mark the session busy; only one long operation may run at a time"""
        with self.lock:
            if self.busy:
                raise SessionBusyError(f"Session {self.session_id} is already running an operation")
            self.busy = True
            self.stop_event.clear()

    def end_operation(self):
        with self.lock:
            self.busy = False

    def request_stop(self):
        self.stop_event.set()
        # only refinements report a status, and they clear it when they end
        if self.refine_status is not None:
            self.refine_status = "正在停止..."

    def should_stop(self) -> bool:
        return self.stop_event.is_set()

    # ------------------------------------------------------------------
    # history
    # ------------------------------------------------------------------

    def set_documents(self, case_content: Optional[str] = None, teaching_notes: Optional[str] = None):
        """Update the documents and record a history snapshot"""
        if case_content is not None:
            self.data.case_content = case_content
        if teaching_notes is not None:
            self.data.teaching_notes = teaching_notes
        self.record_history()

    def record_history(self):
        if not self.data.case_content and not self.history:
            return
        snapshot = HistoryItem(
            case_content=self.data.case_content,
            teaching_notes=self.data.teaching_notes,
        )
        if self.history and self.history[self.history_index] == snapshot:
            return
        # new edits discard the redo tail
        self.history = self.history[:self.history_index + 1]
        self.history.append(snapshot)
        self.history_index = len(self.history) - 1

    def undo(self) -> bool:
        if self.history_index <= 0:
            return False
        self.history_index -= 1
        self._restore(self.history[self.history_index])
        return True

    def redo(self) -> bool:
        if self.history_index >= len(self.history) - 1:
            return False
        self.history_index += 1
        self._restore(self.history[self.history_index])
        return True

    def _restore(self, item: HistoryItem):
        self.data.case_content = item.case_content
        self.data.teaching_notes = item.teaching_notes

    def reset(self):
        self.data = CaseStudyData()
        self.state = GenerationState()
        self.files = []
        self.messages = []
        self.history = []
        self.history_index = 0
        self.refine_status = None
        self.notice = None
        self.stop_event.clear()


# thread safe registry of sessions
class SessionStore:
    def __init__(self):
        self._sessions: Dict[str, CaseSession] = {}
        self._lock = threading.Lock()

    def create(self) -> CaseSession:
        session = CaseSession(session_id=uuid.uuid4().hex)
        with self._lock:
            self._sessions[session.session_id] = session
        logger.info(f"Created session {session.session_id}")
        return session

    def get(self, session_id: str) -> CaseSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def delete(self, session_id: str):
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError(session_id)
        session.request_stop()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
