"""
tests for session state, undo/redo history and the busy flag
"""

import pytest

from src.quickcase.session_store import (
    CaseSession, SessionStore, SessionBusyError, SessionNotFoundError
)


def test_history_starts_with_first_document():
    session = CaseSession(session_id="s1")
    session.set_documents(teaching_notes="notes only")
    assert session.history == []

    session.set_documents(case_content="v1")
    assert len(session.history) == 1
    assert session.history[0].teaching_notes == "notes only"


def test_identical_snapshot_is_not_recorded():
    session = CaseSession(session_id="s1")
    session.set_documents(case_content="v1", teaching_notes="n1")
    session.set_documents(case_content="v1")
    assert len(session.history) == 1


def test_undo_redo():
    session = CaseSession(session_id="s1")
    for version in ("v1", "v2", "v3"):
        session.set_documents(case_content=version)

    assert session.undo()
    assert session.undo()
    assert session.data.case_content == "v1"
    assert not session.undo()

    assert session.redo()
    assert session.data.case_content == "v2"
    assert session.history_index == 1


def test_new_edit_discards_redo_tail():
    session = CaseSession(session_id="s1")
    for version in ("v1", "v2", "v3"):
        session.set_documents(case_content=version)
    session.undo()
    session.undo()

    session.set_documents(case_content="v2b")

    assert [item.case_content for item in session.history] == ["v1", "v2b"]
    assert session.history_index == 1
    assert not session.redo()


def test_busy_flag():
    session = CaseSession(session_id="s1")
    session.request_stop()
    session.begin_operation()

    assert session.busy
    assert not session.should_stop()
    with pytest.raises(SessionBusyError):
        session.begin_operation()

    session.end_operation()
    session.begin_operation()
    assert session.busy


def test_request_stop_during_refinement():
    session = CaseSession(session_id="s1")
    session.refine_status = "正在审查案例正文..."
    session.request_stop()
    assert session.should_stop()
    assert session.refine_status == "正在停止..."


def test_request_stop_outside_refinement_leaves_no_status():
    session = CaseSession(session_id="s1")
    session.request_stop()
    assert session.should_stop()
    assert session.refine_status is None


def test_reset_clears_everything():
    session = CaseSession(session_id="s1")
    session.data.topic = "topic"
    session.set_documents(case_content="v1")
    session.notice = "done"
    session.request_stop()

    session.reset()

    assert session.data.topic == ""
    assert session.history == []
    assert session.history_index == 0
    assert session.notice is None
    assert session.refine_status is None
    assert not session.should_stop()


class TestSessionStore:
    def test_create_get_delete(self):
        store = SessionStore()
        session = store.create()

        assert store.get(session.session_id) is session
        assert len(store) == 1

        store.delete(session.session_id)
        assert len(store) == 0
        assert session.should_stop()

    def test_unknown_session(self):
        store = SessionStore()
        with pytest.raises(SessionNotFoundError):
            store.get("missing")
        with pytest.raises(SessionNotFoundError):
            store.delete("missing")
