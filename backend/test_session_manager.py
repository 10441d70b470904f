"""Conversation session lifecycle and allowed transitions."""
import pytest

from app.agent.session_manager import ALLOWED_TRANSITIONS, ConversationSession, FlowState, SessionManager
from app.core.exceptions import InvalidTransition, ValidationError
from app.models.material import Material


def test_start_and_get():
    sessions = SessionManager()
    session = sessions.start(42)
    assert session.state == FlowState.CATEGORY_SELECTION
    assert sessions.get("42") is session
    assert 42 in sessions
    assert len(sessions) == 1


def test_start_replaces_existing_session():
    sessions = SessionManager()
    first = sessions.start("u1")
    second = sessions.start("u1", FlowState.MATERIAL_SELECTION, category="Psychosocial Integrity")
    assert sessions.get("u1") is second
    assert second is not first
    assert second.category == "Psychosocial Integrity"


def test_start_rejects_non_entry_state():
    with pytest.raises(InvalidTransition):
        SessionManager().start("u1", FlowState.CONFIRMATION)


def test_full_happy_path_transitions():
    sessions = SessionManager()
    session = sessions.start("u1")
    for state in (FlowState.MATERIAL_SELECTION, FlowState.CONFIRMATION,
                  FlowState.DOWNLOADING, FlowState.COMPLETED):
        sessions.transition(session, state)
    assert session.state == FlowState.COMPLETED


def test_back_transitions_allowed():
    sessions = SessionManager()
    session = sessions.start("u1")
    sessions.transition(session, FlowState.MATERIAL_SELECTION)
    sessions.transition(session, FlowState.CONFIRMATION)
    sessions.transition(session, FlowState.MATERIAL_SELECTION)
    sessions.transition(session, FlowState.CATEGORY_SELECTION)
    assert session.state == FlowState.CATEGORY_SELECTION


@pytest.mark.parametrize("current,target", [
    (FlowState.CATEGORY_SELECTION, FlowState.CONFIRMATION),
    (FlowState.CATEGORY_SELECTION, FlowState.DOWNLOADING),
    (FlowState.MATERIAL_SELECTION, FlowState.DOWNLOADING),
    (FlowState.DOWNLOADING, FlowState.MATERIAL_SELECTION),
    (FlowState.COMPLETED, FlowState.CATEGORY_SELECTION),
])
def test_illegal_transitions_raise_and_keep_state(current, target):
    sessions = SessionManager()
    session = ConversationSession(user_id="u1", state=current)
    with pytest.raises(InvalidTransition):
        sessions.transition(session, target)
    assert session.state == current


def test_completed_is_terminal():
    assert ALLOWED_TRANSITIONS[FlowState.COMPLETED] == set()


def test_clear():
    sessions = SessionManager()
    sessions.start("u1")
    assert sessions.clear("u1") is True
    assert sessions.clear("u1") is False
    assert sessions.get("u1") is None


def test_sessions_are_isolated_per_user():
    sessions = SessionManager()
    a = sessions.start("a")
    sessions.start("b")
    sessions.transition(a, FlowState.MATERIAL_SELECTION)
    assert sessions.get("b").state == FlowState.CATEGORY_SELECTION
    assert sorted(sessions) == ["a", "b"]


def test_select_material_is_one_based():
    first, second = Material(id=1, title="One"), Material(id=2, title="Two")
    session = ConversationSession(user_id="u1", state=FlowState.MATERIAL_SELECTION,
                                  candidates=[first, second])
    assert session.select_material(2) is second
    assert session.selected is second
    with pytest.raises(ValidationError):
        session.select_material(0)
    with pytest.raises(ValidationError):
        session.select_material(3)
