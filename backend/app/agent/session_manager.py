"""
Conversation sessions for the purchase flow.

A session tracks one user's progress through
category pick -> material pick -> confirm -> download. Sessions are
process-local and never persisted; a restart drops them and users simply
start again with /buy.

The SessionManager is owned by whoever runs the bot (stored in the
Application's bot_data) and passed to handlers, so tests build isolated
instances and a shared store can later replace the dict without touching
handler code.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from app.core.exceptions import InvalidTransition, ValidationError
from app.models.material import Material

logger = logging.getLogger(__name__)


class FlowState:
    """Purchase flow steps"""
    CATEGORY_SELECTION = "category_selection"
    MATERIAL_SELECTION = "material_selection"
    CONFIRMATION = "confirmation"
    DOWNLOADING = "downloading"
    COMPLETED = "completed"


ALLOWED_TRANSITIONS = {
    FlowState.CATEGORY_SELECTION: {FlowState.MATERIAL_SELECTION},
    FlowState.MATERIAL_SELECTION: {FlowState.CONFIRMATION, FlowState.CATEGORY_SELECTION},
    FlowState.CONFIRMATION: {FlowState.DOWNLOADING, FlowState.MATERIAL_SELECTION},
    FlowState.DOWNLOADING: {FlowState.COMPLETED},
    FlowState.COMPLETED: set(),
}

# A session may be opened directly in these states
ENTRY_STATES = {FlowState.CATEGORY_SELECTION, FlowState.MATERIAL_SELECTION}


@dataclass
class ConversationSession:
    user_id: str
    state: str
    category: Optional[str] = None
    candidates: List[Material] = field(default_factory=list)
    selected: Optional[Material] = None
    confirmation_code: Optional[str] = None
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def select_material(self, index: int) -> Material:
        """Pick by 1-based index from this session's own candidate list."""
        if not 1 <= index <= len(self.candidates):
            raise ValidationError(f"Selection {index} is outside 1..{len(self.candidates)}")
        self.selected = self.candidates[index - 1]
        return self.selected


class SessionManager:
    def __init__(self):
        self._sessions: Dict[str, ConversationSession] = {}

    def get(self, user_id) -> Optional[ConversationSession]:
        return self._sessions.get(str(user_id))

    def start(self, user_id, state: str = FlowState.CATEGORY_SELECTION, **fields) -> ConversationSession:
        """Open (or replace) the user's session in an entry state."""
        if state not in ENTRY_STATES:
            raise InvalidTransition(None, state)
        session = ConversationSession(user_id=str(user_id), state=state, **fields)
        self._sessions[session.user_id] = session
        logger.info(f"[FLOW] Session started user={session.user_id} state={state}")
        return session

    def transition(self, session: ConversationSession, state: str) -> ConversationSession:
        if state not in ALLOWED_TRANSITIONS.get(session.state, set()):
            raise InvalidTransition(session.state, state)
        logger.info(f"[FLOW] user={session.user_id} {session.state} -> {state}")
        session.state = state
        session.updated_at = datetime.utcnow()
        return session

    def clear(self, user_id) -> bool:
        removed = self._sessions.pop(str(user_id), None) is not None
        if removed:
            logger.info(f"[FLOW] Session cleared user={user_id}")
        return removed

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, user_id) -> bool:
        return str(user_id) in self._sessions
