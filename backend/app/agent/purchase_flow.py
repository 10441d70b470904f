"""
Purchase flow - scripted steps of a conversation session.

    category_selection --(1..4 / name)--> material_selection
    material_selection --(1..N)--> confirmation
    material_selection --(back)--> category_selection
    confirmation --(download)--> downloading --> completed (session cleared)
    confirmation --(back)--> material_selection

"cancel" clears the session from any step. Bad input re-prompts and leaves
the session unchanged. Any unexpected error clears the session and sends a
generic retry message so no session is left in a state nobody can resume.
"""
import logging
import random
from typing import Optional

from sqlalchemy.orm import Session

from ai import templates
from app.agent.channel import ChatChannel
from app.agent.session_manager import ConversationSession, FlowState, SessionManager
from app.core.categories import CATEGORY_NAMES, category_by_number
from app.core.exceptions import MaterialNotFound, ValidationError
from app.models.study_user import StudyUser
from app.services import catalog_service, user_service
from app.services.delivery import DeliveryReason, FileDelivery
from app.services.search import search

logger = logging.getLogger(__name__)

CANDIDATE_LIMIT = 10
CANCEL_WORDS = {"cancel", "/cancel", "stop"}


def match_category(text: str) -> Optional[str]:
    """
    Category for a number or a loose name.

    Examples:
        "3" -> "Psychosocial Integrity"
        "physiological" -> "Physiological Integrity"
        "I want health promotion" -> "Health Promotion and Maintenance"
        "integrity" -> None (two categories match)
    """
    t = (text or "").strip().lower()
    if not t:
        return None
    if t.isdigit():
        return category_by_number(int(t))

    words = set(t.replace(",", " ").split())
    for name in CATEGORY_NAMES:
        lowered = name.lower()
        if t == lowered or lowered[:20] in t or lowered.split()[0] in words:
            return name

    if len(t) >= 3:
        partial = [name for name in CATEGORY_NAMES if t in name.lower()]
        if len(partial) == 1:
            return partial[0]
    return None


def confirmation_code() -> str:
    return str(random.randint(100000, 999999))


class PurchaseFlow:
    """Runs one inbound message through the user's current flow step."""

    def __init__(self, db: Session, sessions: SessionManager, delivery: Optional[FileDelivery] = None):
        self.db = db
        self.sessions = sessions
        self.delivery = delivery or FileDelivery(db)

    # ==========================================================================
    # ENTRY POINTS
    # ==========================================================================

    async def begin(self, channel: ChatChannel, user: StudyUser) -> ConversationSession:
        """Start at the category menu (/buy)."""
        session = self.sessions.start(user.telegram_id, FlowState.CATEGORY_SELECTION)
        await channel.send_text(templates.category_menu())
        return session

    async def browse(
        self, channel: ChatChannel, user: StudyUser, query: str, category: Optional[str] = None
    ) -> Optional[ConversationSession]:
        """Search and, when anything matches, open a session at the material list."""
        hits = search(self.db, query, category=category, limit=CANDIDATE_LIMIT)
        if not hits:
            await channel.send_text(templates.no_search_results())
            return None
        materials = [h.material for h in hits]
        session = self.sessions.start(
            user.telegram_id, FlowState.MATERIAL_SELECTION, category=category, candidates=materials
        )
        await channel.send_text(templates.material_list(materials, category))
        return session

    async def handle(self, channel: ChatChannel, user: StudyUser, text: str) -> bool:
        """Advance the user's session with `text`. Returns False when there is no session."""
        session = self.sessions.get(user.telegram_id)
        if session is None:
            return False

        text = (text or "").strip()
        if text.lower() in CANCEL_WORDS:
            self.sessions.clear(user.telegram_id)
            await channel.send_text(templates.cancelled())
            return True

        try:
            if session.state == FlowState.CATEGORY_SELECTION:
                await self._on_category(channel, user, session, text)
            elif session.state == FlowState.MATERIAL_SELECTION:
                await self._on_material(channel, session, text)
            elif session.state == FlowState.CONFIRMATION:
                await self._on_confirmation(channel, user, session, text)
            else:
                # downloading/completed are never waiting for input
                logger.warning(f"[FLOW] Dropping stale session user={user.telegram_id} state={session.state}")
                self.sessions.clear(user.telegram_id)
                return False
        except Exception as e:
            logger.error(f"[FLOW] Error in state={session.state} for user={user.telegram_id}: {e}", exc_info=True)
            self.db.rollback()
            self.sessions.clear(user.telegram_id)
            await channel.send_text(templates.RETRY_MESSAGE)
        return True

    # ==========================================================================
    # STEPS
    # ==========================================================================

    async def _on_category(self, channel: ChatChannel, user: StudyUser, session: ConversationSession, text: str):
        category = match_category(text)
        if category is None:
            await channel.send_text(templates.invalid_category())
            return

        user_service.set_level(self.db, user, category)
        hits = search(self.db, "", category=category, limit=CANDIDATE_LIMIT)
        if not hits:
            session.category = None
            await channel.send_text(templates.no_materials(category))
            return

        session.category = category
        session.candidates = [h.material for h in hits]
        self.sessions.transition(session, FlowState.MATERIAL_SELECTION)
        await channel.send_text(templates.material_list(session.candidates, category))

    async def _on_material(self, channel: ChatChannel, session: ConversationSession, text: str):
        if text.lower() == "back":
            session.category = None
            session.candidates = []
            self.sessions.transition(session, FlowState.CATEGORY_SELECTION)
            await channel.send_text(templates.category_menu())
            return

        if not text.isdigit():
            await channel.send_text(templates.invalid_selection(len(session.candidates)))
            return
        try:
            material = session.select_material(int(text))
        except ValidationError:
            await channel.send_text(templates.invalid_selection(len(session.candidates)))
            return

        session.confirmation_code = confirmation_code()
        self.sessions.transition(session, FlowState.CONFIRMATION)
        logger.info(f"[FLOW] user={session.user_id} selected material id={material.id}")
        await channel.send_text(templates.confirmation(material, session.category, session.confirmation_code))

    async def _on_confirmation(self, channel: ChatChannel, user: StudyUser, session: ConversationSession, text: str):
        choice = text.lower()
        if choice == "back":
            session.selected = None
            session.confirmation_code = None
            self.sessions.transition(session, FlowState.MATERIAL_SELECTION)
            await channel.send_text(templates.material_list(session.candidates, session.category))
            return
        if choice != "download" and text.strip() != session.confirmation_code:
            await channel.send_text(templates.confirmation_reprompt())
            return

        self.sessions.transition(session, FlowState.DOWNLOADING)
        try:
            material = catalog_service.get_material(self.db, session.selected.id)
        except MaterialNotFound:
            self.sessions.clear(user.telegram_id)
            await channel.send_text(templates.not_found())
            return

        await channel.send_text(templates.preparing_download(material))
        result = await self.delivery.deliver(channel, user, material)
        self.sessions.transition(session, FlowState.COMPLETED)
        self.sessions.clear(user.telegram_id)

        if result.success:
            await channel.send_text(templates.delivered())
        elif result.reason == DeliveryReason.TOO_LARGE:
            await channel.send_text(templates.too_large())
        elif result.reason == DeliveryReason.NOT_FOUND:
            await channel.send_text(templates.not_found())
        else:
            await channel.send_text(templates.send_failed())
