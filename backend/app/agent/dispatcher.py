"""
Message dispatcher - routes one inbound chat message.

Order of checks:
1. Active session -> purchase flow step
2. "resume" -> resume greeting
3. Purchase intent (/buy, "buy", "purchase") -> category menu
4. Practice keywords -> practice questions
5. Browse keywords (material, notes, topic) -> search, session at material list
6. "explain" / "learn" -> study answer
7. Anything else -> free-form reply, which may be a Directive that opens a session
"""
import asyncio
import logging
import re
from typing import Optional

from sqlalchemy.orm import Session

from ai import templates
from ai.composer import ResponseComposer
from ai.reply_schema import Directive
from app.agent.channel import ChatChannel
from app.agent.purchase_flow import PurchaseFlow
from app.agent.session_manager import FlowState, SessionManager
from app.models.study_user import StudyUser
from app.services.delivery import FileDelivery

logger = logging.getLogger(__name__)

PURCHASE_RE = re.compile(r"(^/buy\b|\bbuy\b|\bpurchase\b)")
PRACTICE_KEYWORDS = ("practice", "simulate", "questions", "quiz")
BROWSE_KEYWORDS = ("material", "notes", "topic")
STUDY_KEYWORDS = ("explain", "learn")


def _has_any(text: str, keywords) -> bool:
    return any(k in text for k in keywords)


class MessageDispatcher:
    def __init__(
        self,
        db: Session,
        sessions: SessionManager,
        composer: ResponseComposer,
        delivery: Optional[FileDelivery] = None,
    ):
        self.db = db
        self.sessions = sessions
        self.composer = composer
        self.flow = PurchaseFlow(db, sessions, delivery)

    async def dispatch(self, channel: ChatChannel, user: StudyUser, text: str) -> None:
        text = (text or "").strip()
        if not text:
            return

        if await self.flow.handle(channel, user, text):
            return

        lowered = text.lower()
        try:
            if lowered == "resume":
                await channel.send_text(templates.resume(user.name, user.level))
            elif PURCHASE_RE.search(lowered):
                await self.flow.begin(channel, user)
            elif _has_any(lowered, PRACTICE_KEYWORDS):
                await channel.send_text(templates.generating_questions(), markdown=False)
                reply = await asyncio.to_thread(self.composer.practice_questions, text)
                await channel.send_text(reply)
            elif _has_any(lowered, BROWSE_KEYWORDS):
                await channel.send_text(templates.searching(), markdown=False)
                await self.flow.browse(channel, user, text)
            elif _has_any(lowered, STUDY_KEYWORDS):
                reply = await asyncio.to_thread(self.composer.study_answer, self.db, user, text)
                await channel.send_text(reply)
            else:
                await self._free_form(channel, user, text)
        except Exception as e:
            logger.error(f"[DISPATCH] Error handling message from user={user.telegram_id}: {e}", exc_info=True)
            self.db.rollback()
            self.sessions.clear(user.telegram_id)
            await channel.send_text(templates.RETRY_MESSAGE, markdown=False)

    async def _free_form(self, channel: ChatChannel, user: StudyUser, text: str):
        await channel.send_text(templates.thinking(), markdown=False)
        reply = await asyncio.to_thread(self.composer.answer, self.db, user, text)

        if isinstance(reply, Directive):
            logger.info(f"[DISPATCH] Directive step={reply.step} category={reply.category!r}")
            if reply.step == FlowState.CATEGORY_SELECTION:
                await self.flow.begin(channel, user)
            else:
                await self.flow.browse(channel, user, reply.query or text, reply.category)
            return

        await channel.send_text(reply.text)
