"""
Response Composer - replies for everything outside the scripted flow.

Free-form answers go to the model when it is available and come back as a
ComposedReply (Directive or PlainText). Without the model, or on any model
failure, each method returns a deterministic templated reply built from a
catalog search, so the bot always has something useful to say.

These methods block on the network; the async chat handlers run them with
asyncio.to_thread.
"""

import logging
from typing import List, Optional, Sequence, Union

from sqlalchemy.orm import Session

from app.models.study_user import StudyUser
from app.services.search import SearchHit, extract_tokens, search

from . import templates
from .groq_client import GroqClient, get_groq_client
from .prompts import build_answer_prompt, build_practice_prompt, build_study_prompt
from .reply_schema import Directive, PlainText, parse_reply

logger = logging.getLogger(__name__)

GOOD_MATCH_SCORE = 3
MANY_RESULTS = 8

PRACTICE_WORDS = {"practice", "simulate", "simulated", "questions", "question", "quiz", "quizzes"}


class ResponseComposer:
    def __init__(self, client: Optional[GroqClient] = None):
        self.client = client if client is not None else get_groq_client()

    @property
    def model_available(self) -> bool:
        return self.client.is_available()

    def answer(self, db: Session, user: Optional[StudyUser], text: str) -> Union[Directive, PlainText]:
        """Reply to an unscripted message."""
        hits = search(db, text, limit=10)

        if self.model_available:
            prompt = build_answer_prompt(
                user.name if user else None,
                user.level if user else None,
                text,
                [h.material for h in hits],
            )
            raw = self.client.complete(prompt, max_tokens=800)
            if raw:
                reply = parse_reply(raw)
                logger.info(f"[COMPOSER] Model reply kind={reply.kind}")
                return reply
            logger.info("[COMPOSER] Model gave no answer - using template")

        return PlainText(text=self.clarification(hits) or templates.study_results([h.material for h in hits]))

    def study_answer(self, db: Session, user: Optional[StudyUser], text: str) -> str:
        """Plain-text explanation of a study question."""
        hits = search(db, text, limit=5)
        if self.model_available:
            raw = self.client.complete(
                build_study_prompt(user.name if user else None, text, [h.material for h in hits]),
                max_tokens=800,
            )
            if raw:
                return raw
        if not hits:
            return templates.no_search_results()
        return templates.study_results([h.material for h in hits])

    def practice_questions(self, topic: str, category: Optional[str] = None) -> str:
        topic = practice_topic(topic)
        if self.model_available:
            raw = self.client.complete(build_practice_prompt(topic, category), max_tokens=800)
            if raw:
                return templates.practice_header(raw)
        return templates.practice_questions(topic, category)

    @staticmethod
    def clarification(hits: Sequence[SearchHit]) -> Optional[str]:
        """
        A narrowing question when results are unhelpful, else None.

        - no results -> ask for a category
        - nothing scoring >= 3 -> ask for specifics
        - more than 8 results -> list the areas found
        """
        if not hits:
            return templates.clarify_no_results()
        if not any(h.relevance_score >= GOOD_MATCH_SCORE for h in hits):
            return templates.clarify_weak_matches()
        if len(hits) > MANY_RESULTS:
            areas: List[str] = []
            for h in hits[:5]:
                area = h.material.category or "General"
                if area not in areas:
                    areas.append(area)
            return templates.clarify_many_results(areas[:3])
        return None


def practice_topic(text: str) -> str:
    """Topic words of a practice request: "practice questions on cardiac meds" -> "cardiac meds"."""
    words = [t for t in extract_tokens(text) if t not in PRACTICE_WORDS]
    return " ".join(words)
