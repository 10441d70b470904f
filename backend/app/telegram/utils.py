"""
Telegram utility functions for user resolution.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session
from telegram import Update

from app.models.study_user import StudyUser
from app.services.user_service import ensure_user

logger = logging.getLogger(__name__)


def display_name(update: Update) -> Optional[str]:
    """@username if set, else "First Last", else None."""
    tg_user = update.effective_user
    if tg_user is None:
        return None
    if tg_user.username:
        return tg_user.username
    full = f"{tg_user.first_name or ''} {tg_user.last_name or ''}".strip()
    return full or None


def ensure_study_user(db: Session, update: Update) -> StudyUser:
    """
    Resolve the StudyUser for an incoming update.

    Creates the row on a user's first message and refreshes last_active_at
    on every later one.
    """
    telegram_id = str(update.effective_user.id)
    user = ensure_user(db, telegram_id, display_name(update))
    logger.debug(f"[TELEGRAM] Resolved user telegram_id={telegram_id} id={user.id}")
    return user
