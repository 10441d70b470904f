"""
Telegram handlers - bridge between python-telegram-bot updates and the
message dispatcher.

Each update gets its own database session. The SessionManager and the
ResponseComposer live in the Application's bot_data, so every handler shares
the same conversation sessions without a module-level global.
"""
import logging

from telegram import Update
from telegram.constants import ChatAction, ParseMode
from telegram.error import BadRequest
from telegram.ext import ContextTypes

from ai import templates
from ai.composer import ResponseComposer
from app.agent.channel import ChatChannel
from app.agent.dispatcher import MessageDispatcher
from app.agent.session_manager import SessionManager
from app.db.session import SessionLocal
from app.telegram.utils import ensure_study_user

logger = logging.getLogger(__name__)

# Telegram rejects messages above 4096 characters
MAX_MESSAGE_CHARS = 4000


class TelegramChannel(ChatChannel):
    """ChatChannel that replies to the chat an Update came from."""

    def __init__(self, update: Update):
        self.message = update.effective_message

    async def send_text(self, text: str, markdown: bool = True) -> None:
        for part in _split_message(text):
            if markdown:
                try:
                    await self.message.reply_text(part, parse_mode=ParseMode.MARKDOWN)
                    continue
                except BadRequest as e:
                    # Unbalanced * or ` in titles or model output
                    logger.warning(f"[TELEGRAM] Markdown rejected, resending as plain text: {e}")
            await self.message.reply_text(part)

    async def send_document(self, data: bytes, filename: str, caption: str = "") -> None:
        await self.message.reply_chat_action(ChatAction.UPLOAD_DOCUMENT)
        await self.message.reply_document(document=data, filename=filename, caption=caption[:1024])


def _split_message(text: str):
    if len(text) <= MAX_MESSAGE_CHARS:
        return [text]
    parts = []
    remaining = text
    while remaining:
        cut = remaining.rfind("\n", 0, MAX_MESSAGE_CHARS)
        if cut <= 0:
            cut = MAX_MESSAGE_CHARS
        parts.append(remaining[:cut])
        remaining = remaining[cut:].lstrip("\n")
    return parts


def _sessions(context: ContextTypes.DEFAULT_TYPE) -> SessionManager:
    return context.application.bot_data["sessions"]


def _composer(context: ContextTypes.DEFAULT_TYPE) -> ResponseComposer:
    return context.application.bot_data["composer"]


# ==============================================================================
# COMMAND HANDLERS
# ==============================================================================

async def handle_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start - register the user and greet them."""
    if not update.effective_user or not update.effective_message:
        return
    channel = TelegramChannel(update)
    db = SessionLocal()
    try:
        user = ensure_study_user(db, update)
        await channel.send_text(templates.welcome(user.name))
    except Exception as e:
        logger.error(f"[TELEGRAM] /start failed: {e}", exc_info=True)
        await channel.send_text(templates.RETRY_MESSAGE, markdown=False)
    finally:
        db.close()


async def handle_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not update.effective_message:
        return
    await TelegramChannel(update).send_text(templates.help_text(), markdown=False)


async def handle_buy(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /buy - open a session at the category menu."""
    if not update.effective_user or not update.effective_message:
        return
    channel = TelegramChannel(update)
    db = SessionLocal()
    try:
        user = ensure_study_user(db, update)
        dispatcher = MessageDispatcher(db, _sessions(context), _composer(context))
        await dispatcher.flow.begin(channel, user)
    except Exception as e:
        logger.error(f"[TELEGRAM] /buy failed: {e}", exc_info=True)
        _sessions(context).clear(update.effective_user.id)
        await channel.send_text(templates.RETRY_MESSAGE, markdown=False)
    finally:
        db.close()


async def handle_cancel(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not update.effective_user or not update.effective_message:
        return
    channel = TelegramChannel(update)
    if _sessions(context).clear(update.effective_user.id):
        await channel.send_text(templates.cancelled())
    else:
        await channel.send_text(templates.nothing_to_cancel())


# ==============================================================================
# TEXT MESSAGES
# ==============================================================================

async def handle_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Every non-command text message goes through the dispatcher."""
    message = update.effective_message
    if not message or not message.text or not update.effective_user:
        return

    logger.info(f"[TELEGRAM] Message from {update.effective_user.id}: {message.text[:80]!r}")
    channel = TelegramChannel(update)
    db = SessionLocal()
    try:
        user = ensure_study_user(db, update)
        dispatcher = MessageDispatcher(db, _sessions(context), _composer(context))
        await dispatcher.dispatch(channel, user, message.text)
    except Exception as e:
        logger.error(f"[TELEGRAM] Message handling failed: {e}", exc_info=True)
        _sessions(context).clear(update.effective_user.id)
        await channel.send_text(
            "Sorry, something went wrong while I tried to answer. Try again or type /help.",
            markdown=False,
        )
    finally:
        db.close()


async def handle_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Log errors raised outside the handlers above (network, polling)."""
    logger.error(f"[TELEGRAM] Unhandled error: {context.error}", exc_info=context.error)
