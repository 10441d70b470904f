"""
Telegram bot lifecycle.

Two delivery modes:
- Long polling (default): the bot runs its own event loop in a daemon thread
  next to the FastAPI server. A Conflict (another instance polling the same
  token) is retried with backoff, then the bot gives up and stays disabled.
- Webhook (WEBHOOK_URL set): the Application runs inside the FastAPI event
  loop and updates arrive on POST /webhook/telegram.
"""
import asyncio
import logging
import threading
from typing import Optional

from telegram import Update, error
from telegram.ext import Application, CommandHandler, MessageHandler, filters

from ai.composer import ResponseComposer
from app.agent.session_manager import SessionManager
from app.core.config import settings
from app.telegram.handlers import (
    handle_buy,
    handle_cancel,
    handle_error,
    handle_help,
    handle_message,
    handle_start,
)

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/webhook/telegram"

_bot_app: Optional[Application] = None
_bot_loop: Optional[asyncio.AbstractEventLoop] = None


def build_application(token: str) -> Application:
    """Application with all handlers and its own SessionManager."""
    application = Application.builder().token(token).build()
    application.bot_data["sessions"] = SessionManager()
    application.bot_data["composer"] = ResponseComposer()

    application.add_handler(CommandHandler("start", handle_start))
    application.add_handler(CommandHandler("help", handle_help))
    application.add_handler(CommandHandler("buy", handle_buy))
    application.add_handler(CommandHandler("cancel", handle_cancel))
    application.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_message))
    application.add_error_handler(handle_error)
    return application


def get_application() -> Optional[Application]:
    return _bot_app


# ==============================================================================
# LONG POLLING (background thread)
# ==============================================================================

async def _start_polling_with_retry(app: Application, max_retries: int = 3, initial_backoff: int = 2) -> bool:
    for attempt in range(max_retries):
        try:
            logger.info(f"[TELEGRAM] Starting polling (attempt {attempt + 1}/{max_retries})...")
            await app.updater.start_polling(drop_pending_updates=True)
            logger.info("[TELEGRAM] Polling started")
            return True
        except error.Conflict as e:
            if attempt < max_retries - 1:
                backoff = initial_backoff * (2 ** attempt)
                logger.warning(f"[TELEGRAM] Conflict detected: {e}. Retrying in {backoff}s")
                await asyncio.sleep(backoff)
            else:
                logger.error(f"[TELEGRAM] Failed after {max_retries} retries, bot disabled: {e}")
                return False
        except Exception as e:
            logger.error(f"[TELEGRAM] Unexpected error starting polling: {e}")
            return False
    return False


def _run_bot():
    global _bot_app, _bot_loop
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    _bot_loop = loop

    try:
        _bot_app = build_application(settings.TELEGRAM_BOT_TOKEN)
        loop.run_until_complete(_bot_app.initialize())
        loop.run_until_complete(_bot_app.start())

        if not loop.run_until_complete(_start_polling_with_retry(_bot_app)):
            return
        loop.run_forever()
    except Exception as e:
        logger.error(f"[TELEGRAM] Bot error: {e}", exc_info=True)
    finally:
        try:
            if _bot_app:
                if _bot_app.updater and _bot_app.updater.running:
                    loop.run_until_complete(_bot_app.updater.stop())
                if _bot_app.running:
                    loop.run_until_complete(_bot_app.stop())
                loop.run_until_complete(_bot_app.shutdown())
        except Exception as e:
            logger.warning(f"[TELEGRAM] Error during bot shutdown: {e}")
        loop.close()
        _bot_loop = None


def start_bot_background():
    if not settings.TELEGRAM_BOT_TOKEN:
        return
    t = threading.Thread(target=_run_bot, name="telegram-bot", daemon=True)
    t.start()


def stop_bot_background():
    """Stop the polling loop. Called on FastAPI shutdown."""
    if _bot_loop and _bot_loop.is_running():
        _bot_loop.call_soon_threadsafe(_bot_loop.stop)


# ==============================================================================
# WEBHOOK (FastAPI event loop)
# ==============================================================================

async def start_webhook() -> bool:
    global _bot_app
    if not settings.TELEGRAM_BOT_TOKEN:
        return False
    _bot_app = build_application(settings.TELEGRAM_BOT_TOKEN)
    await _bot_app.initialize()
    await _bot_app.start()
    url = settings.WEBHOOK_URL.rstrip("/") + WEBHOOK_PATH
    await _bot_app.bot.set_webhook(url=url, drop_pending_updates=True)
    logger.info(f"[TELEGRAM] Webhook set to {url}")
    return True


async def stop_webhook():
    global _bot_app
    if _bot_app is None:
        return
    try:
        await _bot_app.stop()
        await _bot_app.shutdown()
    finally:
        _bot_app = None


async def process_webhook_update(payload: dict) -> bool:
    """Feed one webhook payload to the bot. False when the bot is not running."""
    if _bot_app is None:
        return False
    update = Update.de_json(payload, _bot_app.bot)
    await _bot_app.process_update(update)
    return True
