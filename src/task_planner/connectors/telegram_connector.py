# src/task_planner/connectors/telegram_connector.py

from __future__ import annotations

import asyncio
import logging

from telegram import Message, ReplyKeyboardMarkup, Update, error
from telegram.ext import Application, ContextTypes, MessageHandler, filters

from ..core import subtask_flow
from ..core.commands import EXPANSION_KEYBOARD, MAIN_KEYBOARD
from ..core.dispatcher import Dispatcher
from ..core.models import Attachment, BotResponse, UserKey
from .background import BackgroundRunner, start_in_background

logger = logging.getLogger(__name__)

PLATFORM = "telegram"
MAX_IMPORT_BYTES = 1_000_000

_MAIN_MARKUP = ReplyKeyboardMarkup(MAIN_KEYBOARD, resize_keyboard=True)
_EXPANSION_MARKUP = ReplyKeyboardMarkup(EXPANSION_KEYBOARD, resize_keyboard=True)


def user_key_for(update: Update) -> UserKey | None:
    user = update.effective_user
    if user is None:
        return None
    return UserKey(PLATFORM, str(user.id))


def keyboard_for(dispatcher: Dispatcher, key: UserKey) -> ReplyKeyboardMarkup:
    if subtask_flow.is_active(dispatcher.state, key):
        return _EXPANSION_MARKUP
    return _MAIN_MARKUP


async def _reply(dispatcher: Dispatcher, message: Message, key: UserKey, response: BotResponse) -> None:
    await message.reply_text(response.text, reply_markup=keyboard_for(dispatcher, key))
    if response.file is not None:
        await message.reply_document(document=response.file.data, filename=response.file.filename)


def build_application(dispatcher: Dispatcher, token: str) -> Application:
    """Long-polling bot: text (commands and button labels included) and document uploads."""

    async def on_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        message = update.effective_message
        key = user_key_for(update)
        if message is None or key is None or not message.text:
            return
        # Free text may be a password: only its size is logged.
        logger.info("Telegram %s: message (%d chars)", key, len(message.text))
        response = await asyncio.to_thread(dispatcher.handle, key, message.text, None)
        await _reply(dispatcher, message, key, response)

    async def on_document(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        message = update.effective_message
        key = user_key_for(update)
        if message is None or key is None or message.document is None:
            return
        doc = message.document
        logger.info("Telegram %s sent file %r (%s bytes)", key, doc.file_name, doc.file_size)
        if doc.file_size is not None and doc.file_size > MAX_IMPORT_BYTES:
            await message.reply_text("The file is too large.")
            return

        tg_file = await doc.get_file()
        data = bytes(await tg_file.download_as_bytearray())
        attachment = Attachment(filename=doc.file_name or "tasks.json", data=data)
        response = await asyncio.to_thread(dispatcher.handle, key, message.caption or "", attachment)
        await _reply(dispatcher, message, key, response)

    async def on_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        logger.error("Telegram handler failed: %r", context.error, exc_info=context.error)

    application = Application.builder().token(token).build()
    application.add_handler(MessageHandler(filters.TEXT, on_text))
    application.add_handler(MessageHandler(filters.Document.ALL, on_document))
    application.add_error_handler(on_error)
    return application


async def run_telegram_bot(dispatcher: Dispatcher, settings, stop_event: asyncio.Event) -> None:
    token = (getattr(settings, "telegram_token", None) or "").strip()
    if not token:
        logger.error("Telegram is enabled but PLANNER_TELEGRAM_TOKEN is not set.")
        return

    application = build_application(dispatcher, token)
    async with application:
        await application.start()
        try:
            await application.updater.start_polling(drop_pending_updates=True)
        except error.Conflict as e:
            # Another process is polling with the same token.
            logger.error("Telegram polling conflict: %s", e)
            await application.stop()
            return

        logger.info("Telegram polling started.")
        await stop_event.wait()

        await application.updater.stop()
        await application.stop()
    logger.info("Telegram connector stopped.")


def start_telegram_in_background(dispatcher: Dispatcher, settings) -> BackgroundRunner | None:
    if not settings.telegram_enabled:
        logger.info("Telegram connector disabled, not starting.")
        return None
    return start_in_background("Telegram", lambda stop: run_telegram_bot(dispatcher, settings, stop))
