#!/usr/bin/env python3
from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Any, Optional

import telebot
from loguru import logger
from telebot import types

from zorobot.admin import AdminControl
from zorobot.config import DOCUMENT_CAPTION
from zorobot.conversation import (
    AdminDialog,
    ConversationStore,
    handle_user_text,
    start_dialog,
)
from zorobot.runner import BatchReport, BatchRunner, JobRequest

BLOCKED_TEXT = "You are blocked 🚫."
NOT_AUTHORIZED_TEXT = "You are not authorized to perform this action."
BUSY_TEXT = "Your previous request is still running. Please wait until it finishes."


def build_admin_menu() -> types.InlineKeyboardMarkup:
    markup = types.InlineKeyboardMarkup()
    markup.row(
        types.InlineKeyboardButton("🚫 Block User", callback_data="block_user"),
        types.InlineKeyboardButton("✅ Unblock User", callback_data="unblock_user"),
    )
    markup.row(types.InlineKeyboardButton("❌ Cancel User Request", callback_data="cancel_request"))
    markup.row(types.InlineKeyboardButton("📊 Show Stats", callback_data="show_stats"))
    markup.row(types.InlineKeyboardButton("✏️ Change Welcome Message", callback_data="change_welcome"))
    markup.row(
        types.InlineKeyboardButton("📝 Set Suffix", callback_data="set_suffix"),
        types.InlineKeyboardButton("🗑 Remove Suffix", callback_data="remove_suffix"),
    )
    markup.row(types.InlineKeyboardButton("🔧 Change Max Limit", callback_data="change_max_limit"))
    markup.row(types.InlineKeyboardButton("🖼 Set Global Caption", callback_data="set_global_caption"))
    markup.row(types.InlineKeyboardButton("📢 Broadcast", callback_data="broadcast"))
    return markup


def code_block(text: str) -> str:
    return f"```\n{text}\n```"


class ZoroBot:
    """
    Telegram-обвязка: принимает команды, ведёт диалоги и запускает задачи
    BatchRunner в отдельных потоках.
    """

    def __init__(
        self,
        bot: telebot.TeleBot,
        admin_id: int,
        admin: AdminControl,
        runner: BatchRunner,
        conversations: Optional[ConversationStore] = None,
    ):
        self.bot = bot
        self.admin_id = admin_id
        self.admin = admin
        self.runner = runner
        self.conversations = conversations or ConversationStore()
        self.admin_dialog = AdminDialog(admin)

        self._active: set[int] = set()
        self._active_lock = threading.Lock()

        self._register_handlers()

    def _register_handlers(self) -> None:
        self.bot.register_message_handler(self.on_text, content_types=["text"])
        self.bot.register_callback_query_handler(self.on_callback, func=lambda call: True)
        self.bot.register_inline_handler(self.on_inline_query, func=lambda query: True)

    # ==================== ОТПРАВКА ====================

    def send_text(self, chat_id: int, text: str, **kwargs: Any) -> Optional[types.Message]:
        """Отправляет сообщение; ошибка доставки пишется в лог и не пробрасывается."""
        try:
            return self.bot.send_message(chat_id, text, **kwargs)
        except Exception as e:
            logger.warning(f"Не удалось отправить сообщение {chat_id}: {e}")
            return None

    def user_log(self, chat_id: int, text: str) -> None:
        self.send_text(chat_id, self.admin.decorate(text, with_caption=False))

    def send_with_header(self, chat_id: int, header: str, body: str) -> None:
        self.send_text(chat_id, code_block(header), parse_mode="Markdown")
        self.send_text(chat_id, self.admin.decorate(body))

    def send_ledger(self, chat_id: int, path: Path) -> None:
        try:
            with open(path, "rb") as f:
                message = self.bot.send_document(
                    chat_id, f, caption=DOCUMENT_CAPTION, visible_file_name=path.name
                )
        except Exception as e:
            logger.error(f"Не удалось отправить файл {path} пользователю {chat_id}: {e}")
            self.user_log(chat_id, f"Error sending wallet file: {e}")
            return

        try:
            self.bot.pin_chat_message(chat_id, message.message_id)
        except Exception as e:
            logger.warning(f"Не удалось закрепить файл у {chat_id}: {e}")

    def _broadcast_send(self, chat_id: int, text: str) -> None:
        # Без перехвата ошибок: AdminControl.broadcast считает неудачные отправки
        self.bot.send_message(chat_id, code_block("Broadcast"), parse_mode="Markdown")
        self.bot.send_message(chat_id, text)

    def _notify(self, chat_id: int, text: str) -> None:
        self.bot.send_message(chat_id, text)

    # ==================== ЗАДАЧИ ====================

    def is_busy(self, chat_id: int) -> bool:
        with self._active_lock:
            return chat_id in self._active

    def start_batch(self, request: JobRequest) -> bool:
        """Запускает задачу в фоне. False, если у пользователя уже есть активная задача."""
        with self._active_lock:
            if request.requester_id in self._active:
                return False
            self._active.add(request.requester_id)

        threading.Thread(target=self._run_batch, args=(request,), daemon=True).start()
        return True

    def _run_batch(self, request: JobRequest) -> None:
        chat_id = request.requester_id
        report = BatchReport(
            text=lambda text: self.user_log(chat_id, text),
            wallet_created=lambda i, n: self.send_with_header(
                chat_id, "✅️ Successful ✅️", f"Wallet {i} of {n} created"
            ),
            deliver_ledger=lambda path: self.send_ledger(chat_id, path),
        )
        try:
            outcome = self.runner.run_batch(request, report)
            logger.info(f"[{chat_id}] Итог задачи: {outcome}")
        except Exception as e:
            logger.exception(f"[{chat_id}] Непредвиденная ошибка в задаче: {e}")
            self.user_log(chat_id, "Unexpected error while creating wallets. Please try again later.")
        finally:
            with self._active_lock:
                self._active.discard(chat_id)

    # ==================== ОБРАБОТЧИКИ ====================

    def on_text(self, message: types.Message) -> None:
        chat_id = message.chat.id
        text = message.text or ""

        if self.admin.is_blocked(chat_id):
            self.send_text(chat_id, BLOCKED_TEXT)
            return

        if chat_id == self.admin_id:
            if text == "/admin":
                self.admin_dialog.reset()
                self.send_text(chat_id, "Admin Menu:", reply_markup=build_admin_menu())
                return
            if self.admin_dialog.awaiting_input:
                reply = self.admin_dialog.handle_text(
                    text, send=self._notify, broadcast_send=self._broadcast_send
                )
                if reply:
                    self.send_text(chat_id, reply)
                return

        if text == "/start":
            self.handle_start(chat_id)
            return

        result = handle_user_text(self.conversations, chat_id, text, self.admin.max_per_day)
        for reply in result.replies:
            self.send_text(chat_id, reply)
        if result.request is not None and not self.start_batch(result.request):
            self.send_text(chat_id, BUSY_TEXT)

    def handle_start(self, chat_id: int) -> None:
        self.admin.register_user(chat_id)
        self.send_text(chat_id, self.admin.decorate(self.admin.welcome_text))
        self.send_text(chat_id, start_dialog(self.conversations, chat_id, self.admin.max_per_day))

    def on_callback(self, call: types.CallbackQuery) -> None:
        if call.from_user.id != self.admin_id:
            self.bot.answer_callback_query(call.id, text=NOT_AUTHORIZED_TEXT)
            return

        reply = self.admin_dialog.press(call.data)
        if reply:
            parse_mode = "Markdown" if call.data == "show_stats" else None
            self.send_text(self.admin_id, reply, parse_mode=parse_mode)
        self.bot.answer_callback_query(call.id)

    def on_inline_query(self, query: types.InlineQuery) -> None:
        result = types.InlineQueryResultArticle(
            id="1",
            title="Wallet Creation Bot",
            input_message_content=types.InputTextMessageContent(
                "Use /start in a private chat with me to create wallets."
            ),
        )
        try:
            self.bot.answer_inline_query(query.id, [result])
        except Exception as e:
            logger.warning(f"Не удалось ответить на inline-запрос: {e}")

    # ==================== ЗАПУСК ====================

    def run_forever(self, restart_delay_sec: float = 15.0) -> None:
        """Polling с перезапуском: любая ошибка в цикле не останавливает бота."""
        while True:
            try:
                self.bot.infinity_polling(timeout=20, long_polling_timeout=10, skip_pending=True)
                return
            except KeyboardInterrupt:
                raise
            except Exception as e:
                logger.exception(f"Критическая ошибка в главном цикле бота: {e}")
                time.sleep(restart_delay_sec)
                logger.info("Перезапуск бота...")
