#!/usr/bin/env python3
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from loguru import logger

from zorobot.admin import AdminControl, SendFunc
from zorobot.config import CONVERSATION_TTL_SEC, REFERRAL_CODE_LENGTH
from zorobot.runner import JobRequest

# ==================== ДИАЛОГ ПОЛЬЗОВАТЕЛЯ ====================


class Stage(Enum):
    AWAITING_COUNT = "awaiting_count"
    AWAITING_REF = "awaiting_ref"
    PROCESSING = "processing"


# Из какого этапа в какие можно перейти. None - диалога нет.
TRANSITIONS: dict[Optional[Stage], set[Stage]] = {
    None: {Stage.AWAITING_COUNT},
    Stage.AWAITING_COUNT: {Stage.AWAITING_COUNT, Stage.AWAITING_REF},
    Stage.AWAITING_REF: {Stage.AWAITING_COUNT, Stage.AWAITING_REF, Stage.PROCESSING},
    Stage.PROCESSING: set(),
}


@dataclass
class Conversation:
    stage: Stage
    touched_at: float
    wallet_count: Optional[int] = None


class ConversationStore:
    """
    Состояние диалога для каждого пользователя.
    Диалог, в котором пользователь молчит дольше ttl_sec, считается брошенным и удаляется.
    """

    def __init__(self, ttl_sec: float = CONVERSATION_TTL_SEC, clock: Callable[[], float] = time.monotonic):
        self.ttl_sec = ttl_sec
        self.clock = clock
        self._items: dict[int, Conversation] = {}
        self._lock = threading.Lock()

    def get(self, chat_id: int) -> Optional[Conversation]:
        with self._lock:
            conv = self._items.get(chat_id)
            if conv is None:
                return None
            if self.clock() - conv.touched_at > self.ttl_sec:
                logger.debug(f"Диалог {chat_id} истёк на этапе {conv.stage.value}")
                del self._items[chat_id]
                return None
            return conv

    def move(self, chat_id: int, stage: Stage, wallet_count: Optional[int] = None) -> Conversation:
        """
        Переводит диалог в новый этап.

        Raises:
            ValueError: Если переход не разрешён таблицей TRANSITIONS
        """
        current = self.get(chat_id)
        current_stage = current.stage if current else None
        # /start всегда начинает диалог заново
        if stage is not Stage.AWAITING_COUNT and stage not in TRANSITIONS[current_stage]:
            raise ValueError(f"Недопустимый переход {current_stage} -> {stage}")
        with self._lock:
            conv = Conversation(
                stage=stage,
                touched_at=self.clock(),
                wallet_count=wallet_count if wallet_count is not None else (current.wallet_count if current else None),
            )
            self._items[chat_id] = conv
            return conv

    def finish(self, chat_id: int) -> None:
        with self._lock:
            self._items.pop(chat_id, None)


@dataclass
class DialogResult:
    replies: list[str] = field(default_factory=list)
    request: Optional[JobRequest] = None


def start_dialog(store: ConversationStore, chat_id: int, max_per_day: int) -> str:
    store.move(chat_id, Stage.AWAITING_COUNT)
    return f"Please enter the number of wallets you want to create (max {max_per_day} per day):"


def handle_user_text(store: ConversationStore, chat_id: int, text: str, max_per_day: int) -> DialogResult:
    """
    Обрабатывает ответ пользователя в диалоге /start.

    Returns:
        DialogResult: ответы пользователю и готовая заявка, когда введены количество и код
    """
    conv = store.get(chat_id)
    if conv is None:
        return DialogResult()

    text = (text or "").strip()

    if conv.stage is Stage.AWAITING_COUNT:
        try:
            count = int(text)
        except ValueError:
            count = 0
        if count <= 0 or count > max_per_day:
            store.move(chat_id, Stage.AWAITING_COUNT)
            return DialogResult([f"Please enter a valid number (1-{max_per_day})."])
        store.move(chat_id, Stage.AWAITING_REF, wallet_count=count)
        return DialogResult([f"Please enter your referral code (exactly {REFERRAL_CODE_LENGTH} letters):"])

    if conv.stage is Stage.AWAITING_REF:
        try:
            request = JobRequest.create(chat_id, conv.wallet_count or 0, text, max_per_day)
        except ValueError:
            if len(text) != REFERRAL_CODE_LENGTH:
                store.move(chat_id, Stage.AWAITING_REF)
                return DialogResult(
                    [f"Referral code must be exactly {REFERRAL_CODE_LENGTH} letters. Please try again."]
                )
            # Лимит поменяли, пока пользователь вводил код
            store.move(chat_id, Stage.AWAITING_COUNT)
            return DialogResult([f"Please enter a valid number (1-{max_per_day})."])
        store.move(chat_id, Stage.PROCESSING)
        store.finish(chat_id)
        return DialogResult(
            [
                f'Starting wallet creation for {request.wallet_count} wallet(s) with referral code '
                f'"{request.referral_code}". Please wait...'
            ],
            request=request,
        )

    return DialogResult()


# ==================== ДИАЛОГ АДМИНИСТРАТОРА ====================


class AdminStage(Enum):
    IDLE = "idle"
    BLOCK = "block"
    UNBLOCK = "unblock"
    CANCEL = "cancel"
    CHANGE_WELCOME = "change_welcome"
    SET_SUFFIX = "set_suffix"
    CHANGE_MAX_LIMIT = "change_max_limit"
    SET_GLOBAL_CAPTION = "set_global_caption"
    BROADCAST = "broadcast"


# callback_data кнопки -> (этап, вопрос администратору)
ADMIN_PROMPTS: dict[str, tuple[AdminStage, str]] = {
    "block_user": (AdminStage.BLOCK, "Please send the chat ID of the user to block:"),
    "unblock_user": (AdminStage.UNBLOCK, "Please send the chat ID of the user to unblock:"),
    "cancel_request": (
        AdminStage.CANCEL,
        "Please send the chat ID of the user whose request you want to cancel:",
    ),
    "change_welcome": (AdminStage.CHANGE_WELCOME, "Please send the new welcome message:"),
    "set_suffix": (AdminStage.SET_SUFFIX, "Please send the new suffix text:"),
    "change_max_limit": (
        AdminStage.CHANGE_MAX_LIMIT,
        "Please send the new maximum wallet creation limit:",
    ),
    "set_global_caption": (
        AdminStage.SET_GLOBAL_CAPTION,
        "Please send the new global caption text (this will be appended to all messages):",
    ),
    "broadcast": (AdminStage.BROADCAST, "Please send the message to broadcast to all users:"),
}

INVALID_CHAT_ID_TEXT = "Invalid chat ID. Please send a valid number."


class AdminDialog:
    """Этап диалога администратора: после нажатия кнопки ждём один текстовый ответ."""

    def __init__(self, admin: AdminControl):
        self.admin = admin
        self.stage = AdminStage.IDLE

    @property
    def awaiting_input(self) -> bool:
        return self.stage is not AdminStage.IDLE

    def reset(self) -> None:
        self.stage = AdminStage.IDLE

    def press(self, action: str) -> Optional[str]:
        """
        Обрабатывает кнопку админ-меню.

        Returns:
            Текст ответа или None для неизвестной кнопки
        """
        if action == "show_stats":
            stats = self.admin.get_stats()
            return (
                "*Stats:*\n"
                f"Total Users: {stats['totalUsers']}\n"
                f"Total Wallet Requests: {stats['totalWalletRequests']}\n"
                f"Max Limit: {stats['maxLimit']}"
            )
        if action == "remove_suffix":
            self.admin.set_suffix_text("")
            self.stage = AdminStage.IDLE
            return "Suffix removed."
        if action in ADMIN_PROMPTS:
            self.stage, prompt = ADMIN_PROMPTS[action]
            return prompt
        return None

    def handle_text(self, text: str, send: SendFunc, broadcast_send: Optional[SendFunc] = None) -> str:
        """
        Применяет ответ администратора к текущему этапу.
        При неверном вводе этап сохраняется, чтобы можно было ответить ещё раз.
        """
        stage = self.stage
        admin = self.admin

        if stage in (AdminStage.BLOCK, AdminStage.UNBLOCK, AdminStage.CANCEL):
            try:
                target_id = int(text.strip())
            except ValueError:
                return INVALID_CHAT_ID_TEXT
            self.reset()
            if stage is AdminStage.BLOCK:
                if admin.block(target_id):
                    return f"User {target_id} has been blocked 🚫."
                return f"User {target_id} is already blocked."
            if stage is AdminStage.UNBLOCK:
                if admin.unblock(target_id):
                    return f"User {target_id} has been unblocked."
                return f"User {target_id} is not in the blocked list."
            admin.cancel(target_id, notify=send)
            return f"Wallet creation request for user {target_id} has been cancelled."

        if stage is AdminStage.CHANGE_MAX_LIMIT:
            try:
                admin.set_max_per_day(int(text.strip()))
            except ValueError:
                return "Please provide a valid positive number for max limit."
            self.reset()
            return f"Max wallet creation limit updated to {admin.max_per_day}."

        self.reset()
        if stage is AdminStage.CHANGE_WELCOME:
            admin.set_welcome_text(text)
            return "Welcome message updated."
        if stage is AdminStage.SET_SUFFIX:
            admin.set_suffix_text(text)
            return "Suffix updated."
        if stage is AdminStage.SET_GLOBAL_CAPTION:
            admin.set_global_caption(text)
            return "Global caption updated."
        if stage is AdminStage.BROADCAST:
            delivered, failed = admin.broadcast(text, broadcast_send or send)
            return f"Broadcast message sent to all users ({delivered} delivered, {failed} failed)."
        return ""
