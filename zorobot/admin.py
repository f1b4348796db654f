#!/usr/bin/env python3
from __future__ import annotations

import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

from loguru import logger

from zorobot.config import (
    BLOCKED_FILE,
    DATA_DIR,
    DEFAULT_MAX_PER_DAY,
    DEFAULT_WELCOME,
    GLOBALCAPTION_FILE,
    MAXLIMIT_FILE,
    STATS_FILE,
    SUFFIX_FILE,
    USAGE_FILE,
    USERS_FILE,
    WELCOME_FILE,
)
from zorobot.storage import load_json, load_text, save_json, save_text

# Отправка сообщения пользователю: (chat_id, text)
SendFunc = Callable[[int, str], Any]


def utc_today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


class AdminControl:
    """
    Общие настройки и состояние бота: блокировки, лимиты, статистика, тексты,
    флаги отмены.

    Всё, кроме флагов отмены, загружается из DATA_DIR при создании и
    сохраняется обратно сразу после каждого изменения. Обработчики Telegram
    работают в нескольких потоках, поэтому изменения идут под одной блокировкой.
    """

    def __init__(self, data_dir: Path = DATA_DIR):
        self.data_dir = Path(data_dir)
        self._lock = threading.RLock()

        self.blocked: list[int] = load_json(self._path(BLOCKED_FILE), [])
        # { "chat_id": {"date": "YYYY-MM-DD", "count": n} }
        self.usage: dict[str, dict[str, Any]] = load_json(self._path(USAGE_FILE), {})
        self.stats: dict[str, int] = load_json(
            self._path(STATS_FILE), {"totalUsers": 0, "totalWalletRequests": 0}
        )
        self.users: list[int] = load_json(self._path(USERS_FILE), [])
        self.welcome_text: str = load_text(self._path(WELCOME_FILE), DEFAULT_WELCOME)
        self.suffix_text: str = load_text(self._path(SUFFIX_FILE), "")
        self.global_caption: str = load_text(self._path(GLOBALCAPTION_FILE), "")
        self.max_per_day: int = int(load_json(self._path(MAXLIMIT_FILE), DEFAULT_MAX_PER_DAY))

        self._cancelled: dict[int, bool] = {}

        logger.debug(
            f"Настройки загружены из {self.data_dir}: пользователей {len(self.users)}, "
            f"заблокировано {len(self.blocked)}, лимит {self.max_per_day}/день"
        )

    def _path(self, name: str) -> Path:
        return self.data_dir / name

    # ==================== БЛОКИРОВКИ ====================

    def is_blocked(self, chat_id: int) -> bool:
        with self._lock:
            return chat_id in self.blocked

    def block(self, chat_id: int) -> bool:
        """Возвращает False, если пользователь уже был заблокирован."""
        with self._lock:
            if chat_id in self.blocked:
                return False
            self.blocked.append(chat_id)
            save_json(self._path(BLOCKED_FILE), self.blocked)
        logger.info(f"[ADMIN] Пользователь {chat_id} заблокирован")
        return True

    def unblock(self, chat_id: int) -> bool:
        """Возвращает False, если пользователя не было в списке."""
        with self._lock:
            if chat_id not in self.blocked:
                return False
            self.blocked = [i for i in self.blocked if i != chat_id]
            save_json(self._path(BLOCKED_FILE), self.blocked)
        logger.info(f"[ADMIN] Пользователь {chat_id} разблокирован")
        return True

    # ==================== ОТМЕНА ====================

    def cancel(self, chat_id: int, notify: Optional[SendFunc] = None) -> None:
        """
        Ставит флаг отмены для текущей задачи пользователя.
        Флаг проверяется задачей перед каждым кошельком.

        Args:
            chat_id: ID пользователя
            notify: Если передан, пользователю отправляется уведомление (ошибки игнорируются)
        """
        with self._lock:
            self._cancelled[chat_id] = True
        logger.info(f"[ADMIN] Запрос пользователя {chat_id} отменён")

        if notify is not None:
            try:
                notify(chat_id, "Your wallet creation request has been cancelled by the admin.")
            except Exception as e:
                logger.warning(f"Не удалось уведомить {chat_id} об отмене: {e}")

    def is_cancelled(self, chat_id: int) -> bool:
        with self._lock:
            return self._cancelled.get(chat_id, False)

    def clear_cancel(self, chat_id: int) -> None:
        with self._lock:
            self._cancelled.pop(chat_id, None)

    # ==================== ЛИМИТЫ ====================

    def _usage_record(self, chat_id: int, today: str) -> dict[str, Any]:
        key = str(chat_id)
        record = self.usage.get(key)
        if not record or record.get("date") != today:
            record = {"date": today, "count": 0}
            self.usage[key] = record
        return record

    def usage_today(self, chat_id: int, today: Optional[str] = None) -> int:
        """Сколько попыток пользователь уже потратил сегодня (счётчик обнуляется со сменой даты)."""
        with self._lock:
            return self._usage_record(chat_id, today or utc_today())["count"]

    def charge_usage(self, chat_id: int, today: Optional[str] = None) -> int:
        """Списывает одну попытку из дневного лимита и сохраняет usage.json."""
        with self._lock:
            record = self._usage_record(chat_id, today or utc_today())
            record["count"] += 1
            save_json(self._path(USAGE_FILE), self.usage)
            return record["count"]

    def set_max_per_day(self, limit: int) -> None:
        if limit <= 0:
            raise ValueError(f"Лимит должен быть положительным, получено {limit}")
        with self._lock:
            self.max_per_day = limit
            save_json(self._path(MAXLIMIT_FILE), limit)
        logger.info(f"[ADMIN] Лимит кошельков в день: {limit}")

    # ==================== СТАТИСТИКА ====================

    def register_user(self, chat_id: int) -> bool:
        """Добавляет пользователя в список для рассылки. True, если он новый."""
        with self._lock:
            if chat_id in self.users:
                return False
            self.users.append(chat_id)
            save_json(self._path(USERS_FILE), self.users)
            self.stats["totalUsers"] = self.stats.get("totalUsers", 0) + 1
            save_json(self._path(STATS_FILE), self.stats)
        logger.info(f"Новый пользователь: {chat_id}")
        return True

    def increment_wallet_requests(self, count: int) -> None:
        with self._lock:
            self.stats["totalWalletRequests"] = self.stats.get("totalWalletRequests", 0) + count
            save_json(self._path(STATS_FILE), self.stats)

    def get_stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "totalUsers": self.stats.get("totalUsers", 0),
                "totalWalletRequests": self.stats.get("totalWalletRequests", 0),
                "maxLimit": self.max_per_day,
            }

    # ==================== ТЕКСТЫ ====================

    def set_welcome_text(self, text: str) -> None:
        with self._lock:
            self.welcome_text = text
            save_text(self._path(WELCOME_FILE), text)

    def set_suffix_text(self, text: str) -> None:
        """Пустая строка убирает суффикс."""
        with self._lock:
            self.suffix_text = text
            save_text(self._path(SUFFIX_FILE), text)

    def set_global_caption(self, text: str) -> None:
        with self._lock:
            self.global_caption = text
            save_text(self._path(GLOBALCAPTION_FILE), text)

    def decorate(self, body: str, with_caption: bool = True) -> str:
        """Добавляет к тексту глобальную подпись и суффикс."""
        with self._lock:
            parts = [body]
            if with_caption and self.global_caption:
                parts.append(self.global_caption)
            if self.suffix_text:
                parts.append(self.suffix_text)
        return "\n".join(parts)

    # ==================== РАССЫЛКА ====================

    def broadcast(self, text: str, send: SendFunc) -> tuple[int, int]:
        """
        Отправляет сообщение всем известным пользователям.
        Ошибка доставки одному пользователю не прерывает рассылку.

        Returns:
            (доставлено, ошибок)
        """
        with self._lock:
            recipients = list(self.users)

        delivered = 0
        failed = 0
        for chat_id in recipients:
            try:
                send(chat_id, text)
                delivered += 1
            except Exception as e:
                failed += 1
                logger.warning(f"[BROADCAST] Не удалось отправить {chat_id}: {e}")

        logger.info(f"[BROADCAST] Доставлено: {delivered}, ошибок: {failed}")
        return delivered, failed
