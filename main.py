#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

import sys

import telebot
from loguru import logger

from zorobot.admin import AdminControl
from zorobot.bot import ZoroBot
from zorobot.client import AirdropClient
from zorobot.config import DATA_DIR, DEFAULT_PACING, LOGS_DIR
from zorobot.job import WalletJob
from zorobot.runner import BatchRunner

LOG_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"


def setup_logging() -> None:
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level="INFO")
    logger.add(
        LOGS_DIR / "bot.log",
        format=LOG_FORMAT,
        level="DEBUG",
        rotation="10 MB",
        retention=5,
        encoding="utf-8",
    )


def ask_credentials() -> tuple[str, int]:
    """Спрашивает токен бота и Telegram ID администратора."""
    while True:
        token = input("Enter your Telegram Bot Token: ").strip()
        if token:
            break
        print("❌ Токен не может быть пустым. Попробуйте снова.")

    while True:
        admin_input = input("Enter your Admin Telegram ID: ").strip()
        try:
            return token, int(admin_input)
        except ValueError:
            print("❌ Неверный формат. Введите числовой ID (например: 123456789).")


def main() -> None:
    setup_logging()

    # Без терминала ввести токен негде
    if not sys.stdin.isatty():
        logger.error("Запуск возможен только в интерактивном терминале: нужен ввод токена и ID администратора")
        raise SystemExit(2)

    try:
        token, admin_id = ask_credentials()
    except (KeyboardInterrupt, EOFError):
        print("\nОтмена пользователем.")
        return

    pacing = DEFAULT_PACING
    client = AirdropClient(timeout=pacing.http_timeout_sec)
    admin = AdminControl(DATA_DIR)
    runner = BatchRunner(
        admin,
        job_factory=lambda: WalletJob(client, pacing),
        pacing=pacing,
        data_dir=DATA_DIR,
    )

    bot = ZoroBot(telebot.TeleBot(token), admin_id, admin, runner)
    logger.info(f"Telegram bot started. Admin: {admin_id}, данные: {DATA_DIR}")
    bot.run_forever()


if __name__ == "__main__":
    main()
