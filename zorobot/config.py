#!/usr/bin/env python3
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

# ==================== КОНФИГУРАЦИЯ ====================
# Папка с данными бота (кошельки, лимиты, настройки)
DATA_DIR = PROJECT_ROOT / "data"
LOGS_DIR = PROJECT_ROOT / "logs"

# API Zoro
ZORO_API_BASE = "https://api.zoro.org"
ZORO_LOGIN_REQUEST_URL = f"{ZORO_API_BASE}/user-auth/wallet/login-request"
ZORO_LOGIN_URL = f"{ZORO_API_BASE}/user-auth/login"
ZORO_SET_NICKNAME_URL = f"{ZORO_API_BASE}/user/set-nickname"
ZORO_DAILY_REWARD_URL = f"{ZORO_API_BASE}/daily-rewards/claim"
ZORO_MISSION_REWARD_URL = f"{ZORO_API_BASE}/mission-reward"
ZORO_MISSION_ACTIVITY_URL = f"{ZORO_API_BASE}/mission-activity"
ZORO_SCOREBOARD_ME_URL = f"{ZORO_API_BASE}/scoreboard/me"

LOGIN_STRATEGY = "ETHEREUM_SIGNATURE"

DEFAULT_HEADERS = {
    "accept": "*/*",
    "accept-language": "en-US,en;q=0.9",
    "priority": "u=1, i",
    "sec-ch-ua": '"Chromium";v="134", "Not:A-Brand";v="24", "Microsoft Edge";v="134"',
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-platform": '"Windows"',
    "sec-fetch-dest": "empty",
    "sec-fetch-mode": "cors",
    "sec-fetch-site": "same-site",
    "referer": "https://ai.zoro.org/",
    "referrer-policy": "strict-origin-when-cross-origin",
}

# Миссии с картинками: тип -> ID миссии
IMAGE_MISSIONS = {
    "hamster": "92611072-99d6-4d39-ae06-0ef4175c0aea",
    "cattle": "a78693c5-aae5-4d5c-9e07-f79777cbebbb",
    "kiwi": "a11b1dd4-316c-4b75-b8f5-0c6aba7876ae",
    "lemon": "f052e17c-36fe-4a2b-8fc3-272ec0097ffa",
    "lollipop": "b85fbda3-0bcd-4a1e-bc2e-9e6e0f855eaf",
}

# Картинки, которые отправляются в качестве выполнения миссии
IMAGE_URLS = {
    "hamster": "https://images.unsplash.com/photo-1425082661705-1834bfd09dca",
    "cattle": "https://images.unsplash.com/photo-1596733430284-f7437764b1a9",
    "kiwi": "https://images.unsplash.com/photo-1616684000067-36952fde56ec",
    "lemon": "https://images.unsplash.com/photo-1590502593747-42a996133562",
    "lollipop": "https://plus.unsplash.com/premium_photo-1661255468024-de3a871dfc16",
}

MISSION_REWARD_IDS = (
    "3bb23601-b879-42b4-be72-3e175974604b",
    "31e4891d-9c1e-4ca0-8362-5be848176bf4",
)

# Реферальный код Zoro всегда ровно 15 символов
REFERRAL_CODE_LENGTH = 15

DEFAULT_MAX_PER_DAY = 100

DEFAULT_WELCOME = (
    "This bot is for Zoro Airdrop referrals.\n"
    "Zoro Airdrop link: https://ai.zoro.org\n"
    "Send the number of wallets and your referral code to get started."
)

DOCUMENT_CAPTION = "@Zoro_referralbot"

# Сколько живёт незавершённый диалог пользователя (ввод количества / кода)
CONVERSATION_TTL_SEC = 15 * 60

# Файлы с настройками (внутри DATA_DIR)
BLOCKED_FILE = "blocked.json"
USAGE_FILE = "usage.json"
STATS_FILE = "stats.json"
USERS_FILE = "users.json"
WELCOME_FILE = "welcome.txt"
SUFFIX_FILE = "suffix.txt"
MAXLIMIT_FILE = "maxlimit.json"
GLOBALCAPTION_FILE = "globalcaption.txt"


@dataclass(frozen=True)
class Pacing:
    """
    Задержки и лимиты для работы с API.

    step_delay_sec: пауза между шагами внутри одного кошелька (награды, миссии)
    wallet_delay_sec: пауза после каждой попытки создания кошелька
    http_timeout_sec: таймаут HTTP запросов
    max_conflicts: сколько ответов 409 подряд допускается до остановки
    """

    step_delay_sec: float = 0.5
    wallet_delay_sec: float = 1.0
    http_timeout_sec: float = 30.0
    max_conflicts: int = 3


DEFAULT_PACING = Pacing()
