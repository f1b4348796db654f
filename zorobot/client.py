#!/usr/bin/env python3
from __future__ import annotations

from typing import Any, Optional

import requests
from loguru import logger

from zorobot.config import (
    DEFAULT_HEADERS,
    DEFAULT_PACING,
    IMAGE_URLS,
    LOGIN_STRATEGY,
    ZORO_DAILY_REWARD_URL,
    ZORO_LOGIN_REQUEST_URL,
    ZORO_LOGIN_URL,
    ZORO_MISSION_ACTIVITY_URL,
    ZORO_MISSION_REWARD_URL,
    ZORO_SCOREBOARD_ME_URL,
    ZORO_SET_NICKNAME_URL,
)

# HTTP статус, которым Zoro отвечает на неверный/конфликтующий реферальный код
REFERRAL_CONFLICT_STATUS = 409


class NetworkError(Exception):
    """Не удалось достучаться до сервиса (DNS, таймаут, обрыв соединения)."""


class ServiceError(Exception):
    """Сервис ответил статусом не из 2xx."""

    def __init__(self, status: int, body: str):
        super().__init__(f"HTTP {status}: {body[:200]}")
        self.status = status
        self.body = body

    @property
    def is_referral_conflict(self) -> bool:
        return self.status == REFERRAL_CONFLICT_STATUS


class AirdropClient:
    """
    Обёртка над API Zoro.

    Клиент не хранит состояние аккаунта: access token передаётся в каждый метод.
    login_request/login пробрасывают NetworkError/ServiceError, все остальные
    шаги терпимы к ошибкам: пишут warning в лог и возвращают None.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_PACING.http_timeout_sec,
        session: Optional[requests.Session] = None,
    ):
        self.timeout = timeout
        self.session = session or requests.Session()

    def _get_headers(self, access_token: Optional[str] = None) -> dict[str, str]:
        headers = dict(DEFAULT_HEADERS)
        if access_token:
            headers["authorization"] = f"Bearer {access_token}"
        return headers

    def _request(self, method: str, url: str, access_token: Optional[str] = None, **kwargs) -> Any:
        """
        Выполняет HTTP запрос и разбирает ответ.

        Raises:
            NetworkError: Если запрос не дошёл до сервиса
            ServiceError: Если сервис ответил статусом не из 2xx
        """
        headers = self._get_headers(access_token)
        headers.update(kwargs.pop("headers", {}))

        try:
            response = self.session.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise NetworkError(f"{method} {url}: {e}") from e

        logger.debug(f"{method} {url} -> {response.status_code}")

        if not 200 <= response.status_code < 300:
            raise ServiceError(response.status_code, response.text)

        # Пустой ответ 2xx - тоже успех
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return response.text

    # ==================== ЛОГИН ====================

    def login_request(self, address: str) -> dict[str, str]:
        """
        Запрашивает челлендж для входа по подписи.

        Returns:
            {"token": ..., "message": ...}
        """
        data = self._request(
            "GET",
            ZORO_LOGIN_REQUEST_URL,
            params={"strategy": LOGIN_STRATEGY, "address": address},
        )
        # message подписывается, token уходит в login: оба должны быть строками
        if (
            not isinstance(data, dict)
            or not isinstance(data.get("token"), str)
            or not isinstance(data.get("message"), str)
        ):
            raise ServiceError(200, f"Неожиданный ответ login-request: {data!r}")
        return {"token": data["token"], "message": data["message"]}

    def login(
        self,
        address: str,
        message: str,
        token: str,
        signature: str,
        referral_code: str,
    ) -> str:
        """
        Логин с подписью и реферальным кодом.

        Returns:
            access_token

        Raises:
            ServiceError: status 409 означает неверный реферальный код
        """
        data = self._request(
            "GET",
            ZORO_LOGIN_URL,
            params={
                "strategy": LOGIN_STRATEGY,
                "address": address,
                "message": message,
                "token": token,
                "signature": signature,
                "inviter": referral_code,
            },
        )
        tokens = data.get("tokens") if isinstance(data, dict) else None
        access_token = tokens.get("access_token") if isinstance(tokens, dict) else None
        if not access_token:
            raise ServiceError(200, f"access_token не найден в ответе: {data!r}")
        return access_token

    # ==================== ШАГИ ПОСЛЕ ЛОГИНА ====================

    def set_nickname(self, access_token: str, nickname: str) -> bool:
        try:
            self._request(
                "POST",
                ZORO_SET_NICKNAME_URL,
                access_token=access_token,
                params={"nickname": nickname},
            )
            return True
        except (NetworkError, ServiceError) as e:
            logger.warning(f"Не удалось установить ник {nickname}: {e}")
            return False

    def claim_daily_reward(self, access_token: str) -> Optional[Any]:
        try:
            return self._request("POST", ZORO_DAILY_REWARD_URL, access_token=access_token)
        except (NetworkError, ServiceError) as e:
            logger.warning(f"Ошибка при получении ежедневной награды: {e}")
            return None

    def claim_mission_reward(self, access_token: str, reward_id: str) -> Optional[Any]:
        try:
            return self._request(
                "POST", f"{ZORO_MISSION_REWARD_URL}/{reward_id}", access_token=access_token
            )
        except (NetworkError, ServiceError) as e:
            logger.warning(f"Ошибка при получении награды за миссию {reward_id}: {e}")
            return None

    def download_image(self, url: str) -> bytes:
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise NetworkError(f"GET {url}: {e}") from e
        if not 200 <= response.status_code < 300:
            raise ServiceError(response.status_code, response.text)
        return response.content

    def complete_image_mission(
        self, access_token: str, mission_kind: str, mission_id: str
    ) -> Optional[Any]:
        """
        Скачивает картинку миссии и отправляет её как выполнение (multipart).

        Args:
            access_token: JWT токен
            mission_kind: Тип миссии (hamster, cattle, ...)
            mission_id: UUID миссии

        Returns:
            Ответ сервиса или None при любой ошибке
        """
        try:
            image = self.download_image(IMAGE_URLS[mission_kind])
            return self._request(
                "POST",
                f"{ZORO_MISSION_ACTIVITY_URL}/{mission_id}",
                access_token=access_token,
                files={"image": (f"{mission_kind}.jpg", image, "image/jpeg")},
            )
        except (NetworkError, ServiceError, KeyError) as e:
            logger.warning(f"Ошибка при выполнении миссии {mission_kind}: {e}")
            return None

    def get_account_info(self, access_token: str) -> Optional[dict[str, Any]]:
        """Возвращает {"nickname", "balance", "rank"} или None."""
        try:
            data = self._request("GET", ZORO_SCOREBOARD_ME_URL, access_token=access_token)
            return {
                "nickname": data["user"]["nickname"],
                "balance": data.get("balance"),
                "rank": data.get("rank"),
            }
        except (NetworkError, ServiceError, KeyError, TypeError) as e:
            logger.warning(f"Ошибка при получении данных аккаунта: {e}")
            return None
