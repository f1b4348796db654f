#!/usr/bin/env python3
from __future__ import annotations

import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from loguru import logger

from zorobot.client import AirdropClient, NetworkError, ServiceError
from zorobot.config import DEFAULT_PACING, IMAGE_MISSIONS, MISSION_REWARD_IDS, Pacing
from zorobot.wallet import Wallet

ReportFunc = Callable[[str], None]
CancelQuery = Callable[[], bool]

USERNAME_ADJECTIVES = ("Cool", "Happy", "Smart", "Fast", "Lucky")
USERNAME_NOUNS = ("Cat", "Dog", "Bird", "Fish", "Tiger")


def generate_username() -> str:
    """Случайный ник вида HappyTiger417."""
    return f"{random.choice(USERNAME_ADJECTIVES)}{random.choice(USERNAME_NOUNS)}{random.randint(0, 999)}"


@dataclass(frozen=True)
class WalletRecord:
    address: str
    private_key: str
    username: str
    access_token: str
    challenge_message: str
    signature: str

    def to_dict(self) -> dict[str, str]:
        # Формат wallet_<id>.json
        return {
            "address": self.address,
            "privateKey": self.private_key,
            "username": self.username,
            "accessToken": self.access_token,
            "message": self.challenge_message,
            "signature": self.signature,
        }


class OutcomeKind(Enum):
    SUCCESS = "success"
    CONFLICT = "conflict"
    CANCELLED = "cancelled"
    FAILURE = "failure"


@dataclass(frozen=True)
class WalletOutcome:
    kind: OutcomeKind
    record: Optional[WalletRecord] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, record: WalletRecord) -> "WalletOutcome":
        return cls(OutcomeKind.SUCCESS, record=record)

    @classmethod
    def conflict(cls) -> "WalletOutcome":
        return cls(OutcomeKind.CONFLICT, error="referral conflict (409)")

    @classmethod
    def cancelled(cls) -> "WalletOutcome":
        return cls(OutcomeKind.CANCELLED)

    @classmethod
    def failure(cls, error: str) -> "WalletOutcome":
        return cls(OutcomeKind.FAILURE, error=error)

    @property
    def is_conflict(self) -> bool:
        return self.kind is OutcomeKind.CONFLICT


class JobState(Enum):
    CREATED = "created"
    LOGGING_IN = "logging_in"
    CONFLICT_RETRY = "conflict_retry"
    CLAIMING_DAILY = "claiming_daily"
    RUNNING_MISSIONS = "running_missions"
    CLAIMING_REWARDS = "claiming_rewards"
    REPORTING = "reporting"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"


class WalletJob:
    """
    Проводит один новый кошелёк через все шаги:
    логин -> ежедневная награда -> миссии с картинками -> награды за миссии -> данные аккаунта.

    Отличает только 409 на логине (неверный реферальный код, повторяет вызывающий код)
    от остальных ошибок логина. Шаги после логина не прерывают работу при ошибке.
    """

    def __init__(
        self,
        client: AirdropClient,
        pacing: Pacing = DEFAULT_PACING,
        sleep: Callable[[float], None] = time.sleep,
        wallet_factory: Callable[[], Wallet] = Wallet.create,
        username_factory: Callable[[], str] = generate_username,
    ):
        self.client = client
        self.pacing = pacing
        self.sleep = sleep
        self.wallet_factory = wallet_factory
        self.username_factory = username_factory
        self.state = JobState.CREATED

    def _pause(self) -> None:
        if self.pacing.step_delay_sec > 0:
            self.sleep(self.pacing.step_delay_sec)

    def _login(self, referral_code: str, report: ReportFunc) -> tuple[Wallet, dict[str, str], str, str]:
        wallet = self.wallet_factory()
        report(f"Requesting login for address: {wallet.address}")
        challenge = self.client.login_request(wallet.address)

        signature = wallet.sign_message(challenge["message"])
        report(f"Signing message for wallet {wallet.address}")
        access_token = self.client.login(
            wallet.address,
            challenge["message"],
            challenge["token"],
            signature,
            referral_code,
        )
        return wallet, challenge, signature, access_token

    def run(self, referral_code: str, report: ReportFunc, is_cancelled: CancelQuery) -> WalletOutcome:
        """
        Создаёт и прокачивает один кошелёк.

        Args:
            referral_code: Реферальный код для логина
            report: Куда писать сообщения о прогрессе для пользователя
            is_cancelled: Проверка флага отмены (вызывается до первого запроса)

        Returns:
            WalletOutcome: success / conflict / cancelled / failure
        """
        if is_cancelled():
            self.state = JobState.CANCELLED
            return WalletOutcome.cancelled()

        self.state = JobState.LOGGING_IN
        try:
            wallet, challenge, signature, access_token = self._login(referral_code, report)
        except ServiceError as e:
            if e.is_referral_conflict:
                self.state = JobState.CONFLICT_RETRY
                logger.warning(f"Логин отклонён (409), реферальный код {referral_code}")
                report("Error creating wallet: Request failed with status code 409")
                return WalletOutcome.conflict()
            self.state = JobState.FAILED
            logger.error(f"Ошибка при создании кошелька: {e}")
            report(f"Error creating wallet: Request failed with status code {e.status}")
            if e.body:
                report(f"Response data: {e.body[:500]}")
            return WalletOutcome.failure(str(e))
        except NetworkError as e:
            self.state = JobState.FAILED
            logger.error(f"Сетевая ошибка при создании кошелька: {e}")
            report(f"Error creating wallet: {e}")
            return WalletOutcome.failure(str(e))

        username = self.username_factory()
        self.client.set_nickname(access_token, username)
        report(f"Wallet created - Address: {wallet.address}, Username: {username}")
        logger.info(f"Кошелёк {wallet.address} залогинен, ник {username}")

        self.state = JobState.CLAIMING_DAILY
        report("Claiming daily reward...")
        if self.client.claim_daily_reward(access_token) is None:
            report("Error claiming daily reward")
        else:
            report("Daily reward claimed successfully")
        self._pause()

        self.state = JobState.RUNNING_MISSIONS
        for mission_kind, mission_id in IMAGE_MISSIONS.items():
            report(f"Completing mission {mission_kind}...")
            if self.client.complete_image_mission(access_token, mission_kind, mission_id) is None:
                report(f"Error completing {mission_kind} mission")
            else:
                report(f"Mission {mission_kind} completed successfully")
            self._pause()

        self.state = JobState.CLAIMING_REWARDS
        for reward_id in MISSION_REWARD_IDS:
            report(f"Claiming mission reward {reward_id}...")
            if self.client.claim_mission_reward(access_token, reward_id) is None:
                report(f"Error claiming mission reward {reward_id}")
            else:
                report(f"Mission reward {reward_id} claimed successfully")
            self._pause()

        self.state = JobState.REPORTING
        report("Fetching account info...")
        info: Optional[dict[str, Any]] = self.client.get_account_info(access_token)
        if info is None:
            report("Error fetching account info")
        else:
            report(
                "Account Info:\n"
                f"Nickname: {info['nickname']}\n"
                f"Balance: {info['balance']}\n"
                f"Rank: {info['rank']}"
            )

        self.state = JobState.DONE
        logger.success(f"Кошелёк {wallet.address} обработан")
        return WalletOutcome.success(
            WalletRecord(
                address=wallet.address,
                private_key=wallet.private_key,
                username=username,
                access_token=access_token,
                challenge_message=challenge["message"],
                signature=signature,
            )
        )
