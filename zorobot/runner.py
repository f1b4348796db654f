#!/usr/bin/env python3
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from loguru import logger

from zorobot.admin import AdminControl
from zorobot.config import DATA_DIR, DEFAULT_PACING, REFERRAL_CODE_LENGTH, Pacing
from zorobot.job import OutcomeKind, WalletJob, WalletOutcome, WalletRecord
from zorobot.retry import retry
from zorobot.storage import append_to_ledger, ledger_path

CANCELLED_TEXT = "Your request has been cancelled by the admin."
WRONG_REFERRAL_TEXT = "Your referral code is wrong"


@dataclass(frozen=True)
class JobRequest:
    requester_id: int
    wallet_count: int
    referral_code: str

    @classmethod
    def create(
        cls, requester_id: int, wallet_count: int, referral_code: str, max_per_day: int
    ) -> "JobRequest":
        """
        Проверяет ввод пользователя и создаёт заявку.

        Raises:
            ValueError: Количество вне 1..max_per_day или код не той длины
        """
        if wallet_count <= 0 or wallet_count > max_per_day:
            raise ValueError(f"Количество кошельков должно быть от 1 до {max_per_day}")
        referral_code = referral_code.strip()
        if len(referral_code) != REFERRAL_CODE_LENGTH:
            raise ValueError(f"Реферальный код должен быть ровно {REFERRAL_CODE_LENGTH} символов")
        return cls(requester_id, wallet_count, referral_code)


@dataclass(frozen=True)
class BatchOutcome:
    success_count: int
    cancelled: bool = False
    ref_code_rejected: bool = False
    quota_exceeded: bool = False


@dataclass
class BatchReport:
    """Куда BatchRunner отправляет сообщения для пользователя."""

    text: Callable[[str], None]
    wallet_created: Callable[[int, int], None]
    deliver_ledger: Callable[[Path], None]


class BatchRunner:
    """
    Создаёт N кошельков для одного пользователя подряд.

    - дневной лимит проверяется один раз до старта, без частичного выполнения
    - 409 не сдвигает номер кошелька, после max_conflicts ответов 409 работа останавливается
    - каждый созданный кошелёк сразу дописывается в wallet_<id>.json
    - флаг отмены проверяется перед каждой попыткой
    """

    def __init__(
        self,
        admin: AdminControl,
        job_factory: Callable[[], WalletJob],
        pacing: Pacing = DEFAULT_PACING,
        data_dir: Path = DATA_DIR,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.admin = admin
        self.job_factory = job_factory
        self.pacing = pacing
        self.data_dir = Path(data_dir)
        self.sleep = sleep
        self._ledger_locks: dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _ledger_lock(self, requester_id: int) -> threading.Lock:
        with self._locks_guard:
            return self._ledger_locks.setdefault(requester_id, threading.Lock())

    def _pause(self) -> None:
        if self.pacing.wallet_delay_sec > 0:
            self.sleep(self.pacing.wallet_delay_sec)

    def _persist(self, requester_id: int, record: WalletRecord, report: BatchReport) -> None:
        """
        Дописывает кошелёк в wallet_<id>.json.

        Ошибка записи не останавливает задачу: данные кошелька уходят в лог
        и пользователю, чтобы ключ не потерялся.
        """
        path = ledger_path(requester_id, self.data_dir)

        def on_corrupt(backup: Path) -> None:
            report.text(f"Error reading existing {path.name}. Previous file saved as {backup.name}.")

        try:
            with self._ledger_lock(requester_id):
                append_to_ledger(path, record.to_dict(), on_corrupt)
        except OSError as e:
            logger.error(f"[{requester_id}] Не удалось сохранить кошелёк в {path}: {e}. Данные: {record.to_dict()}")
            report.text(
                f"Error saving wallet to {path.name}: {e}\n"
                f"Address: {record.address}\n"
                f"Private key: {record.private_key}"
            )

    def run_batch(self, request: JobRequest, report: BatchReport) -> BatchOutcome:
        """
        Выполняет заявку пользователя.

        Args:
            request: Проверенная заявка
            report: Каналы для сообщений пользователю

        Returns:
            BatchOutcome с количеством созданных кошельков и причиной остановки
        """
        rid = request.requester_id
        count = request.wallet_count

        # Флаг отмены относится только к задаче, которая выполняется сейчас
        self.admin.clear_cancel(rid)

        used_today = self.admin.usage_today(rid)
        max_per_day = self.admin.max_per_day
        if used_today + count > max_per_day:
            logger.info(f"[{rid}] Лимит: {used_today} + {count} > {max_per_day}, задача не запущена")
            report.text(
                f"Daily wallet creation limit reached. You have already created {used_today} "
                f"wallet(s) today. Maximum is {max_per_day} per day."
            )
            return BatchOutcome(success_count=0, quota_exceeded=True)

        self.admin.increment_wallet_requests(count)
        logger.info(f"[{rid}] Старт: {count} кошельков, реф. код {request.referral_code}")

        successes: list[WalletRecord] = []
        conflicts = 0
        cancelled = False
        rejected = False
        index = 0

        def attempt() -> WalletOutcome:
            job = self.job_factory()
            return job.run(request.referral_code, report.text, lambda: self.admin.is_cancelled(rid))

        try:
            while index < count:
                if self.admin.is_cancelled(rid):
                    cancelled = True
                    break

                result = retry(
                    attempt,
                    max_attempts=self.pacing.max_conflicts - conflicts,
                    is_retryable=lambda o: o.is_conflict,
                    delay_sec=self.pacing.wallet_delay_sec,
                    sleep=self.sleep,
                    reason=f"[{rid}] кошелёк {index + 1}/{count}, ответ 409",
                )
                outcome = result.value

                if result.exhausted:
                    rejected = True
                    break
                conflicts += result.attempts - 1

                if outcome.kind is OutcomeKind.CANCELLED:
                    cancelled = True
                    break

                if outcome.kind is OutcomeKind.SUCCESS and outcome.record is not None:
                    successes.append(outcome.record)
                    self._persist(rid, outcome.record, report)
                    conflicts = 0
                    report.wallet_created(index + 1, count)
                else:
                    logger.warning(f"[{rid}] Кошелёк {index + 1}/{count} пропущен: {outcome.error}")

                # Попытка списывается из лимита, даже если кошелёк не создан
                self.admin.charge_usage(rid)
                index += 1
                self._pause()
        finally:
            self.admin.clear_cancel(rid)

        if cancelled:
            logger.info(f"[{rid}] Задача отменена администратором")
            report.text(CANCELLED_TEXT)
        if rejected:
            logger.warning(f"[{rid}] Реферальный код {request.referral_code} отклонён")
            report.text(WRONG_REFERRAL_TEXT)

        logger.info(f"[{rid}] Готово: создано {len(successes)} из {count}")
        report.text(f"Successfully created and processed {len(successes)} wallet(s).")

        path = ledger_path(rid, self.data_dir)
        if path.exists():
            report.deliver_ledger(path)

        return BatchOutcome(
            success_count=len(successes),
            cancelled=cancelled,
            ref_code_rejected=rejected,
        )
