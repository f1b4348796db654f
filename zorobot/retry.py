#!/usr/bin/env python3
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

from loguru import logger

T = TypeVar("T")


@dataclass(frozen=True)
class RetryResult(Generic[T]):
    """
    Итог ограниченного повтора.

    value: последний полученный результат
    attempts: сколько раз была вызвана операция
    exhausted: True, если все попытки вернули повторяемый результат
    """

    value: T
    attempts: int
    exhausted: bool


def retry(
    operation: Callable[[], T],
    max_attempts: int,
    is_retryable: Callable[[T], bool],
    delay_sec: float = 0.0,
    sleep: Callable[[float], None] = time.sleep,
    reason: str = "",
) -> RetryResult[T]:
    """
    Вызывает operation, пока она возвращает повторяемый результат, но не больше max_attempts раз.

    Пауза delay_sec выдерживается после каждой повторяемой попытки,
    кроме последней: после неё повторов уже не будет.

    Args:
        operation: Операция без аргументов
        max_attempts: Максимум попыток (>= 1)
        is_retryable: Предикат "результат нужно повторить"
        delay_sec: Пауза после повторяемой попытки
        sleep: Функция ожидания (подменяется в тестах)
        reason: Подпись для лога

    Returns:
        RetryResult с последним результатом
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts должен быть >= 1, получено {max_attempts}")

    value: Optional[T] = None
    for attempt in range(1, max_attempts + 1):
        value = operation()
        if not is_retryable(value):
            return RetryResult(value=value, attempts=attempt, exhausted=False)

        logger.warning(f"[RETRY] {reason or 'операция'}: попытка {attempt}/{max_attempts}")
        if delay_sec > 0 and attempt < max_attempts:
            sleep(delay_sec)

    return RetryResult(value=value, attempts=max_attempts, exhausted=True)
