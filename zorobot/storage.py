#!/usr/bin/env python3
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Optional

from loguru import logger

from zorobot.config import DATA_DIR


def load_json(path: Path, default: Any) -> Any:
    """
    Читает JSON файл.

    Args:
        path: Путь к файлу
        default: Значение, если файла нет или он повреждён

    Returns:
        Содержимое файла или default
    """
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.error(f"Ошибка при чтении {path}: {e}")
        return default


def _write_atomic(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    tmp_path.write_text(text, encoding="utf-8")
    tmp_path.replace(path)


def save_json(path: Path, data: Any) -> None:
    _write_atomic(path, json.dumps(data, indent=2, ensure_ascii=False))


def load_text(path: Path, default: str) -> str:
    if not path.exists():
        return default
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        logger.error(f"Ошибка при чтении {path}: {e}")
        return default


def save_text(path: Path, text: str) -> None:
    _write_atomic(path, text)


# ==================== ФАЙЛЫ КОШЕЛЬКОВ ====================


def ledger_path(requester_id: int, data_dir: Path = DATA_DIR) -> Path:
    return data_dir / f"wallet_{requester_id}.json"


def read_ledger(path: Path, on_corrupt: Optional[Callable[[Path], None]] = None) -> list[dict[str, Any]]:
    """
    Читает список кошельков пользователя.

    Повреждённый файл не перезаписывается: он переименовывается в *.corrupt,
    чтобы старые ключи не потерялись. on_corrupt получает путь к этой копии.
    """
    if not path.exists():
        return []
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        problem = None if isinstance(data, list) else "содержит не список"
    except (OSError, ValueError) as e:
        problem = f"повреждён ({e})"
    if problem is None:
        return data

    backup = path.with_name(path.name + ".corrupt")
    logger.error(f"Файл {path} {problem}, копия сохранена в {backup}")
    path.replace(backup)
    if on_corrupt is not None:
        on_corrupt(backup)
    return []


def append_to_ledger(
    path: Path,
    record: dict[str, Any],
    on_corrupt: Optional[Callable[[Path], None]] = None,
) -> int:
    """
    Дописывает кошелёк в файл пользователя: читает весь файл, добавляет запись, пишет обратно.

    Args:
        path: Путь к wallet_<id>.json
        record: Данные кошелька
        on_corrupt: Вызывается, если старый файл пришлось отложить в *.corrupt

    Returns:
        Количество записей в файле после добавления
    """
    wallets = read_ledger(path, on_corrupt)
    wallets.append(record)
    save_json(path, wallets)
    logger.debug(f"Кошелёк {record.get('address')} сохранён в {path} (всего: {len(wallets)})")
    return len(wallets)
