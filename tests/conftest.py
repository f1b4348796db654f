from __future__ import annotations

from pathlib import Path

import pytest

from zorobot.admin import AdminControl
from zorobot.client import ServiceError
from zorobot.config import Pacing
from zorobot.job import WalletJob
from zorobot.runner import BatchReport, BatchRunner

NO_DELAY = Pacing(step_delay_sec=0, wallet_delay_sec=0, http_timeout_sec=5, max_conflicts=3)
REF_CODE = "ABCDEFGHIJKLMNO"


class FakeClient:
    """
    AirdropClient без сети.

    login_results: очередь исходов логина: "ok", HTTP статус (int) или исключение.
    Когда очередь пуста, используется default.
    """

    def __init__(self, login_results=None, default="ok", tolerant_fail=False):
        self.login_results = list(login_results or [])
        self.default = default
        self.tolerant_fail = tolerant_fail
        self.calls: list[tuple] = []

    @property
    def login_calls(self) -> int:
        return sum(1 for c in self.calls if c[0] == "login")

    def login_request(self, address):
        self.calls.append(("login_request", address))
        return {"token": "challenge-token", "message": f"Sign in to Zoro with {address}"}

    def login(self, address, message, token, signature, referral_code):
        self.calls.append(("login", referral_code))
        result = self.login_results.pop(0) if self.login_results else self.default
        if result == "ok":
            return f"access-{address}"
        if isinstance(result, Exception):
            raise result
        raise ServiceError(result, "error body")

    def set_nickname(self, access_token, nickname):
        self.calls.append(("set_nickname", nickname))
        return not self.tolerant_fail

    def claim_daily_reward(self, access_token):
        self.calls.append(("daily",))
        return None if self.tolerant_fail else {"claimed": True}

    def complete_image_mission(self, access_token, mission_kind, mission_id):
        self.calls.append(("mission", mission_kind))
        return None if self.tolerant_fail else {}

    def claim_mission_reward(self, access_token, reward_id):
        self.calls.append(("reward", reward_id))
        return None if self.tolerant_fail else {"claimed": True}

    def get_account_info(self, access_token):
        self.calls.append(("account_info",))
        if self.tolerant_fail:
            return None
        return {"nickname": "HappyTiger1", "balance": 150, "rank": 42}


class RecordingReport:
    def __init__(self):
        self.texts: list[str] = []
        self.created: list[tuple[int, int]] = []
        self.delivered: list[Path] = []

    def as_batch_report(self) -> BatchReport:
        return BatchReport(
            text=self.texts.append,
            wallet_created=lambda i, n: self.created.append((i, n)),
            deliver_ledger=self.delivered.append,
        )

    @property
    def joined(self) -> str:
        return "\n".join(self.texts)


@pytest.fixture
def admin(tmp_path) -> AdminControl:
    return AdminControl(tmp_path)


@pytest.fixture
def report() -> RecordingReport:
    return RecordingReport()


def make_runner(admin: AdminControl, client: FakeClient, data_dir: Path, pacing: Pacing = NO_DELAY, sleep=None):
    kwargs = {"sleep": sleep} if sleep is not None else {}
    return BatchRunner(
        admin,
        job_factory=lambda: WalletJob(client, pacing, **kwargs),
        pacing=pacing,
        data_dir=data_dir,
        **kwargs,
    )
