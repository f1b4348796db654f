from types import SimpleNamespace

import pytest
from conftest import REF_CODE, FakeClient, make_runner

from zorobot.bot import BLOCKED_TEXT, NOT_AUTHORIZED_TEXT, ZoroBot
from zorobot.runner import JobRequest

ADMIN_ID = 1
USER_ID = 200


class FakeTeleBot:
    def __init__(self):
        self.sent = []
        self.documents = []
        self.pinned = []
        self.answered = []
        self.fail_for = set()

    def register_message_handler(self, callback, **kwargs):
        pass

    def register_callback_query_handler(self, callback, **kwargs):
        pass

    def register_inline_handler(self, callback, **kwargs):
        pass

    def send_message(self, chat_id, text, **kwargs):
        if chat_id in self.fail_for:
            raise RuntimeError("Forbidden: bot was blocked by the user")
        self.sent.append((chat_id, text))
        return SimpleNamespace(message_id=len(self.sent))

    def send_document(self, chat_id, document, caption=None, visible_file_name=None):
        self.documents.append((chat_id, visible_file_name, document.read()))
        return SimpleNamespace(message_id=999)

    def pin_chat_message(self, chat_id, message_id):
        self.pinned.append((chat_id, message_id))

    def answer_callback_query(self, callback_query_id, text=None):
        self.answered.append((callback_query_id, text))

    def texts_for(self, chat_id):
        return [text for cid, text in self.sent if cid == chat_id]


def message(chat_id, text):
    return SimpleNamespace(chat=SimpleNamespace(id=chat_id), text=text)


@pytest.fixture
def telebot_fake():
    return FakeTeleBot()


@pytest.fixture
def zoro(telebot_fake, admin, tmp_path):
    runner = make_runner(admin, FakeClient(), tmp_path)
    return ZoroBot(telebot_fake, ADMIN_ID, admin, runner)


def test_start_registers_user_and_asks_count(zoro, telebot_fake, admin):
    zoro.on_text(message(USER_ID, "/start"))

    texts = telebot_fake.texts_for(USER_ID)
    assert texts[0] == admin.welcome_text
    assert "number of wallets" in texts[1]
    assert admin.get_stats()["totalUsers"] == 1


def test_blocked_user_gets_blocked_reply(zoro, telebot_fake, admin):
    admin.block(USER_ID)

    zoro.on_text(message(USER_ID, "/start"))

    assert telebot_fake.texts_for(USER_ID) == [BLOCKED_TEXT]


def test_dialog_starts_background_batch(zoro, telebot_fake, monkeypatch):
    started = []
    monkeypatch.setattr(zoro, "start_batch", lambda request: started.append(request) or True)

    zoro.on_text(message(USER_ID, "/start"))
    zoro.on_text(message(USER_ID, "2"))
    zoro.on_text(message(USER_ID, REF_CODE))

    assert started == [JobRequest(USER_ID, 2, REF_CODE)]
    assert "Please wait" in telebot_fake.texts_for(USER_ID)[-1]


def test_batch_delivers_and_pins_ledger(zoro, telebot_fake):
    zoro._active.add(USER_ID)

    zoro._run_batch(JobRequest(USER_ID, 2, REF_CODE))

    texts = telebot_fake.texts_for(USER_ID)
    assert "Wallet 2 of 2 created" in texts
    assert "Successfully created and processed 2 wallet(s)." in texts
    assert telebot_fake.documents[0][1] == f"wallet_{USER_ID}.json"
    assert telebot_fake.pinned == [(USER_ID, 999)]
    assert not zoro.is_busy(USER_ID)


def test_second_batch_for_same_user_is_refused(zoro):
    zoro._active.add(USER_ID)

    assert not zoro.start_batch(JobRequest(USER_ID, 1, REF_CODE))


def test_admin_menu_and_block_flow(zoro, telebot_fake, admin):
    zoro.on_text(message(ADMIN_ID, "/admin"))
    zoro.on_callback(SimpleNamespace(id="q1", data="block_user", from_user=SimpleNamespace(id=ADMIN_ID)))
    zoro.on_text(message(ADMIN_ID, str(USER_ID)))

    assert admin.is_blocked(USER_ID)
    assert telebot_fake.texts_for(ADMIN_ID)[0] == "Admin Menu:"
    assert telebot_fake.texts_for(ADMIN_ID)[-1] == f"User {USER_ID} has been blocked 🚫."
    assert telebot_fake.answered == [("q1", None)]


def test_non_admin_button_press_is_rejected(zoro, telebot_fake, admin):
    zoro.on_callback(SimpleNamespace(id="q2", data="block_user", from_user=SimpleNamespace(id=USER_ID)))

    assert telebot_fake.answered == [("q2", NOT_AUTHORIZED_TEXT)]
    assert not zoro.admin_dialog.awaiting_input


def test_broadcast_skips_unreachable_users(zoro, telebot_fake, admin):
    for chat_id in (300, 301):
        admin.register_user(chat_id)
    telebot_fake.fail_for.add(300)

    zoro.on_callback(SimpleNamespace(id="q3", data="broadcast", from_user=SimpleNamespace(id=ADMIN_ID)))
    zoro.on_text(message(ADMIN_ID, "New missions are live"))

    assert telebot_fake.texts_for(301)[-1] == "New missions are live"
    assert "1 delivered, 1 failed" in telebot_fake.texts_for(ADMIN_ID)[-1]
