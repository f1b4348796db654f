import json

import pytest
import requests

from zorobot.client import AirdropClient, NetworkError, ServiceError
from zorobot.config import IMAGE_URLS, ZORO_LOGIN_URL, ZORO_MISSION_ACTIVITY_URL


class FakeResponse:
    def __init__(self, status_code=200, data=None, content=None):
        self.status_code = status_code
        if content is None:
            content = json.dumps(data).encode() if data is not None else b""
        self.content = content
        self.text = content.decode(errors="ignore")

    def json(self):
        return json.loads(self.content)


class FakeSession:
    def __init__(self, responses=None, image=b"\xff\xd8jpeg"):
        self.responses = list(responses or [])
        self.image = image
        self.requests = []
        self.downloads = []

    def request(self, method, url, headers=None, timeout=None, **kwargs):
        self.requests.append({"method": method, "url": url, "headers": headers, "timeout": timeout, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url, timeout=None):
        self.downloads.append(url)
        return FakeResponse(200, content=self.image)


def make_client(*responses, **kwargs):
    session = FakeSession(responses, **kwargs)
    return AirdropClient(timeout=7, session=session), session


def test_login_request_returns_token_and_message():
    client, session = make_client(FakeResponse(200, {"token": "t", "message": "sign me"}))

    assert client.login_request("0xabc") == {"token": "t", "message": "sign me"}
    sent = session.requests[0]
    assert sent["params"] == {"strategy": "ETHEREUM_SIGNATURE", "address": "0xabc"}
    assert sent["timeout"] == 7
    assert "authorization" not in sent["headers"]


@pytest.mark.parametrize(
    "data",
    [{"token": "t", "message": None}, {"token": 5, "message": "sign me"}, {"token": "t"}, ["t", "m"]],
)
def test_login_request_rejects_malformed_challenge(data):
    client, _ = make_client(FakeResponse(200, data))

    with pytest.raises(ServiceError) as exc_info:
        client.login_request("0xabc")

    assert not exc_info.value.is_referral_conflict


def test_login_sends_inviter_and_returns_access_token():
    client, session = make_client(FakeResponse(200, {"tokens": {"access_token": "jwt"}}))

    token = client.login("0xabc", "msg", "t", "0xsig", "REFCODE12345678")

    assert token == "jwt"
    sent = session.requests[0]
    assert sent["url"] == ZORO_LOGIN_URL
    assert sent["params"]["inviter"] == "REFCODE12345678"
    assert sent["params"]["signature"] == "0xsig"


def test_login_409_is_referral_conflict():
    client, _ = make_client(FakeResponse(409, {"message": "Conflict"}))

    with pytest.raises(ServiceError) as exc_info:
        client.login("0xabc", "msg", "t", "0xsig", "REFCODE12345678")

    assert exc_info.value.status == 409
    assert exc_info.value.is_referral_conflict
    assert "Conflict" in exc_info.value.body


def test_login_other_status_is_not_conflict():
    client, _ = make_client(FakeResponse(500, {"message": "boom"}))

    with pytest.raises(ServiceError) as exc_info:
        client.login("0xabc", "msg", "t", "0xsig", "REFCODE12345678")

    assert not exc_info.value.is_referral_conflict


def test_transport_failure_becomes_network_error():
    client, _ = make_client(requests.ConnectionError("refused"))

    with pytest.raises(NetworkError):
        client.login_request("0xabc")


def test_tolerant_steps_return_none_on_error():
    client, _ = make_client(
        FakeResponse(500, {"error": "x"}),
        requests.Timeout("slow"),
        FakeResponse(401, {"error": "y"}),
    )

    assert client.claim_daily_reward("jwt") is None
    assert client.claim_mission_reward("jwt", "reward-1") is None
    assert client.get_account_info("jwt") is None


def test_set_nickname_failure_is_tolerated():
    client, session = make_client(FakeResponse(400, {"error": "taken"}))

    assert client.set_nickname("jwt", "CoolCat1") is False
    assert session.requests[0]["params"] == {"nickname": "CoolCat1"}


def test_authorized_calls_send_bearer_token():
    client, session = make_client(FakeResponse(201))

    assert client.claim_daily_reward("jwt") == {}
    assert session.requests[0]["headers"]["authorization"] == "Bearer jwt"


def test_image_mission_uploads_downloaded_image():
    client, session = make_client(FakeResponse(201, {"ok": True}), image=b"image-bytes")

    result = client.complete_image_mission("jwt", "kiwi", "mission-uuid")

    assert result == {"ok": True}
    assert session.downloads == [IMAGE_URLS["kiwi"]]
    sent = session.requests[0]
    assert sent["method"] == "POST"
    assert sent["url"] == f"{ZORO_MISSION_ACTIVITY_URL}/mission-uuid"
    assert sent["files"]["image"] == ("kiwi.jpg", b"image-bytes", "image/jpeg")


def test_account_info_is_flattened():
    client, _ = make_client(
        FakeResponse(200, {"user": {"nickname": "LuckyFish7"}, "balance": 300, "rank": 12})
    )

    assert client.get_account_info("jwt") == {"nickname": "LuckyFish7", "balance": 300, "rank": 12}
