import pytest

from callcenter.model.chat import ChatEvent


def make(**data):
    return ChatEvent(name="message", domain_id=1, user_id=2, data=data)


def test_conversation_id():
    assert make(conversation_id="conv-1").conversation_id() == "conv-1"


def test_conversation_id_wrong_type():
    assert make(conversation_id=5).conversation_id() == ""


def test_timestamp_from_float():
    assert make(timestamp=1700000000000.0).timestamp() == 1700000000000


def test_timestamp_from_int():
    assert make(timestamp=1700000000123).timestamp() == 1700000000123


@pytest.mark.parametrize("value", [None, "123", True])
def test_timestamp_invalid(value):
    assert make(timestamp=value).timestamp() == 0


def test_timestamp_missing():
    assert make().timestamp() == 0


def test_cause():
    assert make(cause="timeout").cause() == "timeout"
    assert make().cause() == ""


def test_channel_id_from_member():
    assert make(member={"id": "ch-9"}).channel_id() == "ch-9"


def test_channel_id_member_without_string_id():
    assert make(member={"id": 3}).channel_id() == ""
    assert make(member="ch").channel_id() == ""


def test_message_channel_id_and_invite_id():
    ev = make(channel_id="mc-1", invite_id="inv-1")
    assert ev.message_channel_id() == "mc-1"
    assert ev.invite_id() == "inv-1"
    assert make().invite_id() == ""