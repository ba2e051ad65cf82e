import json
import queue

import pytest

from callcenter.model.agent import Event
from callcenter.model.call import CallActionData
from callcenter.model.notification import Notification
from callcenter.model.utils import AppError
from callcenter.mq.base import LayeredMQ
from callcenter.mq.rabbit import (
    AMQP,
    CALL_CENTER_EXCHANGE,
    CALL_EXCHANGE,
    CHAT_EXCHANGE,
    ENGINE_EXCHANGE,
    EXIT_DECLARE_EXCHANGE,
    ExchangeDeclareError,
    QueueEventMQ,
)


class FakeChannel:
    def __init__(self, fail_publish=False, fail_exchange=False):
        self.calls = []
        self.published = []
        self.callback = None
        self.closed = 0
        self.fail_publish = fail_publish
        self.fail_exchange = fail_exchange

    def exchange_declare(self, exchange, exchange_type, durable, auto_delete, internal):
        if self.fail_exchange:
            raise RuntimeError("declare failed")
        self.calls.append(("exchange_declare", exchange, exchange_type, durable))

    def queue_declare(self, name, durable, auto_delete, exclusive):
        self.calls.append(("queue_declare", name, exclusive))
        return name

    def consume(self, queue_name, consumer_tag, callback):
        self.calls.append(("consume", queue_name, len(consumer_tag)))
        self.callback = callback

    def queue_bind(self, queue_name, routing_key, exchange):
        self.calls.append(("queue_bind", queue_name, routing_key, exchange))

    def publish(self, exchange, routing_key, body, content_type):
        if self.fail_publish:
            raise ConnectionError("channel closed")
        self.published.append((exchange, routing_key, body, content_type))

    def close(self):
        self.closed += 1


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def mq(channel):
    return AMQP(channel, "node1")


def _call_body(event="ringing", **extra):
    data = {"id": "c1", "app_id": "a", "domain_id": "1", "timestamp": "100", "event": event}
    data.update(extra)
    return json.dumps(data).encode()


def test_setup_declares_and_binds(mq, channel):
    mq.setup()
    assert channel.calls[0] == ("exchange_declare", CALL_CENTER_EXCHANGE, "topic", True)
    assert ("queue_declare", "callcenter.node1", True) in channel.calls
    assert ("consume", "callcenter.node1", 26) in channel.calls
    assert ("queue_bind", "callcenter.node1", "#", CHAT_EXCHANGE) in channel.calls
    assert ("queue_bind", "callcenter.node1", "events.*.node1.*.*", CALL_EXCHANGE) in channel.calls
    channel.callback(CALL_EXCHANGE, "events.ringing.node1.x.y", _call_body())
    delivered = mq.consume_call_event().get_nowait()
    assert delivered.id == "c1"
    assert delivered.event == "ringing"


def test_setup_exchange_failure():
    mq = AMQP(FakeChannel(fail_exchange=True), "n")
    with pytest.raises(ExchangeDeclareError) as info:
        mq.setup()
    assert info.value.exit_code == EXIT_DECLARE_EXCHANGE


def test_consumer_callback_delivers_call_event(mq, channel):
    mq.setup()
    channel.callback(CALL_EXCHANGE, "events.ringing.node1.x.y", _call_body())
    event = mq.consume_call_event().get_nowait()
    assert isinstance(event, CallActionData)
    assert event.id == "c1"
    assert event.domain_id == 1
    assert event.timestamp == 100


def test_call_event_with_data_parses(mq):
    mq.read_message(CALL_EXCHANGE, "k", _call_body(event="bridge", data='{"bridged_id":"b2"}'))
    event = mq.consume_call_event().get_nowait()
    assert event.get_event().bridged_id == "b2"


def test_heartbeat_is_dropped(mq):
    mq.read_message(CALL_EXCHANGE, "k", _call_body(event="heartbeat"))
    assert mq.consume_call_event().empty()


@pytest.mark.parametrize("body", [b"not json", b"[1,2]", b'{"domain_id": 5}'])
def test_bad_call_body_is_dropped(mq, body):
    mq.read_message(CALL_EXCHANGE, "k", body)
    assert mq.consume_call_event().empty()


def test_chat_event(mq):
    body = json.dumps({"conversation_id": "conv", "timestamp": 12}).encode()
    mq.read_message(CHAT_EXCHANGE, "chat.message.5.7", body)
    event = mq.consume_chat_event().get_nowait()
    assert (event.name, event.domain_id, event.user_id) == ("message", 5, 7)
    assert event.conversation_id() == "conv"
    assert event.timestamp() == 12


@pytest.mark.parametrize(
    "routing_key,body",
    [
        ("chat.message.5", b"{}"),
        ("chat.message.x.7", b"{}"),
        ("chat.message.5.y", b"{}"),
        ("chat.message.5.7", b"oops"),
        ("chat.message.5.7", b"[1]"),
    ],
)
def test_bad_chat_event_dropped(mq, routing_key, body):
    mq.read_chat_event(body, routing_key)
    with pytest.raises(queue.Empty):
        mq.consume_chat_event().get_nowait()


def test_unknown_exchange_ignored(mq):
    mq.read_message("other", "k", _call_body())
    assert mq.consume_call_event().empty()
    assert mq.consume_chat_event().empty()


def test_send_json_publishes(mq, channel):
    payload = Event(name="agent_status", user_id=1).to_json().encode()
    mq.send_json("some.key", payload)
    assert channel.published == [(CALL_CENTER_EXCHANGE, "some.key", payload, "text/json")]
    assert json.loads(channel.published[0][2])["event"] == "agent_status"


def test_send_json_failure():
    mq = AMQP(FakeChannel(fail_publish=True), "n")
    with pytest.raises(AppError) as info:
        mq.send_json("k", b"{}")
    assert info.value.id == "mq.send_json.app_error"
    assert info.value.status_code == 500
    assert "channel closed" in info.value.detailed_error


def test_agent_change_status(mq, channel):
    e = Event(name="agent_status", user_id=2, data={"x": 1})
    mq.agent_change_status(1, 2, e)
    exchange, key, body, _ = channel.published[0]
    assert (exchange, key) == (CALL_CENTER_EXCHANGE, "events.status.1.2")
    assert body == e.to_json().encode()


def test_agent_channel_event_and_list_members(mq, channel):
    e = Event(name="n", user_id=2)
    mq.agent_channel_event("call", 1, 3, 2, e)
    mq.queue_update_list_members("chat", 1, 3, 2, e)
    keys = [p[1] for p in channel.published]
    assert keys == ["events.channel.call.1.3.2", "events.channel.chat.1.3.2"]
    bodies = [p[2] for p in channel.published]
    assert bodies == [e.to_json().encode(), e.to_json().encode()]
    assert json.loads(bodies[0])["event"] == "n"


def test_send_notification(mq, channel):
    n = Notification(id=9, domain_id=4, action="hide_member", for_users=[1])
    mq.send_notification(4, n)
    assert channel.published == [(ENGINE_EXCHANGE, "notification.4", n.to_json(), "text/json")]


def test_send_notification_failure():
    mq = AMQP(FakeChannel(fail_publish=True), "n")
    with pytest.raises(AppError) as info:
        mq.send_notification(1, Notification())
    assert info.value.id == "amqp.notification.publish.app_error"


def test_queue_event(mq):
    qe = mq.queue_event()
    assert isinstance(qe, QueueEventMQ)
    assert qe.amqp is mq


def test_close_once_and_context_manager(channel):
    with AMQP(channel, "n") as mq:
        assert mq.closed is False
    mq.close()
    assert channel.closed == 1


def test_layered_forwarding(mq, channel):
    layered = LayeredMQ(mq)
    layered.send_json("k", b"{}")
    assert channel.published[0][1] == "k"
    assert layered.consume_call_event() is mq.consume_call_event()