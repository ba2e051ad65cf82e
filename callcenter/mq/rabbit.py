"""A RabbitMQ message queue that publishes call center events and reads call and chat events."""

from __future__ import annotations

import json
import logging
import queue
import re
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, Callable, Optional, Protocol

from callcenter.model.call import CallActionData
from callcenter.model.chat import ChatEvent
from callcenter.model.utils import AppError, new_id
from callcenter.mq.base import MessageQueue

logger = logging.getLogger(__name__)

ENGINE_EXCHANGE = "engine"
CALL_CENTER_EXCHANGE = "callcenter"
CALL_EXCHANGE = "call"
CHAT_EXCHANGE = "chat"
CALL_ROUTING_TEMPLATE = "events.*.{}.*.*"

MAX_ATTEMPTS_CONNECT = 100
RECONNECT_SEC = 5
EXIT_DECLARE_EXCHANGE = 110

CONTENT_TYPE = "text/json"
CALL_EVENT_BUFFER = 100

_DECIMAL = re.compile(r"[+-]?[0-9]+")

MessageHandler = Callable[[str, str, bytes], None]


class AMQPChannel(Protocol):
    """The operations needed from an open AMQP channel."""

    def exchange_declare(self, exchange: str, exchange_type: str, durable: bool,
                         auto_delete: bool, internal: bool) -> None: ...

    def queue_declare(self, name: str, durable: bool, auto_delete: bool,
                      exclusive: bool) -> str: ...

    def consume(self, queue_name: str, consumer_tag: str, callback: MessageHandler) -> None: ...

    def queue_bind(self, queue_name: str, routing_key: str, exchange: str) -> None: ...

    def publish(self, exchange: str, routing_key: str, body: bytes, content_type: str) -> None: ...

    def close(self) -> None: ...


class ExchangeDeclareError(RuntimeError):
    """The call center exchange could not be declared; the service cannot run."""

    exit_code = EXIT_DECLARE_EXCHANGE


@dataclass
class QueueEventMQ:
    """Queue event publisher bound to a message queue."""

    amqp: MessageQueue


class AMQP(MessageQueue):
    """Publishes events on an AMQP channel and buffers incoming call and chat events."""

    def __init__(self, channel, node_name):
        self.channel = channel
        self.node_name = node_name
        self.queue_name: Optional[str] = None
        self.closed = False
        self._call_events: queue.Queue[CallActionData] = queue.Queue(maxsize=CALL_EVENT_BUFFER)
        self._chat_events: queue.Queue[ChatEvent] = queue.Queue()
        self._queue_event = QueueEventMQ(self)

    def setup(self) -> None:
        """Declare the exchange and this node's queue, start consuming and bind routes."""
        try:
            self.channel.exchange_declare(CALL_CENTER_EXCHANGE, "topic", True, False, False)
        except Exception as exc:
            logger.critical("Failed to declare AMQP exchange to err:%s", exc)
            raise ExchangeDeclareError(str(exc)) from exc

        name = self.channel.queue_declare(f"callcenter.{self.node_name}", False, False, True)
        self.queue_name = name or f"callcenter.{self.node_name}"
        self.channel.consume(self.queue_name, new_id(), self.read_message)
        self.channel.queue_bind(self.queue_name, "#", CHAT_EXCHANGE)
        self.channel.queue_bind(
            self.queue_name, CALL_ROUTING_TEMPLATE.format(self.node_name), CALL_EXCHANGE
        )

    def read_message(self, exchange, routing_key, body) -> None:
        """Dispatch one delivered message by its exchange."""
        if exchange == CALL_EXCHANGE:
            try:
                event = CallActionData.from_dict(json.loads(body))
            except ValueError as exc:
                logger.error("%s :\n%s", exc, _text(body))
                return
            if event.event == "heartbeat":
                return
            self._call_events.put(event)
        elif exchange == CHAT_EXCHANGE:
            self.read_chat_event(body, routing_key)
        else:
            logger.error("no handler for message %s (exchange %s, routing %s)",
                         _text(body), exchange, routing_key)

    def read_chat_event(self, data, routing_key) -> None:
        """Decode a chat event whose routing key is <prefix>.<name>.<domain>.<user>."""
        parts = routing_key.split(".")
        if len(parts) != 4:
            logger.error("event %s: bad rk format", routing_key)
            return
        if not _DECIMAL.fullmatch(parts[2]):
            logger.error("event %s: bad domainId", routing_key)
            return
        if not _DECIMAL.fullmatch(parts[3]):
            logger.error("event %s: bad userId", routing_key)
            return
        try:
            body: Any = json.loads(data)
        except ValueError as exc:
            logger.error("event %s: error json unmarshal %s", routing_key, exc)
            return
        if body is not None and not isinstance(body, dict):
            logger.error("event %s: error json unmarshal: not an object", routing_key)
            return

        self._chat_events.put(
            ChatEvent(
                name=parts[1],
                domain_id=int(parts[2]),
                user_id=int(parts[3]),
                data=body or {},
            )
        )

    def send_json(self, key, data) -> None:
        """Publish JSON bytes to the call center exchange; raise AppError on failure."""
        logger.debug("publish %s [%s]", key, _text(data))
        try:
            self.channel.publish(CALL_CENTER_EXCHANGE, key, bytes(data), CONTENT_TYPE)
        except Exception as exc:
            raise AppError(
                "SendJSON", "mq.send_json.app_error", None, str(exc),
                HTTPStatus.INTERNAL_SERVER_ERROR,
            ) from exc

    def agent_change_status(self, domain_id, user_id, e) -> None:
        self.send_json(f"events.status.{domain_id}.{user_id}", e.to_json().encode("utf-8"))

    def agent_channel_event(self, channel, domain_id, queue_id, user_id, e) -> None:
        self.send_json(
            f"events.channel.{channel}.{domain_id}.{queue_id}.{user_id}",
            e.to_json().encode("utf-8"),
        )

    def queue_update_list_members(self, channel, domain_id, queue_id, user_id, e) -> None:
        self.send_json(
            f"events.channel.{channel}.{domain_id}.{queue_id}.{user_id}",
            e.to_json().encode("utf-8"),
        )

    def send_notification(self, domain_id, event) -> None:
        """Publish a notification to the engine exchange; raise AppError on failure."""
        body = event.to_json()
        if isinstance(body, str):
            body = body.encode("utf-8")
        try:
            self.channel.publish(ENGINE_EXCHANGE, f"notification.{domain_id}", body, CONTENT_TYPE)
        except Exception as exc:
            raise AppError(
                "AMQP.SendNotification", "amqp.notification.publish.app_error", None, str(exc),
                HTTPStatus.INTERNAL_SERVER_ERROR,
            ) from exc

    def consume_call_event(self) -> "queue.Queue[CallActionData]":
        return self._call_events

    def consume_chat_event(self) -> "queue.Queue[ChatEvent]":
        return self._chat_events

    def queue_event(self) -> QueueEventMQ:
        return self._queue_event

    def close(self) -> None:
        """Close the channel once."""
        if self.closed:
            return
        self.closed = True
        logger.debug("AMQP receive stop client")
        if self.channel is not None:
            self.channel.close()
            logger.debug("close AMQP channel")


def _text(data: Any) -> str:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data).decode("utf-8", errors="replace")
    return str(data)