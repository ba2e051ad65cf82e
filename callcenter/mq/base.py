"""The message queue interface and a layer that forwards to an implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class SupportsToJson(Protocol):
    """An event that renders itself as JSON text."""

    def to_json(self) -> str:
        """Return the event as JSON text."""


class MessageQueue(ABC):
    """Publishing and consuming of call center events."""

    @abstractmethod
    def send_json(self, name, data):
        """Publish JSON bytes under a routing key."""

    @abstractmethod
    def close(self):
        """Stop consuming and release the connection."""

    @abstractmethod
    def consume_call_event(self):
        """The source of incoming call events."""

    @abstractmethod
    def consume_chat_event(self):
        """The source of incoming chat events."""

    @abstractmethod
    def agent_change_status(self, domain_id, user_id, e):
        """Publish an agent status change."""

    @abstractmethod
    def agent_channel_event(self, channel, domain_id, queue_id, user_id, e):
        """Publish an agent channel event."""

    @abstractmethod
    def send_notification(self, domain_id, event):
        """Publish a notification for a domain."""

    @abstractmethod
    def queue_event(self):
        """The queue event publisher."""

    def __enter__(self) -> "MessageQueue":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class LayeredMQ(MessageQueue):
    """Forwards every operation to the wrapped implementation."""

    def __init__(self, layer):
        self.layer = layer

    def send_json(self, name, data):
        return self.layer.send_json(name, data)

    def close(self):
        self.layer.close()

    def consume_call_event(self):
        return self.layer.consume_call_event()

    def consume_chat_event(self):
        return self.layer.consume_chat_event()

    def queue_event(self):
        return self.layer.queue_event()

    def agent_change_status(self, domain_id, user_id, e):
        return self.layer.agent_change_status(domain_id, user_id, e)

    def agent_channel_event(self, channel, domain_id, queue_id, user_id, e):
        return self.layer.agent_channel_event(channel, domain_id, queue_id, user_id, e)

    def send_notification(self, domain_id, event):
        return self.layer.send_notification(domain_id, event)


def new_mq(layer) -> MessageQueue:
    return LayeredMQ(layer)