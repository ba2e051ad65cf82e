"""The message-queue interface, a forwarding layer and the AMQP event-bus client."""

__all__ = ["base", "rabbit"]