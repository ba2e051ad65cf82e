"""Contact-centre data models, an AMQP event-bus client and queue attempt state."""

__version__ = "25.2.0"