"""Data models for queues, agents, calls, chats, members, notifications and resources."""

__all__ = [
    "agent",
    "call",
    "chat",
    "member",
    "notification",
    "queue",
    "resource",
    "utils",
]