"""Inbound chat queue rows, chat events and conversations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class InboundChatQueue:
    attempt_id: int = 0
    queue_id: int = 0
    queue_updated_at: int = 0
    destination: bytes = b""
    variables: dict[str, str] = field(default_factory=dict)
    name: str = ""
    team_updated_at: Optional[int] = None
    conversation_id: str = ""
    conversation_created_at: int = 0


def _string(value: Any) -> str:
    return value if isinstance(value, str) else ""


@dataclass
class ChatEvent:
    """An event from the chat service with its decoded JSON body."""

    name: str = ""
    domain_id: int = 0
    user_id: int = 0
    data: dict[str, Any] = field(default_factory=dict)

    def conversation_id(self) -> str:
        return _string(self.data.get("conversation_id"))

    def timestamp(self) -> int:
        value = self.data.get("timestamp")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return 0
        return int(value)

    def cause(self) -> str:
        return _string(self.data.get("cause"))

    def channel_id(self) -> str:
        member = self.data.get("member")
        if isinstance(member, dict):
            return _string(member.get("id"))
        return ""

    def message_channel_id(self) -> str:
        return _string(self.data.get("channel_id"))

    def invite_id(self) -> str:
        return _string(self.data.get("invite_id"))


@dataclass
class Conversation:
    id: int = 0
    title: str = ""
    created_at: int = 0
    activity_at: int = 0
    closed_at: int = 0
    variables: dict[str, Any] = field(default_factory=dict)


@dataclass
class Participant:
    name: str = ""
    channel_id: str = ""