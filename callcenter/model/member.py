"""Queue members, their attempts, callbacks and attempt events."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Any, Optional

from callcenter.model.call import CALL_HANGUP_TIMEOUT

MEMBER_CAUSE_SYSTEM_SHUTDOWN = "SYSTEM_SHUTDOWN"
MEMBER_CAUSE_ABANDONED = "abandoned"
MEMBER_CAUSE_TIMEOUT = "timeout"
MEMBER_CAUSE_CANCEL = "cancel"
MEMBER_CAUSE_SUCCESSFUL = "SUCCESSFUL"
MEMBER_CAUSE_QUEUE_NOT_IMPLEMENT = "QUEUE_NOT_IMPLEMENT"

MEMBER_STATE_IDLE = "idle"
MEMBER_STATE_WAITING = "waiting"
MEMBER_STATE_JOINED = "joined"
MEMBER_STATE_WAIT_AGENT = "wait_agent"
MEMBER_STATE_ACTIVE = "active"
MEMBER_STATE_OFFERING = "offering"
MEMBER_STATE_BRIDGED = "bridged"
MEMBER_STATE_PROCESSING = "processing"
MEMBER_STATE_LEAVING = "leaving"
MEMBER_STATE_CANCEL = "cancel"

_HTML_ESCAPES = (
    ("<", "\\u003c"),
    (">", "\\u003e"),
    ("&", "\\u0026"),
    ("\u2028", "\\u2028"),
    ("\u2029", "\\u2029"),
)

_MISSING = object()


def _json_text(value: Any, sort_keys: bool = False) -> str:
    text = json.dumps(value, ensure_ascii=False, separators=(",", ":"), sort_keys=sort_keys)
    for char, escaped in _HTML_ESCAPES:
        text = text.replace(char, escaped)
    return text


def _lookup(data: dict, key: str) -> Any:
    if key in data:
        return data[key]
    folded = key.casefold()
    for name, value in data.items():
        if isinstance(name, str) and name.casefold() == folded:
            return value
    return _MISSING


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass
class Communication:
    id: int = 0
    name: str = ""


@dataclass
class MemberCommunication:
    destination: str = ""
    type: Communication = field(default_factory=Communication)
    priority: int = 0
    display: Optional[str] = None
    description: str = ""
    attempts: int = 0
    dtmf: Optional[str] = None


@dataclass
class AttemptCallback:
    status: str = ""
    next_call_at: Optional[datetime] = None
    expire_at: Optional[datetime] = None
    description: str = ""
    display: bool = False
    variables: Optional[dict[str, str]] = None
    sticky_agent_id: Optional[int] = None
    exclude_current_communication: Optional[bool] = None
    redial: Optional[bool] = None
    add_communications: list[MemberCommunication] = field(default_factory=list)
    wait_between_retries: Optional[int] = None
    only_current_communication: Optional[bool] = None

    def __str__(self) -> str:
        text = f"Status: {self.status}"
        if self.expire_at is not None:
            text += f", ExpireAt: {self.expire_at}"
        if self.next_call_at is not None:
            text += f", NextCall: {self.next_call_at}"
        if self.sticky_agent_id is not None:
            text += f", StickyAgentId: {self.sticky_agent_id}"
        return text

    def json_variables(self) -> Optional[bytes]:
        """The variables as JSON bytes, or None when there are none."""
        if not self.variables:
            return None
        return _json_text(self.variables, sort_keys=True).encode("utf-8")


class SchemaResultType(IntEnum):
    SUCCESS = 0
    ABANDONED = 1
    RETRY = 2


@dataclass
class SchemaResult:
    type: SchemaResultType = SchemaResultType.SUCCESS
    status: str = ""
    max_attempts: int = 0
    wait_between_retries: int = 0
    exclude_current_number: bool = False
    redial: bool = False
    variables: Optional[dict[str, str]] = None
    agent_id: int = 0
    display: bool = False
    description: str = ""
    retry_sleep: int = 0
    retry_next_resource: bool = False
    retry_resource_id: int = 0


@dataclass
class AttemptLeaving:
    timestamp: int = 0
    member_stop_cause: Optional[str] = None
    result: Optional[str] = None


@dataclass
class MemberAttempt:
    id: int = 0
    queue_id: int = 0
    queue_updated_at: int = 0
    seq: Optional[int] = None
    communication_idx: Optional[int] = None
    queue_count: int = 0
    queue_active_count: int = 0
    queue_waiting_count: int = 0
    state: int = 0
    member_id: Optional[int] = None
    created_at: Optional[datetime] = None
    hangup_at: int = 0
    bridged_at: int = 0
    resource_id: Optional[int] = None
    resource_updated_at: Optional[int] = None
    gateway_updated_at: Optional[int] = None
    result: Optional[str] = None
    destination: bytes = b""
    list_communication_id: Optional[int] = None
    agent_id: Optional[int] = None
    agent_updated_at: Optional[int] = None
    team_updated_at: Optional[int] = None
    variables: Optional[dict[str, str]] = None
    name: str = ""
    member_call_id: Optional[str] = None
    timezone: Optional[str] = None
    bucket_id: Optional[int] = None

    def is_timeout(self) -> bool:
        return self.result is not None and self.result == CALL_HANGUP_TIMEOUT


@dataclass
class AttemptReportingTimeout:
    attempt_id: int = 0
    timestamp: int = 0
    agent_id: int = 0
    agent_updated_at: int = 0
    user_id: int = 0
    channel: str = ""
    domain_id: int = 0
    after_schema_id: Optional[int] = None


@dataclass
class AttemptFlipResource:
    resource_id: Optional[int] = None
    resource_updated_at: Optional[int] = None
    gateway_updated_at: Optional[int] = None
    allow_call: Optional[bool] = None
    call_id: Optional[str] = None


@dataclass
class EventAttempt:
    attempt_id: int = 0
    timestamp: int = 0
    channel: str = ""
    status: str = ""
    agent_id: Optional[int] = None
    user_id: Optional[int] = None
    domain_id: int = 0

    def _attempt_fields(self) -> dict[str, Any]:
        return {
            "attempt_id": self.attempt_id,
            "timestamp": self.timestamp,
            "channel": self.channel,
            "status": self.status,
            "agent_id": self.agent_id,
            "user_id": self.user_id,
            "domain_id": self.domain_id,
        }

    def to_json(self) -> str:
        return _json_text(self._attempt_fields())


@dataclass
class RenewalProcessing:
    attempt_id: int = 0
    timeout: int = 0
    timestamp: int = 0
    channel: str = ""
    user_id: int = 0
    queue_id: int = 0
    domain_id: int = 0
    renewal_sec: int = 0


@dataclass
class EventAttemptOffering(EventAttempt):
    member_id: int = 0

    def to_json(self) -> str:
        return _json_text({"member_id": self.member_id, **self._attempt_fields()})


@dataclass
class AttemptOfferingAgent:
    agent_id: Optional[int] = None
    agent_no_answers: Optional[int] = None
    timestamp: int = 0


@dataclass
class AttemptReportingResult:
    timestamp: int = 0
    channel: Optional[str] = None
    agent_call_id: Optional[str] = None
    agent_id: Optional[int] = None
    user_id: Optional[int] = None
    domain_id: Optional[int] = None
    queue_id: Optional[int] = None
    agent_timeout: Optional[int] = None
    member_stop_cause: Optional[str] = None
    member_id: Optional[int] = None


@dataclass
class HistoryAttempt:
    id: int = 0
    result: str = ""


@dataclass
class AttemptResult:
    id: int = 0
    state: int = 0
    offering_at: int = 0
    answered_at: int = 0
    bridged_at: int = 0
    hangup_at: int = 0
    agent_id: Optional[int] = None
    result: str = ""
    leg_a_id: Optional[str] = None
    leg_b_id: Optional[str] = None


@dataclass
class InboundMember:
    queue_id: int = 0
    call_id: str = ""
    number: str = ""
    name: str = ""
    priority: int = 0


@dataclass
class ExpiredMember:
    variables: Optional[dict[str, str]] = None
    schema_id: int = 0
    domain_id: int = 0
    member_id: int = 0


def _communication_type(value: Any) -> Communication:
    result = Communication()
    if not isinstance(value, dict):
        return result
    item = _lookup(value, "id")
    if _is_int(item):
        result.id = item
    item = _lookup(value, "name")
    if isinstance(item, str):
        result.name = item
    return result


def member_destination_from_bytes(data) -> MemberCommunication:
    """Decode a member communication; fields that do not fit keep their defaults."""
    dest = MemberCommunication()
    if not data:
        return dest
    try:
        if isinstance(data, (bytes, bytearray)):
            data = bytes(data).decode("utf-8")
        parsed = json.loads(data)
    except (ValueError, TypeError, UnicodeDecodeError):
        return dest
    if not isinstance(parsed, dict):
        return dest

    for attr in ("destination", "description"):
        value = _lookup(parsed, attr)
        if isinstance(value, str):
            setattr(dest, attr, value)
    for attr in ("priority", "attempts"):
        value = _lookup(parsed, attr)
        if _is_int(value):
            setattr(dest, attr, value)
    for attr in ("display", "dtmf"):
        value = _lookup(parsed, attr)
        if value is None or isinstance(value, str):
            setattr(dest, attr, value)
    value = _lookup(parsed, "type")
    if isinstance(value, dict):
        dest.type = _communication_type(value)
    return dest