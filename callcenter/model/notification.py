"""Notifications, manual queue waiting lists, task dispatch and trigger jobs."""

from __future__ import annotations

import base64
import dataclasses
import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Any, Optional, Union

from callcenter.model.utils import Lookup

NOTIFICATION_HIDE_MEMBER = "hide_member"
NOTIFICATION_HIDE_ATTEMPT = "hide_attempt"
NOTIFICATION_WAITING_LIST = "waiting_list"

_HTML_ESCAPES = (
    ("<", "\\u003c"),
    (">", "\\u003e"),
    ("&", "\\u0026"),
    ("\u2028", "\\u2028"),
    ("\u2029", "\\u2029"),
)


def _plain(value: Any) -> Any:
    encoder = getattr(value, "_json_fields", None)
    if callable(encoder):
        return encoder()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _plain(getattr(value, f.name)) for f in dataclasses.fields(value) if f.init}
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _go_json(value: Any) -> bytes:
    text = json.dumps(_plain(value), ensure_ascii=False, separators=(",", ":"))
    for char, escaped in _HTML_ESCAPES:
        text = text.replace(char, escaped)
    return text.encode("utf-8")


@dataclass
class Notification:
    id: int = 0
    domain_id: int = 0
    action: str = ""
    timeout: Optional[int] = None
    created_at: int = 0
    created_by: Optional[int] = None
    for_users: Optional[list[int]] = None
    description: str = ""
    body: Any = None

    def _json_fields(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "action": self.action}
        if self.timeout is not None:
            data["timeout"] = self.timeout
        data["created_at"] = self.created_at
        if self.created_by is not None:
            data["created_by"] = self.created_by
        data["for_users"] = list(self.for_users) if self.for_users is not None else None
        if self.description:
            data["description"] = self.description
        if self.body is not None:
            data["body"] = _plain(self.body)
        return data

    def to_json(self) -> bytes:
        return _go_json(self._json_fields())


@dataclass
class MemberWaiting:
    attempt_id: int = 0
    wait: int = 0
    communication: Union[bytes, str, None] = None
    queue: Lookup = field(default_factory=Lookup)
    bucket: Optional[Lookup] = None
    deadline: int = 0
    channel: str = ""
    session_id: str = ""

    def _json_fields(self) -> dict[str, Any]:
        raw = self.communication
        if isinstance(raw, (bytes, bytearray)):
            raw = bytes(raw).decode("utf-8")
        data: dict[str, Any] = {
            "attempt_id": self.attempt_id,
            "wait": self.wait,
            "communication": json.loads(raw) if raw else None,
            "queue": _plain(self.queue),
        }
        if self.bucket is not None:
            data["bucket"] = _plain(self.bucket)
        data["deadline"] = self.deadline
        data["channel"] = self.channel
        if self.session_id:
            data["session_id"] = self.session_id
        return data


@dataclass
class MemberWaitingByUsers:
    domain_id: int = 0
    users: list[int] = field(default_factory=list)
    calls: list[MemberWaiting] = field(default_factory=list)
    chats: list[MemberWaiting] = field(default_factory=list)

    def _json_fields(self) -> dict[str, Any]:
        return {}


@dataclass
class TaskToAgent:
    attempt_id: int = 0
    destination: bytes = b""
    variables: dict[str, str] = field(default_factory=dict)
    name: str = ""
    team_id: int = 0
    team_updated_at: int = 0
    agent_updated_at: int = 0


@dataclass
class QueueDumpParams:
    has_reporting: Optional[bool] = None
    has_form: Optional[bool] = None
    processing_sec: int = 0
    processing_renewal_sec: int = 0
    queue_name: str = ""

    def to_json(self) -> bytes:
        data: dict[str, Any] = {}
        if self.has_reporting is not None:
            data["has_reporting"] = self.has_reporting
        if self.has_form is not None:
            data["has_form"] = self.has_form
        if self.processing_sec:
            data["processing_sec"] = self.processing_sec
        if self.processing_renewal_sec:
            data["processing_renewal_sec"] = self.processing_renewal_sec
        if self.queue_name:
            data["queue_name"] = self.queue_name
        return _go_json(data)


class TriggerJobState(IntEnum):
    IDLE = 0
    ACTIVE = 1
    STOP = 2
    ERROR = 3


@dataclass
class TriggerJobParameter:
    schema_id: int = 0
    variables: dict[str, Any] = field(default_factory=dict)
    timeout: int = 0


@dataclass
class TriggerJob:
    name: str = ""
    id: int = 0
    domain_id: int = 0
    trigger_id: int = 0
    state: int = TriggerJobState.IDLE
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    stopped_at: Optional[datetime] = None
    parameters: TriggerJobParameter = field(default_factory=TriggerJobParameter)
    error: Optional[str] = None
    result: Any = None

    def result_json(self) -> Optional[bytes]:
        """The job result encoded as JSON, or None when there is no result."""
        if self.result is None:
            return None
        return _go_json(self.result)