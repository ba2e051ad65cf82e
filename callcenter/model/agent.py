"""Agents, their statuses and events, teams, channel timeouts and cluster nodes."""

from __future__ import annotations

import base64
import dataclasses
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from callcenter.model.queue import QueueHook, RingtoneFile

AGENT_STRATEGY_LONGEST_IDLE_TIME = "longest-idle-time"
AGENT_STRATEGY_LEAST_TALK_TIME = "least-talk-time"
AGENT_STRATEGY_ROUND_ROBIN = "round-robin"
AGENT_STRATEGY_TOP_DOWN = "top-down"
AGENT_STRATEGY_FEWEST_CALLS = "fewest-calls"
AGENT_STRATEGY_RANDOM = "random"

AGENT_CHANGED_STATUS_EVENT = "agent_status"

AGENT_STATUS_ONLINE = "online"
AGENT_STATUS_OFFLINE = "offline"
AGENT_STATUS_PAUSE = "pause"
AGENT_STATUS_BREAK_OUT = "break_out"

AGENT_STATE_LOGOUT = "offline"
AGENT_STATE_WAITING = "waiting"
AGENT_STATE_OFFERING = "offering"
AGENT_STATE_RINGING = "ringing"
AGENT_STATE_TALK = "talking"
AGENT_STATE_REPORTING = "reporting"
AGENT_STATE_BREAK = "break"
AGENT_STATE_FINE = "fine"

HOOK_AGENT_STATUS = "agent_status"

CHANNEL_STATE_WAITING = "waiting"
CHANNEL_STATE_DISTRIBUTE = "distribute"
CHANNEL_STATE_OFFERING = "offering"
CHANNEL_STATE_ANSWERED = "answered"
CHANNEL_STATE_BRIDGED = "bridged"
CHANNEL_STATE_NEXT_FORM = "form"
CHANNEL_STATE_HOLD = "hold"
CHANNEL_STATE_PROCESSING = "processing"
CHANNEL_STATE_MISSED = "missed"
CHANNEL_STATE_WRAP_TIME = "wrap_time"
CHANNEL_TRANSFER = "transfer"

CLUSTER_CALL_SERVICE_NAME = "freeswitch"

_HTML_ESCAPES = (
    ("<", "\\u003c"),
    (">", "\\u003e"),
    ("&", "\\u0026"),
    ("\u2028", "\\u2028"),
    ("\u2029", "\\u2029"),
)


def _plain(value: Any) -> Any:
    """Turn a value into something the json module can encode."""
    encoder = getattr(value, "_json_fields", None)
    if callable(encoder):
        return _plain(encoder())
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


def _go_json(value: Any) -> str:
    text = json.dumps(_plain(value), ensure_ascii=False, separators=(",", ":"))
    for char, escaped in _HTML_ESCAPES:
        text = text.replace(char, escaped)
    return text


@dataclass
class AgentStatus:
    status: str = ""
    status_payload: Optional[str] = None

    def _status_fields(self) -> dict[str, Any]:
        data: dict[str, Any] = {"status": self.status}
        if self.status_payload is not None:
            data["status_payload"] = self.status_payload
        return data


@dataclass
class Agent(AgentStatus):
    id: int = 0
    domain_id: int = 0
    user_id: Optional[int] = None
    name: str = ""
    updated_at: int = 0
    destination: Optional[str] = None
    extension: Optional[str] = None
    team_id: int = 0
    team_updated_at: int = 0
    on_demand: bool = False
    greeting_media: Optional[RingtoneFile] = None
    variables: dict[str, str] = field(default_factory=dict)
    has_push: bool = False

    def get_user_id(self) -> int:
        """The agent's user id, or 0 when the agent has none."""
        return self.user_id if self.user_id is not None else 0


@dataclass
class AgentHashKey:
    id: int = 0
    updated_at: int = 0
    sip: bool = False
    ws: bool = False
    team_updated_at: int = 0


@dataclass
class AgentChannel:
    channel: str = ""
    state: str = ""
    joined_at: int = 0
    online: bool = False


@dataclass
class MissedAgent:
    timestamp: int = 0
    no_answers: Optional[int] = None
    member_stop_cause: Optional[str] = None


@dataclass
class AgentOnlineData:
    timestamp: int = 0
    channel: list[AgentChannel] = field(default_factory=list)


@dataclass
class AgentEvent:
    agent_id: int = 0
    user_id: int = 0
    domain_id: int = 0
    timestamp: int = 0

    def _event_fields(self) -> dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "user_id": self.user_id,
            "domain_id": self.domain_id,
            "timestamp": self.timestamp,
        }


@dataclass
class Event:
    name: str = ""
    user_id: int = 0
    data: Any = None

    def to_json(self) -> str:
        return _go_json({"event": self.name, "user_id": self.user_id, "data": self.data})


def new_event(name, user_id, data) -> Event:
    return Event(name=name, user_id=user_id, data=data)


@dataclass
class AgentEventStatus(AgentStatus, AgentEvent):
    def _json_fields(self) -> dict[str, Any]:
        return {**self._event_fields(), **self._status_fields()}

    def to_json(self) -> str:
        return _go_json(self._json_fields())


@dataclass
class AgentEventOnlineStatus(AgentEventStatus):
    channels: Optional[list[AgentChannel]] = None
    on_demand: bool = False

    def _json_fields(self) -> dict[str, Any]:
        return {
            "channels": _plain(self.channels),
            "on_demand": self.on_demand,
            **self._event_fields(),
            **self._status_fields(),
        }

    def to_json(self) -> str:
        return _go_json(self._json_fields())


@dataclass
class MissedAgentAttempt:
    attempt_id: int = 0
    agent_id: int = 0
    cause: str = ""
    missed_at: int = 0


@dataclass
class AgentsForAttempt:
    attempt_id: int = 0
    agent_id: int = 0
    agent_updated_at: int = 0
    team_id: int = 0
    team_updated_at: int = 0


@dataclass
class AgentState:
    agent_id: int = 0
    joined_at: Optional[datetime] = None
    timeout_at: Optional[datetime] = None
    state: str = ""


@dataclass
class AgentChangedState:
    timestamp: int = 0
    agent_id: int = 0
    agent_updated_at: int = 0
    state: str = ""


@dataclass
class AgentInQueueStatistic:
    agent_id: int = 0
    queue_id: int = 0
    last_offering_at: Optional[datetime] = None
    last_bridge_start_at: Optional[datetime] = None
    last_bridge_end_at: Optional[datetime] = None
    calls_answered: int = 0
    calls_abandoned: int = 0


@dataclass
class AgentTriggerJob:
    schema_id: int = 0
    extension: str = ""
    email: str = ""
    agent_id: int = 0
    name: str = ""
    variables: dict[str, str] = field(default_factory=dict)


@dataclass
class Team:
    id: int = 0
    domain_id: int = 0
    name: str = ""
    strategy: str = ""
    description: Optional[str] = None
    updated_at: int = 0
    call_timeout: int = 0
    invite_chat_timeout: int = 0
    task_accept_timeout: int = 0
    max_no_answer: int = 0
    wrap_up_time: int = 0
    no_answer_delay_time: int = 0
    hooks: list[QueueHook] = field(default_factory=list)


@dataclass
class ChannelTimeout:
    user_id: int = 0
    channel: str = ""
    timestamp: int = 0
    domain_id: int = 0


@dataclass
class ClusterInfo:
    id: int = 0
    node_name: str = ""
    started_at: int = 0
    updated_at: int = 0
    master: bool = False