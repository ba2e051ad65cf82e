"""Queue definitions, queue settings and queue events."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from enum import Enum, IntEnum
from typing import Any, Optional


class QueueType(IntEnum):
    OFFLINE_CALL = 0
    INBOUND_CALL = 1
    IVR_CALL = 2
    PREVIEW_CALL = 3
    PROGRESSIVE_CALL = 4
    PREDICT_CALL = 5
    INBOUND_CHAT = 6
    AGENT_TASK = 7
    OUTBOUND_TASK = 8


QUEUE_SIDE_FLOW = "flow"
QUEUE_SIDE_MEMBER = "member"
QUEUE_SIDE_AGENT = "agent"

QUEUE_CHANNEL_CALL = "call"
QUEUE_CHANNEL_CHAT = "chat"
QUEUE_CHANNEL_TASK = "task"

QUEUE_SIDE_FIELD = "cc_side"
QUEUE_ID_FIELD = "cc_queue_id"
QUEUE_TEAM_ID_FIELD = "cc_team_id"
QUEUE_AGENT_ID_FIELD = "cc_agent_id"
QUEUE_UPDATED_AT_FIELD = "cc_queue_updated_at"
QUEUE_NAME_FIELD = "cc_queue_name"
QUEUE_TYPE_NAME_FIELD = "cc_queue_type"
QUEUE_MEMBER_ID_FIELD = "cc_member_id"
QUEUE_ATTEMPT_ID_FIELD = "cc_attempt_id"
QUEUE_RESOURCE_ID_FIELD = "cc_resource_id"
QUEUE_NODE_ID_FIELD = "cc_app_id"
QUEUE_ATTEMPT_SEQ = "cc_attempt_seq"

QUEUE_AUTO_ANSWER_VARIABLE = "wbt_auto_answer"
QUEUE_MANUAL_DISTRIBUTE = "cc_manual_distribution"

QUEUE_EVENT_COUNT = "queue_count"
QUEUE_EVENT_JOIN_MEMBER = "queue_member_join"
QUEUE_EVENT_LEAVING_MEMBER = "queue_member_leaving"
QUEUE_EVENT_OFFERING_MEMBER = "queue_member_offering"
QUEUE_EVENT_BRIDGED_MEMBER = "queue_member_bridged"
QUEUE_EVENT_UNBRIDGED_MEMBER = "queue_member_unbridged"


class LeaveCause(str, Enum):
    AGENT_TIMEOUT = "agent_timeout"
    CLIENT_TIMEOUT = "client_timeout"
    SILENCE_TIMEOUT = "silence_timeout"


class CloseCause(str, Enum):
    CLIENT_LEAVE = "client_leave"


TONE_LIST = {
    "none": "",
    "default": "L=1;%(500,500,1000)",
    "at1": "v=-7;%(100,0,941.0,1477.0)",
    "at2": "v=-7;>=2;+=.1;%(140,0,350,440)",
    "australian": "L=1;%(200,100,400,425)",
    "egypt": "L=1;%(200,100,475,375)",
    "germany": "L=1;%(500,0,425)",
    "france": "L=1;%(150,350,440)",
    "spain": "L=1;%(150,300,425)",
    "uk": "L=1;%(200,100,400,450)",
    "us": "L=1;%(100,200,440,480)",
}


def ringtone_uri(domain_id, id, mime_type) -> str:
    """The playback URI for a stored media file, or '' for unsupported types."""
    if mime_type in ("audio/mp3", "audio/mpeg"):
        return f"shout://$${{cdr_url}}/sys/media/{id}/stream?domain_id={domain_id}&.mp3"
    if mime_type == "audio/wav":
        return (
            f"http_cache://http://$${{cdr_url}}/sys/media/{id}/stream"
            f"?domain_id={domain_id}&.wav"
        )
    return ""


@dataclass
class RingtoneFile:
    id: int = 0
    type: str = ""

    def uri(self, domain_id) -> str:
        return ringtone_uri(domain_id, self.id, self.type)


@dataclass
class QueueHook:
    event: str = ""
    schema_id: int = 0
    properties: list[str] = field(default_factory=list)


@dataclass
class Queue:
    id: int = 0
    domain_id: int = 0
    domain_name: str = ""
    type: int = QueueType.OFFLINE_CALL
    name: str = ""
    strategy: str = ""
    payload: bytes = b""
    updated_at: int = 0
    variables: dict[str, str] = field(default_factory=dict)
    team_id: Optional[int] = None
    ringtone_id: Optional[int] = None
    ringtone_type: Optional[str] = None
    schema_id: Optional[int] = None
    do_schema_id: Optional[int] = None
    after_schema_id: Optional[int] = None
    processing: bool = False
    processing_sec: int = 0
    processing_renewal_sec: int = 0
    endless: bool = False
    hooks: list[QueueHook] = field(default_factory=list)
    grantee_id: Optional[int] = None
    hold_music: Optional[RingtoneFile] = None
    form_schema_id: Optional[int] = None
    amd_playback_file: Optional[RingtoneFile] = None

    def channel(self) -> str:
        """The communication channel served by this queue type."""
        if self.type == QueueType.INBOUND_CHAT:
            return QUEUE_CHANNEL_CHAT
        if self.type in (QueueType.AGENT_TASK, QueueType.OUTBOUND_TASK):
            return QUEUE_CHANNEL_TASK
        return QUEUE_CHANNEL_CALL


@dataclass
class QueueAmdSettings:
    enabled: bool = False
    ai: bool = False
    positive_tags: list[str] = field(default_factory=list)
    allow_not_sure: bool = False
    silence_not_sure: bool = False
    max_word_length: int = 0
    max_number_of_words: int = 0
    between_words_silence: int = 0
    min_word_length: int = 0
    total_analysis_time: int = 0
    silence_threshold: int = 0
    after_greeting_silence: int = 0
    greeting: int = 0
    initial_silence: int = 0
    _build_string: Optional[str] = field(default=None, init=False, repr=False, compare=False)

    def to_args(self) -> str:
        """Arguments for the AMD application; zero settings take their defaults.

        The string is built once and reused afterwards.
        """
        if self._build_string is None:
            self.silence_threshold = self.silence_threshold or 256
            self.max_word_length = self.max_word_length or 5000
            self.max_number_of_words = self.max_number_of_words or 3
            self.between_words_silence = self.between_words_silence or 50
            self.min_word_length = self.min_word_length or 100
            self.total_analysis_time = self.total_analysis_time or 5000
            self.after_greeting_silence = self.after_greeting_silence or 800
            self.greeting = self.greeting or 1500
            self.initial_silence = self.initial_silence or 2500

            parts = [
                f"silence_threshold={self.silence_threshold}",
                f"maximum_word_length={self.max_word_length}",
                f"maximum_number_of_words={self.max_number_of_words}",
                f"between_words_silence={self.between_words_silence}",
                f"min_word_length={self.min_word_length}",
                f"total_analysis_time={self.total_analysis_time}",
                f"after_greeting_silence={self.after_greeting_silence}",
                f"greeting={self.greeting}",
                f"initial_silence={self.initial_silence}",
            ]
            if self.allow_not_sure and self.silence_not_sure:
                parts.append("silence_notsure=1")
            self._build_string = " ".join(parts)
        return self._build_string

    def ai_tags(self) -> str:
        if not self.positive_tags:
            return "human"
        return ",".join(self.positive_tags)


@dataclass
class QueueCallbackSettings:
    enabled: bool = False
    timeout: int = 0


@dataclass
class QueueInboundSettings:
    discard_abandoned_after: int = 0
    time_base_score: str = ""
    max_wait_with_no_agent: int = 0
    max_call_per_agent: int = 0
    allow_greeting_agent: bool = False
    max_wait_time: int = 0
    sticky_agent: bool = False
    sticky_agent_sec: int = 0
    auto_answer_tone: Optional[str] = None
    manual_distribution: bool = False


_INT64 = (-(2**63), 2**63 - 1)
_UINT16 = (0, 2**16 - 1)

# attribute name, JSON key, kind, range for integers
_INBOUND_FIELDS = (
    ("discard_abandoned_after", "discard_abandoned_after", "int", _INT64),
    ("time_base_score", "time_base_score", "str", None),
    ("max_wait_with_no_agent", "timeout_with_no_agents", "int", _INT64),
    ("max_call_per_agent", "max_call_per_agent", "int", _INT64),
    ("allow_greeting_agent", "allow_greeting_agent", "bool", None),
    ("max_wait_time", "max_wait_time", "int", _UINT16),
    ("sticky_agent", "sticky_agent", "bool", None),
    ("sticky_agent_sec", "sticky_agent_sec", "int", _UINT16),
    ("auto_answer_tone", "auto_answer_tone", "optstr", None),
    ("manual_distribution", "manual_distribution", "bool", None),
)

_MISSING = object()


def _lookup(data: dict, key: str) -> Any:
    if key in data:
        return data[key]
    folded = key.casefold()
    for name, value in data.items():
        if isinstance(name, str) and name.casefold() == folded:
            return value
    return _MISSING


def _accepts(value: Any, kind: str, bounds) -> bool:
    if kind == "bool":
        return isinstance(value, bool)
    if kind in ("str", "optstr"):
        return isinstance(value, str)
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    low, high = bounds
    return low <= value <= high


def queue_inbound_settings_from_bytes(data) -> QueueInboundSettings:
    """Parse inbound settings, keeping defaults for missing or mistyped fields."""
    settings = QueueInboundSettings()
    try:
        if isinstance(data, (bytes, bytearray)):
            data = bytes(data).decode("utf-8")
        parsed = json.loads(data)
    except (ValueError, TypeError, UnicodeDecodeError):
        return settings
    if not isinstance(parsed, dict):
        return settings

    for attr, key, kind, bounds in _INBOUND_FIELDS:
        value = _lookup(parsed, key)
        if value is _MISSING:
            continue
        if value is None:
            if kind == "optstr":
                setattr(settings, attr, None)
            continue
        if _accepts(value, kind, bounds):
            setattr(settings, attr, value)
    return settings


@dataclass
class QueueEvent:
    name: str = ""
    node: str = ""
    domain: str = ""
    time: int = 0
    queue_id: int = 0


@dataclass
class QueueEventCount(QueueEvent):
    count: int = 0

    def to_json(self) -> str:
        return json.dumps(asdict(self), separators=(",", ":"))


@dataclass
class QueueEventJoinMember(QueueEvent):
    pass


@dataclass
class QueueEventLeavingMember(QueueEvent):
    pass