"""Calls, call events from the media server and call origination requests."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Callable, Optional

from callcenter.model.queue import QUEUE_AUTO_ANSWER_VARIABLE

logger = logging.getLogger(__name__)


class CallStrategy(IntEnum):
    DEFAULT = 0
    FAILOVER = 1
    MULTIPLE = 2


class CallDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


CALL_DIRECTION_INBOUND = "inbound"
CALL_DIRECTION_OUTBOUND = "outbound"
CALL_DIRECTION_DIALER = "dialer"

CALL_PROXY_URI_VARIABLE = "sip_route_uri"
CALL_ORIGINATION_UUID = "origination_uuid"
CALL_TIMEOUT_VARIABLE = "call_timeout"
CALL_PROGRESS_TIMEOUT_VARIABLE = "progress_timeout"
CALL_IGNORE_EARLY_MEDIA_VARIABLE = "ignore_early_media"
CALL_DIRECTION_VARIABLE = "webitel_direction"

CALL_ANSWER_APPLICATION = "answer"
CALL_SLEEP_APPLICATION = "sleep"
CALL_PLAYBACK_APPLICATION = "playback"
CALL_HANGUP_APPLICATION = "hangup"

CALL_VARIABLE_DOMAIN_ID = "sip_h_X-Webitel-Domain-Id"
CALL_VARIABLE_USER_ID = "sip_h_X-Webitel-User-Id"
CALL_VARIABLE_DIRECTION = "sip_h_X-Webitel-Direction"
CALL_VARIABLE_GATEWAY_ID = "sip_h_X-Webitel-Gateway-Id"
CALL_VARIABLE_DOMAIN_NAME = "domain_name"
CALL_VARIABLE_GRANTEE = "wbt_grantee_id"
CALL_VAR_TRANSFER_AFTER = "transfer_after_bridge"

CALL_HANGUP_REJECTED = "CALL_REJECTED"
CALL_HANGUP_NO_ANSWER = "NO_ANSWER"
CALL_HANGUP_USER_BUSY = "USER_BUSY"
CALL_HANGUP_OUTGOING_CALL_BARRED = "OUTGOING_CALL_BARRED"
CALL_HANGUP_TIMEOUT = "TIMEOUT"
CALL_HANGUP_NORMAL_CLEARING = "NORMAL_CLEARING"
CALL_HANGUP_NORMAL_UNSPECIFIED = "NORMAL_UNSPECIFIED"
CALL_HANGUP_ORIGINATOR_CANCEL = "ORIGINATOR_CANCEL"
CALL_HANGUP_LOSE_RACE = "LOSE_RACE"

CALL_AMD_APPLICATION_NAME = "amd"
CALL_AMD_HUMAN_VARIABLE = "amd_on_human"
CALL_AMD_MACHINE_VARIABLE = "amd_on_machine"
CALL_AMD_NOT_SURE_VARIABLE = "amd_on_notsure"

CALL_ACTION_RINGING_NAME = "ringing"
CALL_ACTION_ACTIVE_NAME = "active"
CALL_ACTION_BRIDGE_NAME = "bridge"
CALL_ACTION_HOLD_NAME = "hold"
CALL_ACTION_DTMF_NAME = "dtmf"
CALL_ACTION_HANGUP_NAME = "hangup"
CALL_ACTION_AMD_NAME = "amd"

CALL_RECORD_FILE_TEMPLATE = "${url_encode ${wbt_from_number}}_${url_encode ${wbt_destination}}.mp3"

CallVariables = dict[str, Any]

_MISSING = object()
_INTEGER_TEXT = re.compile(r"-?\d+")


def _lookup(data: dict, key: str) -> Any:
    if key in data:
        return data[key]
    folded = key.casefold()
    for name, value in data.items():
        if isinstance(name, str) and name.casefold() == folded:
            return value
    return _MISSING


def _as_str(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError(f"expected a string, got {value!r}")
    return value


def _as_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"expected an integer, got {value!r}")
    return value


def _as_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"expected a boolean, got {value!r}")
    return value


def _as_quoted_int(value: Any) -> int:
    if not isinstance(value, str) or not _INTEGER_TEXT.fullmatch(value):
        raise ValueError(f"expected an integer in a string, got {value!r}")
    return int(value)


def _as_dict(value: Any) -> dict:
    if not isinstance(value, dict):
        raise ValueError(f"expected an object, got {value!r}")
    return dict(value)


# attribute, JSON key, converter, whether null clears the attribute
_Spec = tuple[str, str, Callable[[Any], Any], bool]


def _decode_into(obj: Any, payload: dict, specs: tuple[_Spec, ...]) -> list[str]:
    """Set attributes from a JSON object; return the fields that did not fit."""
    errors: list[str] = []
    for attr, key, convert, nullable in specs:
        value = _lookup(payload, key)
        if value is _MISSING:
            continue
        if value is None:
            if nullable:
                setattr(obj, attr, None)
            continue
        try:
            setattr(obj, attr, convert(value))
        except ValueError as exc:
            errors.append(f"{key}: {exc}")
    return errors


@dataclass
class Call:
    id: str = ""
    state: str = ""
    domain_id: int = 0
    direction: str = ""
    destination: str = ""
    parent_id: Optional[str] = None
    timestamp: int = 0
    app_id: str = ""
    from_number: str = ""
    from_name: str = ""
    answered_at: int = 0
    bridged_at: int = 0
    created_at: int = 0


@dataclass
class CallEndpoint:
    type: str = ""
    id: str = ""
    number: str = ""
    name: str = ""

    _SPECS = (
        ("type", "Type", _as_str, False),
        ("id", "Id", _as_str, False),
        ("number", "Number", _as_str, False),
        ("name", "Name", _as_str, False),
    )


def _as_endpoint(value: Any) -> CallEndpoint:
    data = _as_dict(value)
    endpoint = CallEndpoint()
    errors = _decode_into(endpoint, data, CallEndpoint._SPECS)
    if errors:
        raise ValueError("; ".join(errors))
    return endpoint


@dataclass
class CallAction:
    id: str = ""
    app_id: str = ""
    domain_id: int = 0
    timestamp: int = 0
    event: str = ""

    _SPECS = (
        ("id", "id", _as_str, False),
        ("app_id", "app_id", _as_str, False),
        ("domain_id", "domain_id", _as_quoted_int, False),
        ("timestamp", "timestamp", _as_quoted_int, False),
        ("event", "event", _as_str, False),
    )


@dataclass
class CallActionInfo:
    gateway_id: Optional[int] = None
    user_id: Optional[int] = None
    direction: str = ""
    destination: str = ""
    from_: Optional[CallEndpoint] = None
    to: Optional[CallEndpoint] = None
    parent_id: Optional[str] = None
    payload: Optional[CallVariables] = None

    _SPECS = (
        ("gateway_id", "gateway_id", _as_int, True),
        ("user_id", "user_id", _as_int, True),
        ("direction", "direction", _as_str, False),
        ("destination", "destination", _as_str, False),
        ("from_", "from", _as_endpoint, True),
        ("to", "to", _as_endpoint, True),
        ("parent_id", "parent_id", _as_str, True),
        ("payload", "payload", _as_dict, True),
    )


@dataclass
class CallActionRinging(CallAction, CallActionInfo):
    _SPECS = CallAction._SPECS + CallActionInfo._SPECS


@dataclass
class CallActionActive(CallAction):
    pass


@dataclass
class CallActionHold(CallAction):
    pass


@dataclass
class CallActionBridge(CallAction):
    bridged_id: str = ""

    _SPECS = CallAction._SPECS + (("bridged_id", "bridged_id", _as_str, False),)


@dataclass
class CallActionHangup(CallAction):
    cause: str = ""
    sip_code: Optional[int] = None
    origin_success: Optional[bool] = None
    reporting_at: Optional[int] = None
    transfer_to: Optional[str] = None
    transfer_from: Optional[str] = None
    transfer_to_agent: Optional[int] = None
    transfer_from_attempt: Optional[int] = None
    transfer_to_attempt: Optional[int] = None
    variables: Optional[dict[str, Any]] = None

    _SPECS = CallAction._SPECS + (
        ("cause", "cause", _as_str, False),
        ("sip_code", "sip", _as_int, True),
        ("origin_success", "originate_success", _as_bool, True),
        ("reporting_at", "reporting_at", _as_quoted_int, True),
        ("transfer_to", "transfer_to", _as_str, True),
        ("transfer_from", "transfer_from", _as_str, True),
        ("transfer_to_agent", "transfer_to_agent", _as_quoted_int, True),
        ("transfer_from_attempt", "transfer_from_attempt", _as_quoted_int, True),
        ("transfer_to_attempt", "transfer_to_attempt", _as_quoted_int, True),
        ("variables", "payload", _as_dict, True),
    )


@dataclass
class CallNoAnswer:
    id: Optional[str] = None
    app_id: Optional[str] = None
    attempt_id: int = 0


@dataclass
class AmdAiResult:
    ai_result: str = ""
    ai_error: str = ""

    _SPECS = (
        ("ai_result", "ai_result", _as_str, False),
        ("ai_error", "ai_error", _as_str, False),
    )


@dataclass
class CallActionAMD(CallAction, AmdAiResult):
    result: str = ""
    cause: str = ""

    _SPECS = (
        CallAction._SPECS
        + AmdAiResult._SPECS
        + (
            ("result", "result", _as_str, False),
            ("cause", "cause", _as_str, False),
        )
    )


_EVENT_TYPES: dict[str, type] = {
    CALL_ACTION_RINGING_NAME: CallActionRinging,
    CALL_ACTION_ACTIVE_NAME: CallActionActive,
    CALL_ACTION_HOLD_NAME: CallActionHold,
    CALL_ACTION_BRIDGE_NAME: CallActionBridge,
    CALL_ACTION_AMD_NAME: CallActionAMD,
    CALL_ACTION_HANGUP_NAME: CallActionHangup,
}


@dataclass
class CallActionData(CallAction):
    """A raw call event whose payload is decoded on demand."""

    data: Optional[str] = None
    _parsed: Any = field(default=None, init=False, repr=False, compare=False)

    @classmethod
    def from_dict(cls, data) -> "CallActionData":
        """Build from a decoded JSON message; raise ValueError when it does not fit."""
        if not isinstance(data, dict):
            raise ValueError(f"call event must be an object, got {data!r}")
        action = cls()
        errors = _decode_into(action, data, CallAction._SPECS + (("data", "data", _as_str, True),))
        if errors:
            raise ValueError("; ".join(errors))
        return action

    def get_event(self) -> Any:
        """The typed event for this action, decoded once and then reused."""
        if self._parsed is not None:
            return self._parsed

        event_type = _EVENT_TYPES.get(self.event)
        parsed: Any = None
        if event_type is not None:
            parsed = event_type(
                id=self.id,
                app_id=self.app_id,
                domain_id=self.domain_id,
                timestamp=self.timestamp,
                event=self.event,
            )

        if self.data is not None:
            problem: Optional[str] = None
            try:
                payload = json.loads(self.data)
            except ValueError as exc:
                problem = str(exc)
            else:
                if parsed is None or payload is None:
                    parsed = payload
                elif isinstance(payload, dict):
                    errors = _decode_into(parsed, payload, type(parsed)._SPECS)
                    if errors:
                        problem = "; ".join(errors)
                else:
                    problem = f"cannot decode {type(payload).__name__} into {type(parsed).__name__}"
            if problem is not None:
                logger.error("parse call %s [%s] error: %s", self.id, self.event, problem)

        self._parsed = parsed
        return parsed


@dataclass
class CallRequestApplication:
    app_name: str = ""
    args: str = ""


@dataclass
class CallRequest:
    id: Optional[str] = None
    endpoints: list[str] = field(default_factory=list)
    strategy: int = CallStrategy.DEFAULT
    destination: str = ""
    variables: dict[str, str] = field(default_factory=dict)
    timeout: int = 0
    caller_name: str = ""
    caller_number: str = ""
    dialplan: str = ""
    context: str = ""
    applications: list[CallRequestApplication] = field(default_factory=list)
    check_parent_id: str = ""

    def set_push(self) -> None:
        self.variables["execute_on_originate"] = "wbt_send_hook"

    def set_auto_dtmf(self, dtmf) -> None:
        """Send the DTMF digits after answer; an empty string does nothing."""
        if not dtmf:
            return
        self.variables["execute_on_answer_1"] = f"send_dtmf W{digits_dtmf_only(dtmf)}"

    def set_auto_answer(self) -> None:
        self.variables[QUEUE_AUTO_ANSWER_VARIABLE] = "true"


def digits_dtmf_only(value) -> str:
    """Keep only decimal digits and the W/w wait characters."""
    return "".join(c for c in value if c in "Ww" or c.isdecimal())


@dataclass
class CallGateway:
    id: int = 0


@dataclass
class CallCommandsEndpoint:
    name: str = ""
    host: str = ""


@dataclass
class _InboundCallData:
    call_id: str = ""
    call_state: str = ""
    call_direction: str = ""
    call_destination: str = ""
    call_timestamp: int = 0
    call_app_id: str = ""
    call_from_number: Optional[str] = None
    call_from_name: Optional[str] = None
    call_answered_at: int = 0
    call_bridged_at: int = 0
    call_created_at: int = 0


@dataclass
class InboundCallQueue(_InboundCallData):
    attempt_id: int = 0
    queue_id: int = 0
    queue_updated_at: int = 0
    destination: bytes = b""
    variables: dict[str, str] = field(default_factory=dict)
    name: str = ""
    team_updated_at: Optional[int] = None


@dataclass
class InboundCallAgent(_InboundCallData):
    attempt_id: int = 0
    destination: bytes = b""
    variables: dict[str, str] = field(default_factory=dict)
    name: str = ""
    team_id: int = 0
    team_updated_at: int = 0
    agent_updated_at: int = 0