"""A member's attempt in a queue: its state, variables, agent and events."""

from __future__ import annotations

import json
import logging
import queue as _queue
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from callcenter.model.member import (
    MEMBER_STATE_BRIDGED,
    MEMBER_STATE_IDLE,
    MEMBER_STATE_WAIT_AGENT,
    AttemptCallback,
    AttemptFlipResource,
    MemberAttempt,
    SchemaResult,
    member_destination_from_bytes,
)
from callcenter.model.utils import get_millis, union_string_maps

ATTEMPT_HOOK_DISTRIBUTE_AGENT = "agent"
ATTEMPT_HOOK_OFFERING_AGENT = "offering"
ATTEMPT_HOOK_BRIDGED_AGENT = "bridged"
ATTEMPT_HOOK_MISSED_AGENT = "missed"
ATTEMPT_HOOK_LEAVING = "leaving"
ATTEMPT_HOOK_REPORTING_TIMEOUT = "timeout"

ATTEMPT_RESULT_ABANDONED = "abandoned"
ATTEMPT_RESULT_SUCCESS = "success"
ATTEMPT_RESULT_TIMEOUT = "timeout"
ATTEMPT_RESULT_POST_PROCESSING = "processing"
ATTEMPT_RESULT_TRANSFER = "transfer"
ATTEMPT_RESULT_ENDLESS = "endless"
ATTEMPT_RESULT_MAX_WAIT_SIZE = "max_wait_size"
ATTEMPT_RESULT_AGENT_TIMEOUT = "agent_timeout"
ATTEMPT_RESULT_CLIENT_TIMEOUT = "client_timeout"
ATTEMPT_RESULT_DIALOG_TIMEOUT = "dialog_timeout"
ATTEMPT_RESULT_BLOCK_LIST = "block"

_CHANNEL_CALL = "call"
_ATTEMPT_SEQ_VARIABLE = "cc_attempt_seq"
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_module_logger = logging.getLogger(__name__)


class Attempt:
    """One distribution attempt of a queue member.

    Collaborators (queue, resource, agent, channels, processing form) are
    duck-typed objects attached as attributes after construction.
    """

    def __init__(self, member, logger=None):
        self.member: MemberAttempt = member
        self.communication = member_destination_from_bytes(member.destination)
        self.state = MEMBER_STATE_IDLE
        self.domain_id = 0
        self.channel = ""
        self.channel_data: Any = None

        self.queue: Any = None
        self.resource: Any = None
        self.agent: Any = None
        self.agent_channel: Any = None
        self.member_channel: Any = None
        self.processing_form: Any = None
        self.info: Any = None

        self.max_attempts = 0
        self.wait_between = 0
        self.per_numbers = False
        self.exclude_curr_number = False
        self.redial = False
        self.description: Optional[str] = None
        self.sticky_agent_id: Optional[int] = None
        self.manual_distribution = False

        self._lock = threading.RLock()
        self._member_stop_cause: Optional[str] = None
        self._result: Optional[AttemptCallback] = None
        self._cancel = threading.Event()
        self._processing_fields: dict[str, str] = {}
        self._processing_form_started = False
        self._bridged_at = 0
        self._transferred_at = 0
        self._listeners: dict[str, list[_queue.Queue]] = {}

        extra: dict[str, Any] = {
            "attempt_id": member.id,
            "queue_id": member.queue_id,
            "name": member.name,
        }
        if member.member_id is not None:
            extra["member_id"] = member.member_id
        self._log = logging.LoggerAdapter(logger or _module_logger, extra)

    # events

    def on(self, event) -> _queue.Queue:
        """Subscribe to an event; emitted arguments arrive as tuples on the returned queue."""
        listener: _queue.Queue = _queue.Queue()
        with self._lock:
            self._listeners.setdefault(event, []).append(listener)
        return listener

    def off(self, event) -> None:
        """Drop the listeners of an event, or of every event for "*"."""
        with self._lock:
            if event == "*":
                self._listeners.clear()
            else:
                self._listeners.pop(event, None)

    def emit(self, event, *args) -> None:
        with self._lock:
            listeners = list(self._listeners.get(event, ()))
        for listener in listeners:
            listener.put(args)

    # schema

    def after_distribute_schema(self) -> Optional[SchemaResult]:
        """Apply the queue's after-distribute schema result, if any, and return it."""
        if self.queue is None:
            return None
        res = self.queue.manager().after_distribute_schema(self)
        if res is None:
            return None
        if res.max_attempts > 0:
            self.max_attempts = res.max_attempts
            self.log(f"set distribute max attempts {self.max_attempts}")
        if res.wait_between_retries > 0:
            self.wait_between = res.wait_between_retries
            self.log(f"set distribute wait between {self.wait_between}")
        if res.exclude_current_number:
            self.exclude_curr_number = True
            self.log("set exclude current number")
        if res.description:
            self.description = res.description
            self.log(f"set description: {res.description}")
        if res.agent_id:
            self.sticky_agent_id = res.agent_id
            self.log(f"set stickyAgentId: {res.agent_id}")
        if res.redial:
            self.redial = True
            self.log("set redial current number")
        if res.variables is not None:
            self.add_variables(res.variables)
        return res

    # processing form and transfer

    def mark_processing_form_started(self) -> None:
        with self._lock:
            self._processing_form_started = True

    def mark_transferred(self) -> None:
        with self._lock:
            if self._transferred_at == 0:
                self._transferred_at = get_millis()

    def transferred_at(self) -> int:
        with self._lock:
            return self._transferred_at

    def processing_form_started(self) -> bool:
        with self._lock:
            return self._processing_form_started

    def update_processing_fields(self, fields) -> None:
        with self._lock:
            self._processing_fields.update({str(k): str(v) for k, v in fields.items()})

    def processing_fields(self) -> Optional[dict[str, str]]:
        """The processing form fields, or None before the form has started."""
        with self._lock:
            if not self._processing_form_started:
                return None
            return dict(self._processing_fields)

    # state

    def set_member_stop_cause(self, cause) -> None:
        with self._lock:
            self._member_stop_cause = cause

    def member_stop_cause(self) -> str:
        with self._lock:
            return self._member_stop_cause or ""

    def set_callback(self, callback) -> None:
        with self._lock:
            self._result = callback
            if callback.status:
                self.set_result(callback.status)

    def callback(self) -> Optional[AttemptCallback]:
        with self._lock:
            return self._result

    def set_agent(self, agent) -> None:
        with self._lock:
            self.agent = agent

    def set_state(self, state) -> None:
        with self._lock:
            self.state = state
            if state == MEMBER_STATE_BRIDGED and self._bridged_at == 0:
                self._bridged_at = get_millis()
        if self.queue is not None:
            self.queue.hook(state, self)

    def get_state(self) -> str:
        with self._lock:
            return self.state

    def bridged_at(self) -> int:
        with self._lock:
            return self._bridged_at

    def distribute_agent(self, agent) -> None:
        """Hand an agent to an attempt that is waiting for one."""
        if self.get_state() != MEMBER_STATE_WAIT_AGENT:
            return
        with self._lock:
            self.agent = agent
        self.emit(ATTEMPT_HOOK_DISTRIBUTE_AGENT, agent)
        self._log.debug(
            "attempt[%d] distribute agent %d (team %d, user %d)",
            self.id(), agent.id(), agent.team_id(), agent.user_id(),
        )

    def team_updated_at(self) -> int:
        if self.agent is not None:
            return self.agent.team_updated_at()
        return self.member.team_updated_at or 0

    # member data

    def id(self) -> int:
        return self.member.id

    def result(self) -> str:
        with self._lock:
            return self.member.result or ""

    def queue_id(self) -> int:
        return self.member.queue_id

    def queue_updated_at(self) -> int:
        return self.member.queue_updated_at

    def resource_id(self) -> Optional[int]:
        return self.member.resource_id

    def agent_id(self) -> Optional[int]:
        return self.member.agent_id

    def agent_updated_at(self) -> Optional[int]:
        return self.member.agent_updated_at

    def resource_updated_at(self) -> Optional[int]:
        return self.member.resource_updated_at

    def name(self) -> str:
        return self.member.name

    def flip_resource(self, res: AttemptFlipResource) -> None:
        self.member.resource_id = res.resource_id
        self.member.resource_updated_at = res.resource_updated_at
        self.member.gateway_updated_at = res.gateway_updated_at
        self.member.member_call_id = res.call_id

    def display(self) -> str:
        """The caller id to show: the member's own, else the resource's."""
        if self.communication.display:
            return self.communication.display
        if self.resource is not None:
            self.communication.display = self.resource.get_display()
            return self.communication.display
        return ""

    def destination(self) -> str:
        return self.communication.destination

    def export_variables(self) -> dict[str, str]:
        """Member variables for a call; plain names get a usr_ prefix on call channels."""
        res: dict[str, str] = {}
        for key, value in (self.member.variables or {}).items():
            if (
                self.channel == _CHANNEL_CALL
                and not key.startswith("sip_h_")
                and not key.startswith("wbt_")
            ):
                res[f"usr_{key}"] = str(value)
            else:
                res[key] = str(value)
        if self.member.seq is not None:
            res[_ATTEMPT_SEQ_VARIABLE] = str(self.member.seq)
        return res

    def export_schema_variables(self) -> dict[str, str]:
        """Variables handed to flow schemas about this attempt."""
        res = {key: str(value) for key, value in (self.member.variables or {}).items()}
        res.update(self.processing_fields() or {})

        if self.member.seq is not None:
            res[_ATTEMPT_SEQ_VARIABLE] = str(self.member.seq)
        if self.member.timezone is not None:
            res["member_timezone"] = self.member.timezone

        res["destination"] = self.destination()
        res["attempt_id"] = str(self.id())
        res["timestamp"] = str(get_millis())
        res["joined_at"] = str(self.joined_at())

        bridged = self.bridged_at()
        if bridged > 0:
            res["bridged_at"] = str(bridged)
        if self.communication.description:
            res["destination_description"] = self.communication.description
        if self.communication.type.id > 0:
            res["destination_type"] = str(self.communication.type.id)
        if self.communication.attempts >= 0:
            res["destination_seq"] = str(self.communication.attempts + 1)
        if self._result is not None and self._result.description:
            res["agent_description"] = self._result.description
        if self.member.name:
            res["member_name"] = self.member.name
        if self.member.member_id is not None:
            res["member_id"] = str(self.member.member_id)
        if self.member.bucket_id is not None:
            res["bucket_id"] = str(self.member.bucket_id)
        if self.agent_channel is not None:
            res["agent_channel_id"] = self.agent_channel.id()
        if self.member_channel is not None:
            res["member_channel_id"] = self.member_channel.id()
            res = union_string_maps(res, self.member_channel.stats())

        stop_cause = self.member_stop_cause()
        if stop_cause:
            res["member_stop_cause"] = stop_cause
        cc_result = self.result()
        if cc_result:
            res["cc_result"] = cc_result
        resource_id = self.resource_id()
        if resource_id is not None:
            res["cc_resource_id"] = str(resource_id)
        if self.member.communication_idx is not None:
            res["communication_id"] = str(self.member.communication_idx)

        if self.queue is not None:
            res["queue_id"] = str(self.queue.id())
            if self.queue.processing():
                res["use_processing"] = "true"

        if self.agent is not None:
            res["agent_name"] = self.agent.name()
            res["agent_id"] = str(self.agent.id())
            res["user_id"] = str(self.agent.user_id())
            res["agent_extension"] = self.agent.call_number()
        return res

    def get_variable(self, name) -> Optional[str]:
        with self._lock:
            return (self.member.variables or {}).get(name)

    def add_variables(self, variables) -> None:
        with self._lock:
            if self.member.variables is None:
                self.member.variables = {}
            self.member.variables.update(variables)

    def remove_variable(self, name) -> None:
        with self._lock:
            if self.member.variables is not None:
                self.member.variables.pop(name, None)

    def member_id(self) -> Optional[int]:
        return self.member.member_id or None

    def member_name(self) -> str:
        return self.member.name

    def member_call_id(self) -> Optional[str]:
        return self.member.member_call_id

    def is_barred(self) -> bool:
        return self.member.list_communication_id is not None

    def is_timeout(self) -> bool:
        return self.member.is_timeout()

    def set_result(self, result) -> None:
        self.member.result = result

    # logging and serialisation

    def log(self, info) -> None:
        self._log.debug("attempt [%s] > %s", self.id(), info)

    def log_if_error(self, err) -> None:
        if err is not None:
            self._log.debug("attempt [%s] > %s", self.id(), err)

    def to_json(self) -> str:
        info = None
        if self.info is not None:
            raw = self.info.data()
            try:
                info = json.loads(raw) if raw else None
            except ValueError:
                info = bytes(raw).decode("utf-8", errors="replace")
        return json.dumps({"info": info}, ensure_ascii=False, separators=(",", ":"))

    def joined_at(self) -> int:
        """When the member joined, in milliseconds since the epoch (0 when unknown)."""
        created = self.member.created_at
        if created is None:
            return 0
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        return (created - _EPOCH) // timedelta(milliseconds=1)

    # cancellation

    def set_cancel(self) -> None:
        self.log("cancel")
        with self._lock:
            self._cancel.set()

    def canceled(self) -> bool:
        return self._cancel.is_set()

    def wait_cancel(self, timeout=None) -> bool:
        """Block until the attempt is canceled; return whether it was within the timeout."""
        return self._cancel.wait(timeout)

    def close(self) -> None:
        if self.processing_form is not None:
            try:
                self.processing_form.close()
            except Exception as exc:  # the form belongs to another service
                self.log(str(exc))