import json
import threading
from datetime import datetime, timezone

from callcenter.model.member import (
    MEMBER_STATE_BRIDGED,
    MEMBER_STATE_IDLE,
    MEMBER_STATE_WAIT_AGENT,
    AttemptCallback,
    AttemptFlipResource,
    MemberAttempt,
    SchemaResult,
)
from callcenter.queue.attempt import (
    ATTEMPT_HOOK_DISTRIBUTE_AGENT,
    Attempt,
)


class FakeManager:
    def __init__(self, result):
        self.result = result

    def after_distribute_schema(self, attempt):
        return self.result


class FakeQueue:
    def __init__(self, result=None, processing=False):
        self.hooks = []
        self._manager = FakeManager(result)
        self._processing = processing

    def manager(self):
        return self._manager

    def hook(self, state, attempt):
        self.hooks.append((state, attempt.id()))

    def id(self):
        return 7

    def processing(self):
        return self._processing


class FakeAgent:
    def id(self):
        return 3

    def team_id(self):
        return 4

    def user_id(self):
        return 5

    def team_updated_at(self):
        return 99

    def name(self):
        return "Agent"

    def call_number(self):
        return "100"


class FakeResource:
    def get_display(self):
        return "380000"


class FakeChannel:
    def __init__(self, ident, stats=None):
        self._id = ident
        self._stats = stats or {}

    def id(self):
        return self._id

    def stats(self):
        return self._stats


class FakeForm:
    def __init__(self, fail=False):
        self.closed = False
        self.fail = fail

    def close(self):
        self.closed = True
        if self.fail:
            raise RuntimeError("boom")


def make(**kwargs):
    dest = kwargs.pop("destination", {"destination": "555", "type": {"id": 2}, "attempts": 1})
    member = MemberAttempt(id=11, queue_id=1, name="John",
                           destination=json.dumps(dest).encode(), **kwargs)
    return Attempt(member)


def test_initial_state_and_destination():
    a = make()
    assert a.get_state() == MEMBER_STATE_IDLE
    assert a.destination() == "555"
    assert a.id() == 11
    assert a.name() == "John"


def test_distribute_agent_only_when_waiting():
    a = make()
    agent = FakeAgent()
    listener = a.on(ATTEMPT_HOOK_DISTRIBUTE_AGENT)
    a.distribute_agent(agent)
    assert a.agent is None
    assert listener.empty()

    a.set_state(MEMBER_STATE_WAIT_AGENT)
    a.distribute_agent(agent)
    assert a.agent is agent
    assert listener.get_nowait() == (agent,)


def test_off_all_removes_listeners():
    a = make()
    listener = a.on("x")
    a.off("*")
    a.emit("x", 1)
    assert listener.empty()


def test_set_state_bridged_records_time_and_hooks():
    a = make()
    q = FakeQueue()
    a.queue = q
    a.set_state(MEMBER_STATE_BRIDGED)
    first = a.bridged_at()
    assert first > 0
    a.set_state(MEMBER_STATE_BRIDGED)
    assert a.bridged_at() == first
    assert q.hooks == [(MEMBER_STATE_BRIDGED, 11), (MEMBER_STATE_BRIDGED, 11)]


def test_export_variables_prefix_on_call_channel():
    a = make(variables={"foo": "1", "sip_h_X": "2", "wbt_y": "3"}, seq=4)
    a.channel = "call"
    assert a.export_variables() == {
        "usr_foo": "1", "sip_h_X": "2", "wbt_y": "3", "cc_attempt_seq": "4",
    }
    a.channel = "chat"
    assert a.export_variables()["foo"] == "1"


def test_export_schema_variables():
    a = make(variables={"k": "v"}, member_id=8, resource_id=12)
    a.queue = FakeQueue(processing=True)
    a.agent = FakeAgent()
    a.member_channel = FakeChannel("m1", {"talk": "5", "empty": ""})
    a.set_result("success")
    res = a.export_schema_variables()
    assert res["k"] == "v"
    assert res["destination"] == "555"
    assert res["attempt_id"] == "11"
    assert res["destination_type"] == "2"
    assert res["destination_seq"] == "2"
    assert res["member_id"] == "8"
    assert res["cc_resource_id"] == "12"
    assert res["cc_result"] == "success"
    assert res["use_processing"] == "true"
    assert res["agent_extension"] == "100"
    assert res["member_channel_id"] == "m1"
    assert res["talk"] == "5"
    assert "empty" not in res


def test_display_falls_back_to_resource():
    a = make()
    assert a.display() == ""
    a.resource = FakeResource()
    assert a.display() == "380000"
    b = make(destination={"destination": "1", "display": "777"})
    b.resource = FakeResource()
    assert b.display() == "777"


def test_after_distribute_schema_applies_result():
    a = make()
    assert a.after_distribute_schema() is None
    res = SchemaResult(max_attempts=5, wait_between_retries=60, description="d",
                       agent_id=9, redial=True, variables={"x": "y"})
    a.queue = FakeQueue(res)
    assert a.after_distribute_schema() is res
    assert a.max_attempts == 5
    assert a.wait_between == 60
    assert a.description == "d"
    assert a.sticky_agent_id == 9
    assert a.redial is True
    assert a.get_variable("x") == "y"


def test_processing_fields_only_after_start():
    a = make()
    a.update_processing_fields({"a": "b"})
    assert a.processing_fields() is None
    a.mark_processing_form_started()
    assert a.processing_form_started()
    assert a.processing_fields() == {"a": "b"}


def test_callback_sets_result():
    a = make()
    a.set_callback(AttemptCallback(status="abandoned"))
    assert a.result() == "abandoned"
    assert a.callback().status == "abandoned"


def test_variables_add_remove():
    a = make()
    assert a.get_variable("k") is None
    a.add_variables({"k": "v"})
    assert a.get_variable("k") == "v"
    a.remove_variable("k")
    assert a.get_variable("k") is None


def test_member_id_zero_is_none():
    assert make(member_id=0).member_id() is None
    assert make(member_id=6).member_id() == 6


def test_flip_resource_and_barred_and_timeout():
    a = make(list_communication_id=1, result="TIMEOUT")
    a.flip_resource(AttemptFlipResource(resource_id=2, call_id="c"))
    assert a.resource_id() == 2
    assert a.member_call_id() == "c"
    assert a.is_barred()
    assert a.is_timeout()


def test_team_updated_at():
    a = make(team_updated_at=5)
    assert a.team_updated_at() == 5
    a.agent = FakeAgent()
    assert a.team_updated_at() == 99


def test_joined_at():
    a = make(created_at=datetime(1970, 1, 1, 0, 0, 2, tzinfo=timezone.utc))
    assert a.joined_at() == 2000
    assert make().joined_at() == 0


def test_transferred_once():
    a = make()
    assert a.transferred_at() == 0
    a.mark_transferred()
    first = a.transferred_at()
    a.mark_transferred()
    assert first > 0 and a.transferred_at() == first


def test_cancel():
    a = make()
    assert not a.canceled()
    assert a.wait_cancel(0.01) is False
    threading.Timer(0.01, a.set_cancel).start()
    assert a.wait_cancel(2) is True
    a.set_cancel()
    assert a.canceled()


def test_member_stop_cause():
    a = make()
    assert a.member_stop_cause() == ""
    a.set_member_stop_cause("cancel")
    assert a.member_stop_cause() == "cancel"


def test_close_swallows_form_error():
    a = make()
    form = FakeForm(fail=True)
    a.processing_form = form
    a.close()
    assert form.closed


def test_to_json_without_info():
    assert json.loads(make().to_json()) == {"info": None}