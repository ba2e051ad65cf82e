# callcenter

Building blocks for a contact-centre service: the data models exchanged
between a queue engine, a telephony switch and an event bus; an event-bus
client that publishes agent, channel and notification events and buffers
incoming call and chat events; and the `Attempt` object that tracks one
member's pass through a queue.

The package uses only the standard library at run time.

## Modules

- `callcenter.model.utils` – `AppError` (an exception with an id, details
  and an HTTP status code, serialised by `to_json()`), `Lookup`, identifier
  helpers (`new_id`, `new_uuid`), millisecond time helpers (`get_millis`,
  `time_to_int64`, `int64_to_time`, `utc_time`) and JSON helpers
  (`map_to_json`, `map_from_json`, `array_to_json`, `array_from_json`,
  `string_interface_to_json`, `map_string_interface_to_string`,
  `union_string_maps`). Also holds `CURRENT_VERSION` and
  `ERR_QUEUE_MAX_WAIT_SIZE`.
- `callcenter.model.queue` – `Queue` (with `channel()`), `QueueType`,
  `RingtoneFile`, `ringtone_uri`, answering-machine detection settings
  (`QueueAmdSettings.to_args()`, `ai_tags()`), `QueueInboundSettings` and
  `queue_inbound_settings_from_bytes`, queue hooks and queue events.
- `callcenter.model.agent` – `Agent`, `AgentStatus`, agent events
  (`Event`, `new_event`, `AgentEventStatus`, `AgentEventOnlineStatus`, each
  with `to_json()`), `Team`, `ChannelTimeout`, `ClusterInfo` and related
  records.
- `callcenter.model.chat` – `ChatEvent`, with accessors for the fields a
  chat event body carries, plus `InboundChatQueue`, `Conversation` and
  `Participant`.
- `callcenter.model.notification` – `Notification`, `MemberWaiting`,
  `MemberWaitingByUsers`, `TaskToAgent`, `QueueDumpParams`,
  `TriggerJobState`, `TriggerJobParameter` and `TriggerJob`.
- `callcenter.model.call` – call records, call action events
  (`CallActionData.from_dict` builds one from a decoded message and
  `get_event()` turns it into a typed event such as `CallActionRinging`
  or `CallActionHangup`), `CallRequest` for originating calls and
  `digits_dtmf_only`.
- `callcenter.model.member` – `MemberAttempt`, `MemberCommunication`,
  `member_destination_from_bytes`, `AttemptCallback`, `SchemaResult`,
  `EventAttempt`, `EventAttemptOffering` and other attempt records.
- `callcenter.model.resource` – `OutboundResource` (`is_valid()` raises
  `AppError` for a name of three bytes or fewer) and `SipGateway`, which
  builds channel variables (`variables()`), endpoints (`endpoint()`) and
  bridge dial strings (`bridge()` from a `BridgeRequest`).
- `callcenter.mq.base` – the abstract `MessageQueue` (usable as a context
  manager that closes on exit), `LayeredMQ`, which forwards every call to a
  wrapped implementation, and `new_mq`.
- `callcenter.mq.rabbit` – `AMQP`, a `MessageQueue` that works on an AMQP
  channel object you supply, and `QueueEventMQ`.
- `callcenter.queue.attempt` – `Attempt`, with lock-protected state,
  variable export for dial plans and schemas, simple event hooks
  (`on`, `off`, `emit`) and cancellation (`set_cancel`, `canceled`,
  `wait_cancel`).

## Examples

Merging channel variables; empty keys and values are dropped and later maps
win:

```python
from callcenter.model.utils import union_string_maps

union_string_maps({"a": "1", "b": ""}, {"a": "2", "c": "3"})
# {'a': '2', 'c': '3'}
```

Media URIs for queue ringtones:

```python
from callcenter.model.queue import ringtone_uri

ringtone_uri(1, 5, "audio/wav")
# 'http_cache://http://$${cdr_url}/sys/media/5/stream?domain_id=1&.wav'
```

Answering-machine detection arguments, with defaults filled in for any
unset threshold:

```python
from callcenter.model.queue import QueueAmdSettings

QueueAmdSettings(enabled=True).to_args()
```

Using the event-bus client with a channel object that provides
`exchange_declare`, `queue_declare`, `consume`, `queue_bind`, `publish` and
`close`:

```python
from callcenter.mq.rabbit import AMQP

bus = AMQP(channel, "node-1")
bus.setup()            # declares the exchange and queue, consumes, binds
bus.agent_change_status(1, 10, event)   # event has to_json()
call_events = bus.consume_call_event()  # a queue.Queue of CallActionData
```

`setup()` raises `ExchangeDeclareError` when the exchange cannot be
declared; `send_json` and `send_notification` raise `AppError` when
publishing fails.

## What the package does not do

- It does not open or keep up a broker connection. `AMQP` works on a
  channel you pass in; connecting, reconnecting and retrying are left to
  the caller.
- It does not run queues. There is no distribution engine, no agent
  manager and no call control; `Attempt` expects its queue, resource,
  agent and channel collaborators to be attached by the code that drives
  it.
- It stores nothing. The models are plain data classes with no database
  layer.
- It has no command-line program or server.