"""Shared helpers: identifiers, time conversion, JSON maps and the application error."""

from __future__ import annotations

import base64
import json
import math
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from http import HTTPStatus
from typing import Any, Optional

StringInterface = dict[str, Any]
StringMap = dict[str, str]
StringArray = list[str]
Int64Array = list[int]

SERVICE_NAME = "call_center"

APP_DEREGISTER_CRITICAL_TTL = timedelta(minutes=2)
APP_SERVICE_TTL = timedelta(seconds=30)

VERSIONS = (
    "25.02",
    "24.10",
    "24.08",
    "24.04",
    "24.02",
    "23.12",
    "23.09",
    "23.07",
    "23.05",
    "23.02",
    "22.12",
    "22.09",
    "22.07",
    "22.05",
    "2019.0.0",
)

CURRENT_VERSION = VERSIONS[0]
BUILD_NUMBER = ""

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_STD_B32 = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
_ID_ALPHABET = "ybndrfg8ejkmcpqxot1uwisza345h769"
_ID_TABLE = str.maketrans(_STD_B32, _ID_ALPHABET)


@dataclass
class Lookup:
    """A reference to an object by id and name."""

    id: int = 0
    name: str = ""


class AppError(Exception):
    """An error carrying an identifier, details and an HTTP status code."""

    def __init__(self, where, id, params, details, status):
        self.id = id
        self.message = id
        self.detailed_error = details
        self.request_id = ""
        self.status_code = status
        self.where = where
        self.is_oauth = False
        self.params = params
        super().__init__(str(self))

    def __str__(self) -> str:
        return f"{self.where}: {self.message}, {self.detailed_error}"

    def to_json(self) -> str:
        data: dict[str, Any] = {
            "id": self.id,
            "message": self.message,
            "detail": self.detailed_error,
        }
        if self.request_id:
            data["request_id"] = self.request_id
        if self.status_code:
            data["status_code"] = self.status_code
        if self.is_oauth:
            data["is_oauth"] = self.is_oauth
        return json.dumps(data, separators=(",", ":"))


ERR_QUEUE_MAX_WAIT_SIZE = AppError(
    "Queue",
    "queue.bad_request.max_wait_size",
    None,
    "Queue max wait size",
    HTTPStatus.BAD_REQUEST,
)


def _as_utc(t: datetime) -> datetime:
    if t.tzinfo is None:
        return t.replace(tzinfo=timezone.utc)
    return t


def time_to_int64(t: Optional[datetime]) -> int:
    """Milliseconds since the Unix epoch, or 0 for no time."""
    if t is None:
        return 0
    delta = _as_utc(t) - _EPOCH
    micros = (delta.days * 86400 + delta.seconds) * 1_000_000 + delta.microseconds
    millis = abs(micros) // 1000
    return millis if micros >= 0 else -millis


def int64_to_time(i: int) -> Optional[datetime]:
    """A UTC time for a count of milliseconds since the epoch; None for 0."""
    if i == 0:
        return None
    return _EPOCH + timedelta(milliseconds=i)


def utc_time(t: Optional[datetime]) -> Optional[datetime]:
    """The same instant expressed in UTC."""
    if t is None:
        return None
    return _as_utc(t).astimezone(timezone.utc)


def new_id() -> str:
    """A 26 character random identifier in a z-base-32 style alphabet."""
    encoded = base64.b32encode(uuid.uuid4().bytes).decode("ascii")
    return encoded.translate(_ID_TABLE)[:26]


def new_uuid() -> str:
    return str(uuid.uuid4())


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), sort_keys=True)


def _read_first_json(data: Any) -> Any:
    """Decode the first JSON value from text, bytes or a readable object."""
    if hasattr(data, "read"):
        data = data.read()
    if isinstance(data, (bytes, bytearray)):
        data = bytes(data).decode("utf-8")
    text = data.lstrip()
    value, _ = json.JSONDecoder().raw_decode(text)
    return value


def map_to_json(objmap) -> str:
    return _dumps(objmap)


def map_from_json(data) -> dict[str, str]:
    """Decode a string map; anything that is not one yields an empty map."""
    try:
        value = _read_first_json(data)
    except (ValueError, UnicodeDecodeError):
        return {}
    if value is None or not isinstance(value, dict):
        return {}
    result: dict[str, str] = {}
    for key, item in value.items():
        if item is None:
            result[key] = ""
        elif isinstance(item, str):
            result[key] = item
        else:
            return {}
    return result


def array_to_json(objmap) -> str:
    return _dumps(objmap)


def array_from_json(data) -> list[str]:
    """Decode a string list; anything that is not one yields an empty list."""
    try:
        value = _read_first_json(data)
    except (ValueError, UnicodeDecodeError):
        return []
    if value is None or not isinstance(value, list):
        return []
    result: list[str] = []
    for item in value:
        if item is None:
            result.append("")
        elif isinstance(item, str):
            result.append(item)
        else:
            return []
    return result


def string_interface_to_json(objmap) -> str:
    return _dumps(objmap)


def get_millis() -> int:
    """Current time in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


def _format_float(x: float) -> str:
    if math.isnan(x):
        return "NaN"
    if math.isinf(x):
        return "+Inf" if x > 0 else "-Inf"
    if x == 0:
        return "-0" if math.copysign(1.0, x) < 0 else "0"
    sign, digits, exponent = Decimal(repr(x)).normalize().as_tuple()
    prefix = "-" if sign else ""
    exp10 = len(digits) + exponent - 1
    if exp10 < -4 or exp10 >= 6:
        text = "".join(str(d) for d in digits)
        mantissa = text[0] + ("." + text[1:] if len(text) > 1 else "")
        exp_sign = "-" if exp10 < 0 else "+"
        return f"{prefix}{mantissa}e{exp_sign}{abs(exp10):02d}"
    return prefix + format(abs(Decimal(repr(x)).normalize()), "f")


def _format_value(value: Any) -> str:
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, dict):
        items = " ".join(
            f"{_format_value(k)}:{_format_value(value[k])}" for k in sorted(value, key=str)
        )
        return f"map[{items}]"
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(_format_value(v) for v in value) + "]"
    return str(value)


def map_string_interface_to_string(source) -> dict[str, str]:
    """Render every value of a map as text."""
    return {key: _format_value(value) for key, value in (source or {}).items()}


def union_string_maps(*args) -> dict[str, str]:
    """Merge maps left to right, skipping empty keys and empty values."""
    result: dict[str, str] = {}
    for mapping in args:
        if not mapping:
            continue
        result.update({k: v for k, v in mapping.items() if k and v})
    return result