import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

# Epoch values above this are too large to be milliseconds for any plausible date (year ~5138),
# so they are read as nanoseconds.
MAX_MILLIS_TIMESTAMP = 10 ** 14
NANOS_PER_MILLI = 10 ** 6


class Priority(Enum):
    FATAL = 0
    ERROR = 1
    WARN = 2
    INFO = 3
    DEBUG = 4
    TRACE = 5


@dataclass(frozen=True)
class Event:
    """
    One unit of log data as handed over by the collection agent. Read-only to the sink.
    """
    body: bytes
    timestamp: int
    priority: Priority = Priority.INFO
    nanos: int = 0
    host: str = ""
    attributes: Dict[str, bytes] = field(default_factory=dict)

    def timestamp_millis(self) -> int:
        if abs(self.timestamp) > MAX_MILLIS_TIMESTAMP:
            return self.timestamp // NANOS_PER_MILLI
        return self.timestamp

    @classmethod
    def from_dict(cls, data: Dict[str, Any], charset: str = "utf-8") -> "Event":
        """Build an event from a JSON-compatible record, e.g. one line of a JSON-lines feed.

        String payloads are encoded with `charset`; structured payloads (dicts, lists) are serialized as JSON
        so that they are picked up as structured content downstream.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected an event record, got {type(data).__name__}")
        if "body" not in data:
            raise ValueError("Event record is missing required field: body")
        priority_name = str(data.get("priority", Priority.INFO.name)).upper()
        if priority_name not in Priority.__members__:
            raise ValueError(f"Unknown priority: {priority_name}")
        raw_attributes = data.get("attributes") or {}
        if not isinstance(raw_attributes, dict):
            raise ValueError(f"attributes must be an object, got {type(raw_attributes).__name__}")
        attributes = {str(key): _to_bytes(value, charset) for key, value in raw_attributes.items()}
        return cls(body=_to_bytes(data["body"], charset),
                   timestamp=_read_int(data, "timestamp"),
                   priority=Priority[priority_name],
                   nanos=_read_int(data, "nanos"),
                   host=str(data.get("host", "")),
                   attributes=attributes)


def _to_bytes(value: Any, charset: str) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value).encode("utf-8")
    return str(value).encode(charset)


def _read_int(data: Dict[str, Any], name: str) -> int:
    value = data.get(name, 0)
    # bool is an int subclass, but true/false is never a valid epoch
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    return value
