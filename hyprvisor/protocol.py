"""Wire format spoken over the hyprvisor socket.

Clients open the connection with a single JSON handshake, for example
``{"pid": 4242, "name": "workspace"}``. The server answers with one
acknowledgement line, then pushes one JSON object per line per broadcast tick:
``{"topic": "workspace", "data": ["active", "empty", ...]}``.
"""

import json
from typing import Any

from hyprvisor.domain.errors import MalformedHandshakeError, ShortReadError
from hyprvisor.domain.models import HandshakeRecord, StateSnapshot
from hyprvisor.domain.topics import Topic

MIN_HANDSHAKE_BYTES = 2


def encode_handshake(pid: int, topic: Topic) -> bytes:
    return json.dumps(HandshakeRecord(pid=pid, name=topic.wire_name).to_dict()).encode()


def decode_handshake(raw: bytes) -> HandshakeRecord:
    if len(raw) < MIN_HANDSHAKE_BYTES:
        raise ShortReadError(len(raw))
    try:
        data = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedHandshakeError(f"Failed to parse subscription message: {e}") from e
    if not isinstance(data, dict):
        raise MalformedHandshakeError("Subscription message must be a JSON object")
    try:
        return HandshakeRecord.from_dict(data)
    except (KeyError, ValueError) as e:
        raise MalformedHandshakeError(f"Invalid subscription message: {e}") from e


def encode_acknowledgement(pid: int, topic: Topic) -> bytes:
    return _encode_line({"status": "subscribed", "pid": pid, "topic": topic.wire_name})


def encode_payload(topic: Topic, snapshot: StateSnapshot) -> bytes:
    return _encode_line({"topic": topic.wire_name, "data": snapshot.value_for(topic)})


def decode_payload(line: bytes) -> tuple[Topic, Any]:
    message = json.loads(line)
    return Topic.from_wire(message["topic"]), message["data"]


def _encode_line(message: dict[str, Any]) -> bytes:
    return json.dumps(message).encode() + b"\n"
