"""
SocketIO-style framing used by the driving simulator.

Frames look like ``42["telemetry", {...}]``: "4" marks a websocket message,
"2" an event. The payload is a JSON array of the event name and its data.
"""
import json

from waypoint_mpc.control.errors import ControllerError

EVENT_PREFIX = "42"


class ProtocolError(ControllerError):
    """A frame that looks like an event but cannot be decoded."""


def is_event_frame(frame: str) -> bool:
    return len(frame) > 2 and frame.startswith(EVENT_PREFIX)


def has_data(frame: str) -> str:
    """
    Extract the JSON array from an event frame.

    Returns the text between the first "[" and the last "]", or "" when the
    frame carries null or no array at all.
    """
    if "null" in frame:
        return ""
    start = frame.find("[")
    end = frame.rfind("]")
    if start != -1 and end != -1 and end > start:
        return frame[start:end + 1]
    return ""


def parse_event(data: str):
    """Decode the array returned by has_data into (event, payload)."""
    try:
        decoded = json.loads(data)
    except json.JSONDecodeError as exc:
        raise ProtocolError(f"Invalid JSON in event frame: {exc}") from exc
    if not isinstance(decoded, list) or not decoded or not isinstance(decoded[0], str):
        raise ProtocolError("Event frame must be a JSON array starting with the event name")
    payload = decoded[1] if len(decoded) > 1 else None
    return decoded[0], payload


def encode_event(event: str, payload) -> str:
    return EVENT_PREFIX + json.dumps([event, payload])


def encode_steer(command) -> str:
    return encode_event("steer", command.to_message())


def encode_manual() -> str:
    return encode_event("manual", {})
