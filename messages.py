import json
from dataclasses import dataclass
from typing import Any, Optional

from errors import MessageFormatError

MESSAGE_DELIMITER = "^"


@dataclass(frozen=True)
class MessageHeader:
    sender_id: str
    receiver_id: str
    message_type: Optional[str] = None


def parse_header(frame: str) -> MessageHeader:
    """Read the routing header from the front of a raw frame.

    Frames look like ``{"r":"<receiver>","s":"<sender>",...}^<payload>``. The
    payload is never inspected.
    """
    if not isinstance(frame, str):
        raise MessageFormatError("Message frame must be text")

    header_text, delimiter, _ = frame.partition(MESSAGE_DELIMITER)
    if not delimiter:
        raise MessageFormatError("Message frame has no header delimiter")

    try:
        header = json.loads(header_text)
    except (ValueError, RecursionError) as e:
        raise MessageFormatError(f"Message header is not valid JSON: {e}") from e

    if not isinstance(header, dict):
        raise MessageFormatError("Message header must be a JSON object")

    sender_id = header.get("s")
    receiver_id = header.get("r")
    if not isinstance(sender_id, str) or not isinstance(receiver_id, str):
        raise MessageFormatError("Message header needs string 's' and 'r' fields")

    message_type = header.get("t")
    return MessageHeader(
        sender_id=sender_id,
        receiver_id=receiver_id,
        message_type=message_type if isinstance(message_type, str) else None,
    )


def serialize(receiver_id: str, sender_id: str, message: Any, message_type: Optional[str] = None) -> str:
    """Build a routable frame for a server-originated message."""
    header = {"r": receiver_id, "s": sender_id}
    if message_type:
        header["t"] = message_type

    header_text = json.dumps(header, separators=(",", ":"))
    if MESSAGE_DELIMITER in header_text:
        raise MessageFormatError("Message header may not contain the delimiter")

    return header_text + MESSAGE_DELIMITER + json.dumps(message, separators=(",", ":"))


def decode_frame(message: dict) -> str:
    """Text of an inbound websocket message; binary frames are read as UTF-8."""
    text = message.get("text")
    if text is not None:
        return text
    data = message.get("bytes")
    if data is None:
        raise MessageFormatError("Message frame is empty")
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MessageFormatError(f"Binary message frame is not UTF-8: {e}") from e
