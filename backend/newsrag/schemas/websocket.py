"""WebSocket frame schemas.

Server → client frames are plain dicts sent with ``send_json``:

    {"type": "connection", "sessionId", "message"}
    {"type": "bot", "sessionId", "message", "sources"?}
    {"type": "typing", "sessionId"}
    {"type": "error", "message"}
    {"type": "ping"} / {"type": "pong"}

Client → server chat frames are ``{"sessionId", "message"}``; the ``type``
field is optional and only used for ``ping`` / ``pong``.
"""
import json
from typing import Any

from pydantic import StrictStr, ValidationError, Field

from newsrag.exceptions import MalformedMessage
from newsrag.schemas.common import CamelModel

CONNECTED_MESSAGE = "Connected to chat server"
WELCOME_MESSAGE = (
    "Hello! I'm your news assistant powered by AI. I can answer questions about "
    "current news events. What would you like to know?"
)
INVALID_JSON_MESSAGE = "Malformed message: payload is not valid JSON"
INVALID_FORMAT_MESSAGE = "Invalid message format"
PROCESSING_ERROR_MESSAGE = "Error processing your message"
BUSY_MESSAGE = "Too many pending messages, please wait for a reply"


class InboundChatFrame(CamelModel):
    session_id: StrictStr = Field(..., min_length=1)
    message: StrictStr = Field(..., min_length=1)


def decode_frame(raw: str | bytes) -> dict[str, Any]:
    """Parse raw text into a JSON object, raising MalformedMessage otherwise."""
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedMessage(INVALID_JSON_MESSAGE) from exc
    if not isinstance(payload, dict):
        raise MalformedMessage(INVALID_FORMAT_MESSAGE)
    return payload


def parse_chat_frame(payload: dict[str, Any]) -> InboundChatFrame:
    try:
        return InboundChatFrame.model_validate(payload)
    except ValidationError as exc:
        raise MalformedMessage(INVALID_FORMAT_MESSAGE) from exc


def connection_frame(session_id: str) -> dict[str, Any]:
    return {"type": "connection", "sessionId": session_id, "message": CONNECTED_MESSAGE}


def bot_frame(session_id: str, message: str, sources: list[str] | None = None) -> dict[str, Any]:
    frame: dict[str, Any] = {"type": "bot", "sessionId": session_id, "message": message}
    if sources is not None:
        frame["sources"] = sources
    return frame


def typing_frame(session_id: str) -> dict[str, Any]:
    return {"type": "typing", "sessionId": session_id}


def error_frame(message: str) -> dict[str, Any]:
    return {"type": "error", "message": message}


def ping_frame() -> dict[str, Any]:
    return {"type": "ping"}


def pong_frame() -> dict[str, Any]:
    return {"type": "pong"}
