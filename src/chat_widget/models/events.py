"""
Wire envelope kinds and widget signal names.
"""

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict


class InboundKind:
    """Server → client envelope kinds."""

    CONNECTION_ESTABLISHED = "connection_established"
    THINKING_STARTED = "thinking_started"
    THINKING_START = "thinking_start"
    THINKING_COMPLETE = "thinking_complete"
    ERROR = "error"
    IDENTIFICATION_REQUEST = "identification_request"
    CHAT_RESPONSE = "chat_response"
    CHAT_STREAM = "chat_stream"
    FUNCTION_CALL = "function_call"
    FUNCTION_RESULT = "function_result"
    USER_DETAILS_FORM = "user_details_form"
    BOOKING_CONFIRMED = "booking_confirmed"


def normalize_kind(kind: Optional[str]) -> str:
    """Hyphenated kinds (`thinking-start`) are aliases of the underscore ones."""
    return (kind or "").replace("-", "_")


class OutboundKind:
    """Client → server envelope kinds."""

    CHAT_MESSAGE = "chat_message"
    IMAGE_MESSAGE = "image_message"
    USER_DETAILS_SUBMIT = "user_details_submit"
    USER_DETAILS_CANCELLED = "user_details_cancelled"
    SET_PREFERENCE = "set_preference"
    HEARTBEAT = "heartbeat"


class WidgetSignal:
    """Signals delivered to the presentation layer."""

    STATUS_CHANGED = "connection-status-changed"
    NEW_MESSAGE = "new-message"
    UPDATE_MESSAGE = "update-message"
    SHOW_USER_FORM = "show-user-form"
    HIDE_LOADER = "hide-loader"
    THINKING_START = "thinking-start"
    THINKING_COMPLETE = "thinking-complete"
    REVEAL_COMPLETE = "reveal-complete"


class MessageKind:
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class NewMessage(BaseModel):
    """new-message signal data"""
    model_config = ConfigDict(frozen=True)

    kind: str = MessageKind.ASSISTANT
    content: str
    id: str
    is_html: bool = False
    skip_reveal: bool = False
    is_streaming: bool = False


class MessageUpdate(BaseModel):
    """update-message signal data"""
    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    is_complete: bool = False
    is_html: bool = False


class WidgetEvent:
    __slots__ = ("type", "data")

    def __init__(self, type: str, data: Optional[Any] = None):
        self.type = type
        self.data = data

    def __repr__(self) -> str:
        return f"WidgetEvent(type={self.type!r}, data={self.data!r})"
