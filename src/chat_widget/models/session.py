"""
Session and streaming state models.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class SessionState(BaseModel):
    """Read-only snapshot of a transport's session."""
    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    session_id: Optional[str] = None


class StreamingMessage(BaseModel):
    """An assistant reply arriving as growing partial contents."""
    id: str
    accumulated_length: int = 0
    is_complete: bool = False

    def advance(self, length: int, is_complete: bool) -> None:
        self.accumulated_length = max(self.accumulated_length, length)
        self.is_complete = self.is_complete or is_complete
