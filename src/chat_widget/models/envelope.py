"""
Wire envelope: one flat JSON object per message.

    {"type": "...", "sessionId": "...", <payload fields>}
"""

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field

KIND_KEY = "type"
SESSION_KEY = "sessionId"


class Envelope(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: Optional[str] = Field(default=None, alias=KIND_KEY)
    session_id: Optional[str] = Field(default=None, alias=SESSION_KEY)
    payload: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_wire(cls, raw: dict[str, Any]) -> "Envelope":
        """Split a flat wire object into kind, session id and payload."""
        payload = {k: v for k, v in raw.items() if k not in (KIND_KEY, SESSION_KEY)}
        return cls.model_validate({KIND_KEY: raw.get(KIND_KEY), SESSION_KEY: raw.get(SESSION_KEY), "payload": payload})

    def get(self, key: str, default: Any = None) -> Any:
        return self.payload.get(key, default)

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {}
        if self.kind is not None:
            wire[KIND_KEY] = self.kind
        if self.session_id is not None:
            wire[SESSION_KEY] = self.session_id
        wire.update(self.payload)
        return wire
